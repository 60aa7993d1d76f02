"""Model invocation layer for agentcore.

Provides the model client abstraction consumed by the reasoning loop:
- Protocol-based client interface
- Immutable types (Message, ChatResponse, StreamChunk, etc.)
- LiteLLM adapter for provider support

Example:
    from agentcore.llm import Message, create_llm_client

    client = create_llm_client("openai/gpt-4o", api_key="sk-...")
    response = await client.generate([Message.user("Hello!")])
"""

from agentcore.llm.config import LLMConfig
from agentcore.llm.litellm_adapter import LiteLLMAdapter, create_llm_client
from agentcore.llm.protocol import LLMClient
from agentcore.llm.types import (
    ChatResponse,
    Message,
    MessageRole,
    StreamChunk,
    ToolCall,
    Usage,
    strip_thinking,
)

__all__ = [
    # Types
    "Message",
    "MessageRole",
    "ToolCall",
    "Usage",
    "ChatResponse",
    "StreamChunk",
    "strip_thinking",
    # Config
    "LLMConfig",
    # Protocol
    "LLMClient",
    # Adapter
    "LiteLLMAdapter",
    "create_llm_client",
]
