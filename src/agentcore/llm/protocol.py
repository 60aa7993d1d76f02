"""Model invocation capability for agentcore.

The reasoning loop consumes the model through this narrow interface.
Provider-specific request/response translation lives in adapters
(see ``LiteLLMAdapter``), never in the loop.
"""

from typing import Any, AsyncIterator, List, Optional, Protocol, runtime_checkable

from agentcore.llm.types import ChatResponse, Message, StreamChunk
from agentcore.tools.protocol import ToolDescriptor


@runtime_checkable
class LLMClient(Protocol):
    """Protocol for model client implementations.

    Example:
        class MyLLMClient:
            async def generate(self, messages, tools=None, **kwargs):
                return ChatResponse(content="Hello")

            async def stream(self, messages, tools=None, **kwargs):
                yield StreamChunk(delta="Hel")
                yield StreamChunk(delta="lo", finish_reason="stop")
    """

    async def generate(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDescriptor]] = None,
        **kwargs: Any,
    ) -> ChatResponse:
        """Return either a final answer or requested tool calls.

        Args:
            messages: List of conversation messages
            tools: Optional tool descriptors for function calling
            **kwargs: Additional provider-specific parameters

        Returns:
            ChatResponse with content and optional tool calls
        """
        ...

    def stream(
        self,
        messages: List[Message],
        tools: Optional[List[ToolDescriptor]] = None,
        **kwargs: Any,
    ) -> AsyncIterator[StreamChunk]:
        """Stream incremental fragments and, at most once, the tool calls.

        Args:
            messages: List of conversation messages
            tools: Optional tool descriptors for function calling
            **kwargs: Additional provider-specific parameters

        Yields:
            StreamChunk objects with incremental content
        """
        ...


__all__ = ["LLMClient"]
