"""agentcore - resumable ReAct agents with human-in-the-loop approval.

Example:
    from agentcore import AgentConfig, ReActAgent, create_llm_client

    agent = ReActAgent(AgentConfig(name="assistant"), create_llm_client("openai/gpt-4o"))
    response = await agent.call("Hello!", session_id="s1")
"""

from agentcore.agents import (
    SequentialProtocol,
    SupervisorProtocol,
    ReActAgent,
    TeamAgent,
    TeamProtocol,
)
from agentcore.config import AgentConfig, Settings, TeamConfig, configure_logging, get_settings
from agentcore.core import (
    AgentCancelledError,
    AgentError,
    AgentEvent,
    AgentResponse,
    ConfigurationError,
    EventType,
    HITLStateError,
    ModelInvocationError,
    NoPendingTaskError,
    SessionBusyError,
    Trace,
    TraceStatus,
)
from agentcore.llm import LLMClient, Message, create_llm_client
from agentcore.pipeline import HITLInterceptor, ToolInterceptor, ToolPipeline
from agentcore.session import HITLDecision, HITLTask, InMemorySessionStore, RedisSessionStore, SessionStore
from agentcore.skill import SkillRegistry, create_skill
from agentcore.tools import ToolDescriptor, ToolSet

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Agents
    "ReActAgent",
    "SequentialProtocol",
    "SupervisorProtocol",
    "TeamAgent",
    "TeamProtocol",
    # Config
    "AgentConfig",
    "Settings",
    "TeamConfig",
    "configure_logging",
    "get_settings",
    # Core
    "AgentEvent",
    "AgentResponse",
    "EventType",
    "Trace",
    "TraceStatus",
    # Errors
    "AgentCancelledError",
    "AgentError",
    "ConfigurationError",
    "HITLStateError",
    "ModelInvocationError",
    "NoPendingTaskError",
    "SessionBusyError",
    # Model
    "LLMClient",
    "Message",
    "create_llm_client",
    # Pipeline
    "HITLInterceptor",
    "ToolInterceptor",
    "ToolPipeline",
    # Session
    "HITLDecision",
    "HITLTask",
    "InMemorySessionStore",
    "RedisSessionStore",
    "SessionStore",
    # Skills and tools
    "SkillRegistry",
    "ToolDescriptor",
    "ToolSet",
    "create_skill",
]
