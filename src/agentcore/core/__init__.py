"""Core types, events, traces and errors shared across agentcore."""

from agentcore.core.errors import (
    AgentCancelledError,
    AgentError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    HITLStateError,
    ModelInvocationError,
    NoPendingTaskError,
    SessionBusyError,
    ToolExecutionError,
)
from agentcore.core.events import (
    ActEvent,
    AgentEvent,
    CompleteEvent,
    ErrorEvent,
    HITLRequestedEvent,
    HITLResolvedEvent,
    MemberEndEvent,
    MemberStartEvent,
    ObserveEvent,
    PlanEvent,
    ReasoningEvent,
    StartEvent,
    SupervisorEvent,
)
from agentcore.core.trace import AgentResponse, Trace
from agentcore.core.types import EventCategory, EventType, LoopState, TraceStatus

__all__ = [
    # Types
    "EventCategory",
    "EventType",
    "LoopState",
    "TraceStatus",
    # Events
    "ActEvent",
    "AgentEvent",
    "CompleteEvent",
    "ErrorEvent",
    "HITLRequestedEvent",
    "HITLResolvedEvent",
    "MemberEndEvent",
    "MemberStartEvent",
    "ObserveEvent",
    "PlanEvent",
    "ReasoningEvent",
    "StartEvent",
    "SupervisorEvent",
    # Trace
    "AgentResponse",
    "Trace",
    # Errors
    "AgentCancelledError",
    "AgentError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "HITLStateError",
    "ModelInvocationError",
    "NoPendingTaskError",
    "SessionBusyError",
    "ToolExecutionError",
]
