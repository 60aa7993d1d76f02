"""Event definitions for agentcore.

This module defines the event types emitted during agent execution.
All events are immutable (frozen dataclass) and include timestamps.

Every stream ends with exactly one terminal event (``CompleteEvent``
or ``ErrorEvent``); nothing is emitted after it.
"""

import dataclasses
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from agentcore.core.types import EventType, get_event_category, is_terminal_event


@dataclass(frozen=True, kw_only=True)
class AgentEvent:
    """Base class for all agent events.

    All events are immutable and include:
    - event_type: The type of event (from EventType enum)
    - session_id: Session the event belongs to
    - timestamp: Unix timestamp when event was created
    - metadata: Optional additional data (team members tag ``member``)

    Subclasses add type-specific fields.
    """

    event_type: EventType
    session_id: str
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return is_terminal_event(self.event_type)

    def with_metadata(self, **kwargs: Any) -> "AgentEvent":
        """Return a copy with extra metadata."""
        return dataclasses.replace(self, metadata={**self.metadata, **kwargs})

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary representation.

        Returns:
            Dictionary with type, data, timestamp and category fields
        """
        data_fields = {
            k: _plain(v) for k, v in self.__dict__.items() if k not in ("event_type", "timestamp")
        }
        return {
            "type": self.event_type.value,
            "data": data_fields,
            "timestamp": datetime.fromtimestamp(self.timestamp).isoformat(),
            "category": get_event_category(self.event_type).value,
        }


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


# ============================================================================
# Status Events
# ============================================================================


@dataclass(frozen=True, kw_only=True)
class StartEvent(AgentEvent):
    """Event emitted when an agent (or team) starts a turn."""

    event_type: EventType = EventType.START
    agent_name: str
    resumed: bool = False


@dataclass(frozen=True, kw_only=True)
class CompleteEvent(AgentEvent):
    """Terminal event for a turn.

    ``status`` is one of completed, paused, truncated or cancelled.
    ``trace`` carries the serialized trace of the turn.
    """

    event_type: EventType = EventType.COMPLETE
    status: str
    content: str = ""
    trace: dict[str, Any] = field(default_factory=dict)
    tokens: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class ErrorEvent(AgentEvent):
    """Terminal event emitted when the model capability fails."""

    event_type: EventType = EventType.ERROR
    message: str
    code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Reasoning Events
# ============================================================================


@dataclass(frozen=True, kw_only=True)
class PlanEvent(AgentEvent):
    """Event emitted when a plan is attached to the trace."""

    event_type: EventType = EventType.PLAN
    steps: list[str] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class ReasoningEvent(AgentEvent):
    """One chunk of model output during REASON."""

    event_type: EventType = EventType.REASONING
    content: str
    step_index: int = 0


# ============================================================================
# Tool Events
# ============================================================================


@dataclass(frozen=True, kw_only=True)
class ActEvent(AgentEvent):
    """Event emitted when a tool call begins."""

    event_type: EventType = EventType.ACT
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    call_id: str = ""
    step_index: int = 0


@dataclass(frozen=True, kw_only=True)
class ObserveEvent(AgentEvent):
    """Event emitted when a tool result (or failure) is observed."""

    event_type: EventType = EventType.OBSERVE
    tool_name: str
    result: str
    call_id: str = ""
    status: str = "success"
    step_index: int = 0


# ============================================================================
# HITL Events
# ============================================================================


@dataclass(frozen=True, kw_only=True)
class HITLRequestedEvent(AgentEvent):
    """Notice that a tool call awaits a human decision.

    Always followed by a paused ``CompleteEvent``.
    """

    event_type: EventType = EventType.HITL_REQUESTED
    task_id: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    justification: str = ""


@dataclass(frozen=True, kw_only=True)
class HITLResolvedEvent(AgentEvent):
    """Event emitted when a resumed turn applies a recorded decision."""

    event_type: EventType = EventType.HITL_RESOLVED
    tool_name: str
    outcome: str
    comment: str | None = None


# ============================================================================
# Team Events
# ============================================================================


@dataclass(frozen=True, kw_only=True)
class SupervisorEvent(AgentEvent):
    """Turn selection made by a team supervisor."""

    event_type: EventType = EventType.SUPERVISOR
    team_name: str
    next_member: str | None
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class MemberStartEvent(AgentEvent):
    """Event emitted when a team member starts its turn."""

    event_type: EventType = EventType.MEMBER_START
    team_name: str
    member: str
    turn: int


@dataclass(frozen=True, kw_only=True)
class MemberEndEvent(AgentEvent):
    """Event emitted when a team member's turn ends."""

    event_type: EventType = EventType.MEMBER_END
    team_name: str
    member: str
    status: str
    content: str = ""


__all__ = [
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
]
