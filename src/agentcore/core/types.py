"""Core type definitions for agentcore.

This module provides the foundational enums shared by the reasoning loop,
the tool pipeline and the team orchestrator. It has zero external
dependencies.
"""

from enum import Enum


class LoopState(str, Enum):
    """State of a single-agent reasoning loop.

    The loop transitions through these states:
    - INIT: Merging history, skills and the new user turn
    - PLANNING: Decomposing a non-trivial task into a plan
    - REASON: Waiting on the model
    - ACT: Routing requested tool calls through the pipeline
    - OBSERVE: Feeding tool results back into the conversation
    - TERMINAL: Final answer produced (or truncated/cancelled)
    - PAUSED: Suspended on a human-in-the-loop task
    - RESUMED: Continuing a paused loop after a decision
    """

    INIT = "init"
    PLANNING = "planning"
    REASON = "reason"
    ACT = "act"
    OBSERVE = "observe"
    TERMINAL = "terminal"
    PAUSED = "paused"
    RESUMED = "resumed"


class TraceStatus(str, Enum):
    """Status flag carried by a trace."""

    RUNNING = "running"
    COMPLETED = "completed"
    PAUSED = "paused"
    TRUNCATED = "truncated"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {
            TraceStatus.COMPLETED,
            TraceStatus.TRUNCATED,
            TraceStatus.CANCELLED,
            TraceStatus.FAILED,
        }


class EventCategory(str, Enum):
    """Categories for grouping and filtering events."""

    AGENT = "agent"  # Single-agent loop events
    HITL = "hitl"  # Human-in-the-Loop events
    TEAM = "team"  # Team orchestration events


class EventType(str, Enum):
    """All event types emitted by the framework.

    This is the single source of truth for event types.
    """

    # Status events
    START = "start"
    COMPLETE = "complete"
    ERROR = "error"

    # Planning
    PLAN = "plan"

    # Reasoning
    REASONING = "reasoning"

    # Tool events
    ACT = "act"
    OBSERVE = "observe"

    # Human interaction events (HITL)
    HITL_REQUESTED = "hitl_requested"
    HITL_RESOLVED = "hitl_resolved"

    # Team events
    SUPERVISOR = "supervisor"
    MEMBER_START = "member_start"
    MEMBER_END = "member_end"


_EVENT_CATEGORIES: dict[EventType, EventCategory] = {
    EventType.HITL_REQUESTED: EventCategory.HITL,
    EventType.HITL_RESOLVED: EventCategory.HITL,
    EventType.SUPERVISOR: EventCategory.TEAM,
    EventType.MEMBER_START: EventCategory.TEAM,
    EventType.MEMBER_END: EventCategory.TEAM,
}


def get_event_category(event_type: EventType) -> EventCategory:
    """Get the category for an event type.

    Args:
        event_type: The event type to categorize

    Returns:
        EventCategory for the event type, defaults to AGENT
    """
    return _EVENT_CATEGORIES.get(event_type, EventCategory.AGENT)


def is_terminal_event(event_type: EventType) -> bool:
    """Check if an event type is terminal (ends the stream).

    Args:
        event_type: The event type to check

    Returns:
        True if the event indicates stream completion
    """
    return event_type in {EventType.COMPLETE, EventType.ERROR}


__all__ = [
    "EventCategory",
    "EventType",
    "LoopState",
    "TraceStatus",
    "get_event_category",
    "is_terminal_event",
]
