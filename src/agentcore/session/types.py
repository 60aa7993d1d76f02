"""Session data model for agentcore.

A session is the single source of truth for everything needed to
resume a paused loop, possibly in another process:
- Bounded conversation history (user/assistant entries only)
- Key/value snapshot for structured outputs
- At most one pending HITL task and the decision recorded for it
- The last trace of each agent that ran on the session
- Team progress for sequential/supervisor protocols
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from agentcore.llm.types import Message, MessageRole

PERSISTED_ROLES = frozenset({MessageRole.USER.value, MessageRole.ASSISTANT.value})


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class DecisionOutcome(str, Enum):
    """Outcome of a human decision."""

    APPROVE = "approve"
    REJECT = "reject"


@dataclass
class HITLTask:
    """A tool call waiting for human approval.

    Created when the pipeline's HITL gate matches a call; consumed
    exactly once by a matching decision.
    """

    tool_name: str
    arguments: Dict[str, Any]
    session_id: str
    justification: str
    call_id: str = ""
    agent_name: str = ""
    task_id: str = field(default_factory=lambda: f"hitl_{uuid.uuid4().hex[:12]}")
    created_at: str = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HITLTask":
        return cls(**data)


@dataclass(frozen=True)
class HITLDecision:
    """Human decision resuming one paused task.

    ``modified_args`` is only applied on approval.
    """

    outcome: DecisionOutcome
    comment: Optional[str] = None
    modified_args: Optional[Dict[str, Any]] = None

    @classmethod
    def approve(
        cls,
        comment: Optional[str] = None,
        modified_args: Optional[Dict[str, Any]] = None,
    ) -> "HITLDecision":
        return cls(outcome=DecisionOutcome.APPROVE, comment=comment, modified_args=modified_args)

    @classmethod
    def reject(cls, comment: Optional[str] = None) -> "HITLDecision":
        return cls(outcome=DecisionOutcome.REJECT, comment=comment)

    @property
    def is_approved(self) -> bool:
        return self.outcome == DecisionOutcome.APPROVE

    def comment_or_default(self, default: str) -> str:
        return self.comment if self.comment else default

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "comment": self.comment,
            "modified_args": self.modified_args,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HITLDecision":
        return cls(
            outcome=DecisionOutcome(data["outcome"]),
            comment=data.get("comment"),
            modified_args=data.get("modified_args"),
        )


@dataclass
class Session:
    """Durable, keyed conversation memory.

    Invariant: ``len(messages) <= max_messages``. Mutations go through
    a ``SessionStore``; instances returned by a store are copies.
    """

    session_id: str
    max_messages: int
    messages: List[Message] = field(default_factory=list)
    snapshot: Dict[str, Any] = field(default_factory=dict)
    pending_task: Optional[HITLTask] = None
    decision: Optional[HITLDecision] = None
    traces: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    team_states: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    ephemeral: bool = False
    created_at: str = field(default_factory=_utcnow)

    @property
    def is_pending(self) -> bool:
        return self.pending_task is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "max_messages": self.max_messages,
            "messages": [m.to_record() for m in self.messages],
            "snapshot": dict(self.snapshot),
            "pending_task": self.pending_task.to_dict() if self.pending_task else None,
            "decision": self.decision.to_dict() if self.decision else None,
            "traces": dict(self.traces),
            "team_states": dict(self.team_states),
            "ephemeral": self.ephemeral,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        pending = data.get("pending_task")
        decision = data.get("decision")
        return cls(
            session_id=data["session_id"],
            max_messages=data["max_messages"],
            messages=[Message.from_record(m) for m in data.get("messages", [])],
            snapshot=dict(data.get("snapshot", {})),
            pending_task=HITLTask.from_dict(pending) if pending else None,
            decision=HITLDecision.from_dict(decision) if decision else None,
            traces=dict(data.get("traces", {})),
            team_states=dict(data.get("team_states", {})),
            ephemeral=data.get("ephemeral", False),
            created_at=data.get("created_at") or _utcnow(),
        )


__all__ = [
    "DecisionOutcome",
    "HITLDecision",
    "HITLTask",
    "PERSISTED_ROLES",
    "Session",
]
