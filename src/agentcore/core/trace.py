"""Trace and response types.

A trace is the structured record of one call: reasoning segments,
executed actions, observations, the current plan and a status flag.
While a loop is paused the trace also carries its working conversation
and the unexecuted remainder of the tool-call batch, which is what
makes resumption possible from the session store alone.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from agentcore.core.types import TraceStatus
from agentcore.llm.types import Message, ToolCall, Usage


@dataclass
class Trace:
    agent_name: str
    session_id: str
    status: TraceStatus = TraceStatus.RUNNING
    plan: List[str] = field(default_factory=list)
    steps: List[Dict[str, Any]] = field(default_factory=list)
    step_count: int = 0
    turn_count: int = 0
    prompt: str = ""
    content: str = ""
    pending_task_id: Optional[str] = None
    messages: List[Message] = field(default_factory=list)
    pending_calls: List[ToolCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    stages: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_pending(self) -> bool:
        return self.status == TraceStatus.PAUSED

    @property
    def truncated(self) -> bool:
        return self.status == TraceStatus.TRUNCATED

    def add_reasoning(self, content: str, step_index: int) -> None:
        self.steps.append({"type": "reasoning", "step": step_index, "content": content})

    def add_action(self, call: ToolCall, step_index: int) -> None:
        self.steps.append(
            {
                "type": "action",
                "step": step_index,
                "call_id": call.id,
                "tool_name": call.name,
                "arguments": dict(call.arguments),
            }
        )

    def add_observation(self, call: ToolCall, result: str, status: str, step_index: int) -> None:
        self.steps.append(
            {
                "type": "observation",
                "step": step_index,
                "call_id": call.id,
                "tool_name": call.name,
                "result": result,
                "status": status,
            }
        )

    def actions(self) -> List[Dict[str, Any]]:
        return [s for s in self.steps if s["type"] == "action"]

    def observations(self) -> List[Dict[str, Any]]:
        return [s for s in self.steps if s["type"] == "observation"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_name": self.agent_name,
            "session_id": self.session_id,
            "status": self.status.value,
            "plan": list(self.plan),
            "steps": list(self.steps),
            "step_count": self.step_count,
            "turn_count": self.turn_count,
            "prompt": self.prompt,
            "content": self.content,
            "pending_task_id": self.pending_task_id,
            "messages": [m.to_record() for m in self.messages],
            "pending_calls": [c.to_dict() for c in self.pending_calls],
            "usage": self.usage.to_dict(),
            "stages": list(self.stages),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trace":
        return cls(
            agent_name=data["agent_name"],
            session_id=data["session_id"],
            status=TraceStatus(data.get("status", TraceStatus.RUNNING.value)),
            plan=list(data.get("plan", [])),
            steps=list(data.get("steps", [])),
            step_count=data.get("step_count", 0),
            turn_count=data.get("turn_count", 0),
            prompt=data.get("prompt", ""),
            content=data.get("content", ""),
            pending_task_id=data.get("pending_task_id"),
            messages=[Message.from_record(m) for m in data.get("messages", [])],
            pending_calls=[ToolCall.from_dict(c) for c in data.get("pending_calls", [])],
            usage=Usage(**data.get("usage", {})),
            stages=list(data.get("stages", [])),
        )


@dataclass
class AgentResponse:
    """Payload of the terminal event, returned by the blocking ``call``."""

    content: str
    trace: Trace
    session_id: str

    @property
    def status(self) -> TraceStatus:
        return self.trace.status

    @property
    def is_pending(self) -> bool:
        return self.trace.is_pending

    @property
    def truncated(self) -> bool:
        return self.trace.truncated


__all__ = ["AgentResponse", "Trace"]
