"""Team coordination protocols.

A protocol decides which member acts next:
- ``SequentialProtocol``: members run once each, in registration order
- ``SupervisorProtocol``: a supervisor model inspects the shared
  conversation after each member turn and picks the next member, or
  concludes

Team progress lives in ``TeamState``, persisted in the session store so
a team paused on a member's HITL task can be resumed in another process.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from agentcore.core.errors import ErrorContext, wrap_model_error
from agentcore.core.types import TraceStatus
from agentcore.llm.protocol import LLMClient
from agentcore.llm.types import Message, MessageRole, strip_thinking

if TYPE_CHECKING:
    from agentcore.agents.react import ReActAgent

logger = logging.getLogger(__name__)

FINISH = "FINISH"
SUMMARY_LENGTH = 200


def summarize(content: str, limit: int = SUMMARY_LENGTH) -> str:
    text = " ".join(content.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


@dataclass
class TeamState:
    """Persisted progress of one team call.

    Attributes:
        prompt: The user prompt the team is working on
        turn_count: Completed member invocations
        next_index: Next member position (sequential protocol)
        awaiting_member: Member paused on a HITL task, if any
        stages: Per-invocation status and output summary
        last_content: Content of the last completed member turn
        tokens: Token usage summed over member turns
    """

    prompt: str
    turn_count: int = 0
    next_index: int = 0
    awaiting_member: Optional[str] = None
    stages: List[Dict[str, Any]] = field(default_factory=list)
    last_content: str = ""
    tokens: Dict[str, int] = field(default_factory=dict)

    def start_stage(self, member: str) -> None:
        self.stages.append({"member": member, "status": TraceStatus.RUNNING.value, "summary": ""})

    def add_tokens(self, tokens: Dict[str, int]) -> None:
        for key, value in tokens.items():
            self.tokens[key] = self.tokens.get(key, 0) + int(value)

    def end_stage(self, member: str, status: str, content: str = "") -> None:
        for stage in reversed(self.stages):
            if stage["member"] == member:
                stage["status"] = status
                stage["summary"] = summarize(content)
                return
        self.stages.append({"member": member, "status": status, "summary": summarize(content)})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt": self.prompt,
            "turn_count": self.turn_count,
            "next_index": self.next_index,
            "awaiting_member": self.awaiting_member,
            "stages": [dict(s) for s in self.stages],
            "last_content": self.last_content,
            "tokens": dict(self.tokens),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamState":
        return cls(
            prompt=data.get("prompt", ""),
            turn_count=data.get("turn_count", 0),
            next_index=data.get("next_index", 0),
            awaiting_member=data.get("awaiting_member"),
            stages=[dict(s) for s in data.get("stages", [])],
            last_content=data.get("last_content", ""),
            tokens=dict(data.get("tokens", {})),
        )


@dataclass(frozen=True)
class Selection:
    """Next member chosen by a protocol (None concludes the team call)."""

    member: Optional[str]
    reason: str = ""


class TeamProtocol(ABC):
    """Base class for team protocols."""

    name: str = ""

    # Whether selections are announced to streaming consumers
    emits_selection: bool = False

    @abstractmethod
    async def select(
        self,
        state: TeamState,
        members: Sequence["ReActAgent"],
        history: List[Message],
        session_id: str,
    ) -> Selection:
        """Pick the next member to run."""

    def advance(self, state: TeamState, member: str) -> None:
        """Update ``state`` after ``member`` completed a turn."""

    def is_done(self, state: TeamState, members: Sequence["ReActAgent"]) -> bool:
        """Whether the protocol has nothing left to run, without selecting."""
        return False


class SequentialProtocol(TeamProtocol):
    """Members run in registration order, each exactly once."""

    name = "sequential"

    async def select(
        self,
        state: TeamState,
        members: Sequence["ReActAgent"],
        history: List[Message],
        session_id: str,
    ) -> Selection:
        if state.next_index >= len(members):
            return Selection(member=None, reason="all members completed")
        return Selection(member=members[state.next_index].name, reason=f"position {state.next_index + 1}")

    def advance(self, state: TeamState, member: str) -> None:
        state.next_index += 1

    def is_done(self, state: TeamState, members: Sequence["ReActAgent"]) -> bool:
        return state.next_index >= len(members)


SUPERVISOR_PROMPT = """You are the supervisor of the team "{team}". Members:
{members}

After each member turn you decide who acts next. Reply with exactly one member name, \
or {finish} when the user's request has been fully handled."""


class SupervisorProtocol(TeamProtocol):
    """A supervisor model selects the next member after every turn.

    Args:
        llm_client: Model used for turn selection
        instruction: Extra guidance appended to the supervisor prompt
        timeout: Seconds allowed per selection (None: unbounded)
    """

    name = "supervisor"
    emits_selection = True

    def __init__(
        self,
        llm_client: LLMClient,
        team_name: str = "team",
        instruction: str = "",
        timeout: Optional[float] = None,
    ) -> None:
        self._llm = llm_client
        self.team_name = team_name
        self.instruction = instruction
        self._timeout = timeout

    def build_messages(self, members: Sequence["ReActAgent"], history: List[Message]) -> List[Message]:
        roster = "\n".join(f"- {m.name}: {m.description or 'no description'}" for m in members)
        system = SUPERVISOR_PROMPT.format(team=self.team_name, members=roster, finish=FINISH)
        if self.instruction:
            system = f"{system}\n\n{self.instruction}"

        lines = []
        for message in history:
            speaker = message.role
            if message.role == MessageRole.ASSISTANT.value and message.name:
                speaker = f"{message.role}:{message.name}"
            lines.append(f"[{speaker}] {message.result_content}")
        transcript = "\n".join(lines) if lines else "(empty)"
        return [
            Message.system(system),
            Message.user(f"Conversation so far:\n{transcript}\n\nWho should act next?"),
        ]

    def parse_selection(self, content: str, members: Sequence["ReActAgent"]) -> Selection:
        text = strip_thinking(content).strip()
        if not text or re.match(rf"^\W*{FINISH}\b", text, re.IGNORECASE):
            return Selection(member=None, reason=text)

        names = [m.name for m in members]
        first_line = text.splitlines()[0].strip().strip("`*\"'. ")
        for name in names:
            if first_line.lower() == name.lower():
                return Selection(member=name, reason=text)
        for name in names:
            if re.search(rf"\b{re.escape(name)}\b", text, re.IGNORECASE):
                return Selection(member=name, reason=text)

        logger.warning(f"[Supervisor] Unrecognized selection, concluding: {text[:100]!r}")
        return Selection(member=None, reason=text)

    async def select(
        self,
        state: TeamState,
        members: Sequence["ReActAgent"],
        history: List[Message],
        session_id: str,
    ) -> Selection:
        messages = self.build_messages(members, history)
        try:
            async with asyncio.timeout(self._timeout):
                response = await self._llm.generate(messages)
        except Exception as e:
            raise wrap_model_error(
                e, ErrorContext(operation="select_member", session_id=session_id, agent_name=self.team_name)
            ) from e
        selection = self.parse_selection(response.content, members)
        logger.info(f"[Supervisor] {self.team_name} selected {selection.member or FINISH} in {session_id}")
        return selection


__all__ = [
    "FINISH",
    "Selection",
    "SequentialProtocol",
    "SupervisorProtocol",
    "TeamProtocol",
    "TeamState",
    "summarize",
]
