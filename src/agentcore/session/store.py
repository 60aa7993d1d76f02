"""Session Store - keyed conversation memory with HITL pause state.

The store is the single source of truth for pause state, so a loop
paused on a HITL task can be resumed from another process.

Guarantees:
- Operations on one session id are linearizable; different ids are
  fully independent
- History never exceeds ``max_messages``; the oldest entries are
  evicted first and the entry just appended is never evicted
- System-role messages are silently dropped
- At most one pending HITL task per session, consumed exactly once
- At most one active turn per session (``lock`` rejects a second one)
"""

import copy
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from agentcore.config import Settings, get_settings
from agentcore.core.errors import ConfigurationError, HITLStateError, NoPendingTaskError, SessionBusyError
from agentcore.llm.types import Message, MessageRole
from agentcore.session.types import PERSISTED_ROLES, HITLDecision, HITLTask, Session

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 50


def validate_max_messages(max_messages: int) -> int:
    if not isinstance(max_messages, int) or max_messages < 1:
        raise ConfigurationError(
            f"max_messages must be a positive integer, got {max_messages!r}",
            field="max_messages",
            value=max_messages,
        )
    return max_messages


def select_window(messages: List[Message], window: int) -> List[Message]:
    """Return the latest ``window`` messages, starting on a user turn.

    The cut point moves back to the nearest user message so the window
    never begins mid-exchange; if there is none before it, it moves
    forward to the next user message instead.
    """
    size = len(messages)
    if window <= 0 or size <= window:
        return list(messages)

    start = size - window
    for i in range(start, -1, -1):
        if messages[i].role == MessageRole.USER.value:
            start = i
            break
    else:
        for i in range(start, size):
            if messages[i].role == MessageRole.USER.value:
                start = i
                break
    return list(messages[start:])


class SessionStore(ABC):
    """Abstract session store.

    Usage:
        store = InMemorySessionStore(max_messages=20)

        async with store.lock("s1"):
            await store.append("s1", Message.user("hi"))
            history = await store.messages("s1")
    """

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES) -> None:
        self._max_messages = validate_max_messages(max_messages)

    @property
    def max_messages(self) -> int:
        return self._max_messages

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @abstractmethod
    async def get(self, session_id: str) -> Session:
        """Return a copy of the session, creating it if absent."""

    @abstractmethod
    async def append(self, session_id: str, message: Message) -> None:
        """Append a message, applying the eviction window."""

    @abstractmethod
    async def messages(self, session_id: str) -> List[Message]:
        """Return the retained history in order."""

    async def latest_messages(self, session_id: str, window: int) -> List[Message]:
        return select_window(await self.messages(session_id), window)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @abstractmethod
    async def snapshot_put(self, session_id: str, key: str, value: Any) -> None:
        """Store a structured value in the session snapshot."""

    @abstractmethod
    async def snapshot_get(self, session_id: str, key: str, default: Any = None) -> Any:
        """Read a value from the session snapshot."""

    # ------------------------------------------------------------------
    # HITL
    # ------------------------------------------------------------------

    @abstractmethod
    async def pending_task(self, session_id: str) -> Optional[HITLTask]:
        """Return the pending HITL task, if any."""

    @abstractmethod
    async def set_pending(self, session_id: str, task: HITLTask) -> None:
        """Record a pending HITL task.

        Raises:
            HITLStateError: If a different task is already pending
        """

    @abstractmethod
    async def resolve_pending(
        self,
        session_id: str,
        decision: HITLDecision,
        tool_name: Optional[str] = None,
    ) -> HITLTask:
        """Atomically consume the pending task and record the decision.

        Raises:
            NoPendingTaskError: If nothing is pending
            HITLStateError: If ``tool_name`` does not match the pending task
        """

    @abstractmethod
    async def take_decision(self, session_id: str) -> Optional[HITLDecision]:
        """Consume the decision recorded by ``resolve_pending``."""

    @abstractmethod
    async def clear_pending(self, session_id: str) -> Optional[HITLTask]:
        """Discard the pending task and any recorded decision."""

    # ------------------------------------------------------------------
    # Traces and team state
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_trace(self, session_id: str, agent_name: str, trace: Dict[str, Any]) -> None:
        """Persist the last trace of an agent."""

    @abstractmethod
    async def load_trace(self, session_id: str, agent_name: str) -> Optional[Dict[str, Any]]:
        """Load the last trace of an agent."""

    @abstractmethod
    async def save_team_state(self, session_id: str, team_name: str, state: Dict[str, Any]) -> None:
        """Persist team progress."""

    @abstractmethod
    async def load_team_state(self, session_id: str, team_name: str) -> Optional[Dict[str, Any]]:
        """Load team progress."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Destroy a session. Sessions are never removed otherwise."""

    @abstractmethod
    def lock(self, session_id: str) -> Any:
        """Async context manager guarding the single active turn.

        Raises:
            SessionBusyError: If a turn is already active on the session
        """

    def _check_resolvable(
        self,
        session_id: str,
        task: Optional[HITLTask],
        tool_name: Optional[str],
    ) -> HITLTask:
        if task is None:
            raise NoPendingTaskError(session_id, operation="submit_decision")
        if tool_name is not None and tool_name != task.tool_name:
            raise HITLStateError(
                f"Decision for tool {tool_name!r} does not match pending tool {task.tool_name!r}",
                session_id=session_id,
                operation="submit_decision",
            )
        return task


class InMemorySessionStore(SessionStore):
    """Process-local session store.

    Every operation runs without yielding to the event loop, so each
    one is atomic with respect to other coroutines.
    """

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES) -> None:
        super().__init__(max_messages)
        self._sessions: Dict[str, Session] = {}
        self._active: Set[str] = set()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "InMemorySessionStore":
        """Build a store bounded by ``Settings.session_max_messages``."""
        settings = settings or get_settings()
        return cls(max_messages=settings.session_max_messages)

    def _session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(session_id=session_id, max_messages=self._max_messages)
            self._sessions[session_id] = session
            logger.debug(f"[SessionStore] Created session {session_id}")
        return session

    async def get(self, session_id: str) -> Session:
        return copy.deepcopy(self._session(session_id))

    async def append(self, session_id: str, message: Message) -> None:
        if message.role not in PERSISTED_ROLES:
            logger.debug(f"[SessionStore] Dropped {message.role} message for {session_id}")
            return
        session = self._session(session_id)
        session.messages.append(message)
        overflow = len(session.messages) - session.max_messages
        if overflow > 0:
            del session.messages[:overflow]

    async def messages(self, session_id: str) -> List[Message]:
        return list(self._session(session_id).messages)

    async def snapshot_put(self, session_id: str, key: str, value: Any) -> None:
        self._session(session_id).snapshot[key] = copy.deepcopy(value)

    async def snapshot_get(self, session_id: str, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._session(session_id).snapshot.get(key, default))

    async def pending_task(self, session_id: str) -> Optional[HITLTask]:
        return copy.deepcopy(self._session(session_id).pending_task)

    async def set_pending(self, session_id: str, task: HITLTask) -> None:
        session = self._session(session_id)
        if session.pending_task is not None and session.pending_task.task_id != task.task_id:
            raise HITLStateError(
                f"Session {session_id} already has pending task {session.pending_task.task_id}",
                session_id=session_id,
                operation="set_pending",
            )
        session.pending_task = copy.deepcopy(task)
        session.decision = None

    async def resolve_pending(
        self,
        session_id: str,
        decision: HITLDecision,
        tool_name: Optional[str] = None,
    ) -> HITLTask:
        session = self._session(session_id)
        task = self._check_resolvable(session_id, session.pending_task, tool_name)
        session.pending_task = None
        session.decision = decision
        return task

    async def take_decision(self, session_id: str) -> Optional[HITLDecision]:
        session = self._session(session_id)
        decision, session.decision = session.decision, None
        return decision

    async def clear_pending(self, session_id: str) -> Optional[HITLTask]:
        session = self._session(session_id)
        task = session.pending_task
        session.pending_task = None
        session.decision = None
        return task

    async def save_trace(self, session_id: str, agent_name: str, trace: Dict[str, Any]) -> None:
        self._session(session_id).traces[agent_name] = copy.deepcopy(trace)

    async def load_trace(self, session_id: str, agent_name: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._session(session_id).traces.get(agent_name))

    async def save_team_state(self, session_id: str, team_name: str, state: Dict[str, Any]) -> None:
        self._session(session_id).team_states[team_name] = copy.deepcopy(state)

    async def load_team_state(self, session_id: str, team_name: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._session(session_id).team_states.get(team_name))

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        if session_id in self._active:
            raise SessionBusyError(session_id)
        self._active.add(session_id)
        try:
            yield
        finally:
            self._active.discard(session_id)


__all__ = [
    "DEFAULT_MAX_MESSAGES",
    "InMemorySessionStore",
    "SessionStore",
    "select_window",
    "validate_max_messages",
]
