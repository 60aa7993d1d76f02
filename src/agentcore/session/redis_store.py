"""Redis-backed session store.

Persists every piece of pause state in Redis so a loop suspended on a
HITL task can be resumed by another process.

Key layout (all under ``{prefix}:session:{id}``):
- ``:messages``  list of JSON message records (bounded with LTRIM)
- ``:snapshot``  hash of JSON values
- ``:pending``   JSON HITL task
- ``:decision``  JSON HITL decision
- ``:traces``    hash agent name -> JSON trace
- ``:team``      hash team name -> JSON team state
- ``:lock``      turn lock (SET NX EX with owner token, extended while held)

Usage:
    store = RedisSessionStore.from_settings()  # or .from_url("redis://localhost:6379/0")
    async with store.lock("s1"):
        await store.append("s1", Message.user("hi"))
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from agentcore.config import Settings, get_settings
from agentcore.core.errors import ConfigurationError, HITLStateError, NoPendingTaskError, SessionBusyError
from agentcore.llm.types import Message
from agentcore.session.store import DEFAULT_MAX_MESSAGES, SessionStore
from agentcore.session.types import PERSISTED_ROLES, HITLDecision, HITLTask, Session

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Only delete the lock if we still own it
_RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
else
    return 0
end
"""

# Only extend the lock if we still own it
_EXTEND_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("EXPIRE", KEYS[1], ARGV[2])
else
    return 0
end
"""

# Consume the task only if it is still the one that was validated
_RESOLVE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    redis.call("DEL", KEYS[1])
    redis.call("SET", KEYS[2], ARGV[2])
    return 1
else
    return 0
end
"""


def _loads(raw: Any) -> Any:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return json.loads(raw)


class RedisSessionStore(SessionStore):
    """Session store backed by redis-py's asyncio client."""

    def __init__(
        self,
        client: Redis,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        key_prefix: str = "agentcore",
        lock_ttl: int = 300,
    ) -> None:
        super().__init__(max_messages)
        if lock_ttl < 1:
            raise ConfigurationError("lock_ttl must be >= 1 second", field="lock_ttl", value=lock_ttl)
        self._redis = client
        self._prefix = key_prefix
        self._lock_ttl = lock_ttl

    @classmethod
    def from_url(
        cls,
        url: str,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        key_prefix: str = "agentcore",
        lock_ttl: int = 300,
    ) -> "RedisSessionStore":
        client = redis.from_url(url, decode_responses=True)
        return cls(client, max_messages=max_messages, key_prefix=key_prefix, lock_ttl=lock_ttl)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RedisSessionStore":
        """Build a store from ``Settings`` (``AGENTCORE_REDIS_URL`` etc.)."""
        settings = settings or get_settings()
        return cls.from_url(
            settings.redis_url,
            max_messages=settings.session_max_messages,
            key_prefix=settings.session_key_prefix,
            lock_ttl=settings.session_lock_timeout_seconds,
        )

    @property
    def lock_ttl(self) -> int:
        return self._lock_ttl

    def _key(self, session_id: str, suffix: str) -> str:
        return f"{self._prefix}:session:{session_id}:{suffix}"

    async def close(self) -> None:
        await self._redis.aclose()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def get(self, session_id: str) -> Session:
        pending = _loads(await self._redis.get(self._key(session_id, "pending")))
        decision = _loads(await self._redis.get(self._key(session_id, "decision")))
        snapshot = await self._redis.hgetall(self._key(session_id, "snapshot"))
        traces = await self._redis.hgetall(self._key(session_id, "traces"))
        team = await self._redis.hgetall(self._key(session_id, "team"))
        return Session(
            session_id=session_id,
            max_messages=self._max_messages,
            messages=await self.messages(session_id),
            snapshot={k: _loads(v) for k, v in snapshot.items()},
            pending_task=HITLTask.from_dict(pending) if pending else None,
            decision=HITLDecision.from_dict(decision) if decision else None,
            traces={k: _loads(v) for k, v in traces.items()},
            team_states={k: _loads(v) for k, v in team.items()},
        )

    async def append(self, session_id: str, message: Message) -> None:
        if message.role not in PERSISTED_ROLES:
            logger.debug(f"[RedisSessionStore] Dropped {message.role} message for {session_id}")
            return
        key = self._key(session_id, "messages")
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.rpush(key, json.dumps(message.to_record()))
            pipe.ltrim(key, -self._max_messages, -1)
            await pipe.execute()

    async def messages(self, session_id: str) -> List[Message]:
        records = await self._redis.lrange(self._key(session_id, "messages"), 0, -1)
        return [Message.from_record(_loads(r)) for r in records]

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    async def snapshot_put(self, session_id: str, key: str, value: Any) -> None:
        await self._redis.hset(self._key(session_id, "snapshot"), key, json.dumps(value))

    async def snapshot_get(self, session_id: str, key: str, default: Any = None) -> Any:
        raw = await self._redis.hget(self._key(session_id, "snapshot"), key)
        return default if raw is None else _loads(raw)

    # ------------------------------------------------------------------
    # HITL
    # ------------------------------------------------------------------

    async def pending_task(self, session_id: str) -> Optional[HITLTask]:
        data = _loads(await self._redis.get(self._key(session_id, "pending")))
        return HITLTask.from_dict(data) if data else None

    async def set_pending(self, session_id: str, task: HITLTask) -> None:
        key = self._key(session_id, "pending")
        payload = json.dumps(task.to_dict())
        if not await self._redis.set(key, payload, nx=True):
            existing = await self.pending_task(session_id)
            if existing is not None and existing.task_id != task.task_id:
                raise HITLStateError(
                    f"Session {session_id} already has pending task {existing.task_id}",
                    session_id=session_id,
                    operation="set_pending",
                )
            await self._redis.set(key, payload)
        await self._redis.delete(self._key(session_id, "decision"))
        logger.info(f"[RedisSessionStore] Pending task {task.task_id} stored for {session_id}")

    async def resolve_pending(
        self,
        session_id: str,
        decision: HITLDecision,
        tool_name: Optional[str] = None,
    ) -> HITLTask:
        pending_key = self._key(session_id, "pending")
        raw = await self._redis.get(pending_key)
        data = _loads(raw)
        task = self._check_resolvable(session_id, HITLTask.from_dict(data) if data else None, tool_name)

        # Compare-and-consume plus the decision write run as one script
        consumed = await self._redis.eval(
            _RESOLVE_SCRIPT,
            2,
            pending_key,
            self._key(session_id, "decision"),
            raw,
            json.dumps(decision.to_dict()),
        )
        if not consumed:
            logger.warning(f"[RedisSessionStore] Pending task {task.task_id} changed before resolution: {session_id}")
            raise NoPendingTaskError(session_id, operation="submit_decision")
        return task

    async def take_decision(self, session_id: str) -> Optional[HITLDecision]:
        data = _loads(await self._redis.getdel(self._key(session_id, "decision")))
        return HITLDecision.from_dict(data) if data else None

    async def clear_pending(self, session_id: str) -> Optional[HITLTask]:
        data = _loads(await self._redis.getdel(self._key(session_id, "pending")))
        await self._redis.delete(self._key(session_id, "decision"))
        return HITLTask.from_dict(data) if data else None

    # ------------------------------------------------------------------
    # Traces and team state
    # ------------------------------------------------------------------

    async def save_trace(self, session_id: str, agent_name: str, trace: Dict[str, Any]) -> None:
        await self._redis.hset(self._key(session_id, "traces"), agent_name, json.dumps(trace))

    async def load_trace(self, session_id: str, agent_name: str) -> Optional[Dict[str, Any]]:
        return _loads(await self._redis.hget(self._key(session_id, "traces"), agent_name))

    async def save_team_state(self, session_id: str, team_name: str, state: Dict[str, Any]) -> None:
        await self._redis.hset(self._key(session_id, "team"), team_name, json.dumps(state))

    async def load_team_state(self, session_id: str, team_name: str) -> Optional[Dict[str, Any]]:
        return _loads(await self._redis.hget(self._key(session_id, "team"), team_name))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def delete(self, session_id: str) -> bool:
        keys = [
            self._key(session_id, suffix)
            for suffix in ("messages", "snapshot", "pending", "decision", "traces", "team")
        ]
        return bool(await self._redis.delete(*keys))

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        """Hold the turn lock, refreshing its TTL while the turn runs."""
        key = self._key(session_id, "lock")
        owner = secrets.token_hex(16)
        if not await self._redis.set(key, owner, nx=True, ex=self._lock_ttl):
            raise SessionBusyError(session_id)
        logger.debug(f"[RedisSessionStore] Lock acquired: {key} (owner={owner[:8]}...)")
        heartbeat = asyncio.create_task(self._keep_lock(key, owner))
        try:
            yield
        finally:
            heartbeat.cancel()
            await asyncio.gather(heartbeat, return_exceptions=True)
            released = await self._redis.eval(_RELEASE_SCRIPT, 1, key, owner)
            if not released:
                logger.warning(f"[RedisSessionStore] Lock release failed - not owner: {key}")

    async def _keep_lock(self, key: str, owner: str) -> None:
        """Extend the lock every third of its TTL until cancelled or lost."""
        interval = self._lock_ttl / 3
        while True:
            await asyncio.sleep(interval)
            try:
                extended = await self._redis.eval(_EXTEND_SCRIPT, 1, key, owner, self._lock_ttl)
            except RedisError as e:
                logger.error(f"[RedisSessionStore] Error extending lock {key}: {e}")
                continue
            if not extended:
                logger.warning(f"[RedisSessionStore] Lock extend failed - not owner: {key}")
                return
            logger.debug(f"[RedisSessionStore] Lock extended: {key} (ttl={self._lock_ttl}s)")


__all__ = ["RedisSessionStore"]
