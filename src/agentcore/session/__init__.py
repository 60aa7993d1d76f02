"""Session store: bounded conversation memory and HITL pause state."""

from agentcore.session.redis_store import RedisSessionStore
from agentcore.session.store import InMemorySessionStore, SessionStore, select_window
from agentcore.session.types import DecisionOutcome, HITLDecision, HITLTask, Session

__all__ = [
    "DecisionOutcome",
    "HITLDecision",
    "HITLTask",
    "InMemorySessionStore",
    "RedisSessionStore",
    "Session",
    "SessionStore",
    "select_window",
]
