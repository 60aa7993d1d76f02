"""Loop breaker - short-circuits identical tool calls repeated in a window.

Detects when the model keeps issuing the same call (same tool + same
canonical arguments) and, instead of executing it again, feeds back a
synthetic observation telling the model to change approach.

A call resumed with a HITL decision is the same call the human just
approved or rejected, so it is passed on without being counted.

Example:
    breaker = StopLoopInterceptor(max_repeat=3)

    # Third identical search within the window is not executed
    search({"query": "x"}); search({"query": "x"}); search({"query": "x"})
"""

import json
import logging
from collections import OrderedDict, deque
from typing import Any, Deque

from agentcore.pipeline.interceptor import CallNext, ToolInterceptor, ToolInvocation, ToolOutcome

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 1024


def fingerprint(tool_name: str, arguments: Any) -> str:
    try:
        canonical = json.dumps(arguments, sort_keys=True, default=str)
    except (TypeError, ValueError):
        canonical = str(arguments)
    return f"{tool_name}:{canonical}"


class StopLoopInterceptor(ToolInterceptor):
    """Loop breaker keyed per session.

    Windows are kept for the ``max_sessions`` most recently active
    sessions; older ones are evicted.

    Args:
        max_repeat: Identical calls in the window that trigger the breaker
        window_size: Number of recent calls remembered per session
        max_sessions: Number of session windows retained
    """

    def __init__(self, max_repeat: int = 3, window_size: int = 10, max_sessions: int = DEFAULT_MAX_SESSIONS) -> None:
        if max_repeat < 2:
            raise ValueError("max_repeat must be at least 2")
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.max_repeat = max_repeat
        self.window_size = window_size
        self.max_sessions = max_sessions
        self._windows: "OrderedDict[str, Deque[str]]" = OrderedDict()

    @property
    def tracked_sessions(self) -> int:
        return len(self._windows)

    def _window(self, session_id: str) -> Deque[str]:
        window = self._windows.get(session_id)
        if window is None:
            window = deque(maxlen=self.window_size)
            self._windows[session_id] = window
            while len(self._windows) > self.max_sessions:
                evicted, _ = self._windows.popitem(last=False)
                logger.debug(f"[StopLoop] Evicted window of {evicted}")
        else:
            self._windows.move_to_end(session_id)
        return window

    def reset(self, session_id: str) -> None:
        self._windows.pop(session_id, None)

    async def intercept(self, invocation: ToolInvocation, call_next: CallNext) -> ToolOutcome:
        if invocation.decision is not None:
            return await call_next(invocation)

        window = self._window(invocation.session_id)
        key = fingerprint(invocation.tool_name, invocation.arguments)
        window.append(key)

        repeats = sum(1 for entry in window if entry == key)
        if repeats >= self.max_repeat:
            logger.warning(
                f"[StopLoop] {invocation.tool_name} repeated {repeats} times in {invocation.session_id}"
            )
            return ToolOutcome.short_circuit(
                f"Loop detected: '{invocation.tool_name}' was called {repeats} times with the same "
                "arguments. Do not repeat this call; change your approach or give a final answer."
            )
        return await call_next(invocation)


__all__ = ["DEFAULT_MAX_SESSIONS", "StopLoopInterceptor", "fingerprint"]
