"""RunContext - per-invocation mutable state bag for one agent turn.

Each turn (fresh or resumed) gets its own RunContext. It is NOT the
agent configuration; it is the mutable counterpart that travels with a
single execution, and lets the blocking ``call`` surface recover the
trace and any error behind the terminal event.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from agentcore.core.trace import Trace


@dataclass
class RunContext:
    """Per-invocation mutable state bag.

    Attributes:
        abort_signal: Cooperative cancellation signal for this run.
        session_id: Session the run belongs to.
        start_time: Run start timestamp (epoch seconds).
        trace: Trace of the run, set once the loop starts.
        error: Exception behind a terminal ``ErrorEvent``, if any.
    """

    abort_signal: asyncio.Event = field(default_factory=asyncio.Event)
    session_id: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    trace: Optional["Trace"] = None
    error: Optional[BaseException] = None

    @property
    def aborted(self) -> bool:
        return self.abort_signal.is_set()

    def abort(self) -> None:
        self.abort_signal.set()
