"""Tool retry with exponential backoff.

Retries failed tool outcomes a bounded number of times. Suspensions,
rejections and short-circuits are returned as-is.
"""

import asyncio
import logging

from agentcore.pipeline.interceptor import CallNext, OutcomeStatus, ToolInterceptor, ToolInvocation, ToolOutcome

logger = logging.getLogger(__name__)


class ToolRetryInterceptor(ToolInterceptor):
    """Retry failed tool calls.

    Args:
        max_attempts: Total attempts including the first one
        initial_delay: Delay before the first retry in seconds
        backoff_factor: Multiplier for each subsequent delay
        max_delay: Cap on any single delay in seconds
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 0.5,
        backoff_factor: float = 2.0,
        max_delay: float = 10.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        delay = self.initial_delay * (self.backoff_factor ** (attempt - 1))
        return min(delay, self.max_delay)

    async def intercept(self, invocation: ToolInvocation, call_next: CallNext) -> ToolOutcome:
        attempt = 1
        while True:
            outcome = await call_next(invocation)
            if outcome.status != OutcomeStatus.FAILURE or attempt >= self.max_attempts:
                return outcome

            delay = self.calculate_delay(attempt)
            logger.info(
                f"[ToolRetry] {invocation.tool_name} failed (attempt {attempt}/{self.max_attempts}), "
                f"retrying in {delay:.2f}s: {outcome.error}"
            )
            if delay > 0:
                await asyncio.sleep(delay)
            attempt += 1


__all__ = ["ToolRetryInterceptor"]
