"""Tool Invocation Pipeline - ordered interceptor chain around tool calls.

Every tool call requested by the model leaves the reasoning loop through
a ``ToolPipeline``. Each interceptor may:
- Pass the call through unchanged (``await call_next(invocation)``)
- Rewrite arguments (``call_next(invocation.with_arguments(...))``)
- Short-circuit with a synthetic result
- Suspend the call (HITL)

The terminal step executes the tool body. Tool failures, including
timeouts and unknown tools, are converted into failure outcomes here and
never raised to the loop. Tool bodies may raise ``ToolExecutionError`` to
report a failure with a chosen message.

Example:
    pipeline = ToolPipeline([StopLoopInterceptor(), HITLInterceptor().on_sensitive_tool("delete_file")])
    outcome = await pipeline.invoke(invocation)
"""

import asyncio
import inspect
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Iterable, List, Optional

from agentcore.core.errors import ErrorContext, ToolExecutionError
from agentcore.llm.types import ToolCall
from agentcore.session.types import HITLDecision, HITLTask
from agentcore.tools.protocol import ToolDescriptor

if TYPE_CHECKING:
    from agentcore.session.store import SessionStore

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    """Outcome of one pass through the pipeline."""

    SUCCESS = "success"
    FAILURE = "failure"
    SUSPENDED = "suspended"
    REJECTED = "rejected"
    SHORT_CIRCUIT = "short_circuit"


@dataclass(frozen=True)
class ToolOutcome:
    status: OutcomeStatus
    content: str = ""
    error: Optional[str] = None
    task: Optional[HITLTask] = None
    duration_ms: int = 0

    @classmethod
    def success(cls, content: str, duration_ms: int = 0) -> "ToolOutcome":
        return cls(status=OutcomeStatus.SUCCESS, content=content, duration_ms=duration_ms)

    @classmethod
    def failure(cls, error: str, duration_ms: int = 0) -> "ToolOutcome":
        return cls(status=OutcomeStatus.FAILURE, error=error, duration_ms=duration_ms)

    @classmethod
    def suspended(cls, task: HITLTask) -> "ToolOutcome":
        return cls(status=OutcomeStatus.SUSPENDED, task=task)

    @classmethod
    def rejected(cls, comment: str) -> "ToolOutcome":
        return cls(status=OutcomeStatus.REJECTED, content=comment)

    @classmethod
    def short_circuit(cls, content: str) -> "ToolOutcome":
        return cls(status=OutcomeStatus.SHORT_CIRCUIT, content=content)

    @property
    def is_suspended(self) -> bool:
        return self.status == OutcomeStatus.SUSPENDED

    @property
    def observation(self) -> str:
        """Text fed back to the model as the tool result."""
        if self.status == OutcomeStatus.FAILURE:
            return f"Error: {self.error}"
        return self.content

    def with_content(self, content: str) -> "ToolOutcome":
        return replace(self, content=content)


@dataclass(frozen=True)
class ToolInvocation:
    """One tool call travelling through the pipeline.

    ``decision`` is set only when a resumed loop re-enters ACT for the
    call that was suspended; it has already been consumed from the store.
    """

    call: ToolCall
    session_id: str
    agent_name: str = ""
    tool: Optional[ToolDescriptor] = None
    decision: Optional[HITLDecision] = None
    store: Optional["SessionStore"] = None
    timeout: Optional[float] = None

    @property
    def tool_name(self) -> str:
        return self.call.name

    @property
    def arguments(self) -> Dict[str, Any]:
        return self.call.arguments

    @property
    def metadata(self) -> Dict[str, Any]:
        return self.tool.metadata if self.tool else {}

    def with_arguments(self, arguments: Dict[str, Any]) -> "ToolInvocation":
        return replace(self, call=self.call.with_arguments(arguments))


CallNext = Callable[[ToolInvocation], Awaitable[ToolOutcome]]


class ToolInterceptor(ABC):
    """Base class for pipeline interceptors."""

    @abstractmethod
    async def intercept(self, invocation: ToolInvocation, call_next: CallNext) -> ToolOutcome:
        """Handle the invocation, delegating to ``call_next`` to continue."""


def format_tool_result(result: Any) -> str:
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(result)


class ToolPipeline:
    """Ordered interceptor chain ending in tool execution.

    Args:
        interceptors: Interceptors in the order they see each call
        timeout: Default per-call timeout in seconds (None disables it)
    """

    def __init__(
        self,
        interceptors: Optional[Iterable[ToolInterceptor]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._interceptors: List[ToolInterceptor] = list(interceptors or [])
        self._timeout = timeout

    @property
    def interceptors(self) -> List[ToolInterceptor]:
        return list(self._interceptors)

    def add(self, interceptor: ToolInterceptor) -> "ToolPipeline":
        self._interceptors.append(interceptor)
        return self

    async def invoke(self, invocation: ToolInvocation) -> ToolOutcome:
        return await self._dispatch(0, invocation)

    async def _dispatch(self, index: int, invocation: ToolInvocation) -> ToolOutcome:
        if index >= len(self._interceptors):
            return await self._execute(invocation)

        async def call_next(next_invocation: ToolInvocation) -> ToolOutcome:
            return await self._dispatch(index + 1, next_invocation)

        return await self._interceptors[index].intercept(invocation, call_next)

    async def _execute(self, invocation: ToolInvocation) -> ToolOutcome:
        tool = invocation.tool
        if tool is None:
            logger.warning(f"[ToolPipeline] Unknown tool requested: {invocation.tool_name}")
            return ToolOutcome.failure(f"Unknown tool: {invocation.tool_name}")

        timeout = invocation.timeout if invocation.timeout is not None else self._timeout
        context = ErrorContext(
            operation="execute_tool",
            session_id=invocation.session_id,
            agent_name=invocation.agent_name,
        )
        start_time = time.time()
        try:
            async with asyncio.timeout(timeout):
                result = tool.execute(**invocation.arguments)
                if inspect.isawaitable(result):
                    result = await result
        except ToolExecutionError as e:
            error = e
        except TimeoutError as e:
            error = ToolExecutionError(
                f"Tool {tool.name} timed out after {timeout}s",
                tool_name=tool.name,
                timeout=True,
                context=context,
                cause=e,
            )
        except Exception as e:
            error = ToolExecutionError(str(e) or type(e).__name__, tool_name=tool.name, context=context, cause=e)
        else:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.debug(f"[ToolPipeline] Tool {tool.name} completed in {duration_ms}ms")
            return ToolOutcome.success(format_tool_result(result), duration_ms)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.warning(f"[ToolPipeline] Tool {tool.name} failed: {error}")
        return ToolOutcome.failure(error.message, duration_ms)


__all__ = [
    "CallNext",
    "OutcomeStatus",
    "ToolInterceptor",
    "ToolInvocation",
    "ToolOutcome",
    "ToolPipeline",
    "format_tool_result",
]
