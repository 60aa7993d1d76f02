"""HITL gate - suspends sensitive tool calls until a human decides.

Matching is by tool name (per-tool strategy) or by predicate over the
invocation. A strategy returns a justification string to intercept the
call, or ``None`` to let it through.

On match the interceptor does not invoke the tool: it writes a
``HITLTask`` to the session store and returns a suspension outcome.
When the loop is resumed the invocation carries the consumed decision:
- reject: the tool is skipped and the comment becomes the observation
- approve: the tool runs with the decision's argument overrides, if any

Example:
    hitl = (
        HITLInterceptor()
        .on_sensitive_tool("delete_file", "send_email")
        .on_predicate(lambda inv: inv.metadata.get("destructive", False))
    )
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple, Union

from agentcore.core.errors import HITLStateError
from agentcore.pipeline.interceptor import (
    CallNext,
    OutcomeStatus,
    ToolInterceptor,
    ToolInvocation,
    ToolOutcome,
)
from agentcore.session.types import HITLTask

logger = logging.getLogger(__name__)

DEFAULT_REJECTION = "The user rejected this tool call. Do not retry it; choose another approach."

HITLStrategy = Callable[[ToolInvocation], Optional[str]]
Justification = Union[str, Callable[[ToolInvocation], str]]


def _default_justification(invocation: ToolInvocation) -> str:
    return f"Tool '{invocation.tool_name}' requires human approval before execution."


class HITLInterceptor(ToolInterceptor):
    """Human-in-the-loop gate for the tool pipeline."""

    def __init__(self, rejection_message: str = DEFAULT_REJECTION) -> None:
        self._strategies: Dict[str, HITLStrategy] = {}
        self._predicates: List[Tuple[Callable[[ToolInvocation], bool], Justification]] = []
        self._rejection_message = rejection_message

    def on_tool(self, tool_name: str, strategy: HITLStrategy) -> "HITLInterceptor":
        """Register a strategy deciding whether calls to ``tool_name`` are intercepted."""
        self._strategies[tool_name] = strategy
        return self

    def on_sensitive_tool(self, *tool_names: str, justification: Optional[str] = None) -> "HITLInterceptor":
        """Always intercept calls to the given tools."""
        for name in tool_names:
            if justification is None:
                self._strategies[name] = _default_justification
            else:
                self._strategies[name] = lambda _inv, text=justification: text
        return self

    def on_predicate(
        self,
        predicate: Callable[[ToolInvocation], bool],
        justification: Optional[Justification] = None,
    ) -> "HITLInterceptor":
        """Intercept any call matching ``predicate``."""
        self._predicates.append((predicate, justification or _default_justification))
        return self

    def match(self, invocation: ToolInvocation) -> Optional[str]:
        """Return the justification if the call must be gated, else None."""
        strategy = self._strategies.get(invocation.tool_name)
        if strategy is not None:
            reason = strategy(invocation)
            if reason:
                return reason
        for predicate, justification in self._predicates:
            if predicate(invocation):
                return justification(invocation) if callable(justification) else justification
        return None

    async def intercept(self, invocation: ToolInvocation, call_next: CallNext) -> ToolOutcome:
        decision = invocation.decision
        if decision is not None:
            if not decision.is_approved:
                comment = decision.comment_or_default(self._rejection_message)
                logger.info(f"[HITL] Tool {invocation.tool_name} rejected for {invocation.session_id}")
                return ToolOutcome.rejected(comment)

            if decision.modified_args:
                invocation = invocation.with_arguments(decision.modified_args)
            logger.info(f"[HITL] Tool {invocation.tool_name} approved for {invocation.session_id}")
            outcome = await call_next(invocation)
            if decision.comment and outcome.status in (OutcomeStatus.SUCCESS, OutcomeStatus.SHORT_CIRCUIT):
                return outcome.with_content(f"{outcome.content}\n(Note: {decision.comment})".lstrip())
            return outcome

        justification = self.match(invocation)
        if justification is None:
            return await call_next(invocation)

        if invocation.store is None:
            raise HITLStateError(
                "HITL gate requires a session store to record the pending task",
                session_id=invocation.session_id,
                operation="intercept",
            )

        task = HITLTask(
            tool_name=invocation.tool_name,
            arguments=dict(invocation.arguments),
            session_id=invocation.session_id,
            justification=justification,
            call_id=invocation.call.id,
            agent_name=invocation.agent_name,
        )
        await invocation.store.set_pending(invocation.session_id, task)
        logger.info(
            f"[HITL] Suspended {invocation.tool_name} for {invocation.session_id} (task={task.task_id})"
        )
        return ToolOutcome.suspended(task)


__all__ = ["DEFAULT_REJECTION", "HITLInterceptor", "HITLStrategy"]
