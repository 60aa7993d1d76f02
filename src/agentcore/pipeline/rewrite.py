"""Argument rewriting interceptor."""

import logging
from typing import Any, Callable, Dict, Iterable, Optional

from agentcore.pipeline.interceptor import CallNext, ToolInterceptor, ToolInvocation, ToolOutcome

logger = logging.getLogger(__name__)

ArgumentRewriter = Callable[[str, Dict[str, Any]], Dict[str, Any]]


class ArgumentRewriteInterceptor(ToolInterceptor):
    """Rewrite tool arguments before passing the call on.

    Example:
        # Keep file tools inside the workspace
        ArgumentRewriteInterceptor(
            lambda name, args: {**args, "path": sanitize(args["path"])},
            tools=["read_file", "write_file"],
        )
    """

    def __init__(self, rewrite: ArgumentRewriter, tools: Optional[Iterable[str]] = None) -> None:
        self._rewrite = rewrite
        self._tools = set(tools) if tools is not None else None

    async def intercept(self, invocation: ToolInvocation, call_next: CallNext) -> ToolOutcome:
        if self._tools is not None and invocation.tool_name not in self._tools:
            return await call_next(invocation)

        rewritten = self._rewrite(invocation.tool_name, dict(invocation.arguments))
        if rewritten != invocation.arguments:
            logger.debug(f"[ArgumentRewrite] Rewrote arguments for {invocation.tool_name}")
            invocation = invocation.with_arguments(rewritten)
        return await call_next(invocation)


__all__ = ["ArgumentRewriteInterceptor", "ArgumentRewriter"]
