"""Tool invocation pipeline and interceptors."""

from agentcore.pipeline.hitl import DEFAULT_REJECTION, HITLInterceptor
from agentcore.pipeline.interceptor import (
    CallNext,
    OutcomeStatus,
    ToolInterceptor,
    ToolInvocation,
    ToolOutcome,
    ToolPipeline,
)
from agentcore.pipeline.retry import ToolRetryInterceptor
from agentcore.pipeline.rewrite import ArgumentRewriteInterceptor
from agentcore.pipeline.stop_loop import StopLoopInterceptor

__all__ = [
    "ArgumentRewriteInterceptor",
    "CallNext",
    "DEFAULT_REJECTION",
    "HITLInterceptor",
    "OutcomeStatus",
    "StopLoopInterceptor",
    "ToolInterceptor",
    "ToolInvocation",
    "ToolOutcome",
    "ToolPipeline",
    "ToolRetryInterceptor",
]
