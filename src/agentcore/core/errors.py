"""Unified error hierarchy for agentcore.

Errors fall into two groups:
- Caller-surfaced: model failures, configuration failures, session
  conflicts, HITL state violations and cancellation
- Locally recovered: tool failures, which the pipeline converts into
  observations and never raises out of the loop
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Severity levels for agent errors."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of agent errors."""
    CONFIGURATION = "configuration"     # Setup-time validation errors
    MODEL = "model"                     # Model transport/provider errors
    TOOL = "tool"                       # Tool execution errors
    SESSION = "session"                 # Session concurrency errors
    HITL = "hitl"                       # Pending task / decision errors
    CANCELLED = "cancelled"             # Caller-initiated cancellation
    TIMEOUT = "timeout"                 # Operation timeout
    INTERNAL = "internal"               # Internal system errors


@dataclass
class ErrorContext:
    """Context information for an error."""
    operation: str
    session_id: Optional[str] = None
    agent_name: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "operation": self.operation,
            "session_id": self.session_id,
            "agent_name": self.agent_name,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }


class AgentError(Exception):
    """Base exception for all agentcore errors.

    Provides consistent error structure with context, severity, and category.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        """Initialize the agent error.

        Args:
            message: Human-readable error message
            category: Error category for filtering/routing
            severity: Error severity level
            context: Additional context about the error
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext(operation="unknown")
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "context": self.context.to_dict(),
        }

    def __str__(self) -> str:
        parts = [f"[{self.category.value.upper()}] {self.message}"]
        if self.context.operation != "unknown":
            parts.append(f"operation={self.context.operation}")
        if self.context.session_id:
            parts.append(f"session_id={self.context.session_id}")
        return " | ".join(parts)


class ConfigurationError(AgentError):
    """Raised at setup time when configuration or a tool schema is invalid."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        context: Optional[ErrorContext] = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            context=context,
        )
        self.field = field
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with field info."""
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        if self.value is not None:
            data["value"] = str(self.value)
        return data


class ModelInvocationError(AgentError):
    """Raised when the model transport or provider fails.

    The reasoning loop aborts on this error; it is never retried silently.
    """

    def __init__(
        self,
        message: str,
        timeout: bool = False,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.TIMEOUT if timeout else ErrorCategory.MODEL,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=cause,
        )
        self.timeout = timeout


class ToolExecutionError(AgentError):
    """Raised by tool bodies (or the pipeline) when a tool call fails."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        timeout: bool = False,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.TIMEOUT if timeout else ErrorCategory.TOOL,
            severity=ErrorSeverity.WARNING,
            context=context,
            cause=cause,
        )
        self.tool_name = tool_name
        self.timeout = timeout


class SessionBusyError(AgentError):
    """Raised when a second turn is started on a session that already has one."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            message=f"Session {session_id} already has an active turn",
            category=ErrorCategory.SESSION,
            severity=ErrorSeverity.WARNING,
            context=ErrorContext(operation="acquire_turn", session_id=session_id),
        )
        self.session_id = session_id


class HITLStateError(AgentError):
    """Raised when a HITL operation does not match the session's pending state."""

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        operation: str = "hitl",
    ) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.HITL,
            severity=ErrorSeverity.WARNING,
            context=ErrorContext(operation=operation, session_id=session_id),
        )
        self.session_id = session_id


class NoPendingTaskError(HITLStateError):
    """Raised when resuming or deciding on a session with nothing pending."""

    def __init__(self, session_id: str, operation: str = "resume") -> None:
        super().__init__(
            message=f"Session {session_id} has no pending task to resume",
            session_id=session_id,
            operation=operation,
        )


class AgentCancelledError(AgentError):
    """Raised by the blocking call surface when a turn was cancelled."""

    def __init__(self, message: str = "Processing cancelled", session_id: Optional[str] = None) -> None:
        super().__init__(
            message=message,
            category=ErrorCategory.CANCELLED,
            severity=ErrorSeverity.INFO,
            context=ErrorContext(operation="cancel", session_id=session_id),
        )


def wrap_model_error(
    error: Exception,
    context: Optional[ErrorContext] = None,
) -> ModelInvocationError:
    """Wrap a transport exception into a ModelInvocationError.

    Args:
        error: The original exception
        context: Optional error context

    Returns:
        A ModelInvocationError wrapping the original exception
    """
    if isinstance(error, ModelInvocationError):
        return error

    error_type = type(error).__name__
    is_timeout = isinstance(error, TimeoutError) or "timeout" in error_type.lower()
    message = str(error) or error_type
    if is_timeout:
        message = f"Model invocation timed out: {message}"
    return ModelInvocationError(message=message, timeout=is_timeout, context=context, cause=error)


__all__ = [
    "AgentCancelledError",
    "AgentError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "HITLStateError",
    "ModelInvocationError",
    "NoPendingTaskError",
    "SessionBusyError",
    "ToolExecutionError",
    "wrap_model_error",
]
