"""Configuration management for agentcore.

Two layers:
- ``Settings``: process-level defaults from the environment / ``.env``
  (pydantic-settings, ``AGENTCORE_`` prefix)
- ``AgentConfig`` / ``TeamConfig``: per-agent and per-team configuration,
  validated at construction time so misconfiguration is never deferred
  into a running loop
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Optional, Type

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from agentcore.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Process-level settings."""

    # Session Store Settings
    redis_url: str = Field(default="redis://localhost:6379/0")
    session_max_messages: int = Field(default=50, ge=1)
    session_key_prefix: str = Field(default="agentcore")
    session_lock_timeout_seconds: int = Field(default=300, ge=1)

    # Agent Settings
    default_max_steps: int = Field(default=20, ge=1)
    model_timeout_seconds: Optional[float] = Field(default=60.0)
    tool_timeout_seconds: Optional[float] = Field(default=120.0)

    # Logging Settings
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="AGENTCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Optional[str]) -> str:
        """Normalize log level value from environment."""
        if value is None:
            return "INFO"
        normalized = str(value).strip().upper()
        if normalized in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return normalized
        raise ValueError("AGENTCORE_LOG_LEVEL must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging for an application embedding agentcore.

    Library modules only create loggers; this is meant for entrypoints.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level), format=LOG_FORMAT)


@dataclass
class AgentConfig:
    """Configuration for a single ReAct agent.

    Attributes:
        name: Unique agent name (also tags its assistant messages)
        description: What the agent does (shown to team supervisors)
        instruction: Base system instruction
        max_steps: Maximum REASON/ACT cycles per turn
        planning: Enable the PLANNING state
        streaming: Use the model's streaming variant
        output_key: Snapshot key receiving the final answer
        output_schema: Pydantic model validating a structured answer
        model_timeout: Seconds allowed per model invocation (None: unbounded)
        tool_timeout: Seconds allowed per tool invocation (None: pipeline default)
        tool_filter: Per-call tool visibility filter, applied after skills
        planning_threshold: Complexity score that triggers PLANNING
        max_plan_steps: Upper bound on generated plan steps
        max_context_messages: Working-conversation messages kept before
            older tool exchanges are dropped (None: unbounded)
        max_context_tokens: Estimated token budget of the working
            conversation (None: unbounded)
    """

    name: str
    description: str = ""
    instruction: str = "You are a helpful assistant."
    max_steps: int = 20
    planning: bool = False
    streaming: bool = True
    output_key: Optional[str] = None
    output_schema: Optional[Type[BaseModel]] = None
    model_timeout: Optional[float] = None
    tool_timeout: Optional[float] = None
    tool_filter: Optional[Callable[..., bool]] = None
    planning_threshold: float = 0.4
    max_plan_steps: int = 8
    max_context_messages: Optional[int] = 100
    max_context_tokens: Optional[int] = 64_000

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ConfigurationError on invalid values."""
        if not self.name or not self.name.strip():
            raise ConfigurationError("Agent name must not be empty", field="name", value=self.name)
        if self.max_steps < 1:
            raise ConfigurationError("max_steps must be >= 1", field="max_steps", value=self.max_steps)
        if self.max_plan_steps < 1:
            raise ConfigurationError(
                "max_plan_steps must be >= 1", field="max_plan_steps", value=self.max_plan_steps
            )
        if not 0 < self.planning_threshold <= 1:
            raise ConfigurationError(
                "planning_threshold must be in (0, 1]",
                field="planning_threshold",
                value=self.planning_threshold,
            )
        for field_name in ("model_timeout", "tool_timeout"):
            value = getattr(self, field_name)
            if value is not None and value <= 0:
                raise ConfigurationError(f"{field_name} must be positive", field=field_name, value=value)
        if self.max_context_messages is not None and self.max_context_messages < 4:
            raise ConfigurationError(
                "max_context_messages must be >= 4", field="max_context_messages", value=self.max_context_messages
            )
        if self.max_context_tokens is not None and self.max_context_tokens < 1_000:
            raise ConfigurationError(
                "max_context_tokens must be >= 1000", field="max_context_tokens", value=self.max_context_tokens
            )
        if self.output_schema is not None:
            if not (isinstance(self.output_schema, type) and issubclass(self.output_schema, BaseModel)):
                raise ConfigurationError(
                    "output_schema must be a pydantic BaseModel subclass",
                    field="output_schema",
                    value=self.output_schema,
                )
            if not self.output_key:
                raise ConfigurationError(
                    "output_schema requires output_key", field="output_key", value=self.output_key
                )

    @classmethod
    def from_settings(cls, name: str, settings: Optional[Settings] = None, **overrides: Any) -> "AgentConfig":
        """Build a config whose defaults come from ``Settings``."""
        settings = settings or get_settings()
        values: dict[str, Any] = {
            "max_steps": settings.default_max_steps,
            "model_timeout": settings.model_timeout_seconds,
            "tool_timeout": settings.tool_timeout_seconds,
        }
        values.update(overrides)
        return cls(name=name, **values)


TEAM_PROTOCOLS = ("sequential", "supervisor")


@dataclass
class TeamConfig:
    """Configuration for a team of agents.

    Attributes:
        name: Unique team name
        max_turns: Budget of member invocations per team call
        protocol: Coordination protocol, "sequential" or "supervisor"
    """

    name: str
    max_turns: int = 10
    protocol: str = "sequential"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not self.name or not self.name.strip():
            raise ConfigurationError("Team name must not be empty", field="name", value=self.name)
        if self.max_turns < 1:
            raise ConfigurationError("max_turns must be >= 1", field="max_turns", value=self.max_turns)
        if self.protocol not in TEAM_PROTOCOLS:
            raise ConfigurationError(
                f"protocol must be one of {TEAM_PROTOCOLS}", field="protocol", value=self.protocol
            )


__all__ = [
    "AgentConfig",
    "LOG_FORMAT",
    "Settings",
    "TEAM_PROTOCOLS",
    "TeamConfig",
    "configure_logging",
    "get_settings",
]
