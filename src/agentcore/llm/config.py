"""LLM configuration for agentcore.

Provides immutable configuration classes for model clients.
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True, kw_only=True)
class LLMConfig:
    """Immutable LLM configuration.

    Attributes:
        model: Model identifier with provider prefix (e.g., "openai/gpt-4o")
        api_key: Optional API key (can also be set via environment)
        base_url: Optional base URL for API
        temperature: Sampling temperature (0.0 to 2.0)
        max_tokens: Maximum tokens in response
        top_p: Top-p sampling (0.0 to 1.0)
        timeout_seconds: Request timeout
    """

    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 4096
    top_p: float = 1.0
    timeout_seconds: int = 120

    def with_model(self, model: str) -> "LLMConfig":
        """Return new config with different model."""
        return replace(self, model=model)

    def with_temperature(self, temperature: float) -> "LLMConfig":
        """Return new config with different temperature."""
        return replace(self, temperature=temperature)


__all__ = ["LLMConfig"]
