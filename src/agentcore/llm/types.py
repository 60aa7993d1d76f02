"""LLM type definitions for agentcore.

This module provides core types for model interactions:
- Message: Chat message with role and content
- ChatResponse: Response from the model
- StreamChunk: Streaming response chunk
- ToolCall: Function call requested by the model
- Usage: Token usage tracking

All types are immutable (frozen dataclass) and round-trip through
plain dicts so they can be persisted in a session store.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_THINK_PATTERN = re.compile(r"<think(?:ing)?>.*?</think(?:ing)?>", re.DOTALL | re.IGNORECASE)


def strip_thinking(content: str) -> str:
    """Remove ``<think>...</think>`` segments from model output."""
    if not content:
        return ""
    return _THINK_PATTERN.sub("", content).strip()


class MessageRole(str, Enum):
    """Message role enumeration."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, kw_only=True)
class ToolCall:
    """Immutable tool call from the model.

    Attributes:
        id: Unique call identifier
        name: Tool name
        arguments: Tool arguments (parsed JSON)
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def with_arguments(self, arguments: dict[str, Any]) -> "ToolCall":
        """Return a copy with different arguments."""
        return ToolCall(id=self.id, name=self.name, arguments=dict(arguments))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": self.arguments,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function", {})
        return cls(
            id=data["id"],
            name=function.get("name", data.get("name", "")),
            arguments=dict(function.get("arguments", data.get("arguments", {})) or {}),
        )


@dataclass(frozen=True, kw_only=True)
class Message:
    """Immutable chat message.

    Attributes:
        role: Message role (system/user/assistant/tool)
        content: Message content
        name: Optional name (tool name for tool messages, agent name
            for assistant messages written by a team member)
        tool_call_id: Optional tool call ID (for tool result messages)
        tool_calls: Optional tool calls (for assistant messages)
        metadata: Optional metadata, e.g. ``result_content`` holding the
            content with thinking segments stripped
    """

    role: str
    content: str
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def system(cls, content: str) -> "Message":
        """Create a system message."""
        return cls(role=MessageRole.SYSTEM.value, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role=MessageRole.USER.value, content=content)

    @classmethod
    def assistant(
        cls,
        content: str = "",
        tool_calls: list[ToolCall] | None = None,
        name: str | None = None,
    ) -> "Message":
        """Create an assistant message.

        When the content carries thinking segments, the stripped text is
        recorded in ``metadata["result_content"]``.
        """
        metadata: dict[str, Any] = {}
        stripped = strip_thinking(content)
        if stripped != content:
            metadata["result_content"] = stripped
        return cls(
            role=MessageRole.ASSISTANT.value,
            content=content,
            tool_calls=tool_calls,
            name=name,
            metadata=metadata,
        )

    @classmethod
    def tool_result(cls, content: str, tool_call_id: str, name: str | None = None) -> "Message":
        """Create a tool result message."""
        return cls(role=MessageRole.TOOL.value, content=content, tool_call_id=tool_call_id, name=name)

    @property
    def result_content(self) -> str:
        """Content with thinking segments removed."""
        return self.metadata.get("result_content", self.content)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API calls."""
        result: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name:
            result["name"] = self.name
        if self.tool_call_id:
            result["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        return result

    def to_record(self) -> dict[str, Any]:
        """Convert to a persistence record (includes metadata)."""
        record = self.to_dict()
        if self.metadata:
            record["metadata"] = dict(self.metadata)
        return record

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "Message":
        tool_calls = data.get("tool_calls")
        return cls(
            role=data["role"],
            content=data.get("content", ""),
            name=data.get("name"),
            tool_call_id=data.get("tool_call_id"),
            tool_calls=[ToolCall.from_dict(tc) for tc in tool_calls] if tool_calls else None,
            metadata=dict(data.get("metadata", {})),
        )


@dataclass(frozen=True, kw_only=True)
class Usage:
    """Token usage tracking."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        """Add two usage objects."""
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True, kw_only=True)
class ChatResponse:
    """Immutable response from the model.

    Either a final answer (no tool calls) or one or more requested
    tool invocations.
    """

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    usage: Usage = field(default_factory=Usage)
    model: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        """Check if response contains tool calls."""
        return len(self.tool_calls) > 0


@dataclass(frozen=True, kw_only=True)
class StreamChunk:
    """Immutable streaming response chunk.

    A stream yields any number of content deltas and, at most once,
    the complete set of requested tool calls.

    Attributes:
        delta: Content delta (incremental text)
        tool_calls: Complete tool call requests (final chunk only)
        finish_reason: Optional finish reason
        usage: Optional token usage (final chunk only)
    """

    delta: str = ""
    tool_calls: list[ToolCall] | None = None
    finish_reason: str | None = None
    usage: Usage | None = None

    @property
    def is_final(self) -> bool:
        """Check if this is the final chunk."""
        return self.finish_reason is not None


__all__ = [
    "ChatResponse",
    "Message",
    "MessageRole",
    "StreamChunk",
    "ToolCall",
    "Usage",
    "strip_thinking",
]
