"""
Context Compaction - bounds the working conversation of a running loop.

A long tool-using turn keeps appending assistant tool-call messages and
tool results to the working conversation. Before each model call the
loop hands it to a ``ContextCompactor``, which drops the oldest part of
the conversation once it exceeds a message count or an estimated token
budget:

1. Leading system messages are always kept
2. The latest user message is kept as an anchor when it falls before the cut
3. Tool results are never separated from the assistant message that
   requested them; the window always starts on a non-tool message
4. A system marker records how many messages were dropped; an earlier
   marker is replaced, carrying its count forward
"""

import logging
import re
from typing import Any

from agentcore.core.errors import ConfigurationError
from agentcore.llm.types import Message, MessageRole

logger = logging.getLogger(__name__)

TRIM_MARKER = "[Historical context trimmed]"

# Flat allowance for each tool call's name and JSON arguments
TOOL_CALL_TOKENS = 100

MIN_CONTEXT_MESSAGES = 4
MIN_CONTEXT_TOKENS = 1_000

_CJK_PATTERN = re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf\uac00-\ud7af]")


def estimate_tokens(text: str, chars_per_token: float = 4.0) -> int:
    """
    Estimate token count for text with CJK awareness.

    Args:
        text: Text to estimate
        chars_per_token: Characters per token (default 4.0 for English)

    Returns:
        Estimated token count
    """
    if not text:
        return 0

    cjk_ratio = len(_CJK_PATTERN.findall(text)) / len(text)
    if cjk_ratio > 0.3:
        effective_ratio = 2.0
    elif cjk_ratio > 0.1:
        effective_ratio = 3.0
    else:
        effective_ratio = chars_per_token
    return int(len(text) / effective_ratio)


def estimate_message_tokens(message: Message) -> int:
    return estimate_tokens(message.content) + TOOL_CALL_TOKENS * len(message.tool_calls or [])


def estimate_messages_tokens(messages: list[Message]) -> int:
    return sum(estimate_message_tokens(m) for m in messages)


def trim_marker(dropped: int) -> Message:
    return Message(
        role=MessageRole.SYSTEM.value,
        content=f"{TRIM_MARKER} (Dropped {dropped} messages for context optimization)",
        metadata={"dropped_messages": dropped},
    )


def is_trim_marker(message: Message) -> bool:
    return message.role == MessageRole.SYSTEM.value and message.content.startswith(TRIM_MARKER)


class CompactionResult:
    """Result of one compaction pass."""

    def __init__(
        self,
        was_compacted: bool = False,
        original_message_count: int = 0,
        final_message_count: int = 0,
        original_token_count: int = 0,
        final_token_count: int = 0,
        dropped_messages: int = 0,
    ) -> None:
        self.was_compacted = was_compacted
        self.original_message_count = original_message_count
        self.final_message_count = final_message_count
        self.original_token_count = original_token_count
        self.final_token_count = final_token_count
        self.dropped_messages = dropped_messages
        self.tokens_saved = original_token_count - final_token_count

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "was_compacted": self.was_compacted,
            "original_message_count": self.original_message_count,
            "final_message_count": self.final_message_count,
            "original_token_count": self.original_token_count,
            "final_token_count": self.final_token_count,
            "tokens_saved": self.tokens_saved,
            "dropped_messages": self.dropped_messages,
        }


class ContextCompactor:
    """Trims a working conversation to a message and token budget.

    Args:
        max_messages: Messages kept after the system head and anchor
            (None disables the count limit)
        max_tokens: Estimated token budget for the whole conversation
            (None disables the token limit)

    Example:
        compactor = ContextCompactor(max_messages=40, max_tokens=32_000)
        messages, result = compactor.compact(messages)
    """

    def __init__(self, max_messages: int | None = 100, max_tokens: int | None = 64_000) -> None:
        if max_messages is not None and max_messages < MIN_CONTEXT_MESSAGES:
            raise ConfigurationError(
                f"max_messages must be >= {MIN_CONTEXT_MESSAGES}", field="max_messages", value=max_messages
            )
        if max_tokens is not None and max_tokens < MIN_CONTEXT_TOKENS:
            raise ConfigurationError(
                f"max_tokens must be >= {MIN_CONTEXT_TOKENS}", field="max_tokens", value=max_tokens
            )
        self.max_messages = max_messages
        self.max_tokens = max_tokens

    def should_compact(self, messages: list[Message]) -> bool:
        # Two slots of slack for the system head and the anchor
        if self.max_messages is not None and len(messages) > self.max_messages + 2:
            return True
        return self.max_tokens is not None and estimate_messages_tokens(messages) > self.max_tokens

    def compact(self, messages: list[Message]) -> tuple[list[Message], CompactionResult]:
        """Return the compacted conversation and what was dropped.

        The input list is not modified. When nothing can be dropped the
        original messages are returned unchanged.
        """
        original_tokens = estimate_messages_tokens(messages)
        unchanged = CompactionResult(
            original_message_count=len(messages),
            final_message_count=len(messages),
            original_token_count=original_tokens,
            final_token_count=original_tokens,
        )
        if not self.should_compact(messages):
            return list(messages), unchanged

        head_end = 0
        while (
            head_end < len(messages)
            and messages[head_end].role == MessageRole.SYSTEM.value
            and not is_trim_marker(messages[head_end])
        ):
            head_end += 1
        head = messages[:head_end]

        previously_dropped = 0
        body: list[Message] = []
        for message in messages[head_end:]:
            if is_trim_marker(message):
                previously_dropped += int(message.metadata.get("dropped_messages", 0))
            else:
                body.append(message)

        group_starts = [i for i, m in enumerate(body) if m.role != MessageRole.TOOL.value]
        if len(group_starts) < 2:
            logger.debug("[ContextCompactor] Nothing to drop: conversation is a single tool exchange")
            return list(messages), unchanged

        start = 0
        if self.max_messages is not None:
            start = max(len(body) - self.max_messages, 0)
        start = self._group_start(body, start)

        anchor_index = self._anchor_index(body)
        while self.max_tokens is not None and start < group_starts[-1]:
            kept = head + self._anchor(body, anchor_index, start) + body[start:]
            if estimate_messages_tokens(kept) <= self.max_tokens:
                break
            start = min(i for i in group_starts if i > start)

        anchor = self._anchor(body, anchor_index, start)
        dropped = start - len(anchor)
        if dropped <= 0:
            return list(messages), unchanged

        compacted = head + anchor + [trim_marker(previously_dropped + dropped)] + body[start:]
        final_tokens = estimate_messages_tokens(compacted)
        result = CompactionResult(
            was_compacted=True,
            original_message_count=len(messages),
            final_message_count=len(compacted),
            original_token_count=original_tokens,
            final_token_count=final_tokens,
            dropped_messages=dropped,
        )
        logger.info(
            f"[ContextCompactor] Dropped {dropped} messages "
            f"({original_tokens} -> {final_tokens} estimated tokens)"
        )
        return compacted, result

    @staticmethod
    def _group_start(body: list[Message], start: int) -> int:
        while start > 0 and body[start].role == MessageRole.TOOL.value:
            start -= 1
        return start

    @staticmethod
    def _anchor_index(body: list[Message]) -> int | None:
        for i in range(len(body) - 1, -1, -1):
            if body[i].role == MessageRole.USER.value:
                return i
        return None

    @staticmethod
    def _anchor(body: list[Message], anchor_index: int | None, start: int) -> list[Message]:
        if anchor_index is None or anchor_index >= start:
            return []
        return [body[anchor_index]]


__all__ = [
    "CompactionResult",
    "ContextCompactor",
    "TOOL_CALL_TOKENS",
    "TRIM_MARKER",
    "estimate_message_tokens",
    "estimate_messages_tokens",
    "estimate_tokens",
    "is_trim_marker",
    "trim_marker",
]
