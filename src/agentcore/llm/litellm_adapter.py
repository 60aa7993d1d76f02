"""LiteLLM adapter for agentcore.

Implements the model invocation capability on top of LiteLLM's unified
completion API. Provider dialects are LiteLLM's concern; this adapter
only maps agentcore types in and out.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from litellm import acompletion

from agentcore.llm.config import LLMConfig
from agentcore.llm.types import ChatResponse, Message, StreamChunk, ToolCall, Usage
from agentcore.tools.protocol import ToolDescriptor

logger = logging.getLogger(__name__)


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse tool arguments: {raw}")
        return {"raw_arguments": raw}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def _message_to_litellm(message: Message) -> dict[str, Any]:
    data = message.to_dict()
    if message.tool_calls:
        # Providers expect the arguments as a JSON string
        data["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
            }
            for tc in message.tool_calls
        ]
    return data


class LiteLLMAdapter:
    """LiteLLM-based model client.

    Providers are specified via model prefix (e.g., "openai/gpt-4o",
    "anthropic/claude-3-5-sonnet").

    Example:
        client = LiteLLMAdapter(LLMConfig(model="openai/gpt-4o"))
        response = await client.generate([Message.user("Hello!")])
    """

    def __init__(self, config: LLMConfig) -> None:
        self._config = config

    @property
    def config(self) -> LLMConfig:
        return self._config

    def _build_completion_params(
        self,
        messages: list[Message],
        tools: list[ToolDescriptor] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self._config.model,
            "messages": [_message_to_litellm(msg) for msg in messages],
            "temperature": self._config.temperature,
            "max_tokens": self._config.max_tokens,
            "top_p": self._config.top_p,
            "timeout": self._config.timeout_seconds,
        }

        if self._config.api_key:
            params["api_key"] = self._config.api_key
        if self._config.base_url:
            params["api_base"] = self._config.base_url
        if tools:
            params["tools"] = [tool.to_openai_format() for tool in tools]

        params.update(kwargs)
        return params

    def _parse_tool_calls(self, response_tool_calls: list[Any]) -> list[ToolCall]:
        return [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=_parse_arguments(getattr(tc.function, "arguments", None)),
            )
            for tc in response_tool_calls
        ]

    def _extract_usage(self, response: Any) -> Usage:
        usage = getattr(response, "usage", None)
        if usage:
            return Usage(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(usage, "total_tokens", 0) or 0,
            )
        return Usage()

    async def generate(
        self,
        messages: list[Message],
        tools: list[ToolDescriptor] | None = None,
        **kwargs: Any,
    ) -> ChatResponse:
        """Generate a non-streaming response."""
        params = self._build_completion_params(messages, tools, **kwargs)

        try:
            response = await acompletion(**params)
        except Exception as e:
            logger.error(f"LiteLLM generate error: {e}")
            raise

        content = ""
        tool_calls: list[ToolCall] = []
        finish_reason = None
        if response.choices:
            choice = response.choices[0]
            content = choice.message.content or ""
            if getattr(choice.message, "tool_calls", None):
                tool_calls = self._parse_tool_calls(choice.message.tool_calls)
            finish_reason = choice.finish_reason

        return ChatResponse(
            content=content,
            tool_calls=tool_calls,
            finish_reason=finish_reason,
            usage=self._extract_usage(response),
            model=self._config.model,
        )

    async def stream(
        self,
        messages: list[Message],
        tools: list[ToolDescriptor] | None = None,
        **kwargs: Any,
    ) -> AsyncGenerator[StreamChunk, None]:
        """Generate a streaming response.

        Tool call fragments are accumulated by index and emitted once,
        complete, on the final chunk.
        """
        params = self._build_completion_params(messages, tools, **kwargs)
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}

        pending: dict[int, dict[str, Any]] = {}
        finish_reason: str | None = None
        usage: Usage | None = None

        try:
            response = await acompletion(**params)

            async for chunk in response:
                if getattr(chunk, "usage", None):
                    usage = self._extract_usage(chunk)
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if getattr(delta, "tool_calls", None):
                    for fragment in delta.tool_calls:
                        slot = pending.setdefault(
                            fragment.index, {"id": None, "name": "", "arguments": ""}
                        )
                        if fragment.id:
                            slot["id"] = fragment.id
                        function = getattr(fragment, "function", None)
                        if function is not None:
                            if function.name:
                                slot["name"] = function.name
                            if function.arguments:
                                slot["arguments"] += function.arguments

                if getattr(delta, "content", None):
                    yield StreamChunk(delta=delta.content)

                if getattr(choice, "finish_reason", None):
                    finish_reason = choice.finish_reason

        except Exception as e:
            logger.error(f"LiteLLM stream error: {e}")
            raise

        tool_calls = [
            ToolCall(
                id=slot["id"] or f"call_{index}",
                name=slot["name"],
                arguments=_parse_arguments(slot["arguments"]),
            )
            for index, slot in sorted(pending.items())
        ]
        yield StreamChunk(
            tool_calls=tool_calls or None,
            finish_reason=finish_reason or "stop",
            usage=usage,
        )


def create_llm_client(
    model: str,
    api_key: str | None = None,
    **kwargs: Any,
) -> LiteLLMAdapter:
    """Factory function to create a model client.

    Example:
        client = create_llm_client("openai/gpt-4o", api_key="sk-...")
    """
    config = LLMConfig(model=model, api_key=api_key, **kwargs)
    return LiteLLMAdapter(config)


__all__ = [
    "LiteLLMAdapter",
    "create_llm_client",
]
