"""Shared fixtures for agentcore tests."""

import asyncio
import re
from typing import Any, Dict, List, Optional

import pytest

from agentcore.config import AgentConfig
from agentcore.llm.types import ChatResponse, Message, StreamChunk, ToolCall, Usage
from agentcore.session.store import InMemorySessionStore
from agentcore.tools.protocol import ToolDescriptor


def answer(content: str, tokens: int = 0) -> ChatResponse:
    """Scripted final answer."""
    return ChatResponse(
        content=content,
        usage=Usage(prompt_tokens=tokens, completion_tokens=tokens, total_tokens=2 * tokens),
    )


def tool_call(name: str, arguments: Optional[Dict[str, Any]] = None, call_id: str = "call_1", content: str = "") -> ChatResponse:
    """Scripted tool-call request."""
    return ChatResponse(
        content=content,
        tool_calls=[ToolCall(id=call_id, name=name, arguments=dict(arguments or {}))],
    )


class ScriptedLLM:
    """Model client replaying scripted responses in order.

    Exceptions in the script are raised instead of returned. Once the
    script is exhausted ``fallback`` is returned, if given.
    """

    def __init__(self, responses: Optional[List[Any]] = None, fallback: Optional[ChatResponse] = None) -> None:
        self.responses = list(responses or [])
        self.fallback = fallback
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, messages: List[Message], tools=None, **kwargs: Any) -> ChatResponse:
        self.calls.append({"messages": list(messages), "tools": [t.name for t in tools or []]})
        if self.responses:
            item = self.responses.pop(0)
        elif self.fallback is not None:
            item = self.fallback
        else:
            raise AssertionError("ScriptedLLM ran out of responses")
        if isinstance(item, BaseException):
            raise item
        return item

    async def stream(self, messages: List[Message], tools=None, **kwargs: Any):
        response = await self.generate(messages, tools, **kwargs)
        for piece in re.findall(r"\S+\s*", response.content):
            yield StreamChunk(delta=piece)
        yield StreamChunk(
            tool_calls=list(response.tool_calls) or None,
            finish_reason="tool_calls" if response.tool_calls else "stop",
            usage=response.usage,
        )


class GatedLLM(ScriptedLLM):
    """Scripted model that blocks until released."""

    def __init__(self, responses: Optional[List[Any]] = None) -> None:
        super().__init__(responses)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def generate(self, messages: List[Message], tools=None, **kwargs: Any) -> ChatResponse:
        self.entered.set()
        await self.release.wait()
        return await super().generate(messages, tools, **kwargs)


class SlowLLM(ScriptedLLM):
    async def generate(self, messages: List[Message], tools=None, **kwargs: Any) -> ChatResponse:
        await asyncio.sleep(5)
        return await super().generate(messages, tools, **kwargs)


class RecordingTool:
    """Tool body recording its calls."""

    def __init__(self, result: Any = "ok") -> None:
        self.result = result
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


def make_tool(name: str, body: Any = None, description: str = "", **metadata: Any) -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        description=description or f"The {name} tool",
        execute=body or RecordingTool(),
        parameters={
            "type": "object",
            "properties": {"path": {"type": "string"}, "title": {"type": "string"}},
            "required": [],
        },
        metadata=metadata,
    )


@pytest.fixture
def store():
    """Fresh in-memory session store."""
    return InMemorySessionStore(max_messages=50)


@pytest.fixture
def config():
    return AgentConfig(name="assistant", instruction="You are a test assistant.", max_steps=5)
