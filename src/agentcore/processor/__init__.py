"""Reasoning loop processor."""

from agentcore.processor.loop import ReActLoop, extract_json_block
from agentcore.processor.run_context import RunContext

__all__ = ["ReActLoop", "RunContext", "extract_json_block"]
