"""Tool descriptors and providers."""

from agentcore.tools.protocol import ToolDescriptor, ToolProvider, ToolSet, collect_tools, validate_json_schema

__all__ = [
    "ToolDescriptor",
    "ToolProvider",
    "ToolSet",
    "collect_tools",
    "validate_json_schema",
]
