"""Tool protocol and descriptors for agentcore.

Tools reach the reasoning loop through providers. A provider is any
object exposing ``list_tools()``: local code, a skill, or a remote tool
source. The orchestration core is agnostic to how tools are discovered
and owns no state about them.

Key design:
- Protocol-based (duck typing friendly)
- Immutable descriptors validated at construction time
- Tool bodies may be sync or async
"""

import inspect
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from agentcore.core.errors import ConfigurationError

_TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]{0,63}$")
_JSON_SCHEMA_TYPES = {"object", "string", "number", "integer", "boolean", "array", "null"}


def validate_json_schema(schema: Any, field_name: str, require_object: bool = True) -> None:
    """Validate the subset of JSON Schema that tool descriptors rely on.

    Raises:
        ConfigurationError: If the schema is malformed
    """
    if not isinstance(schema, dict):
        raise ConfigurationError(f"{field_name} must be a dict", field=field_name, value=schema)

    schema_type = schema.get("type")
    if require_object and schema_type != "object":
        raise ConfigurationError(
            f"{field_name} must have type 'object', got {schema_type!r}",
            field=field_name,
            value=schema_type,
        )
    if schema_type is not None and schema_type not in _JSON_SCHEMA_TYPES:
        raise ConfigurationError(f"{field_name} has unknown type {schema_type!r}", field=field_name)

    properties = schema.get("properties", {})
    if not isinstance(properties, dict):
        raise ConfigurationError(f"{field_name}.properties must be a dict", field=field_name)
    for prop_name, prop_schema in properties.items():
        if not isinstance(prop_schema, dict):
            raise ConfigurationError(
                f"{field_name}.properties.{prop_name} must be a dict", field=field_name
            )

    required = schema.get("required", [])
    if not isinstance(required, list):
        raise ConfigurationError(f"{field_name}.required must be a list", field=field_name)
    missing = [name for name in required if name not in properties]
    if missing:
        raise ConfigurationError(
            f"{field_name}.required references undefined properties: {missing}",
            field=field_name,
            value=missing,
        )


@dataclass(frozen=True, kw_only=True)
class ToolDescriptor:
    """Immutable definition of a callable tool.

    The metadata map is free-form. The loop and pipeline use it for
    per-call filtering (e.g. a ``roles`` tag) and HITL matching
    (e.g. a ``destructive`` flag); ``skill`` is set when a skill
    contributes the tool.

    Raises:
        ConfigurationError: If the name, schemas or body are malformed
    """

    name: str
    description: str
    execute: Callable[..., Any]
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )
    output_schema: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not _TOOL_NAME_PATTERN.match(self.name):
            raise ConfigurationError(f"Invalid tool name: {self.name!r}", field="name", value=self.name)
        if not callable(self.execute):
            raise ConfigurationError(f"Tool {self.name} body is not callable", field="execute")
        validate_json_schema(self.parameters, f"{self.name}.parameters")
        if self.output_schema is not None:
            validate_json_schema(self.output_schema, f"{self.name}.output_schema", require_object=False)

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.execute)

    def with_metadata(self, **kwargs: Any) -> "ToolDescriptor":
        """Return a new descriptor with updated metadata."""
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            execute=self.execute,
            parameters=self.parameters,
            output_schema=self.output_schema,
            metadata={**self.metadata, **kwargs},
        )

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "output_schema": self.output_schema,
            "metadata": dict(self.metadata),
        }


@runtime_checkable
class ToolProvider(Protocol):
    """Protocol for any capability source that contributes tools."""

    def list_tools(self) -> List[ToolDescriptor]:
        """Return the tools this provider currently exposes."""
        ...


class ToolSet:
    """Simple in-process provider holding a fixed list of tools.

    Example:
        tools = ToolSet([search_tool, write_tool])
        agent = ReActAgent(config, model, tools=tools)
    """

    def __init__(self, tools: Optional[Iterable[ToolDescriptor]] = None) -> None:
        self._tools: Dict[str, ToolDescriptor] = {}
        for tool in tools or []:
            self.add(tool)

    def add(self, tool: ToolDescriptor) -> None:
        if tool.name in self._tools:
            raise ConfigurationError(f"Duplicate tool name: {tool.name}", field="name", value=tool.name)
        self._tools[tool.name] = tool

    def list_tools(self) -> List[ToolDescriptor]:
        return list(self._tools.values())


def collect_tools(providers: Iterable[ToolProvider]) -> List[ToolDescriptor]:
    """Union the tools of several providers, first registration wins."""
    seen: Dict[str, ToolDescriptor] = {}
    for provider in providers:
        for tool in provider.list_tools():
            seen.setdefault(tool.name, tool)
    return list(seen.values())


__all__ = [
    "ToolDescriptor",
    "ToolProvider",
    "ToolSet",
    "collect_tools",
    "validate_json_schema",
]
