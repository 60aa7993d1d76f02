"""Skill type definitions for agentcore.

This module provides core types for the skill system:
- Skill: Protocol interface for skill implementations
- SkillDefinition: Immutable declarative skill
- SkillTrigger: Trigger patterns for skill activation
- SkillContext: Contextual signals a skill is evaluated against
- SkillActivation: Result of evaluating every skill for one turn

Skills are stateless with respect to the reasoning loop and are
re-evaluated on every turn.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from agentcore.core.errors import ConfigurationError
from agentcore.tools.protocol import ToolDescriptor


class TriggerType(str, Enum):
    """Types of skill triggers."""

    KEYWORD = "keyword"  # Substring match
    REGEX = "regex"  # Regular expression pattern
    ALWAYS = "always"  # Active on every turn


@dataclass(frozen=True, kw_only=True)
class SkillContext:
    """Contextual signals used for skill activation and tool filtering.

    Attributes:
        prompt: The user prompt of the current turn
        session_id: Session the turn runs in
        attributes: Free-form caller signals (e.g. ``role``)
    """

    prompt: str = ""
    session_id: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)


@dataclass(frozen=True, kw_only=True)
class SkillTrigger:
    """Immutable trigger pattern for skill activation.

    A trigger fires when any of its patterns matches the prompt. Regex
    patterns are compiled on construction; an invalid one raises
    ``ConfigurationError``.

    Attributes:
        type: Trigger type
        patterns: Keywords or regex patterns
        case_sensitive: Whether matching is case sensitive
    """

    type: TriggerType = TriggerType.KEYWORD
    patterns: list[str] = field(default_factory=list)
    case_sensitive: bool = False
    _compiled: tuple[re.Pattern[str], ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.type != TriggerType.REGEX:
            return
        flags = 0 if self.case_sensitive else re.IGNORECASE
        compiled = []
        for pattern in self.patterns:
            try:
                compiled.append(re.compile(pattern, flags))
            except re.error as e:
                raise ConfigurationError(
                    f"Invalid trigger pattern {pattern!r}: {e}", field="patterns", value=pattern
                ) from e
        object.__setattr__(self, "_compiled", tuple(compiled))

    def matches(self, text: str) -> bool:
        if self.type == TriggerType.ALWAYS:
            return True
        if self.type == TriggerType.KEYWORD:
            return self._match_keywords(text)
        if self.type == TriggerType.REGEX:
            return any(pattern.search(text) for pattern in self._compiled)
        return False

    def _match_keywords(self, text: str) -> bool:
        check_text = text if self.case_sensitive else text.lower()
        for pattern in self.patterns:
            check_pattern = pattern if self.case_sensitive else pattern.lower()
            if check_pattern in check_text:
                return True
        return False


@runtime_checkable
class Skill(Protocol):
    """Protocol for skill implementations.

    Any object implementing this interface can be registered.

    Example:
        class ReportSkill:
            name = "report"
            description = "Writes quarterly reports"

            def is_supported(self, context: SkillContext) -> bool:
                return "report" in context.prompt.lower()

            def instruction(self, context: SkillContext) -> str:
                return "Use the report template."

            def list_tools(self) -> list[ToolDescriptor]:
                return [render_report_tool]
    """

    @property
    def name(self) -> str:
        """Unique skill name."""
        ...

    @property
    def description(self) -> str:
        """Detailed skill description."""
        ...

    def is_supported(self, context: SkillContext) -> bool:
        """Activation predicate over the prompt/context."""
        ...

    def instruction(self, context: SkillContext) -> str:
        """Instruction text appended to the system prompt when active."""
        ...

    def list_tools(self) -> list[ToolDescriptor]:
        """Tools contributed while the skill is active."""
        ...


@dataclass(frozen=True, kw_only=True)
class SkillDefinition:
    """Immutable declarative skill.

    Activation uses ``predicate`` when given, else ``trigger``. A skill
    with neither is never activated automatically.

    Attributes:
        name: Unique skill name
        description: Detailed skill description
        instructions: Instruction text; ``{prompt}`` is substituted
        tools: Tools contributed by this skill
        trigger: Trigger pattern for activation
        predicate: Custom activation predicate
        enabled: Disabled skills are never activated
    """

    name: str
    description: str
    instructions: str = ""
    tools: list[ToolDescriptor] = field(default_factory=list)
    trigger: Optional[SkillTrigger] = None
    predicate: Optional[Callable[[SkillContext], bool]] = None
    enabled: bool = True

    def is_supported(self, context: SkillContext) -> bool:
        if not self.enabled:
            return False
        if self.predicate is not None:
            return bool(self.predicate(context))
        if self.trigger is not None:
            return self.trigger.matches(context.prompt)
        return False

    def instruction(self, context: SkillContext) -> str:
        if "{prompt}" in self.instructions:
            return self.instructions.replace("{prompt}", context.prompt)
        return self.instructions

    def list_tools(self) -> list[ToolDescriptor]:
        return list(self.tools)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "tools": [t.name for t in self.tools],
            "trigger": {
                "type": self.trigger.type.value,
                "patterns": list(self.trigger.patterns),
            }
            if self.trigger
            else None,
            "enabled": self.enabled,
        }


@dataclass(frozen=True, kw_only=True)
class SkillActivation:
    """Immutable result of activating skills for one turn.

    Attributes:
        skills: Names of activated skills, in registration order
        instructions: Concatenated instruction block (empty if none)
        tools: Union of the activated skills' tools, tagged with ``skill``
    """

    skills: list[str] = field(default_factory=list)
    instructions: str = ""
    tools: list[ToolDescriptor] = field(default_factory=list)

    @property
    def activated(self) -> bool:
        return bool(self.skills)

    def system_prompt(self, base: str) -> str:
        """Append the instruction block to a base system instruction."""
        if not self.instructions:
            return base
        if not base:
            return self.instructions
        return f"{base}\n\n{self.instructions}"


__all__ = [
    "Skill",
    "SkillActivation",
    "SkillContext",
    "SkillDefinition",
    "SkillTrigger",
    "TriggerType",
]
