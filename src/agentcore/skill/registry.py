"""Skill registry for agentcore.

Provides a registry for managing and activating skills:
- Register skills by definition or any ``Skill`` implementation
- Activate skills for a turn (registration order is preserved)
- Filter the resulting tool set per call
- Thread-safe skill storage
"""

import logging
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from agentcore.skill.types import Skill, SkillActivation, SkillContext, SkillDefinition, SkillTrigger, TriggerType
from agentcore.tools.protocol import ToolDescriptor

logger = logging.getLogger(__name__)

ToolFilter = Callable[[ToolDescriptor, SkillContext], bool]


def format_skill_instruction(skill: Skill, instruction: str, tools: List[ToolDescriptor]) -> str:
    lines = [f"**Skill**: {skill.name} ({skill.description})"]
    if instruction:
        lines.append(instruction)
    if tools:
        lines.append(f"- **Supported Tools**: {', '.join(t.name for t in tools)}")
    return "\n".join(lines)


def filter_tools(
    tools: List[ToolDescriptor],
    context: SkillContext,
    tool_filter: Optional[ToolFilter] = None,
) -> List[ToolDescriptor]:
    """Apply per-call metadata filtering to a candidate tool set."""
    if tool_filter is None:
        return list(tools)
    kept = [tool for tool in tools if tool_filter(tool, context)]
    if len(kept) != len(tools):
        hidden = sorted({t.name for t in tools} - {t.name for t in kept})
        logger.debug(f"[SkillRegistry] Filtered tools for {context.session_id}: {hidden}")
    return kept


def role_filter(key: str = "roles", attribute: str = "role") -> ToolFilter:
    """Build a filter keeping tools whose ``metadata[key]`` allows the caller's role.

    Tools without the metadata key are visible to every caller.
    """

    def _filter(tool: ToolDescriptor, context: SkillContext) -> bool:
        allowed = tool.metadata.get(key)
        if not allowed:
            return True
        return context.get(attribute) in allowed

    return _filter


class SkillRegistry:
    """Thread-safe registry for managing skills.

    Example:
        registry = SkillRegistry()
        registry.register(
            create_skill(
                name="web_research",
                description="Search the web for information",
                tools=[search_tool],
                trigger_patterns=["search", "look up"],
            )
        )

        activation = registry.activate(SkillContext(prompt="search for Python tutorials"))
        # activation.skills == ["web_research"]
    """

    def __init__(self, skills: Optional[List[Skill]] = None) -> None:
        self._skills: Dict[str, Skill] = {}
        self._lock = Lock()
        for skill in skills or []:
            self.register(skill)

    @property
    def count(self) -> int:
        """Number of registered skills."""
        return len(self._skills)

    def register(self, skill: Skill) -> None:
        """Register a skill, replacing any skill with the same name in place."""
        with self._lock:
            if skill.name in self._skills:
                logger.warning(f"Overwriting existing skill: {skill.name}")
            self._skills[skill.name] = skill
            logger.debug(f"Registered skill: {skill.name}")

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._skills.pop(name, None) is not None

    def get(self, name: str) -> Optional[Skill]:
        return self._skills.get(name)

    def list_all(self) -> List[Skill]:
        """List registered skills in registration order."""
        with self._lock:
            return list(self._skills.values())

    def activate(self, context: SkillContext) -> SkillActivation:
        """Evaluate every skill's predicate for this turn.

        Activated skills' instructions are concatenated in registration
        order and their tools are unioned (first registration wins).
        """
        names: List[str] = []
        blocks: List[str] = []
        tools: Dict[str, ToolDescriptor] = {}

        for skill in self.list_all():
            if not skill.is_supported(context):
                continue
            skill_tools = skill.list_tools()
            names.append(skill.name)
            blocks.append(format_skill_instruction(skill, skill.instruction(context), skill_tools))
            for tool in skill_tools:
                if tool.name not in tools:
                    tools[tool.name] = tool.with_metadata(skill=skill.name)

        if names:
            logger.info(f"[SkillRegistry] Activated skills for {context.session_id}: {names}")
        return SkillActivation(
            skills=names,
            instructions="\n\n".join(blocks),
            tools=list(tools.values()),
        )

    def clear(self) -> None:
        """Remove all registered skills."""
        with self._lock:
            self._skills.clear()


def create_skill(
    name: str,
    description: str,
    tools: Optional[List[ToolDescriptor]] = None,
    instructions: str = "",
    trigger_patterns: Optional[List[str]] = None,
    trigger_type: TriggerType = TriggerType.KEYWORD,
    **kwargs: Any,
) -> SkillDefinition:
    """Factory function to create a skill definition.

    Example:
        skill = create_skill(
            name="code_review",
            description="Review code for quality and security",
            tools=[read_file_tool, comment_tool],
            instructions="Focus on security issues first.",
            trigger_patterns=["review", "check code"],
        )
    """
    trigger = None
    if trigger_patterns or trigger_type == TriggerType.ALWAYS:
        trigger = SkillTrigger(type=trigger_type, patterns=list(trigger_patterns or []))

    return SkillDefinition(
        name=name,
        description=description,
        instructions=instructions,
        tools=list(tools or []),
        trigger=trigger,
        predicate=kwargs.get("predicate"),
        enabled=kwargs.get("enabled", True),
    )


__all__ = [
    "SkillRegistry",
    "ToolFilter",
    "create_skill",
    "filter_tools",
    "format_skill_instruction",
    "role_filter",
]
