"""Skill registry: conditionally activated instruction + tool bundles."""

from agentcore.skill.registry import SkillRegistry, ToolFilter, create_skill, filter_tools, role_filter
from agentcore.skill.types import (
    Skill,
    SkillActivation,
    SkillContext,
    SkillDefinition,
    SkillTrigger,
    TriggerType,
)

__all__ = [
    "Skill",
    "SkillActivation",
    "SkillContext",
    "SkillDefinition",
    "SkillRegistry",
    "SkillTrigger",
    "ToolFilter",
    "TriggerType",
    "create_skill",
    "filter_tools",
    "role_filter",
]
