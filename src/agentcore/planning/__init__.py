"""Planning: complexity pre-assessment and plan generation."""

from agentcore.planning.heuristic import ComplexityAssessment, ComplexityHeuristic
from agentcore.planning.planner import Planner, parse_plan

__all__ = ["ComplexityAssessment", "ComplexityHeuristic", "Planner", "parse_plan"]
