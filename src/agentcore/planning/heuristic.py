"""
Complexity heuristic deciding whether a turn needs a plan.

Rule-based and model-free. Three signals, each worth 0.4:
1. Sub-goals: numbered steps, or several sentences that each ask for work
2. Sequencing: explicit ordering language ("first ... then", "after", "finally")
3. Tools: more than one available tool is referenced by the prompt

A small length bonus (0 to 0.2) breaks ties for long prompts. The total
is capped at 1.0; a turn needs a plan when the score reaches the
threshold (default 0.4, i.e. any single signal).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

SIGNAL_WEIGHT = 0.4


@dataclass(frozen=True)
class ComplexityAssessment:
    """
    Result of the complexity pre-assessment.

    Attributes:
        needs_plan: Whether PLANNING should run
        score: Complexity score (0.0 to 1.0)
        reasons: Signals that fired
    """

    needs_plan: bool
    score: float
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"needs_plan": self.needs_plan, "score": self.score, "reasons": list(self.reasons)}


class ComplexityHeuristic:
    """
    Fast heuristic judging whether a task requires multi-step decomposition.

    Attributes:
        threshold: Score at or above which a plan is generated
        min_length: Prompts shorter than this never earn the length bonus
    """

    # Action verbs indicating a unit of work
    WORK_KEYWORDS = [
        "implement",
        "create",
        "build",
        "write",
        "design",
        "analyze",
        "analyse",
        "refactor",
        "migrate",
        "deploy",
        "configure",
        "set up",
        "search",
        "find",
        "collect",
        "compare",
        "summarize",
        "summarise",
        "send",
        "update",
        "delete",
        "generate",
        "test",
        "verify",
        "review",
        "fetch",
        "download",
        "upload",
        "book",
        "schedule",
    ]

    # Dependency/sequence markers indicating ordered work
    SEQUENCE_PATTERNS = [
        r"\bfirst\b.*\bthen\b",
        r"\bonce\b.*\bthen\b",
        r"\band then\b",
        r"\bafter that\b",
        r"\bafterwards\b",
        r"\bfinally\b",
        r"\blastly\b",
        r"\bsubsequently\b",
        r"\bstep\s+\d+",
    ]

    # Numbered step patterns
    STEP_PATTERNS = [
        r"^\s*\d+[\.\)]\s+",
        r"^\s*[-*]\s+",
    ]

    def __init__(self, threshold: float = SIGNAL_WEIGHT, min_length: int = 200) -> None:
        if not 0 < threshold <= 1:
            raise ValueError(f"threshold must be in (0, 1], got {threshold}")
        self.threshold = threshold
        self.min_length = min_length
        self._sequence_regex = re.compile("|".join(self.SEQUENCE_PATTERNS), re.IGNORECASE | re.DOTALL)
        self._step_regex = re.compile("|".join(self.STEP_PATTERNS), re.MULTILINE)

    def count_sub_goals(self, prompt: str) -> int:
        steps = self._step_regex.findall(prompt)
        if len(steps) >= 2:
            return len(steps)

        sentences = [s.strip().lower() for s in re.split(r"[.!?;]\s+|\n", prompt) if s.strip()]
        return sum(1 for s in sentences if any(k in s for k in self.WORK_KEYWORDS))

    def has_sequencing(self, prompt: str) -> bool:
        return bool(self._sequence_regex.search(prompt))

    def referenced_tools(self, prompt: str, tool_names: Iterable[str]) -> List[str]:
        text = prompt.lower()
        found = []
        for name in tool_names:
            lowered = name.lower()
            if lowered in text or lowered.replace("_", " ") in text:
                found.append(name)
        return found

    def assess(self, prompt: Optional[str], tool_names: Iterable[str] = ()) -> ComplexityAssessment:
        """Score a prompt.

        Args:
            prompt: The user prompt of the turn
            tool_names: Names of the tools available for the turn

        Returns:
            ComplexityAssessment with the decision and the signals that fired
        """
        if not prompt or not prompt.strip():
            return ComplexityAssessment(needs_plan=False, score=0.0)

        score = 0.0
        reasons: List[str] = []

        if self.count_sub_goals(prompt) >= 2:
            score += SIGNAL_WEIGHT
            reasons.append("sub_goals")
        if self.has_sequencing(prompt):
            score += SIGNAL_WEIGHT
            reasons.append("sequencing")
        if len(self.referenced_tools(prompt, tool_names)) >= 2:
            score += SIGNAL_WEIGHT
            reasons.append("multiple_tools")

        length = len(prompt.strip())
        if length >= self.min_length:
            score += min(0.2, 0.2 * (length - self.min_length) / self.min_length)

        score = min(1.0, score)
        needs_plan = score >= self.threshold
        logger.debug(f"[Planning] Complexity score={score:.2f} needs_plan={needs_plan} reasons={reasons}")
        return ComplexityAssessment(needs_plan=needs_plan, score=score, reasons=reasons)
