"""
Plan generator - asks the model to decompose a task into ordered steps.
"""

import asyncio
import logging
import re
from typing import List, Optional, Sequence

from agentcore.core.errors import ErrorContext, wrap_model_error
from agentcore.llm.protocol import LLMClient
from agentcore.llm.types import Message, strip_thinking
from agentcore.tools.protocol import ToolDescriptor

logger = logging.getLogger(__name__)

_STEP_PREFIX = re.compile(r"^[\d\.\-\s*\)]+")

PLAN_SYSTEM_PROMPT = """You are a planning assistant. Break the user's task into a short, ordered list of concrete steps.

Rules:
- One step per line, numbered "1.", "2.", ...
- At most {max_steps} steps
- Reference the available tools by name where a step needs one
- Output only the list, no preamble"""


def parse_plan(text: str, max_steps: int = 8) -> List[str]:
    """Parse a numbered/bulleted list into plan steps."""
    steps: List[str] = []
    for line in strip_thinking(text).splitlines():
        step = _STEP_PREFIX.sub("", line.strip()).strip()
        if step:
            steps.append(step)
        if len(steps) >= max_steps:
            break
    return steps


class Planner:
    """Generates a Plan for a non-trivial turn."""

    def __init__(self, llm_client: LLMClient, max_steps: int = 8, timeout: Optional[float] = None) -> None:
        self._llm = llm_client
        self.max_steps = max_steps
        self._timeout = timeout

    def _build_messages(self, prompt: str, tools: Sequence[ToolDescriptor]) -> List[Message]:
        system = PLAN_SYSTEM_PROMPT.format(max_steps=self.max_steps)
        if tools:
            tool_lines = "\n".join(f"- {t.name}: {t.description}" for t in tools)
            system = f"{system}\n\nAvailable tools:\n{tool_lines}"
        return [Message.system(system), Message.user(prompt)]

    async def generate_plan(
        self,
        prompt: str,
        tools: Sequence[ToolDescriptor] = (),
        session_id: Optional[str] = None,
    ) -> List[str]:
        """Generate plan steps for ``prompt``.

        Raises:
            ModelInvocationError: If the model call fails or times out
        """
        messages = self._build_messages(prompt, tools)
        try:
            async with asyncio.timeout(self._timeout):
                response = await self._llm.generate(messages)
        except Exception as e:
            raise wrap_model_error(e, ErrorContext(operation="plan", session_id=session_id)) from e

        steps = parse_plan(response.content, self.max_steps)
        if not steps:
            steps = [prompt.strip()]
        logger.info(f"[Planning] Generated plan with {len(steps)} steps")
        return steps
