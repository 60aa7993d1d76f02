"""
Unit tests for the complexity heuristic, the planner and the PLANNING state.
"""

import pytest

from agentcore.agents.react import ReActAgent
from agentcore.config import AgentConfig
from agentcore.core.errors import ModelInvocationError
from agentcore.core.events import PlanEvent
from agentcore.planning.heuristic import ComplexityHeuristic
from agentcore.planning.planner import Planner, parse_plan
from agentcore.tests.conftest import ScriptedLLM, answer, make_tool


@pytest.mark.unit
class TestComplexityHeuristic:
    """Test the rule-based pre-assessment."""

    def setup_method(self):
        self.heuristic = ComplexityHeuristic()

    def test_trivial_prompt(self):
        """Test a greeting does not need a plan."""
        assessment = self.heuristic.assess("Hi")
        assert assessment.needs_plan is False
        assert assessment.score == 0.0

    def test_empty_prompt(self):
        assert self.heuristic.assess("   ").needs_plan is False
        assert self.heuristic.assess(None).needs_plan is False

    def test_sequencing(self):
        """Test ordering language triggers planning."""
        assessment = self.heuristic.assess("First search for flights, then book the cheapest one.")
        assert assessment.needs_plan is True
        assert "sequencing" in assessment.reasons

    def test_numbered_sub_goals(self):
        """Test a numbered list counts as sub-goals."""
        assessment = self.heuristic.assess("1. Fetch the sales data\n2. Summarize it")
        assert assessment.needs_plan is True
        assert "sub_goals" in assessment.reasons

    def test_multiple_tools_referenced(self):
        """Test two referenced tools trigger planning."""
        assessment = self.heuristic.assess(
            "Use web_search and send email with what you find",
            ["web_search", "send_email", "read_file"],
        )
        assert assessment.reasons == ["multiple_tools"]
        assert assessment.needs_plan is True

    def test_single_tool_reference_is_trivial(self):
        assessment = self.heuristic.assess("Use web_search for cats", ["web_search", "send_email"])
        assert assessment.needs_plan is False

    def test_score_capped(self):
        """Test the score never exceeds 1.0."""
        prompt = "1. First search the web_search index\n2. Then send_email the results. Finally review. " * 5
        assessment = self.heuristic.assess(prompt, ["web_search", "send_email"])
        assert assessment.score == 1.0

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            ComplexityHeuristic(threshold=0)


@pytest.mark.unit
class TestPlanner:
    """Test plan generation."""

    def test_parse_plan(self):
        """Test numbered and bulleted lines become steps."""
        text = "<think>let me see</think>1. Search flights\n2) Book hotel\n\n- Send summary"
        assert parse_plan(text) == ["Search flights", "Book hotel", "Send summary"]

    def test_parse_plan_respects_max_steps(self):
        assert parse_plan("1. a\n2. b\n3. c", max_steps=2) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_generate_plan_lists_tools(self):
        """Test the planner prompt carries the tool catalog."""
        llm = ScriptedLLM([answer("1. Search flights\n2. Book the flight")])
        planner = Planner(llm, max_steps=5)

        steps = await planner.generate_plan("Book me a flight", [make_tool("web_search")])

        assert steps == ["Search flights", "Book the flight"]
        system = llm.calls[0]["messages"][0].content
        assert "At most 5 steps" in system
        assert "- web_search: The web_search tool" in system

    @pytest.mark.asyncio
    async def test_empty_plan_falls_back_to_prompt(self):
        """Test an empty model answer yields a single-step plan."""
        planner = Planner(ScriptedLLM([answer("")]))
        assert await planner.generate_plan("  Do the thing  ") == ["Do the thing"]

    @pytest.mark.asyncio
    async def test_model_failure_wrapped(self):
        """Test transport failures surface as ModelInvocationError."""
        planner = Planner(ScriptedLLM([ConnectionError("refused")]))
        with pytest.raises(ModelInvocationError) as exc_info:
            await planner.generate_plan("anything")
        assert exc_info.value.context.operation == "plan"


@pytest.mark.unit
class TestAgentPlanning:
    """Test the PLANNING state inside the agent loop."""

    @pytest.mark.asyncio
    async def test_complex_turn_emits_plan(self, store):
        """Test a complex prompt produces a plan before reasoning."""
        llm = ScriptedLLM([answer("1. Search flights\n2. Book the cheapest"), answer("Booked.")])
        agent = ReActAgent(AgentConfig(name="travel", planning=True), llm, store=store)

        events = [
            e async for e in agent.stream("First search for flights, then book the cheapest one.", session_id="s1")
        ]

        plan_events = [e for e in events if isinstance(e, PlanEvent)]
        assert len(plan_events) == 1
        assert plan_events[0].steps == ["Search flights", "Book the cheapest"]
        assert events.index(plan_events[0]) == 1

        reason_system = llm.calls[1]["messages"][0].content
        assert "## Plan" in reason_system
        assert "1. Search flights" in reason_system

        trace = await agent.get_trace("s1")
        assert trace.plan == ["Search flights", "Book the cheapest"]

    @pytest.mark.asyncio
    async def test_trivial_follow_up_has_empty_plan(self, store):
        """Test a trivial follow-up does not keep the earlier plan."""
        llm = ScriptedLLM([answer("1. Search\n2. Book"), answer("Booked."), answer("You're welcome!")])
        agent = ReActAgent(AgentConfig(name="travel", planning=True), llm, store=store)

        await agent.call("First search for flights, then book the cheapest one.", session_id="s1")
        response = await agent.call("thanks", session_id="s1")

        assert response.content == "You're welcome!"
        assert response.trace.plan == []
        assert len(llm.calls) == 3

    @pytest.mark.asyncio
    async def test_planning_disabled(self, store):
        """Test no plan is generated when planning is off."""
        llm = ScriptedLLM([answer("Done.")])
        agent = ReActAgent(AgentConfig(name="travel"), llm, store=store)

        events = [e async for e in agent.stream("First search, then book.", session_id="s1")]

        assert not any(isinstance(e, PlanEvent) for e in events)
        assert len(llm.calls) == 1
