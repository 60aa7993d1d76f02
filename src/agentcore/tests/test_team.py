"""
Unit tests for team orchestration.
"""

import pytest

from agentcore.agents.protocols import SequentialProtocol, SupervisorProtocol, TeamState, summarize
from agentcore.agents.react import ReActAgent
from agentcore.agents.team import TeamAgent
from agentcore.config import AgentConfig, TeamConfig
from agentcore.core.errors import ConfigurationError, ModelInvocationError, NoPendingTaskError
from agentcore.core.events import (
    CompleteEvent,
    ErrorEvent,
    MemberEndEvent,
    MemberStartEvent,
    ReasoningEvent,
    StartEvent,
    SupervisorEvent,
)
from agentcore.core.types import TraceStatus
from agentcore.pipeline.hitl import HITLInterceptor
from agentcore.pipeline.interceptor import ToolPipeline
from agentcore.session.types import HITLDecision
from agentcore.tests.conftest import ScriptedLLM, answer, make_tool, tool_call


def _member(name: str, responses, description: str = "", **kwargs) -> ReActAgent:
    return ReActAgent(
        AgentConfig(name=name, description=description, instruction=f"You are {name}."),
        ScriptedLLM(responses),
        **kwargs,
    )


def _gated_member(name: str, responses) -> ReActAgent:
    return _member(
        name,
        responses,
        tools=[make_tool("delete_file")],
        pipeline=ToolPipeline([HITLInterceptor().on_sensitive_tool("delete_file")]),
    )


# ============================================================
# Test Sequential Protocol
# ============================================================


@pytest.mark.unit
class TestSequentialTeam:
    """Test members running in registration order."""

    @pytest.mark.asyncio
    async def test_members_run_in_order(self, store):
        """Test each member sees the contributions before it."""
        a1 = _member("a1", [answer("a1 done", tokens=2)])
        a2 = _member("a2", [answer("a2 done", tokens=3)])
        team = TeamAgent(TeamConfig(name="crew"), [a1, a2], store=store)

        response = await team.call("Do the job", session_id="s1")

        assert response.content == "a2 done"
        assert response.status == TraceStatus.COMPLETED
        assert response.trace.turn_count == 2
        assert response.trace.usage.total_tokens == 10
        assert [s["member"] for s in response.trace.stages] == ["a1", "a2"]

        a2_view = [(m.role, m.content, m.name) for m in a2._llm.calls[0]["messages"][1:]]
        assert a2_view == [("user", "Do the job", None), ("assistant", "a1 done", "a1")]

        history = await store.messages("s1")
        assert [m.content for m in history] == ["Do the job", "a1 done", "a2 done"]

    @pytest.mark.asyncio
    async def test_member_events_tagged(self, store):
        """Test member events carry team/member metadata and only one terminal event is emitted."""
        team = TeamAgent(
            TeamConfig(name="crew"),
            [_member("a1", [answer("first answer")]), _member("a2", [answer("second answer")])],
            store=store,
        )

        events = [e async for e in team.stream("Go", session_id="s1")]

        assert isinstance(events[0], StartEvent)
        assert events[0].agent_name == "crew"
        assert sum(1 for e in events if e.is_terminal) == 1
        assert isinstance(events[-1], CompleteEvent)

        starts = [e.member for e in events if isinstance(e, MemberStartEvent)]
        ends = [(e.member, e.status) for e in events if isinstance(e, MemberEndEvent)]
        assert starts == ["a1", "a2"]
        assert ends == [("a1", "completed"), ("a2", "completed")]

        reasoning = [e for e in events if isinstance(e, ReasoningEvent)]
        assert {e.metadata["member"] for e in reasoning} == {"a1", "a2"}
        assert all(e.metadata["team"] == "crew" for e in reasoning)
        assert not any(isinstance(e, SupervisorEvent) for e in events)

    @pytest.mark.asyncio
    async def test_turn_limit_truncates(self, store):
        """Test the team stops at max_turns before the protocol is done."""
        a3 = _member("a3", [answer("a3 done")])
        team = TeamAgent(
            TeamConfig(name="crew", max_turns=2),
            [_member("a1", [answer("a1 done")]), _member("a2", [answer("a2 done")]), a3],
            store=store,
        )

        response = await team.call("Do the job", session_id="s1")

        assert response.truncated is True
        assert response.content == "a2 done"
        assert a3._llm.calls == []

    @pytest.mark.asyncio
    async def test_turn_limit_exactly_spent_completes(self, store):
        team = TeamAgent(
            TeamConfig(name="crew", max_turns=2),
            [_member("a1", [answer("a1 done")]), _member("a2", [answer("a2 done")])],
            store=store,
        )

        response = await team.call("Do the job", session_id="s1")

        assert response.status == TraceStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_member_error_fails_team(self, store):
        """Test a member's model failure ends the team call."""
        team = TeamAgent(
            TeamConfig(name="crew"),
            [_member("a1", [RuntimeError("provider down")] * 2), _member("a2", [answer("never")])],
            store=store,
        )

        with pytest.raises(ModelInvocationError):
            await team.call("Do the job", session_id="s1")

        events = [e async for e in team.stream("Try again", session_id="s2")]
        assert isinstance(events[-1], ErrorEvent)
        assert events[-1].details["member"] == "a1"
        assert [(e.member, e.status) for e in events if isinstance(e, MemberEndEvent)] == [("a1", "failed")]


# ============================================================
# Test HITL Inside A Team
# ============================================================


@pytest.mark.unit
class TestTeamHITL:
    """Test pausing and resuming a team on a member's task."""

    @pytest.mark.asyncio
    async def test_resume_runs_only_remaining_members(self, store):
        """Test completed members are not re-executed after resume."""
        a1 = _member("a1", [answer("a1 done")])
        a2 = _gated_member("a2", [tool_call("delete_file", {"path": "a.txt"}), answer("a2 done")])
        a3 = _member("a3", [answer("a3 done")])
        team = TeamAgent(TeamConfig(name="crew"), [a1, a2, a3], store=store)

        paused = await team.call("Clean up", session_id="s1")

        assert team.is_pending(paused)
        assert paused.trace.turn_count == 1
        task = await team.get_pending_task("s1")
        assert task.tool_name == "delete_file"

        await team.submit_decision("s1", "delete_file", HITLDecision.approve())
        response = await team.resume("s1")

        assert response.status == TraceStatus.COMPLETED
        assert response.content == "a3 done"
        assert response.trace.turn_count == 3
        assert len(a1._llm.calls) == 1
        assert len(a2._llm.calls) == 2
        assert len(a3._llm.calls) == 1
        assert [(s["member"], s["status"]) for s in response.trace.stages] == [
            ("a1", "completed"),
            ("a2", "completed"),
            ("a3", "completed"),
        ]
        history = await store.messages("s1")
        assert [m.content for m in history] == ["Clean up", "a1 done", "a2 done", "a3 done"]

    @pytest.mark.asyncio
    async def test_resume_in_new_team_instance(self, store):
        """Test a paused team resumes from the store alone."""
        first = TeamAgent(
            TeamConfig(name="crew"),
            [_member("a1", [answer("a1 done")]), _gated_member("a2", [tool_call("delete_file", {"path": "x"})])],
            store=store,
        )
        await first.call("Clean up", session_id="s1")
        await first.submit_decision("s1", "delete_file", HITLDecision.reject("keep it"))

        a1 = _member("a1", [])
        a2 = _gated_member("a2", [answer("Left the file in place.")])
        second = TeamAgent(TeamConfig(name="crew"), [a1, a2], store=store)
        events = [e async for e in second.stream(None, session_id="s1")]

        assert events[0].resumed is True
        assert events[-1].status == "completed"
        assert events[-1].content == "Left the file in place."
        assert a1._llm.calls == []

    @pytest.mark.asyncio
    async def test_resume_without_pending(self, store):
        team = TeamAgent(TeamConfig(name="crew"), [_member("a1", [])], store=store)
        with pytest.raises(NoPendingTaskError):
            await team.resume("s1")


# ============================================================
# Test Supervisor Protocol
# ============================================================


@pytest.mark.unit
class TestSupervisorTeam:
    """Test supervisor-driven member selection."""

    @pytest.mark.asyncio
    async def test_supervisor_selects_members(self, store):
        """Test selections are announced and FINISH concludes."""
        supervisor = ScriptedLLM([answer("researcher"), answer("writer"), answer("FINISH")])
        team = TeamAgent(
            TeamConfig(name="crew", protocol="supervisor"),
            [
                _member("researcher", [answer("Facts gathered")], description="Finds facts"),
                _member("writer", [answer("Final article")], description="Writes articles"),
            ],
            store=store,
            supervisor_llm=supervisor,
        )

        events = [e async for e in team.stream("Write about tides", session_id="s1")]

        selections = [e.next_member for e in events if isinstance(e, SupervisorEvent)]
        assert selections == ["researcher", "writer", None]
        assert events[-1].status == "completed"
        assert events[-1].content == "Final article"

        roster = supervisor.calls[0]["messages"][0].content
        assert "- researcher: Finds facts" in roster
        transcript = supervisor.calls[1]["messages"][1].content
        assert "[assistant:researcher] Facts gathered" in transcript

    @pytest.mark.asyncio
    async def test_supervisor_failure(self, store):
        """Test a supervisor model failure surfaces as ModelInvocationError."""
        team = TeamAgent(
            TeamConfig(name="crew", protocol="supervisor"),
            [_member("a1", [])],
            store=store,
            supervisor_llm=ScriptedLLM([RuntimeError("supervisor down")]),
        )

        with pytest.raises(ModelInvocationError) as exc_info:
            await team.call("Go", session_id="s1")

        assert exc_info.value.context.operation == "select_member"

    def test_parse_selection(self):
        """Test supervisor output parsing."""
        members = [_member("researcher", []), _member("writer", [])]
        protocol = SupervisorProtocol(ScriptedLLM())

        assert protocol.parse_selection("FINISH", members).member is None
        assert protocol.parse_selection("", members).member is None
        assert protocol.parse_selection("writer", members).member == "writer"
        assert protocol.parse_selection("**Researcher**", members).member == "researcher"
        assert protocol.parse_selection("<think>hmm</think>researcher", members).member == "researcher"
        assert protocol.parse_selection("I think the writer should go next", members).member == "writer"
        assert protocol.parse_selection("nobody in particular", members).member is None


# ============================================================
# Test Team State And Configuration
# ============================================================


@pytest.mark.unit
class TestTeamState:
    """Test persisted team progress."""

    def test_round_trip(self):
        state = TeamState(prompt="Go", turn_count=1, next_index=1, awaiting_member="a2")
        state.start_stage("a2")
        state.add_tokens({"total_tokens": 4})
        restored = TeamState.from_dict(state.to_dict())
        assert restored == state

    def test_end_stage_updates_latest(self):
        state = TeamState(prompt="Go")
        state.start_stage("a1")
        state.end_stage("a1", "paused")
        state.end_stage("a1", "completed", "done")
        assert state.stages == [{"member": "a1", "status": "completed", "summary": "done"}]

    def test_summarize(self):
        assert summarize("a  b\nc") == "a b c"
        assert len(summarize("x" * 500)) == 200

    @pytest.mark.asyncio
    async def test_sequential_protocol(self):
        members = [_member("a1", []), _member("a2", [])]
        protocol = SequentialProtocol()
        state = TeamState(prompt="Go")

        assert (await protocol.select(state, members, [], "s1")).member == "a1"
        protocol.advance(state, "a1")
        protocol.advance(state, "a2")
        assert protocol.is_done(state, members)
        assert (await protocol.select(state, members, [], "s1")).member is None


@pytest.mark.unit
class TestTeamConfiguration:
    """Test construction-time validation."""

    def test_no_members(self):
        with pytest.raises(ConfigurationError):
            TeamAgent(TeamConfig(name="crew"), [])

    def test_duplicate_member_names(self):
        with pytest.raises(ConfigurationError):
            TeamAgent(TeamConfig(name="crew"), [_member("a1", []), _member("a1", [])])

    def test_team_name_clashes_with_member(self):
        with pytest.raises(ConfigurationError):
            TeamAgent(TeamConfig(name="a1"), [_member("a1", [])])

    def test_supervisor_requires_llm(self):
        with pytest.raises(ConfigurationError):
            TeamAgent(TeamConfig(name="crew", protocol="supervisor"), [_member("a1", [])])

    def test_invalid_team_config(self):
        with pytest.raises(ConfigurationError):
            TeamConfig(name="crew", protocol="round_robin")
        with pytest.raises(ConfigurationError):
            TeamConfig(name="crew", max_turns=0)
