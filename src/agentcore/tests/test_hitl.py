"""
Unit tests for the HITL gate and pause/resume of the ReAct agent.
"""

import asyncio

import pytest

from agentcore.agents.react import ReActAgent
from agentcore.core.errors import HITLStateError, NoPendingTaskError
from agentcore.core.events import HITLRequestedEvent, HITLResolvedEvent, ObserveEvent, StartEvent
from agentcore.core.types import TraceStatus
from agentcore.llm.types import ChatResponse, ToolCall
from agentcore.pipeline.hitl import DEFAULT_REJECTION, HITLInterceptor
from agentcore.pipeline.interceptor import OutcomeStatus, ToolInvocation, ToolPipeline
from agentcore.pipeline.rewrite import ArgumentRewriteInterceptor
from agentcore.pipeline.stop_loop import StopLoopInterceptor
from agentcore.session.store import InMemorySessionStore
from agentcore.session.types import HITLDecision
from agentcore.tests.conftest import RecordingTool, ScriptedLLM, answer, make_tool, tool_call


def _invocation(tool, store, decision=None, **arguments) -> ToolInvocation:
    return ToolInvocation(
        call=ToolCall(id="call_1", name=tool.name, arguments=arguments),
        session_id="s1",
        agent_name="assistant",
        tool=tool,
        decision=decision,
        store=store,
    )


# ============================================================
# Test HITLInterceptor
# ============================================================


@pytest.mark.unit
class TestHITLInterceptor:
    """Test the gate in isolation."""

    @pytest.mark.asyncio
    async def test_sensitive_tool_suspends(self, store):
        """Test a matched call is not executed and a task is recorded."""
        body = RecordingTool()
        tool = make_tool("delete_file", body)
        pipeline = ToolPipeline([HITLInterceptor().on_sensitive_tool("delete_file")])

        outcome = await pipeline.invoke(_invocation(tool, store, path="a.txt"))

        assert outcome.is_suspended
        assert body.calls == []
        pending = await store.pending_task("s1")
        assert pending.task_id == outcome.task.task_id
        assert pending.arguments == {"path": "a.txt"}
        assert pending.justification == "Tool 'delete_file' requires human approval before execution."

    @pytest.mark.asyncio
    async def test_unmatched_tool_passes(self, store):
        """Test other tools run normally."""
        body = RecordingTool(result="contents")
        pipeline = ToolPipeline([HITLInterceptor().on_sensitive_tool("delete_file")])

        outcome = await pipeline.invoke(_invocation(make_tool("read_file", body), store, path="a.txt"))

        assert outcome.status == OutcomeStatus.SUCCESS
        assert await store.pending_task("s1") is None

    @pytest.mark.asyncio
    async def test_predicate_on_metadata(self, store):
        """Test predicate matching over tool metadata."""
        hitl = HITLInterceptor().on_predicate(
            lambda inv: inv.metadata.get("destructive", False), "Destructive operation"
        )
        tool = make_tool("drop_table", destructive=True)

        outcome = await ToolPipeline([hitl]).invoke(_invocation(tool, store))

        assert outcome.is_suspended
        assert outcome.task.justification == "Destructive operation"

    @pytest.mark.asyncio
    async def test_strategy_can_let_call_through(self, store):
        """Test a per-tool strategy returning None does not gate."""
        hitl = HITLInterceptor().on_tool(
            "send_email", lambda inv: "External recipient" if not inv.arguments.get("to", "").endswith("@corp.com") else None
        )
        tool = make_tool("send_email")

        internal = await ToolPipeline([hitl]).invoke(_invocation(tool, store, to="bob@corp.com"))
        external = await ToolPipeline([hitl]).invoke(_invocation(tool, store, to="eve@example.com"))

        assert internal.status == OutcomeStatus.SUCCESS
        assert external.is_suspended

    @pytest.mark.asyncio
    async def test_approval_with_override_and_note(self, store):
        """Test approved calls run with overridden arguments and carry the comment."""
        body = RecordingTool(result="deleted")
        hitl = HITLInterceptor().on_sensitive_tool("delete_file")
        decision = HITLDecision.approve(comment="only the backup", modified_args={"path": "a.bak"})

        outcome = await ToolPipeline([hitl]).invoke(
            _invocation(make_tool("delete_file", body), store, decision=decision, path="a.txt")
        )

        assert body.calls == [{"path": "a.bak"}]
        assert outcome.content == "deleted\n(Note: only the backup)"

    @pytest.mark.asyncio
    async def test_rejection_skips_tool(self, store):
        """Test rejected calls are not executed."""
        body = RecordingTool()
        hitl = HITLInterceptor().on_sensitive_tool("delete_file")

        outcome = await ToolPipeline([hitl]).invoke(
            _invocation(make_tool("delete_file", body), store, decision=HITLDecision.reject())
        )

        assert outcome.status == OutcomeStatus.REJECTED
        assert outcome.observation == DEFAULT_REJECTION
        assert body.calls == []

    @pytest.mark.asyncio
    async def test_gate_requires_store(self):
        """Test a gate without a store cannot record the task."""
        hitl = HITLInterceptor().on_sensitive_tool("delete_file")
        with pytest.raises(HITLStateError):
            await ToolPipeline([hitl]).invoke(_invocation(make_tool("delete_file"), None))


# ============================================================
# Test Agent Pause / Resume
# ============================================================


@pytest.fixture
def delete_body():
    return RecordingTool(result="deleted")


@pytest.fixture
def hitl_agent(config, store, delete_body):
    llm = ScriptedLLM([tool_call("delete_file", {"path": "a.txt"}), answer("Deleted a.txt")])
    return ReActAgent(
        config,
        llm,
        store=store,
        tools=[make_tool("delete_file", delete_body)],
        pipeline=ToolPipeline([HITLInterceptor().on_sensitive_tool("delete_file")]),
    )


@pytest.mark.unit
class TestAgentPauseResume:
    """Test pausing on a sensitive tool and resuming from the store."""

    @pytest.mark.asyncio
    async def test_pause_then_approve(self, hitl_agent, delete_body):
        """Test approve-then-resume runs the tool and completes."""
        response = await hitl_agent.call("Delete a.txt", session_id="s1")

        assert response.is_pending
        assert response.trace.status == TraceStatus.PAUSED
        assert delete_body.calls == []

        task = await hitl_agent.get_pending_task("s1")
        assert task.tool_name == "delete_file"
        assert task.arguments == {"path": "a.txt"}

        await hitl_agent.submit_decision("s1", "delete_file", HITLDecision.approve())
        resumed = await hitl_agent.resume("s1")

        assert resumed.status == TraceStatus.COMPLETED
        assert resumed.content == "Deleted a.txt"
        assert delete_body.calls == [{"path": "a.txt"}]
        assert len(resumed.trace.actions()) == 1
        assert resumed.trace.observations()[0]["result"] == "deleted"

    @pytest.mark.asyncio
    async def test_resume_feeds_observation_to_model(self, hitl_agent):
        """Test the resumed model call sees the tool result."""
        await hitl_agent.call("Delete a.txt", session_id="s1")
        await hitl_agent.submit_decision("s1", "delete_file", HITLDecision.approve())
        await hitl_agent.resume("s1")

        last_call = hitl_agent._llm.calls[-1]["messages"]
        assert last_call[-1].role == "tool"
        assert last_call[-1].content == "deleted"
        assert last_call[-2].tool_calls[0].name == "delete_file"

    @pytest.mark.asyncio
    async def test_reject_with_comment(self, hitl_agent, delete_body):
        """Test a rejection comment becomes the observation."""
        await hitl_agent.call("Delete a.txt", session_id="s1")
        await hitl_agent.submit_decision("s1", "delete_file", HITLDecision.reject("Keep that file"))

        events = [e async for e in hitl_agent.stream(None, session_id="s1")]

        assert delete_body.calls == []
        assert isinstance(events[0], StartEvent) and events[0].resumed
        assert isinstance(events[1], HITLResolvedEvent)
        observe = next(e for e in events if isinstance(e, ObserveEvent))
        assert observe.result == "Keep that file"
        assert observe.status == "rejected"
        assert events[-1].status == "completed"

    @pytest.mark.asyncio
    async def test_pause_events(self, hitl_agent):
        """Test the paused stream ends with HITL request then terminal event."""
        events = [e async for e in hitl_agent.stream("Delete a.txt", session_id="s1")]

        assert isinstance(events[-2], HITLRequestedEvent)
        assert events[-2].tool_name == "delete_file"
        assert events[-1].is_terminal
        assert events[-1].status == "paused"

    @pytest.mark.asyncio
    async def test_decision_consumed_exactly_once(self, hitl_agent):
        """Test a second resume has nothing to resume."""
        await hitl_agent.call("Delete a.txt", session_id="s1")
        await hitl_agent.submit_decision("s1", "delete_file", HITLDecision.approve())
        await hitl_agent.resume("s1")

        with pytest.raises(NoPendingTaskError):
            await hitl_agent.resume("s1")
        with pytest.raises(NoPendingTaskError):
            await hitl_agent.submit_decision("s1", "delete_file", HITLDecision.approve())

    @pytest.mark.asyncio
    async def test_decision_for_wrong_tool(self, hitl_agent):
        """Test a mismatched tool name leaves the task pending."""
        await hitl_agent.call("Delete a.txt", session_id="s1")

        with pytest.raises(HITLStateError):
            await hitl_agent.submit_decision("s1", "send_email", HITLDecision.approve())
        assert await hitl_agent.get_pending_task("s1") is not None

    @pytest.mark.asyncio
    async def test_resume_before_decision(self, hitl_agent):
        """Test resuming an undecided task is a state error."""
        await hitl_agent.call("Delete a.txt", session_id="s1")

        with pytest.raises(HITLStateError, match="awaiting a decision"):
            await hitl_agent.resume("s1")

    @pytest.mark.asyncio
    async def test_new_prompt_discards_pending_task(self, config, store):
        """Test a new prompt clears an undecided task and starts fresh."""
        llm = ScriptedLLM([tool_call("delete_file", {"path": "a.txt"}), answer("Nothing deleted")])
        agent = ReActAgent(
            config,
            llm,
            store=store,
            tools=[make_tool("delete_file")],
            pipeline=ToolPipeline([HITLInterceptor().on_sensitive_tool("delete_file")]),
        )
        await agent.call("Delete a.txt", session_id="s1")

        response = await agent.call("Never mind", session_id="s1")

        assert response.content == "Nothing deleted"
        assert await agent.get_pending_task("s1") is None

    @pytest.mark.asyncio
    async def test_resume_in_another_agent_instance(self, config, delete_body):
        """Test pause state lives in the store, not the agent object."""
        store = InMemorySessionStore()
        tools = [make_tool("delete_file", delete_body)]
        pipeline = ToolPipeline([HITLInterceptor().on_sensitive_tool("delete_file")])

        first = ReActAgent(config, ScriptedLLM([tool_call("delete_file", {"path": "a.txt"})]), store=store, tools=tools, pipeline=pipeline)
        await first.call("Delete a.txt", session_id="s1")
        await first.submit_decision("s1", "delete_file", HITLDecision.approve())

        second = ReActAgent(config, ScriptedLLM([answer("Done")]), store=store, tools=tools, pipeline=pipeline)
        response = await second.resume("s1")

        assert response.content == "Done"
        assert delete_body.calls == [{"path": "a.txt"}]

    @pytest.mark.asyncio
    async def test_sibling_calls_after_suspended_one_run_on_resume(self, config, store):
        """Test calls batched after the suspended one run once approved."""
        read_body = RecordingTool(result="contents")
        delete_body = RecordingTool(result="deleted")
        batch = ChatResponse(
            tool_calls=[
                ToolCall(id="c1", name="read_file", arguments={"path": "a.txt"}),
                ToolCall(id="c2", name="delete_file", arguments={"path": "a.txt"}),
                ToolCall(id="c3", name="read_file", arguments={"path": "b.txt"}),
            ]
        )
        llm = ScriptedLLM([batch, answer("All done")])
        agent = ReActAgent(
            config,
            llm,
            store=store,
            tools=[make_tool("read_file", read_body), make_tool("delete_file", delete_body)],
            pipeline=ToolPipeline([HITLInterceptor().on_sensitive_tool("delete_file")]),
        )

        await agent.call("Read then delete", session_id="s1")
        assert read_body.calls == [{"path": "a.txt"}]

        await agent.submit_decision("s1", "delete_file", HITLDecision.approve())
        response = await agent.resume("s1")

        assert response.content == "All done"
        assert read_body.calls == [{"path": "a.txt"}, {"path": "b.txt"}]
        assert delete_body.calls == [{"path": "a.txt"}]
        tool_messages = [m for m in llm.calls[-1]["messages"] if m.role == "tool"]
        assert [m.tool_call_id for m in tool_messages] == ["c1", "c2", "c3"]


# ============================================================
# Test Gate Composed With Other Interceptors
# ============================================================


@pytest.mark.unit
class TestGateWithInterceptors:
    """Test pause/resume when other interceptors run before the gate."""

    @pytest.mark.asyncio
    async def test_loop_breaker_lets_approved_call_run(self, config, store, delete_body):
        """Test the resumed call is not mistaken for a repeat."""
        llm = ScriptedLLM([tool_call("delete_file", {"path": "a.txt"}), answer("Deleted a.txt")])
        agent = ReActAgent(
            config,
            llm,
            store=store,
            tools=[make_tool("delete_file", delete_body)],
            pipeline=ToolPipeline(
                [StopLoopInterceptor(max_repeat=2), HITLInterceptor().on_sensitive_tool("delete_file")]
            ),
        )

        await agent.call("Delete a.txt", session_id="s1")
        await agent.submit_decision("s1", "delete_file", HITLDecision.approve())
        response = await agent.resume("s1")

        assert response.content == "Deleted a.txt"
        assert delete_body.calls == [{"path": "a.txt"}]
        observation = response.trace.observations()[0]
        assert observation["status"] == "success"
        assert observation["result"] == "deleted"

    @pytest.mark.asyncio
    async def test_rewrite_applied_once_across_pause(self, config, store, delete_body):
        """Test the task shows rewritten arguments and the tool gets them once."""
        llm = ScriptedLLM([tool_call("delete_file", {"path": "a.txt"}), answer("Deleted")])
        rewrite = ArgumentRewriteInterceptor(lambda name, args: {**args, "path": "/workspace/" + args["path"]})
        agent = ReActAgent(
            config,
            llm,
            store=store,
            tools=[make_tool("delete_file", delete_body)],
            pipeline=ToolPipeline([rewrite, HITLInterceptor().on_sensitive_tool("delete_file")]),
        )

        await agent.call("Delete a.txt", session_id="s1")
        task = await agent.get_pending_task("s1")
        assert task.arguments == {"path": "/workspace/a.txt"}

        await agent.submit_decision("s1", "delete_file", HITLDecision.approve())
        await agent.resume("s1")

        assert delete_body.calls == [{"path": "/workspace/a.txt"}]


# ============================================================
# Test Cancellation Around Pauses
# ============================================================


@pytest.mark.unit
class TestCancellationKeepsPendingTask:
    """Test closing a stream never loses a recorded HITL task."""

    @pytest.mark.asyncio
    async def test_close_after_pause_keeps_task(self, hitl_agent, delete_body):
        """Test closing at the HITL request leaves the turn paused and resumable."""
        stream = hitl_agent.stream("Delete a.txt", session_id="s1")
        async for event in stream:
            if isinstance(event, HITLRequestedEvent):
                break
        await stream.aclose()

        task = await hitl_agent.get_pending_task("s1")
        assert task.tool_name == "delete_file"
        trace = await hitl_agent.get_trace("s1")
        assert trace.status == TraceStatus.PAUSED

        await hitl_agent.submit_decision("s1", "delete_file", HITLDecision.approve())
        response = await hitl_agent.resume("s1")
        assert response.content == "Deleted a.txt"
        assert delete_body.calls == [{"path": "a.txt"}]

    @pytest.mark.asyncio
    async def test_close_resumed_stream_after_second_pause(self, config, store, delete_body):
        """Test a resumed turn that pauses again keeps its new task when closed."""
        llm = ScriptedLLM(
            [
                tool_call("delete_file", {"path": "a.txt"}),
                tool_call("delete_file", {"path": "b.txt"}, call_id="call_2"),
                answer("Both deleted"),
            ]
        )
        agent = ReActAgent(
            config,
            llm,
            store=store,
            tools=[make_tool("delete_file", delete_body)],
            pipeline=ToolPipeline([HITLInterceptor().on_sensitive_tool("delete_file")]),
        )
        await agent.call("Delete a.txt and b.txt", session_id="s1")
        await agent.submit_decision("s1", "delete_file", HITLDecision.approve())

        stream = agent.stream(None, session_id="s1")
        async for event in stream:
            if isinstance(event, HITLRequestedEvent):
                break
        await stream.aclose()

        task = await agent.get_pending_task("s1")
        assert task.arguments == {"path": "b.txt"}
        assert (await agent.get_trace("s1")).status == TraceStatus.PAUSED
        assert delete_body.calls == [{"path": "a.txt"}]

        await agent.submit_decision("s1", "delete_file", HITLDecision.approve())
        response = await agent.resume("s1")

        assert response.content == "Both deleted"
        assert delete_body.calls == [{"path": "a.txt"}, {"path": "b.txt"}]

    @pytest.mark.asyncio
    async def test_abort_while_resumed_tool_runs(self, config, store):
        """Test an abort during the resumed tool ends cancelled with no task left."""
        abort = asyncio.Event()

        def delete(**kwargs):
            abort.set()
            return "deleted"

        llm = ScriptedLLM(
            [
                ChatResponse(
                    tool_calls=[
                        ToolCall(id="c1", name="delete_file", arguments={"path": "a.txt"}),
                        ToolCall(id="c2", name="read_file", arguments={"path": "b.txt"}),
                    ]
                )
            ]
        )
        read_body = RecordingTool()
        agent = ReActAgent(
            config,
            llm,
            store=store,
            tools=[make_tool("delete_file", delete), make_tool("read_file", read_body)],
            pipeline=ToolPipeline([HITLInterceptor().on_sensitive_tool("delete_file")]),
        )
        await agent.call("Delete then read", session_id="s1")
        await agent.submit_decision("s1", "delete_file", HITLDecision.approve())

        events = [e async for e in agent.stream(None, session_id="s1", abort_signal=abort)]

        assert events[-1].status == "cancelled"
        assert read_body.calls == []
        assert await agent.get_pending_task("s1") is None
        assert (await agent.get_trace("s1")).status == TraceStatus.CANCELLED
