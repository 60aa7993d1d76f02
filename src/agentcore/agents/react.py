"""ReAct Agent implementation.

This module provides the caller-facing ReAct (Reasoning + Acting) agent:
- INIT: merge session history, activated skills and the new user turn
- Run the ``ReActLoop`` state machine against the session store
- Pause on HITL tasks and resume from the session store alone

Surface:
- ``call(prompt, session_id)``: blocking, returns the terminal payload
- ``stream(prompt, session_id)``: ordered event stream, one terminal event
- ``get_pending_task(session_id)`` / ``submit_decision(session_id, tool_name, decision)``
- ``resume(session_id)``: continue after a decision was submitted

A session has at most one in-flight turn; a concurrent call on the same
session id raises ``SessionBusyError``.
"""

import asyncio
import logging
import uuid
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from agentcore.config import AgentConfig
from agentcore.core.errors import (
    AgentCancelledError,
    AgentError,
    HITLStateError,
    ModelInvocationError,
    NoPendingTaskError,
)
from agentcore.core.events import AgentEvent, CompleteEvent, ErrorEvent
from agentcore.core.trace import AgentResponse, Trace
from agentcore.core.types import TraceStatus
from agentcore.llm.protocol import LLMClient
from agentcore.llm.types import Message, MessageRole
from agentcore.pipeline.interceptor import ToolPipeline
from agentcore.planning.heuristic import ComplexityHeuristic
from agentcore.planning.planner import Planner
from agentcore.processor.compaction import ContextCompactor
from agentcore.processor.loop import ReActLoop
from agentcore.processor.run_context import RunContext
from agentcore.session.store import InMemorySessionStore, SessionStore
from agentcore.session.types import HITLDecision, HITLTask
from agentcore.skill.registry import SkillRegistry, filter_tools
from agentcore.skill.types import SkillActivation, SkillContext
from agentcore.tools.protocol import ToolDescriptor, ToolProvider, ToolSet, collect_tools

logger = logging.getLogger(__name__)

ToolsArg = Union[ToolProvider, Sequence[Union[ToolProvider, ToolDescriptor]], None]


def _normalize_providers(tools: ToolsArg) -> List[ToolProvider]:
    if tools is None:
        return []
    if isinstance(tools, ToolProvider):
        return [tools]
    providers: List[ToolProvider] = []
    loose: List[ToolDescriptor] = []
    for item in tools:
        if isinstance(item, ToolDescriptor):
            loose.append(item)
        else:
            providers.append(item)
    if loose:
        providers.insert(0, ToolSet(loose))
    return providers


def history_for_model(history: Iterable[Message]) -> List[Message]:
    """Session history as the model sees it (thinking segments removed)."""
    converted = []
    for message in history:
        if message.role == MessageRole.ASSISTANT.value:
            converted.append(Message(role=message.role, content=message.result_content, name=message.name))
        else:
            converted.append(message)
    return converted


class ReActAgent:
    """ReAct Agent implementing the Reason-Act-Observe loop.

    Usage:
        agent = ReActAgent(
            AgentConfig(name="assistant", max_steps=10),
            llm_client,
            store=RedisSessionStore.from_settings(settings),
            tools=[search_tool, write_tool],
            pipeline=ToolPipeline([HITLInterceptor().on_sensitive_tool("write_file")]),
        )

        response = await agent.call("Summarize the report", session_id="s1")
        if response.is_pending:
            task = await agent.get_pending_task("s1")
            await agent.submit_decision("s1", task.tool_name, HITLDecision.approve())
            response = await agent.resume("s1")
    """

    def __init__(
        self,
        config: AgentConfig,
        llm_client: LLMClient,
        store: Optional[SessionStore] = None,
        tools: ToolsArg = None,
        skills: Optional[SkillRegistry] = None,
        pipeline: Optional[ToolPipeline] = None,
        planner: Optional[Planner] = None,
        heuristic: Optional[ComplexityHeuristic] = None,
        compactor: Optional[ContextCompactor] = None,
    ) -> None:
        """Initialize the ReAct agent.

        Args:
            config: Agent configuration (validated on construction)
            llm_client: Model invocation capability
            store: Durable session store (in-memory from ``Settings`` if omitted)
            tools: Tool providers and/or loose tool descriptors
            skills: Skill registry evaluated on every turn
            pipeline: Tool invocation pipeline (plain execution if omitted)
            planner: Plan generator override
            heuristic: Complexity heuristic override
            compactor: Working-conversation compactor (built from the config if omitted)
        """
        config.validate()
        self.config = config
        self._llm = llm_client
        self._store = store or InMemorySessionStore.from_settings()
        self._providers = _normalize_providers(tools)
        self._skills = skills
        self._pipeline = pipeline or ToolPipeline()
        self._planner = planner
        self._heuristic = heuristic
        self._compactor = compactor
        self._ephemeral_store = InMemorySessionStore(max_messages=self._store.max_messages)
        self._ephemeral_ids: Set[str] = set()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def description(self) -> str:
        return self.config.description

    @property
    def store(self) -> SessionStore:
        return self._store

    def list_tools(self) -> List[ToolDescriptor]:
        """Tools from the agent's own providers (skills excluded)."""
        return collect_tools(self._providers)

    # ------------------------------------------------------------------
    # Caller-facing surface
    # ------------------------------------------------------------------

    async def call(
        self,
        prompt: Optional[str],
        session_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> AgentResponse:
        """Run a turn to completion and return the terminal payload.

        Raises:
            ModelInvocationError: If the model capability fails
            AgentCancelledError: If the turn was cancelled
            SessionBusyError: If the session already has an active turn
            NoPendingTaskError: If ``prompt`` is None and nothing is pending
        """
        run_ctx = RunContext(abort_signal=abort_signal or asyncio.Event(), session_id=session_id)
        terminal: Optional[AgentEvent] = None
        async for event in self._stream(prompt, session_id, run_ctx, context):
            if event.is_terminal:
                terminal = event
        return response_from_terminal(terminal, run_ctx)

    async def stream(
        self,
        prompt: Optional[str],
        session_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[AgentEvent]:
        """Run a turn, yielding events; the last event is terminal."""
        run_ctx = RunContext(abort_signal=abort_signal or asyncio.Event(), session_id=session_id)
        events = self._stream(prompt, session_id, run_ctx, context)
        try:
            async for event in events:
                yield event
        finally:
            # Closing early must reach the turn so it is marked cancelled
            await events.aclose()

    async def resume(
        self,
        session_id: str,
        context: Optional[Dict[str, Any]] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> AgentResponse:
        """Continue a paused turn after ``submit_decision``."""
        return await self.call(None, session_id, context=context, abort_signal=abort_signal)

    async def get_pending_task(self, session_id: str) -> Optional[HITLTask]:
        store, _ = self._store_for(session_id)
        return await store.pending_task(session_id)

    async def submit_decision(self, session_id: str, tool_name: str, decision: HITLDecision) -> HITLTask:
        """Record a decision for the pending task.

        The pending task is consumed here; the next ``call``/``resume``
        on the session applies the decision.

        Raises:
            NoPendingTaskError: If nothing is pending
            HITLStateError: If ``tool_name`` does not match the pending task
        """
        store, _ = self._store_for(session_id)
        task = await store.resolve_pending(session_id, decision, tool_name=tool_name)
        logger.info(
            f"[ReActAgent] Decision {decision.outcome.value} recorded for {tool_name} in {session_id}"
        )
        return task

    async def get_trace(self, session_id: str) -> Optional[Trace]:
        store, _ = self._store_for(session_id)
        data = await store.load_trace(session_id, self.name)
        return Trace.from_dict(data) if data else None

    # ------------------------------------------------------------------
    # Turn execution
    # ------------------------------------------------------------------

    def _store_for(self, session_id: Optional[str]) -> Tuple[SessionStore, str]:
        if session_id is None:
            session_id = f"ephemeral-{uuid.uuid4().hex[:12]}"
            self._ephemeral_ids.add(session_id)
            return self._ephemeral_store, session_id
        if session_id in self._ephemeral_ids:
            return self._ephemeral_store, session_id
        return self._store, session_id

    async def _stream(
        self,
        prompt: Optional[str],
        session_id: Optional[str],
        run_ctx: RunContext,
        context: Optional[Dict[str, Any]],
    ) -> AsyncIterator[AgentEvent]:
        store, sid = self._store_for(session_id)
        run_ctx.session_id = sid
        ephemeral = store is self._ephemeral_store

        async with store.lock(sid):
            try:
                async for event in self.execute_turn(store, sid, prompt, run_ctx, context):
                    yield event
            except (asyncio.CancelledError, GeneratorExit):
                await self.mark_cancelled(store, run_ctx)
                raise
            finally:
                if ephemeral and not (run_ctx.trace and run_ctx.trace.is_pending):
                    await store.delete(sid)
                    self._ephemeral_ids.discard(sid)

    async def execute_turn(
        self,
        store: SessionStore,
        session_id: str,
        prompt: Optional[str],
        run_ctx: RunContext,
        context: Optional[Dict[str, Any]] = None,
        record_prompt: bool = True,
    ) -> AsyncIterator[AgentEvent]:
        """Run one turn against ``store``; the caller holds the session lock.

        Resumes when this agent's trace is paused and a decision has been
        recorded (whatever the prompt); otherwise starts a fresh turn.

        Args:
            store: Session store to run against (a team passes its shared store)
            session_id: Session id
            prompt: User prompt, or None to resume
            run_ctx: Per-run state
            context: Caller signals for skill activation and tool filtering
            record_prompt: Append ``prompt`` to history (a team appends it once)
        """
        session = await store.get(session_id)
        trace_data = await store.load_trace(session_id, self.name)
        previous = Trace.from_dict(trace_data) if trace_data else None
        paused_here = previous is not None and previous.is_pending

        if paused_here and session.decision is not None:
            async for event in self._resume_turn(store, session_id, previous, run_ctx, context):
                yield event
            return

        if prompt is None:
            if paused_here and session.pending_task is not None:
                raise HITLStateError(
                    f"Session {session_id} is awaiting a decision on {session.pending_task.tool_name}",
                    session_id=session_id,
                    operation="resume",
                )
            raise NoPendingTaskError(session_id)

        if session.pending_task is not None:
            logger.warning(
                f"[ReActAgent] Discarding undecided task {session.pending_task.task_id} "
                f"({session.pending_task.tool_name}) in {session_id}: new prompt received"
            )
            await store.clear_pending(session_id)
        elif session.decision is not None:
            logger.warning(f"[ReActAgent] Discarding unused decision in {session_id}")
            await store.take_decision(session_id)

        async for event in self._fresh_turn(
            store, session_id, prompt, previous, run_ctx, context, record_prompt
        ):
            yield event

    async def _fresh_turn(
        self,
        store: SessionStore,
        session_id: str,
        prompt: str,
        previous: Optional[Trace],
        run_ctx: RunContext,
        context: Optional[Dict[str, Any]],
        record_prompt: bool,
    ) -> AsyncIterator[AgentEvent]:
        skill_ctx = SkillContext(prompt=prompt, session_id=session_id, attributes=dict(context or {}))
        activation, tools = self._assemble(skill_ctx)

        if record_prompt:
            await store.append(session_id, Message.user(prompt))
        history = await store.messages(session_id)
        messages = [Message.system(activation.system_prompt(self.config.instruction))]
        messages.extend(history_for_model(history))

        trace = Trace(
            agent_name=self.name,
            session_id=session_id,
            prompt=prompt,
            turn_count=(previous.turn_count if previous else 0) + 1,
        )
        if previous and previous.plan:
            logger.debug(f"[ReActAgent] Previous plan of {self.name} in {session_id} is not carried over")

        loop = self._create_loop(store, tools, run_ctx)
        async for event in loop.process(trace, messages, prompt):
            yield event

    async def _resume_turn(
        self,
        store: SessionStore,
        session_id: str,
        trace: Trace,
        run_ctx: RunContext,
        context: Optional[Dict[str, Any]],
    ) -> AsyncIterator[AgentEvent]:
        decision = await store.take_decision(session_id)
        if decision is None:
            raise NoPendingTaskError(session_id)

        skill_ctx = SkillContext(prompt=trace.prompt, session_id=session_id, attributes=dict(context or {}))
        _, tools = self._assemble(skill_ctx)
        loop = self._create_loop(store, tools, run_ctx)
        async for event in loop.resume(trace, decision):
            yield event

    def _assemble(self, skill_ctx: SkillContext) -> Tuple[SkillActivation, List[ToolDescriptor]]:
        """Activate skills, union their tools, then apply metadata filtering."""
        activation = self._skills.activate(skill_ctx) if self._skills else SkillActivation()
        candidates = collect_tools([*self._providers, ToolSet(activation.tools)])
        return activation, filter_tools(candidates, skill_ctx, self.config.tool_filter)

    def _create_loop(self, store: SessionStore, tools: List[ToolDescriptor], run_ctx: RunContext) -> ReActLoop:
        return ReActLoop(
            self.config,
            self._llm,
            self._pipeline,
            store,
            tools,
            run_ctx,
            planner=self._planner,
            heuristic=self._heuristic,
            compactor=self._compactor,
        )

    async def mark_cancelled(self, store: SessionStore, run_ctx: RunContext) -> None:
        """Persist a still-running trace of ``run_ctx`` as cancelled."""
        trace = run_ctx.trace
        if trace is None or trace.status != TraceStatus.RUNNING:
            return
        # Paused traces keep their pending task; only running ones are closed
        trace.status = TraceStatus.CANCELLED
        trace.messages = []
        trace.pending_calls = []
        await store.save_trace(trace.session_id, trace.agent_name, trace.to_dict())
        logger.info(f"[ReActAgent] Turn of {trace.agent_name} cancelled in {trace.session_id}")


def response_from_terminal(terminal: Optional[AgentEvent], run_ctx: RunContext) -> AgentResponse:
    """Convert a terminal event into the blocking-call result."""
    session_id = run_ctx.session_id or ""
    if isinstance(terminal, ErrorEvent):
        error = run_ctx.error
        if isinstance(error, BaseException):
            raise error
        raise ModelInvocationError(terminal.message)
    if not isinstance(terminal, CompleteEvent):
        raise AgentError("Stream ended without a terminal event")
    if terminal.status == TraceStatus.CANCELLED.value:
        raise AgentCancelledError(session_id=session_id)

    trace = run_ctx.trace or Trace.from_dict(terminal.trace)
    return AgentResponse(content=terminal.content, trace=trace, session_id=session_id)


__all__ = ["ReActAgent", "history_for_model", "response_from_terminal"]
