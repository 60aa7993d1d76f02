"""Team orchestration over ReAct agents.

A team runs its members' ReAct loops against one shared session: the
user prompt is appended once, every member sees the conversation
contributions of the members before it, and the team answers with the
last member's content plus an aggregate trace.

When a member pauses on a HITL task the team call returns paused and
records the awaiting member. The next call on the session resumes only
that member; members that already completed are never re-executed.
"""

import asyncio
import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Set, Tuple, Union

from agentcore.agents.protocols import SequentialProtocol, SupervisorProtocol, TeamProtocol, TeamState
from agentcore.agents.react import ReActAgent, response_from_terminal
from agentcore.config import TeamConfig
from agentcore.core.errors import AgentError, ConfigurationError, HITLStateError, NoPendingTaskError
from agentcore.core.events import (
    AgentEvent,
    CompleteEvent,
    ErrorEvent,
    MemberEndEvent,
    MemberStartEvent,
    StartEvent,
    SupervisorEvent,
)
from agentcore.core.trace import AgentResponse, Trace
from agentcore.core.types import TraceStatus
from agentcore.llm.protocol import LLMClient
from agentcore.llm.types import Message, Usage
from agentcore.processor.run_context import RunContext
from agentcore.session.store import InMemorySessionStore, SessionStore
from agentcore.session.types import HITLDecision, HITLTask

logger = logging.getLogger(__name__)


class TeamAgent:
    """A team of ReAct agents under a coordination protocol.

    Usage:
        team = TeamAgent(
            TeamConfig(name="research", max_turns=6),
            [researcher, writer, reviewer],
            store=store,
        )
        response = await team.call("Write a brief on solid-state batteries", session_id="s1")
        if team.is_pending(response.trace):
            ...
    """

    def __init__(
        self,
        config: TeamConfig,
        members: Sequence[ReActAgent],
        store: Optional[SessionStore] = None,
        protocol: Optional[TeamProtocol] = None,
        supervisor_llm: Optional[LLMClient] = None,
        supervisor_instruction: str = "",
    ) -> None:
        """Initialize the team.

        Args:
            config: Team configuration
            members: Member agents, in registration order
            store: Shared session store (in-memory if omitted)
            protocol: Explicit protocol; otherwise built from ``config.protocol``
            supervisor_llm: Model used by the supervisor protocol
            supervisor_instruction: Extra guidance for the supervisor
        """
        config.validate()
        if not members:
            raise ConfigurationError("A team needs at least one member", field="members", value=[])
        names = [m.name for m in members]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate member names: {duplicates}", field="members", value=names)
        if config.name in names:
            raise ConfigurationError(
                "Team name must differ from member names", field="name", value=config.name
            )

        self.config = config
        self._members = list(members)
        self._by_name: Dict[str, ReActAgent] = {m.name: m for m in members}
        self._store = store or InMemorySessionStore.from_settings()
        self._protocol = protocol or self._build_protocol(config, supervisor_llm, supervisor_instruction)
        self._ephemeral_store = InMemorySessionStore(max_messages=self._store.max_messages)
        self._ephemeral_ids: Set[str] = set()

    @staticmethod
    def _build_protocol(
        config: TeamConfig, supervisor_llm: Optional[LLMClient], instruction: str
    ) -> TeamProtocol:
        if config.protocol == SupervisorProtocol.name:
            if supervisor_llm is None:
                raise ConfigurationError(
                    "Supervisor protocol requires supervisor_llm", field="protocol", value=config.protocol
                )
            return SupervisorProtocol(supervisor_llm, team_name=config.name, instruction=instruction)
        return SequentialProtocol()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def members(self) -> List[ReActAgent]:
        return list(self._members)

    @property
    def protocol(self) -> TeamProtocol:
        return self._protocol

    @property
    def store(self) -> SessionStore:
        return self._store

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
        """Run the team to completion (or pause) and return the aggregate response."""
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
        """Run the team, yielding member events tagged with ``member``/``team`` metadata."""
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
        return await self.call(None, session_id, context=context, abort_signal=abort_signal)

    async def get_pending_task(self, session_id: str) -> Optional[HITLTask]:
        store, _ = self._store_for(session_id)
        return await store.pending_task(session_id)

    async def submit_decision(self, session_id: str, tool_name: str, decision: HITLDecision) -> HITLTask:
        store, _ = self._store_for(session_id)
        task = await store.resolve_pending(session_id, decision, tool_name=tool_name)
        logger.info(f"[TeamAgent] {self.name}: decision {decision.outcome.value} for {tool_name} in {session_id}")
        return task

    async def get_trace(self, session_id: str) -> Optional[Trace]:
        store, _ = self._store_for(session_id)
        data = await store.load_trace(session_id, self.name)
        return Trace.from_dict(data) if data else None

    @staticmethod
    def is_pending(trace: Union[Trace, AgentResponse, None]) -> bool:
        """Whether a team (or agent) result is waiting on a HITL decision."""
        if trace is None:
            return False
        return trace.is_pending

    # ------------------------------------------------------------------
    # Orchestration
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
        member_ctx: List[Tuple[ReActAgent, RunContext]] = []

        async with store.lock(sid):
            try:
                async for event in self._run(store, sid, prompt, run_ctx, context, member_ctx):
                    yield event
            except (asyncio.CancelledError, GeneratorExit):
                for member, ctx in member_ctx:
                    await member.mark_cancelled(store, ctx)
                logger.info(f"[TeamAgent] {self.name} cancelled in {sid}")
                raise
            finally:
                if ephemeral and not (run_ctx.trace and run_ctx.trace.is_pending):
                    await store.delete(sid)
                    self._ephemeral_ids.discard(sid)

    async def _run(
        self,
        store: SessionStore,
        session_id: str,
        prompt: Optional[str],
        run_ctx: RunContext,
        context: Optional[Dict[str, Any]],
        member_ctx: List[Tuple[ReActAgent, RunContext]],
    ) -> AsyncIterator[AgentEvent]:
        session = await store.get(session_id)
        data = await store.load_team_state(session_id, self.name)
        state = TeamState.from_dict(data) if data else None
        awaiting = state.awaiting_member if state else None
        resuming = awaiting is not None and session.decision is not None

        if not resuming:
            if prompt is None:
                if awaiting is not None and session.pending_task is not None:
                    raise HITLStateError(
                        f"Team {self.name} is awaiting a decision on {session.pending_task.tool_name}",
                        session_id=session_id,
                        operation="resume",
                    )
                raise NoPendingTaskError(session_id)
            if session.pending_task is not None:
                logger.warning(
                    f"[TeamAgent] {self.name}: discarding undecided task "
                    f"{session.pending_task.task_id} in {session_id}: new prompt received"
                )
                await store.clear_pending(session_id)
            elif session.decision is not None:
                logger.warning(f"[TeamAgent] {self.name}: discarding unused decision in {session_id}")
                await store.take_decision(session_id)
            await store.append(session_id, Message.user(prompt))
            state = TeamState(prompt=prompt)

        yield StartEvent(session_id=session_id, agent_name=self.name, resumed=resuming)
        logger.info(
            f"[TeamAgent] {self.name} {'resuming ' + str(awaiting) if resuming else 'starting'} "
            f"in {session_id} ({self._protocol.name})"
        )

        while True:
            if run_ctx.aborted:
                async for event in self._finish(store, session_id, state, TraceStatus.CANCELLED, run_ctx):
                    yield event
                return

            if resuming:
                member_name = state.awaiting_member
            else:
                if state.turn_count >= self.config.max_turns:
                    status = (
                        TraceStatus.COMPLETED
                        if self._protocol.is_done(state, self._members)
                        else TraceStatus.TRUNCATED
                    )
                    if status == TraceStatus.TRUNCATED:
                        logger.warning(
                            f"[TeamAgent] {self.name} reached max turns ({self.config.max_turns}) in {session_id}"
                        )
                    async for event in self._finish(store, session_id, state, status, run_ctx):
                        yield event
                    return

                history = await store.messages(session_id)
                try:
                    selection = await self._protocol.select(state, self._members, history, session_id)
                except AgentError as e:
                    run_ctx.error = e
                    await store.save_team_state(session_id, self.name, state.to_dict())
                    logger.error(f"[TeamAgent] {self.name}: member selection failed in {session_id}: {e}")
                    yield ErrorEvent(
                        session_id=session_id,
                        message=e.message,
                        code=type(e).__name__,
                        details=e.to_dict(),
                        metadata={"team": self.name},
                    )
                    return
                if self._protocol.emits_selection:
                    yield SupervisorEvent(
                        session_id=session_id,
                        team_name=self.name,
                        next_member=selection.member,
                        reason=selection.reason,
                    )
                if selection.member is None:
                    async for event in self._finish(store, session_id, state, TraceStatus.COMPLETED, run_ctx):
                        yield event
                    return
                member_name = selection.member
                state.start_stage(member_name)

            member = self._by_name[member_name]
            yield MemberStartEvent(
                session_id=session_id, team_name=self.name, member=member_name, turn=state.turn_count + 1
            )

            ctx = RunContext(abort_signal=run_ctx.abort_signal, session_id=session_id)
            member_ctx.append((member, ctx))
            terminal: Optional[AgentEvent] = None
            async for event in member.execute_turn(
                store,
                session_id,
                None if resuming else state.prompt,
                ctx,
                context,
                record_prompt=False,
            ):
                if event.is_terminal:
                    terminal = event
                    continue
                yield event.with_metadata(team=self.name, member=member_name)
            member_ctx.remove((member, ctx))
            resuming = False

            if not isinstance(terminal, CompleteEvent):
                run_ctx.error = ctx.error
                state.end_stage(member_name, TraceStatus.FAILED.value, getattr(terminal, "message", ""))
                state.awaiting_member = None
                await store.save_team_state(session_id, self.name, state.to_dict())
                logger.error(f"[TeamAgent] {self.name}: member {member_name} failed in {session_id}")
                yield MemberEndEvent(
                    session_id=session_id,
                    team_name=self.name,
                    member=member_name,
                    status=TraceStatus.FAILED.value,
                )
                if isinstance(terminal, ErrorEvent):
                    yield ErrorEvent(
                        session_id=session_id,
                        message=terminal.message,
                        code=terminal.code,
                        details={**terminal.details, "member": member_name},
                        metadata={"team": self.name, "member": member_name},
                    )
                else:
                    yield ErrorEvent(
                        session_id=session_id,
                        message=f"Member {member_name} ended without a terminal event",
                        code="AgentError",
                        metadata={"team": self.name, "member": member_name},
                    )
                return

            state.add_tokens(terminal.tokens)
            status = TraceStatus(terminal.status)
            state.end_stage(member_name, status.value, terminal.content)
            yield MemberEndEvent(
                session_id=session_id,
                team_name=self.name,
                member=member_name,
                status=status.value,
                content=terminal.content,
            )

            if status == TraceStatus.PAUSED:
                state.awaiting_member = member_name
                async for event in self._finish(store, session_id, state, TraceStatus.PAUSED, run_ctx):
                    yield event
                return

            if status == TraceStatus.CANCELLED:
                async for event in self._finish(store, session_id, state, TraceStatus.CANCELLED, run_ctx):
                    yield event
                return

            state.awaiting_member = None
            state.turn_count += 1
            state.last_content = terminal.content
            self._protocol.advance(state, member_name)
            await store.save_team_state(session_id, self.name, state.to_dict())

    async def _finish(
        self,
        store: SessionStore,
        session_id: str,
        state: TeamState,
        status: TraceStatus,
        run_ctx: RunContext,
    ) -> AsyncIterator[AgentEvent]:
        if status != TraceStatus.PAUSED:
            state.awaiting_member = None
        await store.save_team_state(session_id, self.name, state.to_dict())

        trace = Trace(
            agent_name=self.name,
            session_id=session_id,
            status=status,
            turn_count=state.turn_count,
            prompt=state.prompt,
            content=state.last_content,
            stages=[dict(s) for s in state.stages],
            usage=Usage(**state.tokens),
        )
        await store.save_trace(session_id, self.name, trace.to_dict())
        run_ctx.trace = trace
        logger.info(
            f"[TeamAgent] {self.name} {status.value} in {session_id} after {state.turn_count} member turns"
        )
        yield CompleteEvent(
            session_id=session_id,
            status=status.value,
            content=trace.content,
            trace=trace.to_dict(),
            tokens=trace.usage.to_dict(),
        )


__all__ = ["TeamAgent"]
