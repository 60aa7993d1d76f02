"""ReAct Loop - the single-agent reasoning/acting state machine.

States: INIT -> [PLANNING] -> REASON -> ACT -> OBSERVE -> (REASON | TERMINAL | PAUSED);
PAUSED -> RESUMED -> ACT once a decision has been recorded.

The loop runs against a working conversation (system instruction,
session history, tool calls and tool results). Only the final answer is
written back to the session history; everything needed to resume a
paused loop is persisted in the trace, so a paused loop survives process
restarts.

Usage:
    loop = ReActLoop(config, llm_client, pipeline, store, tools, run_ctx)
    async for event in loop.process(trace, messages, prompt="..."):
        ...
"""

import asyncio
import logging
import re
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from agentcore.config import AgentConfig
from agentcore.core.errors import AgentError, ErrorContext, wrap_model_error
from agentcore.core.events import (
    ActEvent,
    AgentEvent,
    CompleteEvent,
    ErrorEvent,
    HITLRequestedEvent,
    HITLResolvedEvent,
    ObserveEvent,
    PlanEvent,
    ReasoningEvent,
    StartEvent,
)
from agentcore.core.trace import Trace
from agentcore.core.types import LoopState, TraceStatus
from agentcore.llm.protocol import LLMClient
from agentcore.llm.types import ChatResponse, Message, ToolCall, Usage, strip_thinking
from agentcore.pipeline.interceptor import ToolInvocation, ToolPipeline
from agentcore.processor.compaction import ContextCompactor
from agentcore.planning.heuristic import ComplexityHeuristic
from agentcore.planning.planner import Planner
from agentcore.processor.run_context import RunContext
from agentcore.session.store import SessionStore
from agentcore.session.types import HITLDecision
from agentcore.tools.protocol import ToolDescriptor

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)

CANCELLED_MESSAGE = "Processing cancelled"


def extract_json_block(text: str) -> str:
    """Return the first fenced JSON block of ``text``, else the stripped text."""
    match = _JSON_BLOCK.search(text)
    return match.group(1).strip() if match else text.strip()


def with_plan(system_prompt: str, plan: List[str]) -> str:
    steps = "\n".join(f"{i}. {step}" for i, step in enumerate(plan, 1))
    return f"{system_prompt}\n\n## Plan\nFollow this plan step by step:\n{steps}"


class ReActLoop:
    """One execution of the ReAct state machine for one agent.

    A loop instance is created per turn by the agent; it is not reused.
    """

    def __init__(
        self,
        config: AgentConfig,
        llm_client: LLMClient,
        pipeline: ToolPipeline,
        store: SessionStore,
        tools: List[ToolDescriptor],
        run_ctx: RunContext,
        planner: Optional[Planner] = None,
        heuristic: Optional[ComplexityHeuristic] = None,
        compactor: Optional[ContextCompactor] = None,
    ) -> None:
        self._config = config
        self._llm = llm_client
        self._pipeline = pipeline
        self._store = store
        self._tools = list(tools)
        self._tools_by_name: Dict[str, ToolDescriptor] = {t.name: t for t in tools}
        self._ctx = run_ctx
        self._planner = planner or Planner(
            llm_client, max_steps=config.max_plan_steps, timeout=config.model_timeout
        )
        self._heuristic = heuristic or ComplexityHeuristic(threshold=config.planning_threshold)
        self._compactor = compactor or ContextCompactor(
            max_messages=config.max_context_messages, max_tokens=config.max_context_tokens
        )
        self._state = LoopState.INIT
        self._last_content = ""
        self._response: Optional[ChatResponse] = None

    @property
    def state(self) -> LoopState:
        """Get current loop state."""
        return self._state

    @property
    def agent_name(self) -> str:
        return self._config.name

    def _transition(self, state: LoopState) -> None:
        logger.debug(f"[ReActLoop] {self.agent_name}: {self._state.value} -> {state.value}")
        self._state = state

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def process(
        self,
        trace: Trace,
        messages: List[Message],
        prompt: Optional[str] = None,
    ) -> AsyncIterator[AgentEvent]:
        """Run a fresh turn.

        Args:
            trace: Fresh trace for this turn
            messages: Effective conversation (system instruction first)
            prompt: The turn's user prompt, used for the planning heuristic
        """
        self._ctx.trace = trace
        yield StartEvent(session_id=trace.session_id, agent_name=self.agent_name)

        try:
            if self._config.planning:
                async for event in self._plan(trace, messages, prompt or trace.prompt):
                    yield event
            async for event in self._drive(trace, messages):
                yield event
        except Exception as e:
            async for event in self._fail(trace, e):
                yield event

    async def resume(self, trace: Trace, decision: HITLDecision) -> AsyncIterator[AgentEvent]:
        """Continue a paused trace after its decision was recorded.

        Events continue the original sequence: reasoning for completed
        steps is not replayed and the suspended call's action event is
        not emitted again.
        """
        self._ctx.trace = trace
        self._transition(LoopState.RESUMED)
        messages = list(trace.messages)
        pending = list(trace.pending_calls)
        trace.pending_calls = []
        trace.pending_task_id = None
        trace.status = TraceStatus.RUNNING

        yield StartEvent(session_id=trace.session_id, agent_name=self.agent_name, resumed=True)
        yield HITLResolvedEvent(
            session_id=trace.session_id,
            tool_name=pending[0].name if pending else "",
            outcome=decision.outcome.value,
            comment=decision.comment,
        )
        logger.info(
            f"[ReActLoop] {self.agent_name} resuming {trace.session_id} "
            f"({decision.outcome.value}, {len(pending)} pending calls)"
        )

        try:
            async for event in self._drive(trace, messages, pending, decision):
                yield event
        except Exception as e:
            async for event in self._fail(trace, e):
                yield event

    # ------------------------------------------------------------------
    # PLANNING
    # ------------------------------------------------------------------

    async def _plan(self, trace: Trace, messages: List[Message], prompt: str) -> AsyncIterator[AgentEvent]:
        self._transition(LoopState.PLANNING)
        assessment = self._heuristic.assess(prompt, self._tools_by_name.keys())
        if not assessment.needs_plan:
            # A trivial follow-up never keeps a stale plan
            trace.plan = []
            logger.debug(f"[ReActLoop] {self.agent_name} skipped planning (score={assessment.score:.2f})")
            return

        trace.plan = await self._planner.generate_plan(prompt, self._tools, session_id=trace.session_id)
        if messages and messages[0].role == "system":
            messages[0] = Message.system(with_plan(messages[0].content, trace.plan))
        yield PlanEvent(session_id=trace.session_id, steps=list(trace.plan))

    # ------------------------------------------------------------------
    # REASON / ACT / OBSERVE
    # ------------------------------------------------------------------

    async def _drive(
        self,
        trace: Trace,
        messages: List[Message],
        pending_calls: Optional[List[ToolCall]] = None,
        decision: Optional[HITLDecision] = None,
    ) -> AsyncIterator[AgentEvent]:
        if pending_calls:
            finished = False
            async for event in self._act(trace, messages, pending_calls, decision, resumed=True):
                finished = finished or isinstance(event, CompleteEvent)
                yield event
            if finished:
                return

        while True:
            if self._ctx.aborted:
                async for event in self._cancel(trace):
                    yield event
                return

            if trace.step_count >= self._config.max_steps:
                async for event in self._truncate(trace):
                    yield event
                return

            self._compact(trace, messages)
            trace.step_count += 1
            self._transition(LoopState.REASON)
            async for event in self._reason(trace, messages):
                yield event
            response = self._response
            if response is None:
                # Aborted while streaming
                async for event in self._cancel(trace):
                    yield event
                return

            if not response.has_tool_calls:
                async for event in self._complete(trace, response.content):
                    yield event
                return

            messages.append(Message.assistant(response.content, tool_calls=list(response.tool_calls)))
            finished = False
            async for event in self._act(trace, messages, list(response.tool_calls)):
                finished = finished or isinstance(event, CompleteEvent)
                yield event
            if finished:
                return
            self._transition(LoopState.OBSERVE)

    def _compact(self, trace: Trace, messages: List[Message]) -> None:
        """Trim the working conversation in place before the next model call.

        The trimmed list is what a later pause persists with the trace.
        """
        compacted, result = self._compactor.compact(messages)
        if result.was_compacted:
            messages[:] = compacted
            logger.info(
                f"[ReActLoop] {self.agent_name} compacted context for {trace.session_id}: "
                f"dropped {result.dropped_messages} messages, saved ~{result.tokens_saved} tokens"
            )

    async def _reason(self, trace: Trace, messages: List[Message]) -> AsyncIterator[AgentEvent]:
        """Invoke the model; the result is left in ``self._response``."""
        self._response = None
        step = trace.step_count
        tools = self._tools or None
        timeout = self._config.model_timeout
        context = ErrorContext(operation="reason", session_id=trace.session_id, agent_name=self.agent_name)

        try:
            if self._config.streaming:
                parts: List[str] = []
                tool_calls: List[ToolCall] = []
                usage = Usage()
                deadline = None if timeout is None else asyncio.get_running_loop().time() + timeout
                stream = self._llm.stream(messages, tools=tools)
                try:
                    while True:
                        chunk = await self._next_chunk(stream, deadline)
                        if chunk is None:
                            break
                        if chunk.delta:
                            parts.append(chunk.delta)
                            yield ReasoningEvent(session_id=trace.session_id, content=chunk.delta, step_index=step)
                        if chunk.tool_calls:
                            tool_calls = list(chunk.tool_calls)
                        if chunk.usage:
                            usage = chunk.usage
                        if self._ctx.aborted:
                            return
                finally:
                    aclose = getattr(stream, "aclose", None)
                    if aclose is not None:
                        await aclose()
                response = ChatResponse(content="".join(parts), tool_calls=tool_calls, usage=usage)
            else:
                async with asyncio.timeout(timeout):
                    response = await self._llm.generate(messages, tools=tools)
                if response.content:
                    yield ReasoningEvent(session_id=trace.session_id, content=response.content, step_index=step)
        except AgentError:
            raise
        except Exception as e:
            raise wrap_model_error(e, context) from e

        trace.usage = trace.usage + response.usage
        if response.content:
            trace.add_reasoning(response.content, step)
            stripped = strip_thinking(response.content)
            if stripped:
                self._last_content = stripped
        logger.debug(
            f"[ReActLoop] {self.agent_name} step {step}: "
            f"{len(response.tool_calls)} tool calls, {len(response.content)} chars"
        )
        self._response = response

    @staticmethod
    async def _next_chunk(stream: Any, deadline: Optional[float]) -> Any:
        if deadline is None:
            try:
                return await stream.__anext__()
            except StopAsyncIteration:
                return None
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise TimeoutError("Model stream timed out")
        try:
            return await asyncio.wait_for(stream.__anext__(), timeout=remaining)
        except StopAsyncIteration:
            return None

    async def _act(
        self,
        trace: Trace,
        messages: List[Message],
        calls: List[ToolCall],
        decision: Optional[HITLDecision] = None,
        resumed: bool = False,
    ) -> AsyncIterator[AgentEvent]:
        """Route a batch of tool calls through the pipeline, sequentially.

        When a call suspends, the remaining calls are persisted with the
        trace and the loop pauses; observations of calls that already
        completed stay in the working conversation.
        """
        self._transition(LoopState.ACT)
        step = trace.step_count

        for index, call in enumerate(calls):
            first_resumed = resumed and index == 0
            if self._ctx.aborted and not first_resumed:
                async for event in self._cancel(trace):
                    yield event
                return

            if not first_resumed:
                trace.add_action(call, step)
                yield ActEvent(
                    session_id=trace.session_id,
                    tool_name=call.name,
                    arguments=dict(call.arguments),
                    call_id=call.id,
                    step_index=step,
                )

            invocation = ToolInvocation(
                call=call,
                session_id=trace.session_id,
                agent_name=self.agent_name,
                tool=self._tools_by_name.get(call.name),
                decision=decision if first_resumed else None,
                store=self._store,
                timeout=self._config.tool_timeout,
            )
            outcome = await self._pipeline.invoke(invocation)

            if outcome.is_suspended:
                task = outcome.task
                self._transition(LoopState.PAUSED)
                trace.status = TraceStatus.PAUSED
                trace.pending_task_id = task.task_id if task else None
                trace.pending_calls = list(calls[index:])
                trace.messages = list(messages)
                await self._save_trace(trace)
                logger.info(
                    f"[ReActLoop] {self.agent_name} paused on {call.name} in {trace.session_id}"
                )
                yield HITLRequestedEvent(
                    session_id=trace.session_id,
                    task_id=task.task_id if task else "",
                    tool_name=call.name,
                    arguments=dict(call.arguments),
                    justification=task.justification if task else "",
                )
                yield CompleteEvent(
                    session_id=trace.session_id,
                    status=TraceStatus.PAUSED.value,
                    trace=trace.to_dict(),
                    tokens=trace.usage.to_dict(),
                )
                return

            observation = outcome.observation
            messages.append(Message.tool_result(observation, call.id, name=call.name))
            trace.add_observation(call, observation, outcome.status.value, step)
            yield ObserveEvent(
                session_id=trace.session_id,
                tool_name=call.name,
                result=observation,
                call_id=call.id,
                status=outcome.status.value,
                step_index=step,
            )

    # ------------------------------------------------------------------
    # TERMINAL
    # ------------------------------------------------------------------

    async def _complete(self, trace: Trace, raw_content: str) -> AsyncIterator[AgentEvent]:
        self._transition(LoopState.TERMINAL)
        answer = strip_thinking(raw_content)
        await self._store.append(trace.session_id, Message.assistant(raw_content, name=self.agent_name))
        if self._config.output_key:
            await self._write_output(trace.session_id, answer)

        trace.status = TraceStatus.COMPLETED
        trace.content = answer
        async for event in self._terminal(trace):
            yield event

    async def _truncate(self, trace: Trace) -> AsyncIterator[AgentEvent]:
        self._transition(LoopState.TERMINAL)
        logger.warning(
            f"[ReActLoop] {self.agent_name} reached max steps ({self._config.max_steps}) in {trace.session_id}"
        )
        answer = self._last_content
        if answer:
            await self._store.append(
                trace.session_id, Message.assistant(answer, name=self.agent_name)
            )
        trace.status = TraceStatus.TRUNCATED
        trace.content = answer
        async for event in self._terminal(trace):
            yield event

    async def _cancel(self, trace: Trace) -> AsyncIterator[AgentEvent]:
        self._transition(LoopState.TERMINAL)
        logger.info(f"[ReActLoop] {self.agent_name} cancelled in {trace.session_id}")
        trace.status = TraceStatus.CANCELLED
        trace.content = CANCELLED_MESSAGE
        async for event in self._terminal(trace):
            yield event

    async def _terminal(self, trace: Trace) -> AsyncIterator[AgentEvent]:
        trace.messages = []
        trace.pending_calls = []
        trace.pending_task_id = None
        await self._save_trace(trace)
        yield CompleteEvent(
            session_id=trace.session_id,
            status=trace.status.value,
            content=trace.content,
            trace=trace.to_dict(),
            tokens=trace.usage.to_dict(),
        )

    async def _fail(self, trace: Trace, error: Exception) -> AsyncIterator[AgentEvent]:
        self._transition(LoopState.TERMINAL)
        logger.error(f"[ReActLoop] {self.agent_name} failed in {trace.session_id}: {error}", exc_info=True)
        self._ctx.error = error
        trace.status = TraceStatus.FAILED
        trace.messages = []
        trace.pending_calls = []
        try:
            await self._save_trace(trace)
        except Exception as save_error:
            logger.error(f"[ReActLoop] Failed to persist failed trace: {save_error}")
        details = error.to_dict() if isinstance(error, AgentError) else {}
        message = error.message if isinstance(error, AgentError) else str(error)
        yield ErrorEvent(
            session_id=trace.session_id,
            message=message,
            code=type(error).__name__,
            details=details,
        )

    async def _write_output(self, session_id: str, answer: str) -> None:
        key = self._config.output_key
        value: Any = answer
        schema: Optional[type[BaseModel]] = self._config.output_schema
        if schema is not None:
            try:
                value = schema.model_validate_json(extract_json_block(answer)).model_dump(mode="json")
            except ValidationError as e:
                logger.warning(
                    f"[ReActLoop] {self.agent_name} output failed {schema.__name__} validation, "
                    f"storing raw answer under '{key}': {e.error_count()} errors"
                )
        await self._store.snapshot_put(session_id, key, value)

    async def _save_trace(self, trace: Trace) -> None:
        await self._store.save_trace(trace.session_id, self.agent_name, trace.to_dict())


__all__ = ["CANCELLED_MESSAGE", "ReActLoop", "extract_json_block", "with_plan"]
