"""
AG-UI Bridge

Turns the callback-driven lifecycle of an agent loop into an ordered stream
of AG-UI events.

Components:
- AGUIHandler: built once per process with an agent loop, a system-prompt
  generator, an optional host tool fetcher and AGUIHandlerOptions; handle()
  runs one request
- RunOrchestrator: per-run implementation of AgentStreamHooks; owns the ID
  correlator, the tool-result classifier and the emitter
- RunOutcome: what the HTTP layer should do once handle() returns

Event ordering:
    RUN_STARTED
      (STEP_STARTED
        TEXT_MESSAGE_* | THINKING_* | TOOL_CALL_* | TOOL_CALL_RESULT | STATE_SNAPSHOT
       STEP_FINISHED)*
    RUN_FINISHED | RUN_ERROR

Delivery failures:
- RUN_STARTED fails → RunOutcome(500), nothing else runs
- RUN_ERROR, STATE_SNAPSHOT and TOOL_CALL_RESULT failures are logged only
- any other failure raises EventDeliveryError into the agent loop, which
  aborts the run and reports it through on_error
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from http import HTTPStatus

from ag_ui.core import (
    BaseEvent,
    EventType,
    RunErrorEvent,
    RunFinishedEvent,
    RunStartedEvent,
    StateSnapshotEvent,
    StepFinishedEvent,
    StepStartedEvent,
    TextMessageContentEvent,
    TextMessageEndEvent,
    TextMessageStartEvent,
    ThinkingEndEvent,
    ThinkingStartEvent,
    ThinkingTextMessageContentEvent,
    ThinkingTextMessageEndEvent,
    ThinkingTextMessageStartEvent,
    ToolCallArgsEvent,
    ToolCallEndEvent,
    ToolCallResultEvent,
    ToolCallStartEvent,
)
from ag_ui.encoder import EventEncoder
from loguru import logger

from .agent.types import (
    AgentLoop,
    AgentResult,
    AgentStreamCall,
    AgentTool,
    ReasoningContent,
    ToolCallContent,
    ToolResultContent,
    has_tool_call,
)
from .context import RunContext
from .errors import EventDeliveryError
from .event_recorder import EventRecorder, event_recorder
from .options import AGUIHandlerOptions, ReasoningEmission
from .protocol.history import normalize_history
from .protocol.id_correlator import (
    FragmentKind,
    IDCorrelator,
    new_message_id,
    new_run_id,
    new_thread_id,
)
from .protocol.run_input import RunAgentInput
from .protocol.tool_result_classifier import ToolResultClassifier, render_error
from .tools.client_tools import client_declared_tools
from .transport.event_emitter import EventEmitter, PushTransport


SystemPromptGenerator = Callable[[RunContext], str]
ToolFetcher = Callable[[RunContext], Awaitable[Sequence[AgentTool]] | Sequence[AgentTool]]


@dataclass(frozen=True)
class RunOutcome:
    status_code: int = HTTPStatus.OK
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code == HTTPStatus.OK


class RunOrchestrator:
    """
    Hook sink for one run.

    Each hook emits its events before returning, so event order is exactly
    hook order.
    """

    def __init__(
        self,
        emitter: EventEmitter,
        context: RunContext,
        options: AGUIHandlerOptions,
        classifier: ToolResultClassifier | None = None,
    ) -> None:
        self._emitter = emitter
        self._context = context
        self._options = options
        self._classifier = classifier or ToolResultClassifier()
        self._correlator = IDCorrelator()
        self._terminated = False

    @property
    def context(self) -> RunContext:
        return self._context

    @property
    def terminated(self) -> bool:
        """True once RUN_FINISHED or RUN_ERROR has been attempted."""
        return self._terminated

    async def _emit(self, event: BaseEvent) -> None:
        await self._emitter.emit(event)

    async def _emit_best_effort(self, event: BaseEvent) -> None:
        try:  # nosemgrep: forbid-try-except - best-effort events never fail the run
            await self._emitter.emit(event)
        except EventDeliveryError as e:
            logger.warning(f"[AGUI] Dropped {event.type} for run {self._context.run_id}: {e!s}")

    # ========== Steps ==========

    async def on_step_start(self, step_number: int) -> None:
        if self._options.emit_step_events:
            await self._emit(
                StepStartedEvent(type=EventType.STEP_STARTED, step_name=f"step-{step_number}")
            )

    async def on_step_finish(self, step_number: int) -> None:
        if self._options.emit_step_events:
            await self._emit(
                StepFinishedEvent(type=EventType.STEP_FINISHED, step_name=f"step-{step_number}")
            )

    # ========== Reasoning ==========

    async def on_reasoning_start(self, fragment_id: str, reasoning: ReasoningContent) -> None:
        message_id = self._correlator.open(FragmentKind.REASONING, fragment_id)

        if self._options.reasoning_emission is ReasoningEmission.THINKING:
            await self._emit(
                ThinkingStartEvent(type=EventType.THINKING_START, title=self._options.thinking_title)
            )
            await self._emit(
                ThinkingTextMessageStartEvent(type=EventType.THINKING_TEXT_MESSAGE_START)
            )
        else:
            await self._emit(
                TextMessageStartEvent(
                    type=EventType.TEXT_MESSAGE_START, message_id=message_id, role="assistant"
                )
            )
            if self._options.reasoning_label:
                await self._emit(
                    TextMessageContentEvent(
                        type=EventType.TEXT_MESSAGE_CONTENT,
                        message_id=message_id,
                        delta=self._options.reasoning_label,
                    )
                )

        if reasoning.text:
            await self.on_reasoning_delta(fragment_id, reasoning.text)

    async def on_reasoning_delta(self, fragment_id: str, text: str) -> None:
        message_id = self._correlator.lookup(FragmentKind.REASONING, fragment_id)
        if not text:
            return

        if self._options.reasoning_emission is ReasoningEmission.THINKING:
            await self._emit(
                ThinkingTextMessageContentEvent(
                    type=EventType.THINKING_TEXT_MESSAGE_CONTENT, delta=text
                )
            )
        else:
            await self._emit(
                TextMessageContentEvent(
                    type=EventType.TEXT_MESSAGE_CONTENT, message_id=message_id, delta=text
                )
            )

    async def on_reasoning_end(self, fragment_id: str, reasoning: ReasoningContent) -> None:
        message_id = self._correlator.close(FragmentKind.REASONING, fragment_id)

        if self._options.reasoning_emission is ReasoningEmission.THINKING:
            await self._emit(ThinkingTextMessageEndEvent(type=EventType.THINKING_TEXT_MESSAGE_END))
            await self._emit(ThinkingEndEvent(type=EventType.THINKING_END))
        else:
            await self._emit(
                TextMessageEndEvent(type=EventType.TEXT_MESSAGE_END, message_id=message_id)
            )

    # ========== Text ==========

    async def on_text_start(self, fragment_id: str) -> None:
        message_id = self._correlator.open(FragmentKind.TEXT, fragment_id)
        await self._emit(
            TextMessageStartEvent(
                type=EventType.TEXT_MESSAGE_START, message_id=message_id, role="assistant"
            )
        )

    async def on_text_delta(self, fragment_id: str, text: str) -> None:
        message_id = self._correlator.lookup(FragmentKind.TEXT, fragment_id)
        if not text:
            return
        await self._emit(
            TextMessageContentEvent(
                type=EventType.TEXT_MESSAGE_CONTENT, message_id=message_id, delta=text
            )
        )

    async def on_text_end(self, fragment_id: str) -> None:
        message_id = self._correlator.close(FragmentKind.TEXT, fragment_id)
        await self._emit(TextMessageEndEvent(type=EventType.TEXT_MESSAGE_END, message_id=message_id))

    # ========== Tool calls ==========

    async def on_tool_input_start(self, tool_call_id: str, tool_name: str) -> None:
        self._correlator.open_tool_call(tool_call_id, tool_name)
        await self._emit(
            ToolCallStartEvent(
                type=EventType.TOOL_CALL_START,
                tool_call_id=tool_call_id,
                tool_call_name=tool_name,
            )
        )

    async def on_tool_input_delta(self, tool_call_id: str, delta: str) -> None:
        self._correlator.require_tool_call(tool_call_id)
        if not delta:
            return
        await self._emit(
            ToolCallArgsEvent(type=EventType.TOOL_CALL_ARGS, tool_call_id=tool_call_id, delta=delta)
        )

    async def on_tool_call(self, tool_call: ToolCallContent) -> None:
        self._correlator.require_tool_call(tool_call.tool_call_id)
        await self._emit(
            ToolCallEndEvent(type=EventType.TOOL_CALL_END, tool_call_id=tool_call.tool_call_id)
        )

    async def on_tool_result(self, result: ToolResultContent) -> None:
        """Never raises: a single tool's output must not abort the run."""
        if self._correlator.finish_tool_call(result.tool_call_id) is None:
            logger.error(
                f"[AGUI] Tool result for untracked call {result.tool_call_id} ({result.tool_name})"
            )

        classification = self._classifier.classify(result)
        if classification.suppressed:
            return

        if classification.has_state_update:
            self._context.state = classification.state_update
            logger.info(f"[AGUI] State replaced by {result.tool_name} ({result.tool_call_id})")
            await self._emit_best_effort(
                StateSnapshotEvent(type=EventType.STATE_SNAPSHOT, snapshot=self._context.state)
            )

        if classification.content is None:
            return

        try:  # nosemgrep: forbid-try-except - a rendering failure becomes an error payload
            event = self._tool_result_event(result.tool_call_id, classification.content)
        except ValueError as e:
            logger.error(f"[AGUI] Could not build tool result for {result.tool_call_id}: {e!s}")
            event = self._tool_result_event(result.tool_call_id, render_error(e))
        await self._emit_best_effort(event)

    def _tool_result_event(self, tool_call_id: str, content: str) -> ToolCallResultEvent:
        return ToolCallResultEvent(
            type=EventType.TOOL_CALL_RESULT,
            message_id=new_message_id(),
            tool_call_id=tool_call_id,
            content=content,
            role="tool",
        )

    # ========== Terminal ==========

    async def on_agent_finish(self, result: AgentResult) -> None:
        self._terminated = True
        logger.info(
            f"[AGUI] Run {self._context.run_id} finished "
            f"(steps={result.steps}, reason={result.finish_reason})"
        )
        await self._emit(
            RunFinishedEvent(
                type=EventType.RUN_FINISHED,
                thread_id=self._context.thread_id,
                run_id=self._context.run_id,
            )
        )

    async def on_error(self, error: BaseException) -> None:
        logger.error(f"[AGUI] Run {self._context.run_id} failed: {error!s}")
        await self.report_failure(error)

    async def report_failure(self, error: BaseException) -> None:
        """Emit RUN_ERROR unless a terminal event was already attempted."""
        if self._terminated:
            return
        self._terminated = True
        await self._emit_best_effort(
            RunErrorEvent(
                type=EventType.RUN_ERROR,
                message=str(error) or type(error).__name__,
                raw_event={"runId": self._context.run_id},
            )
        )


class AGUIHandler:
    """
    Handler for AG-UI runs.

    Args:
        agent_loop: Loop that owns the language model
        system_prompt: Called once per run with the RunContext
        tool_fetcher: Optional source of host-side tools (sync or async)
        options: Reasoning policy and other fixed settings
        recorder: Event recorder for debugging captures
    """

    def __init__(
        self,
        agent_loop: AgentLoop,
        system_prompt: SystemPromptGenerator,
        tool_fetcher: ToolFetcher | None = None,
        options: AGUIHandlerOptions | None = None,
        recorder: EventRecorder | None = None,
    ) -> None:
        self._agent_loop = agent_loop
        self._system_prompt = system_prompt
        self._tool_fetcher = tool_fetcher
        self._options = options or AGUIHandlerOptions()
        self._recorder = recorder if recorder is not None else event_recorder
        self._classifier = ToolResultClassifier()

    @property
    def options(self) -> AGUIHandlerOptions:
        return self._options

    async def handle(
        self,
        run_input: RunAgentInput,
        transport: PushTransport,
        encoder: EventEncoder | None = None,
    ) -> RunOutcome:
        context = RunContext(
            thread_id=run_input.thread_id or new_thread_id(),
            run_id=run_input.run_id or new_run_id(),
            state=run_input.state,
            context=list(run_input.context),
            forwarded_props=run_input.forwarded_props,
        )
        logger.info(
            f"[AGUI] Run {context.run_id} on thread {context.thread_id}: "
            f"{len(run_input.messages)} messages, {len(run_input.tools)} client tools"
        )
        if self._recorder.is_enabled():
            self._recorder.record(
                "agui-request-in",
                run_id=context.run_id,
                payload=run_input.model_dump(mode="json", by_alias=True),
            )

        emitter = EventEmitter(transport, encoder, recorder=self._recorder, run_id=context.run_id)
        try:  # nosemgrep: forbid-try-except - no stream exists yet, answer with 500
            await emitter.emit(
                RunStartedEvent(
                    type=EventType.RUN_STARTED,
                    thread_id=context.thread_id,
                    run_id=context.run_id,
                )
            )
        except EventDeliveryError as e:
            logger.error(f"[AGUI] Could not start run {context.run_id}: {e!s}")
            return RunOutcome(status_code=HTTPStatus.INTERNAL_SERVER_ERROR, error=str(e))

        orchestrator = RunOrchestrator(emitter, context, self._options, self._classifier)
        try:  # nosemgrep: forbid-try-except - failures are reported as RUN_ERROR
            call = await self._build_call(run_input, context, orchestrator)
            await self._agent_loop.stream(call)
        except Exception as e:
            logger.error(f"[AGUI] Agent loop error in run {context.run_id}: {e!s}")
            await orchestrator.report_failure(e)

        logger.info(f"[AGUI] Run {context.run_id} done: {emitter.emitted_count} events")
        return RunOutcome()

    async def _build_call(
        self,
        run_input: RunAgentInput,
        context: RunContext,
        orchestrator: RunOrchestrator,
    ) -> AgentStreamCall:
        messages = normalize_history(run_input.messages)
        prompt = "" if messages else self._options.fallback_prompt

        client_tools = client_declared_tools(run_input.tools)
        tools: list[AgentTool] = list(client_tools)
        if self._tool_fetcher is not None:
            host_tools = self._tool_fetcher(context)
            if inspect.isawaitable(host_tools):
                host_tools = await host_tools
            tools.extend(host_tools)

        return AgentStreamCall(
            prompt=prompt,
            messages=messages,
            hooks=orchestrator,
            system_prompt=self._system_prompt(context),
            tools=tools,
            stop_when=[has_tool_call(tool.info().name) for tool in client_tools],
        )
