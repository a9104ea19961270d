"""
AG-UI Bridge Unit Tests

Drives AGUIHandler with a scripted agent loop and a recording transport,
asserting the exact AG-UI event sequence.

Scenarios:
- plain text reply
- client-declared tool call (suppressed acknowledgement, stop condition)
- state update through tool metadata
- media tool result
- RUN_STARTED delivery failure (500)
- reasoning under both emission policies
- failures: loop error, loop raising without hooks, mid-run delivery loss,
  hook contract violation
"""

from __future__ import annotations

from http import HTTPStatus
from types import SimpleNamespace
from typing import Any

import pytest

from agui_stream_protocol import AGUIHandler, AGUIHandlerOptions, EventRecorder, RunContext
from agui_stream_protocol.agent import (
    AgentStreamCall,
    AgentStreamHooks,
    ReasoningContent,
    ToolCall,
    ToolCallContent,
    ToolInfo,
    ToolResponse,
    ToolResultContent,
    ToolResultOutputMedia,
    ToolResultOutputText,
    text_response,
)
from agui_stream_protocol import bridge as bridge_module
from agui_stream_protocol.bridge import RunOrchestrator, RunOutcome
from agui_stream_protocol.options import ReasoningEmission
from agui_stream_protocol.protocol import RunAgentInput
from agui_stream_protocol.transport import EventEmitter
from tests.utils.agui import RaisingAgentLoop, RecordingTransport, ScriptedAgentLoop


CHANGE_BACKGROUND = {
    "name": "change_background",
    "description": "Change the page background",
    "parameters": {
        "type": "object",
        "properties": {"color": {"type": "string"}},
        "required": ["color"],
    },
}


def _input(**overrides: Any) -> RunAgentInput:
    body: dict[str, Any] = {
        "threadId": "thread-1",
        "runId": "run-1",
        "messages": [{"id": "m1", "role": "user", "content": "Hi"}],
    }
    body.update(overrides)
    return RunAgentInput.model_validate(body)


async def _run(
    loop: Any,
    run_input: RunAgentInput | None = None,
    options: AGUIHandlerOptions | None = None,
    transport: RecordingTransport | None = None,
    tool_fetcher: Any = None,
    system_prompt: Any = None,
) -> tuple[RecordingTransport, RunOutcome]:
    transport = transport or RecordingTransport()
    handler = AGUIHandler(
        agent_loop=loop,
        system_prompt=system_prompt or (lambda context: "You are helpful."),
        tool_fetcher=tool_fetcher,
        options=options,
        recorder=EventRecorder(enabled=False),
    )
    outcome = await handler.handle(run_input or _input(), transport)
    return transport, outcome


# ============================================================
# Scenario: plain text reply
# ============================================================


@pytest.mark.asyncio
async def test_plain_text_reply() -> None:
    # given
    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        await hooks.on_text_start("t0")
        await hooks.on_text_delta("t0", "Hel")
        await hooks.on_text_delta("t0", "lo")
        await hooks.on_text_end("t0")

    loop = ScriptedAgentLoop(script)

    # when
    transport, outcome = await _run(loop)

    # then
    assert outcome.ok
    assert transport.types == [
        "RUN_STARTED",
        "TEXT_MESSAGE_START",
        "TEXT_MESSAGE_CONTENT",
        "TEXT_MESSAGE_CONTENT",
        "TEXT_MESSAGE_END",
        "RUN_FINISHED",
    ]
    events = transport.events
    assert events[0] == {"type": "RUN_STARTED", "threadId": "thread-1", "runId": "run-1"}
    assert events[1]["role"] == "assistant"
    message_ids = {event["messageId"] for event in events[1:5]}
    assert len(message_ids) == 1
    assert "".join(event["delta"] for event in events[2:4]) == "Hello"
    assert events[-1] == {"type": "RUN_FINISHED", "threadId": "thread-1", "runId": "run-1"}


@pytest.mark.asyncio
async def test_history_is_forwarded_without_prompt(weather_history: list[dict[str, Any]]) -> None:
    # given
    loop = ScriptedAgentLoop()

    # when
    await _run(loop, _input(messages=weather_history))

    # then
    call = loop.calls[0]
    assert call.prompt == ""
    assert len(call.messages) == 3
    assert call.system_prompt == "You are helpful."


@pytest.mark.asyncio
async def test_empty_history_uses_fallback_prompt() -> None:
    # given
    loop = ScriptedAgentLoop()

    # when
    await _run(loop, _input(messages=[]))

    # then
    assert loop.calls[0].prompt == "Hello!"
    assert loop.calls[0].messages == []


@pytest.mark.asyncio
async def test_generates_thread_and_run_ids_when_absent() -> None:
    # when
    transport, _ = await _run(ScriptedAgentLoop(), _input(threadId="", runId=""))

    # then
    started = transport.events[0]
    assert started["threadId"].startswith("thread-")
    assert started["runId"].startswith("run-")
    assert transport.events[-1]["runId"] == started["runId"]


@pytest.mark.asyncio
async def test_empty_deltas_are_not_emitted() -> None:
    # given
    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        await hooks.on_text_start("t0")
        await hooks.on_text_delta("t0", "")
        await hooks.on_text_delta("t0", " ")
        await hooks.on_text_end("t0")

    # when
    transport, _ = await _run(ScriptedAgentLoop(script))

    # then
    contents = [e for e in transport.events if e["type"] == "TEXT_MESSAGE_CONTENT"]
    assert [e["delta"] for e in contents] == [" "]


@pytest.mark.asyncio
async def test_two_text_fragments_get_distinct_ids() -> None:
    # given
    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        for fragment_id in ("a", "b"):
            await hooks.on_text_start(fragment_id)
            await hooks.on_text_delta(fragment_id, fragment_id)
            await hooks.on_text_end(fragment_id)

    # when
    transport, _ = await _run(ScriptedAgentLoop(script))

    # then
    starts = [e["messageId"] for e in transport.events if e["type"] == "TEXT_MESSAGE_START"]
    ends = [e["messageId"] for e in transport.events if e["type"] == "TEXT_MESSAGE_END"]
    assert len(set(starts)) == 2
    assert starts == ends


# ============================================================
# Scenario: client-declared tool
# ============================================================


@pytest.mark.asyncio
async def test_client_declared_tool_call_is_streamed_and_ack_suppressed() -> None:
    # given
    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        tool = call.tools[0]
        await hooks.on_tool_input_start("c1", "change_background")
        await hooks.on_tool_input_delta("c1", '{"color":"red"}')
        tool_call = ToolCallContent("c1", "change_background", '{"color":"red"}')
        await hooks.on_tool_call(tool_call)
        response = await tool.run(ToolCall(id="c1", name="change_background", input='{"color":"red"}'))
        await hooks.on_tool_result(
            ToolResultContent(
                tool_call_id="c1",
                tool_name="change_background",
                result=ToolResultOutputText(text=response.content),
                client_metadata=response.metadata,
            )
        )
        assert call.should_stop([tool_call])

    loop = ScriptedAgentLoop(script)

    # when
    transport, _ = await _run(loop, _input(tools=[CHANGE_BACKGROUND]))

    # then
    assert transport.types == [
        "RUN_STARTED",
        "TOOL_CALL_START",
        "TOOL_CALL_ARGS",
        "TOOL_CALL_END",
        "RUN_FINISHED",
    ]
    start = transport.events[1]
    assert start["toolCallId"] == "c1"
    assert start["toolCallName"] == "change_background"
    assert transport.events[2]["delta"] == '{"color":"red"}'
    assert loop.calls[0].tools[0].info().required == ["color"]


# ============================================================
# Scenario: host tools and state
# ============================================================


class EchoTool:
    def info(self) -> ToolInfo:
        return ToolInfo(name="echo", description="Echo input")

    async def run(self, call: ToolCall) -> ToolResponse:
        return text_response(call.input)


@pytest.mark.asyncio
async def test_host_tools_come_after_client_tools() -> None:
    # given
    fetched_for: list[RunContext] = []

    async def fetch(context: RunContext) -> list[EchoTool]:
        fetched_for.append(context)
        return [EchoTool()]

    loop = ScriptedAgentLoop()

    # when
    await _run(loop, _input(tools=[CHANGE_BACKGROUND]), tool_fetcher=fetch)

    # then
    assert [tool.info().name for tool in loop.calls[0].tools] == ["change_background", "echo"]
    assert len(loop.calls[0].stop_when) == 1
    assert fetched_for[0].run_id == "run-1"


@pytest.mark.asyncio
async def test_sync_tool_fetcher_and_system_prompt_see_state() -> None:
    # given
    loop = ScriptedAgentLoop()

    # when
    await _run(
        loop,
        _input(state={"count": 2}),
        tool_fetcher=lambda context: [EchoTool()],
        system_prompt=lambda context: f"count={context.state['count']}",
    )

    # then
    assert loop.calls[0].system_prompt == "count=2"
    assert [tool.info().name for tool in loop.calls[0].tools] == ["echo"]


@pytest.mark.asyncio
async def test_state_update_emits_snapshot_then_result() -> None:
    # given
    observed_state: list[Any] = []

    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        await hooks.on_tool_input_start("c1", "increment")
        await hooks.on_tool_call(ToolCallContent("c1", "increment", "{}"))
        await hooks.on_tool_result(
            ToolResultContent(
                tool_call_id="c1",
                tool_name="increment",
                result=ToolResultOutputText(text="ok"),
                client_metadata='{"stateUpdate": {"count": 1}}',
            )
        )
        assert isinstance(hooks, RunOrchestrator)
        observed_state.append(hooks.context.state)

    # when
    transport, _ = await _run(ScriptedAgentLoop(script), _input(state={"count": 0}))

    # then
    assert transport.types == [
        "RUN_STARTED",
        "TOOL_CALL_START",
        "TOOL_CALL_END",
        "STATE_SNAPSHOT",
        "TOOL_CALL_RESULT",
        "RUN_FINISHED",
    ]
    assert transport.events[3]["snapshot"] == {"count": 1}
    result = transport.events[4]
    assert result["toolCallId"] == "c1"
    assert result["content"] == "ok"
    assert result["role"] == "tool"
    assert result["messageId"].startswith("msg-")
    assert observed_state == [{"count": 1}]


@pytest.mark.asyncio
async def test_media_result_emits_no_result_event() -> None:
    # given
    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        await hooks.on_tool_input_start("c1", "screenshot")
        await hooks.on_tool_call(ToolCallContent("c1", "screenshot", "{}"))
        await hooks.on_tool_result(
            ToolResultContent(
                tool_call_id="c1",
                tool_name="screenshot",
                result=ToolResultOutputMedia(data="aGk=", media_type="image/png"),
            )
        )

    # when
    transport, _ = await _run(ScriptedAgentLoop(script))

    # then
    assert transport.types == ["RUN_STARTED", "TOOL_CALL_START", "TOOL_CALL_END", "RUN_FINISHED"]


@pytest.mark.asyncio
async def test_error_result_is_json_payload() -> None:
    # given
    from agui_stream_protocol.agent import ToolResultOutputError

    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        await hooks.on_tool_input_start("c1", "get_weather")
        await hooks.on_tool_call(ToolCallContent("c1", "get_weather", "{}"))
        await hooks.on_tool_result(
            ToolResultContent("c1", "get_weather", ToolResultOutputError(error="API down"))
        )

    # when
    transport, _ = await _run(ScriptedAgentLoop(script))

    # then
    assert transport.events[3]["content"] == '{"error": "API down"}'


# ============================================================
# Reasoning policies
# ============================================================


async def _reasoning_script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
    await hooks.on_reasoning_start("r0", ReasoningContent())
    await hooks.on_reasoning_delta("r0", "hmm")
    await hooks.on_reasoning_end("r0", ReasoningContent(text="hmm"))
    await hooks.on_text_start("t0")
    await hooks.on_text_delta("t0", "Answer")
    await hooks.on_text_end("t0")


@pytest.mark.asyncio
async def test_reasoning_as_thinking_events() -> None:
    # when
    transport, _ = await _run(ScriptedAgentLoop(_reasoning_script))

    # then
    assert transport.types == [
        "RUN_STARTED",
        "THINKING_START",
        "THINKING_TEXT_MESSAGE_START",
        "THINKING_TEXT_MESSAGE_CONTENT",
        "THINKING_TEXT_MESSAGE_END",
        "THINKING_END",
        "TEXT_MESSAGE_START",
        "TEXT_MESSAGE_CONTENT",
        "TEXT_MESSAGE_END",
        "RUN_FINISHED",
    ]
    assert transport.events[3]["delta"] == "hmm"


@pytest.mark.asyncio
async def test_reasoning_as_labelled_text_message() -> None:
    # given
    options = AGUIHandlerOptions(reasoning_emission=ReasoningEmission.TEXT)

    # when
    transport, _ = await _run(ScriptedAgentLoop(_reasoning_script), options=options)

    # then
    assert transport.types == [
        "RUN_STARTED",
        "TEXT_MESSAGE_START",
        "TEXT_MESSAGE_CONTENT",
        "TEXT_MESSAGE_CONTENT",
        "TEXT_MESSAGE_END",
        "TEXT_MESSAGE_START",
        "TEXT_MESSAGE_CONTENT",
        "TEXT_MESSAGE_END",
        "RUN_FINISHED",
    ]
    events = transport.events
    assert [events[2]["delta"], events[3]["delta"]] == ["Reasoning: ", "hmm"]
    reasoning_id = events[1]["messageId"]
    assert {events[2]["messageId"], events[3]["messageId"], events[4]["messageId"]} == {reasoning_id}
    assert events[5]["messageId"] != reasoning_id


@pytest.mark.asyncio
async def test_step_events_follow_option() -> None:
    # given
    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        await hooks.on_step_start(1)
        await hooks.on_step_finish(1)

    # when
    with_steps, _ = await _run(ScriptedAgentLoop(script))
    without_steps, _ = await _run(
        ScriptedAgentLoop(script), options=AGUIHandlerOptions(emit_step_events=False)
    )

    # then
    assert with_steps.types == ["RUN_STARTED", "STEP_STARTED", "STEP_FINISHED", "RUN_FINISHED"]
    assert with_steps.events[1]["stepName"] == "step-1"
    assert without_steps.types == ["RUN_STARTED", "RUN_FINISHED"]


# ============================================================
# Failures
# ============================================================


@pytest.mark.asyncio
async def test_run_started_failure_returns_500_and_stops() -> None:
    # given
    loop = ScriptedAgentLoop()
    transport = RecordingTransport(fail_on=1)

    # when
    transport, outcome = await _run(loop, transport=transport)

    # then
    assert outcome.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert "connection reset" in (outcome.error or "")
    assert transport.attempts == 1
    assert loop.calls == []


@pytest.mark.asyncio
async def test_agent_error_emits_run_error() -> None:
    # given
    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        await hooks.on_text_start("t0")
        raise ValueError("model exploded")

    # when
    transport, outcome = await _run(ScriptedAgentLoop(script))

    # then
    assert outcome.ok
    assert transport.types == ["RUN_STARTED", "TEXT_MESSAGE_START", "RUN_ERROR"]
    error = transport.events[-1]
    assert error["message"] == "model exploded"
    assert error["rawEvent"] == {"runId": "run-1"}


@pytest.mark.asyncio
async def test_loop_raising_without_hooks_still_reports_run_error() -> None:
    # when
    transport, outcome = await _run(RaisingAgentLoop(RuntimeError("no model")))

    # then
    assert outcome.ok
    assert transport.types == ["RUN_STARTED", "RUN_ERROR"]


@pytest.mark.asyncio
async def test_tool_fetcher_failure_reports_run_error() -> None:
    # given
    async def fetch(context: RunContext) -> list[EchoTool]:
        raise ConnectionError("mcp down")

    loop = ScriptedAgentLoop()

    # when
    transport, _ = await _run(loop, tool_fetcher=fetch)

    # then
    assert transport.types == ["RUN_STARTED", "RUN_ERROR"]
    assert loop.calls == []


@pytest.mark.asyncio
async def test_delivery_loss_mid_run_aborts_agent() -> None:
    """The 3rd send fails; the loop is aborted and RUN_ERROR delivery is only attempted."""
    # given
    reached_end: list[bool] = []

    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        await hooks.on_text_start("t0")
        await hooks.on_text_delta("t0", "never delivered")
        reached_end.append(True)

    transport = RecordingTransport(fail_on=3)

    # when
    transport, outcome = await _run(ScriptedAgentLoop(script), transport=transport)

    # then
    assert outcome.ok
    assert transport.types == ["RUN_STARTED", "TEXT_MESSAGE_START"]
    assert reached_end == []
    assert transport.attempts == 4  # delta + best-effort RUN_ERROR


@pytest.mark.asyncio
async def test_delta_without_start_is_reported_as_run_error() -> None:
    # given
    async def script(hooks: AgentStreamHooks, call: AgentStreamCall) -> None:
        await hooks.on_text_delta("ghost", "boo")

    # when
    transport, _ = await _run(ScriptedAgentLoop(script))

    # then
    assert transport.types == ["RUN_STARTED", "RUN_ERROR"]
    assert "ghost" in transport.events[-1]["message"]


@pytest.mark.asyncio
async def test_tool_result_never_raises_on_delivery_failure(run_context: RunContext) -> None:
    # given
    orchestrator = RunOrchestrator(
        EventEmitter(RecordingTransport(fail_on=1)), run_context, AGUIHandlerOptions()
    )
    result = ToolResultContent(
        tool_call_id="c9",
        tool_name="increment",
        result=ToolResultOutputText(text="ok"),
        client_metadata='{"stateUpdate": {"count": 5}}',
    )

    # when
    await orchestrator.on_tool_result(result)

    # then
    assert run_context.state == {"count": 5}


@pytest.mark.asyncio
async def test_run_error_emitted_at_most_once(run_context: RunContext) -> None:
    # given
    transport = RecordingTransport()
    orchestrator = RunOrchestrator(EventEmitter(transport), run_context, AGUIHandlerOptions())

    # when
    await orchestrator.on_error(RuntimeError("first"))
    await orchestrator.report_failure(RuntimeError("second"))

    # then
    assert transport.types == ["RUN_ERROR"]
    assert orchestrator.terminated is True


@pytest.mark.asyncio
async def test_untyped_output_still_applies_state_update(run_context: RunContext) -> None:
    # given
    transport = RecordingTransport()
    orchestrator = RunOrchestrator(EventEmitter(transport), run_context, AGUIHandlerOptions())
    await orchestrator.on_tool_input_start("c1", "increment")
    result = ToolResultContent(
        tool_call_id="c1",
        tool_name="increment",
        result=SimpleNamespace(text="ok"),
        client_metadata='{"stateUpdate": {"count": 7}}',
    )

    # when
    await orchestrator.on_tool_result(result)

    # then
    assert transport.types == ["TOOL_CALL_START", "STATE_SNAPSHOT"]
    assert transport.events[1]["snapshot"] == {"count": 7}
    assert run_context.state == {"count": 7}


@pytest.mark.asyncio
async def test_unbuildable_tool_result_falls_back_to_error_payload(
    run_context: RunContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    # given
    real_event = bridge_module.ToolCallResultEvent

    def strict_event(**kwargs: Any) -> Any:
        if kwargs["content"] == "unrenderable":
            raise ValueError("content rejected")
        return real_event(**kwargs)

    monkeypatch.setattr(bridge_module, "ToolCallResultEvent", strict_event)
    transport = RecordingTransport()
    orchestrator = RunOrchestrator(EventEmitter(transport), run_context, AGUIHandlerOptions())
    await orchestrator.on_tool_input_start("c1", "lookup")

    # when
    await orchestrator.on_tool_result(
        ToolResultContent(
            tool_call_id="c1", tool_name="lookup", result=ToolResultOutputText(text="unrenderable")
        )
    )

    # then
    assert transport.types == ["TOOL_CALL_START", "TOOL_CALL_RESULT"]
    assert transport.events[1]["toolCallId"] == "c1"
    assert transport.events[1]["content"] == '{"error": "content rejected"}'
