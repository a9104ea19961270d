"""
ADK Agent Loop

AgentLoop implementation backed by Google ADK.

For each run:
1. An LlmAgent is built with the run's system prompt and tools (AgentTools
   are adapted as ADK BaseTools declaring a JSON-schema FunctionDeclaration)
2. A throwaway session is created in an InMemorySessionService and the prior
   conversation is replayed into it as session events
3. Runner.run_async() is driven in SSE streaming mode and every ADK event is
   translated into AgentStreamHooks calls:
   - partial text / thought chunks → text / reasoning fragments
   - the aggregated (non-partial) event closes open fragments; when nothing
     was streamed its text is emitted as complete fragments
   - function calls → tool input start / input delta (JSON args) / tool call
   - function responses → tool results, carrying the adapted tool's
     ToolResponse (content type and metadata preserved)
   - one model turn (+ its tool executions) is one step
4. After a step whose tool calls satisfy a stop condition, generation halts

Reference:
- https://google.github.io/adk-docs/streaming/
"""

from __future__ import annotations

import base64
import json
import uuid
from typing import Any

from google.adk.agents import LlmAgent
from google.adk.agents.run_config import RunConfig, StreamingMode
from google.adk.events import Event
from google.adk.planners import BuiltInPlanner
from google.adk.runners import Runner
from google.adk.sessions import InMemorySessionService
from google.adk.tools.base_tool import BaseTool
from google.adk.tools.tool_context import ToolContext
from google.genai import types
from loguru import logger

from ..errors import AgentLoopError, EventDeliveryError
from .types import (
    AgentResult,
    AgentStreamCall,
    AgentTool,
    Message,
    MessageRole,
    ReasoningContent,
    TextPart,
    ToolCall,
    ToolCallContent,
    ToolCallPart,
    ToolResponse,
    ToolResultContent,
    ToolResultOutput,
    ToolResultOutputError,
    ToolResultOutputMedia,
    ToolResultOutputText,
    ToolResultPart,
    text_error_response,
)


DEFAULT_APP_NAME = "agui_bridge"
AGENT_NAME = "agui_agent"
USER_ID = "agui_user"


class AdkToolAdapter(BaseTool):
    """
    Exposes an AgentTool to ADK.

    The ToolResponse of each invocation is stored by function_call_id so the
    event translator can hand its type and metadata to the bridge.
    """

    def __init__(self, tool: AgentTool, responses: dict[str, ToolResponse]) -> None:
        info = tool.info()
        super().__init__(name=info.name, description=info.description)
        self._tool = tool
        self._info = info
        self._responses = responses

    def _get_declaration(self) -> types.FunctionDeclaration | None:
        if not self._info.parameters:
            return types.FunctionDeclaration(name=self.name, description=self.description)
        return types.FunctionDeclaration(
            name=self.name,
            description=self.description,
            parameters_json_schema=self._info.to_json_schema(),
        )

    async def run_async(self, *, args: dict[str, Any], tool_context: ToolContext) -> Any:
        call = ToolCall(
            id=tool_context.function_call_id or "",
            name=self.name,
            input=json.dumps(args),
        )
        try:  # nosemgrep: forbid-try-except - tool failures become error results
            response = await self._tool.run(call)
        except Exception as e:
            logger.error(f"[ADK] Tool {self.name} ({call.id}) raised: {e!s}")
            response = text_error_response(str(e))

        if call.id:
            self._responses[call.id] = response

        if response.is_error:
            return {"error": response.content}
        if response.type == "media":
            return {"result": f"[{response.media_type} content delivered to the user]"}
        return {"result": response.content}


class AdkAgentLoop:
    """
    Args:
        model: ADK model name (e.g. "gemini-2.5-flash") or BaseLlm instance
        app_name: ADK application name for the session service
        include_thoughts: Ask the model for thought summaries (reasoning fragments)
        request_timeout_ms: HTTP timeout for model requests
    """

    def __init__(
        self,
        model: Any,
        app_name: str = DEFAULT_APP_NAME,
        include_thoughts: bool = False,
        request_timeout_ms: int = 300_000,
        session_service: InMemorySessionService | None = None,
    ) -> None:
        self._model = model
        self._app_name = app_name
        self._include_thoughts = include_thoughts
        self._request_timeout_ms = request_timeout_ms
        self._session_service = session_service or InMemorySessionService()

    def build_agent(self, call: AgentStreamCall, responses: dict[str, ToolResponse]) -> LlmAgent:
        system_prompt = call.system_prompt

        # Callable instruction: ADK injects no session state into providers
        def instruction(_context: Any) -> str:
            return system_prompt

        return LlmAgent(
            name=AGENT_NAME,
            model=self._model,
            instruction=instruction,
            tools=[AdkToolAdapter(tool, responses) for tool in call.tools],
            planner=(
                BuiltInPlanner(thinking_config=types.ThinkingConfig(include_thoughts=True))
                if self._include_thoughts
                else None
            ),
            generate_content_config=types.GenerateContentConfig(
                http_options=types.HttpOptions(timeout=self._request_timeout_ms),
            ),
        )

    async def stream(self, call: AgentStreamCall) -> AgentResult:
        responses: dict[str, ToolResponse] = {}
        translator = AdkEventTranslator(call, responses)
        session_id = f"agui_{uuid.uuid4().hex}"
        session_created = False

        try:
            history, new_message = split_live_message(call.prompt, call.messages)
            runner = Runner(
                app_name=self._app_name,
                agent=self.build_agent(call, responses),
                session_service=self._session_service,
            )
            session = await self._session_service.create_session(
                app_name=self._app_name, user_id=USER_ID, session_id=session_id
            )
            session_created = True
            await replay_history(self._session_service, session, history)

            logger.info(
                f"[ADK] Running {AGENT_NAME} with {len(call.tools)} tools, "
                f"{len(history)} history messages"
            )
            events = runner.run_async(
                user_id=USER_ID,
                session_id=session_id,
                new_message=new_message,
                run_config=RunConfig(streaming_mode=StreamingMode.SSE),
            )
            try:
                async for event in events:
                    if await translator.process(event):
                        logger.info("[ADK] Stop condition met, halting generation")
                        break
            finally:
                await events.aclose()
            await translator.flush()
        except Exception as e:
            logger.error(f"[ADK] Run failed: {e!s}")
            if not isinstance(e, EventDeliveryError):
                # Close fragments the failed run left open
                await translator.flush()
            await call.hooks.on_error(e)
            raise
        finally:
            if session_created:
                await self._session_service.delete_session(
                    app_name=self._app_name, user_id=USER_ID, session_id=session_id
                )

        result = translator.result()
        await call.hooks.on_agent_finish(result)
        return result


class AdkEventTranslator:
    """Translates one run's ADK events into lifecycle hooks."""

    def __init__(self, call: AgentStreamCall, responses: dict[str, ToolResponse]) -> None:
        self._call = call
        self._hooks = call.hooks
        self._responses = responses
        self._fragment_counter = 0
        self._text_fragment: str | None = None
        self._reasoning_fragment: str | None = None
        self._reasoning_text: list[str] = []
        self._streamed = False
        self._step = 0
        self._step_open = False
        self._step_tool_calls: list[ToolCallContent] = []
        self._pending_calls: dict[str, ToolCallContent] = {}
        self._text: list[str] = []
        self._stopped = False

    async def process(self, event: Event) -> bool:
        """
        Handle one ADK event.

        Returns:
            True when a stop condition fired and generation should halt

        Raises:
            AgentLoopError: If the event reports a model error
        """
        if event.error_code:
            # A truncated final event (e.g. MAX_TOKENS) may still carry content
            if event.content and event.content.parts and not event.partial and not self._streamed:
                await self._ensure_step()
                await self._stream_parts(event.content.parts)
            raise AgentLoopError(f"{event.error_code}: {event.error_message or 'model error'}")
        if event.author == "user" or event.content is None or not event.content.parts:
            return False

        function_responses = event.get_function_responses()
        if function_responses:
            for function_response in function_responses:
                await self._tool_result(function_response)
            return await self._finish_tool_step()

        await self._ensure_step()

        if event.partial:
            await self._stream_parts(event.content.parts)
            self._streamed = True
            return False

        if not self._streamed:
            await self._stream_parts(event.content.parts)
        await self._close_fragments()
        self._streamed = False

        # The step stays open: a later event of the same turn may carry its
        # function calls. Tool responses or flush() close it.
        for function_call in event.get_function_calls():
            await self._tool_call(function_call)
        return False

    async def flush(self) -> None:
        await self._close_fragments()
        await self._finish_step()

    def result(self) -> AgentResult:
        return AgentResult(
            steps=self._step,
            text="".join(self._text),
            finish_reason="tool_calls" if self._stopped else "stop",
        )

    # ========== Steps ==========

    async def _ensure_step(self) -> None:
        if not self._step_open:
            self._step += 1
            self._step_open = True
            await self._hooks.on_step_start(self._step)

    async def _finish_step(self) -> None:
        if self._step_open:
            self._step_open = False
            await self._hooks.on_step_finish(self._step)

    async def _finish_tool_step(self) -> bool:
        if self._pending_calls:
            # Parallel calls whose responses arrive in later events
            return False
        await self._finish_step()
        step_tool_calls, self._step_tool_calls = self._step_tool_calls, []
        self._stopped = self._call.should_stop(step_tool_calls)
        return self._stopped

    # ========== Fragments ==========

    def _next_fragment_id(self, kind: str) -> str:
        self._fragment_counter += 1
        return f"{kind}-{self._fragment_counter}"

    async def _stream_parts(self, parts: list[types.Part]) -> None:
        for part in parts:
            if not part.text:
                continue
            if part.thought:
                await self._reasoning_delta(part.text)
            else:
                await self._text_delta(part.text)

    async def _text_delta(self, text: str) -> None:
        await self._end_reasoning()
        if self._text_fragment is None:
            self._text_fragment = self._next_fragment_id("text")
            await self._hooks.on_text_start(self._text_fragment)
        await self._hooks.on_text_delta(self._text_fragment, text)
        self._text.append(text)

    async def _reasoning_delta(self, text: str) -> None:
        await self._end_text()
        if self._reasoning_fragment is None:
            self._reasoning_fragment = self._next_fragment_id("reasoning")
            self._reasoning_text = []
            await self._hooks.on_reasoning_start(self._reasoning_fragment, ReasoningContent())
        await self._hooks.on_reasoning_delta(self._reasoning_fragment, text)
        self._reasoning_text.append(text)

    async def _end_text(self) -> None:
        if self._text_fragment is not None:
            fragment_id, self._text_fragment = self._text_fragment, None
            await self._hooks.on_text_end(fragment_id)

    async def _end_reasoning(self) -> None:
        if self._reasoning_fragment is not None:
            fragment_id, self._reasoning_fragment = self._reasoning_fragment, None
            await self._hooks.on_reasoning_end(
                fragment_id, ReasoningContent(text="".join(self._reasoning_text))
            )

    async def _close_fragments(self) -> None:
        await self._end_reasoning()
        await self._end_text()

    # ========== Tools ==========

    async def _tool_call(self, function_call: types.FunctionCall) -> None:
        tool_call = ToolCallContent(
            tool_call_id=function_call.id or f"call-{uuid.uuid4().hex}",
            tool_name=function_call.name or "",
            input=json.dumps(function_call.args or {}),
        )
        await self._hooks.on_tool_input_start(tool_call.tool_call_id, tool_call.tool_name)
        await self._hooks.on_tool_input_delta(tool_call.tool_call_id, tool_call.input)
        await self._hooks.on_tool_call(tool_call)
        self._pending_calls[tool_call.tool_call_id] = tool_call
        self._step_tool_calls.append(tool_call)

    async def _tool_result(self, function_response: types.FunctionResponse) -> None:
        tool_call_id = function_response.id or ""
        tool_call = self._pending_calls.pop(tool_call_id, None)
        tool_name = function_response.name or (tool_call.tool_name if tool_call else "")
        response = self._responses.pop(tool_call_id, None)

        if response is not None:
            output = output_from_tool_response(response)
            metadata = response.metadata
        else:
            output = output_from_function_response(function_response.response)
            metadata = ""

        await self._hooks.on_tool_result(
            ToolResultContent(
                tool_call_id=tool_call_id,
                tool_name=tool_name,
                result=output,
                client_metadata=metadata,
            )
        )


# ========== Conversions ==========


def output_from_tool_response(response: ToolResponse) -> ToolResultOutput:
    if response.is_error:
        return ToolResultOutputError(error=response.content)
    if response.type == "media":
        return ToolResultOutputMedia(
            data=base64.b64encode(response.data).decode("ascii"),
            media_type=response.media_type,
        )
    return ToolResultOutputText(text=response.content)


def output_from_function_response(payload: dict[str, Any] | None) -> ToolResultOutput:
    """Fallback for responses that did not come from an adapted AgentTool."""
    payload = payload or {}
    if "error" in payload:
        return ToolResultOutputError(error=str(payload["error"]))
    if set(payload) == {"result"} and isinstance(payload["result"], str):
        return ToolResultOutputText(text=payload["result"])
    return ToolResultOutputText(text=json.dumps(payload, default=str))


def _decode_arguments(raw: str) -> dict[str, Any]:
    try:
        decoded = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        logger.warning(f"[ADK] Replaying tool call with undecodable arguments: {raw[:100]}")
        return {}
    return decoded if isinstance(decoded, dict) else {}


def to_adk_contents(messages: list[Message]) -> list[types.Content]:
    """Convert agent-loop messages to genai Contents ("assistant" → "model")."""
    tool_names: dict[str, str] = {}
    contents: list[types.Content] = []

    for message in messages:
        parts: list[types.Part] = []
        for part in message.content:
            match part:
                case TextPart(text=text):
                    parts.append(types.Part(text=text))
                case ToolCallPart(tool_call_id=tool_call_id, tool_name=tool_name, input=raw_input):
                    tool_names[tool_call_id] = tool_name
                    parts.append(
                        types.Part(
                            function_call=types.FunctionCall(
                                id=tool_call_id, name=tool_name, args=_decode_arguments(raw_input)
                            )
                        )
                    )
                case ToolResultPart(tool_call_id=tool_call_id, output=output):
                    parts.append(
                        types.Part(
                            function_response=types.FunctionResponse(
                                id=tool_call_id,
                                name=tool_names.get(tool_call_id, "unknown_tool"),
                                response={"result": output},
                            )
                        )
                    )
        if parts:
            role = "model" if message.role is MessageRole.ASSISTANT else "user"
            contents.append(types.Content(role=role, parts=parts))

    return contents


def split_live_message(
    prompt: str, messages: list[Message]
) -> tuple[list[types.Content], types.Content]:
    """
    Separate replayed history from the message that starts the invocation.

    A non-empty prompt is the live message and every message is history;
    otherwise the final message is the live one.

    Raises:
        AgentLoopError: If there is no prompt and the conversation ends with
            an assistant message (nothing for the model to answer)
    """
    contents = to_adk_contents(messages)
    if prompt:
        return contents, types.Content(role="user", parts=[types.Part(text=prompt)])
    if not contents:
        raise AgentLoopError("no prompt and no messages to answer")
    if contents[-1].role == "model":
        raise AgentLoopError("conversation must end with a user or tool message")
    return contents[:-1], contents[-1]


async def replay_history(
    session_service: InMemorySessionService,
    session: Any,
    history: list[types.Content],
) -> None:
    """Append prior conversation turns to a session as ADK events."""
    for index, content in enumerate(history):
        is_function_response = any(part.function_response for part in content.parts or [])
        author = "user" if content.role == "user" and not is_function_response else AGENT_NAME
        event = Event(
            invocation_id=f"history_{index}_{content.role}",
            author=author,
            content=content,
        )
        await session_service.append_event(session=session, event=event)
    if history:
        logger.debug(f"[ADK] Replayed {len(history)} history messages")
