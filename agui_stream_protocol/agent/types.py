"""
Agent Loop Contract

Types shared between the bridge and any agent loop implementation.

Components:
- Messages: role-tagged lists of TextPart / ToolCallPart / ToolResultPart
- Tools: ToolInfo (declaration), ToolCall (invocation), ToolResponse (output),
  and the AgentTool protocol every tool implements
- Lifecycle payloads: ReasoningContent, ToolCallContent, ToolResultContent,
  AgentResult
- AgentStreamHooks: one async method per lifecycle point of a run
- AgentLoop: drives a model, awaiting hooks strictly in order

Contract for AgentLoop.stream():
- hooks are awaited one at a time, never concurrently
- every fragment/tool-call id gets its start hook before any delta/end hook
- exactly one of on_agent_finish / on_error is awaited when the run ends;
  after on_error the original exception is re-raised
- an exception raised by a hook aborts the run
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Literal, Protocol


# ========== Messages ==========


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ToolCallPart:
    tool_call_id: str
    tool_name: str
    input: str  # JSON-encoded arguments


@dataclass(frozen=True)
class ToolResultPart:
    tool_call_id: str
    output: str


MessagePart = TextPart | ToolCallPart | ToolResultPart


@dataclass
class Message:
    role: MessageRole
    content: list[MessagePart] = field(default_factory=list)


# ========== Tools ==========


@dataclass(frozen=True)
class ToolInfo:
    """Declaration of a tool as the model sees it."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)

    def to_json_schema(self) -> dict[str, Any]:
        """Render parameters as a JSON Schema object."""
        schema: dict[str, Any] = {"type": "object", "properties": dict(self.parameters)}
        if self.required:
            schema["required"] = list(self.required)
        return schema


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    input: str  # JSON-encoded arguments


ToolResponseType = Literal["text", "media"]


@dataclass(frozen=True)
class ToolResponse:
    """
    Output of a tool invocation.

    metadata is an opaque JSON string that travels with the result back to
    the bridge (see ToolResultContent.client_metadata).
    """

    type: ToolResponseType = "text"
    content: str = ""
    data: bytes = b""
    media_type: str = ""
    metadata: str = ""
    is_error: bool = False


def text_response(content: str) -> ToolResponse:
    return ToolResponse(type="text", content=content)


def text_error_response(content: str) -> ToolResponse:
    return ToolResponse(type="text", content=content, is_error=True)


def media_response(data: bytes, media_type: str) -> ToolResponse:
    return ToolResponse(type="media", data=data, media_type=media_type)


def with_response_metadata(response: ToolResponse, metadata: Any) -> ToolResponse:
    """Attach JSON-serialized metadata to a response."""
    return replace(response, metadata=json.dumps(metadata))


class AgentTool(Protocol):
    def info(self) -> ToolInfo: ...

    async def run(self, call: ToolCall) -> ToolResponse: ...


# ========== Lifecycle payloads ==========


class ToolResultContentType(str, Enum):
    TEXT = "text"
    ERROR = "error"
    MEDIA = "media"


@dataclass(frozen=True)
class ToolResultOutputText:
    text: str
    type: ToolResultContentType = ToolResultContentType.TEXT


@dataclass(frozen=True)
class ToolResultOutputError:
    error: BaseException | str
    type: ToolResultContentType = ToolResultContentType.ERROR


@dataclass(frozen=True)
class ToolResultOutputMedia:
    data: str  # base64
    media_type: str
    type: ToolResultContentType = ToolResultContentType.MEDIA


ToolResultOutput = ToolResultOutputText | ToolResultOutputError | ToolResultOutputMedia


@dataclass(frozen=True)
class ToolResultContent:
    tool_call_id: str
    tool_name: str
    result: ToolResultOutput
    client_metadata: str = ""


@dataclass(frozen=True)
class ToolCallContent:
    tool_call_id: str
    tool_name: str
    input: str


@dataclass(frozen=True)
class ReasoningContent:
    text: str = ""


@dataclass
class AgentResult:
    steps: int = 0
    text: str = ""
    finish_reason: str = "stop"


# ========== Stop conditions ==========

StopCondition = Callable[[Sequence[ToolCallContent]], bool]


def has_tool_call(tool_name: str) -> StopCondition:
    """Stop after a step that called `tool_name`."""

    def condition(step_tool_calls: Sequence[ToolCallContent]) -> bool:
        return any(call.tool_name == tool_name for call in step_tool_calls)

    return condition


# ========== Hooks and loop ==========


class AgentStreamHooks(Protocol):
    async def on_step_start(self, step_number: int) -> None: ...

    async def on_step_finish(self, step_number: int) -> None: ...

    async def on_reasoning_start(self, fragment_id: str, reasoning: ReasoningContent) -> None: ...

    async def on_reasoning_delta(self, fragment_id: str, text: str) -> None: ...

    async def on_reasoning_end(self, fragment_id: str, reasoning: ReasoningContent) -> None: ...

    async def on_text_start(self, fragment_id: str) -> None: ...

    async def on_text_delta(self, fragment_id: str, text: str) -> None: ...

    async def on_text_end(self, fragment_id: str) -> None: ...

    async def on_tool_input_start(self, tool_call_id: str, tool_name: str) -> None: ...

    async def on_tool_input_delta(self, tool_call_id: str, delta: str) -> None: ...

    async def on_tool_call(self, tool_call: ToolCallContent) -> None: ...

    async def on_tool_result(self, result: ToolResultContent) -> None: ...

    async def on_agent_finish(self, result: AgentResult) -> None: ...

    async def on_error(self, error: BaseException) -> None: ...


@dataclass
class AgentStreamCall:
    prompt: str
    messages: list[Message]
    hooks: AgentStreamHooks
    system_prompt: str = ""
    tools: list[AgentTool] = field(default_factory=list)
    stop_when: list[StopCondition] = field(default_factory=list)

    def should_stop(self, step_tool_calls: Sequence[ToolCallContent]) -> bool:
        return any(condition(step_tool_calls) for condition in self.stop_when)


class AgentLoop(Protocol):
    async def stream(self, call: AgentStreamCall) -> AgentResult: ...
