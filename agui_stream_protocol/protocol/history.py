"""
History Normalization

Converts the loosely-typed AG-UI message history into agent-loop messages.

Recognized shapes (camelCase as sent by AG-UI clients):
- {"role": "user", "content": "..."}
  content may also be a list of {"type": "text", "text": "..."} parts
- {"role": "assistant", "content": "...", "toolCalls": [
      {"id": "...", "function": {"name": "...", "arguments": "{...}"}}]}
- {"role": "tool", "toolCallId": "...", "content": "..."}

Anything else is dropped with a warning; a malformed message never fails
the batch.
"""

from typing import Any

from loguru import logger

from ..agent.types import Message, MessageRole, TextPart, ToolCallPart, ToolResultPart
from ..result import Error, Ok, Result


def normalize_history(raw_messages: list[Any] | None) -> list[Message]:
    messages: list[Message] = []
    for index, raw in enumerate(raw_messages or []):
        match decode_message(raw):
            case Ok(message):
                messages.append(message)
            case Error(reason):
                logger.warning(f"[History] Dropping message {index}: {reason}")
    return messages


def decode_message(raw: Any) -> Result[Message, str]:
    if not isinstance(raw, dict):
        return Error(f"message is not an object: {type(raw).__name__}")

    role = raw.get("role")
    try:
        message_role = MessageRole(role)
    except ValueError:
        return Error(f"unsupported role: {role!r}")

    match message_role:
        case MessageRole.USER:
            return _decode_user(raw)
        case MessageRole.ASSISTANT:
            return _decode_assistant(raw)
        case MessageRole.TOOL:
            return _decode_tool(raw)


def _decode_user(raw: dict[str, Any]) -> Result[Message, str]:
    content = raw.get("content")
    if isinstance(content, list):
        texts = [
            part["text"]
            for part in content
            if isinstance(part, dict) and part.get("type") == "text" and isinstance(part.get("text"), str)
        ]
        if not texts:
            return Error("user message has no text parts")
        content = "\n".join(texts)
    if not isinstance(content, str):
        return Error("user message content is not a string")
    return Ok(Message(role=MessageRole.USER, content=[TextPart(text=content)]))


def _decode_assistant(raw: dict[str, Any]) -> Result[Message, str]:
    parts: list[TextPart | ToolCallPart | ToolResultPart] = []

    content = raw.get("content")
    if isinstance(content, str) and content:
        parts.append(TextPart(text=content))

    if "toolCalls" in raw and raw["toolCalls"] is not None:
        tool_calls = raw["toolCalls"]
        if not isinstance(tool_calls, list):
            return Error("assistant toolCalls is not a list")
        for tool_call in tool_calls:
            match _decode_tool_call(tool_call):
                case Ok(part):
                    parts.append(part)
                case Error(reason):
                    logger.warning(f"[History] Skipping assistant tool call: {reason}")
    elif not isinstance(content, str):
        return Error("assistant message content is not a string")

    if not parts:
        return Error("assistant message is empty")
    return Ok(Message(role=MessageRole.ASSISTANT, content=parts))


def _decode_tool_call(raw: Any) -> Result[ToolCallPart, str]:
    if not isinstance(raw, dict):
        return Error("tool call is not an object")
    tool_call_id = raw.get("id")
    function = raw.get("function")
    if not isinstance(tool_call_id, str) or not isinstance(function, dict):
        return Error("tool call needs a string id and a function object")
    name = function.get("name")
    arguments = function.get("arguments", "")
    if not isinstance(name, str) or not isinstance(arguments, str):
        return Error(f"tool call {tool_call_id} has a malformed function")
    return Ok(ToolCallPart(tool_call_id=tool_call_id, tool_name=name, input=arguments))


def _decode_tool(raw: dict[str, Any]) -> Result[Message, str]:
    tool_call_id = raw.get("toolCallId")
    content = raw.get("content")
    if not isinstance(tool_call_id, str) or not isinstance(content, str):
        return Error("tool message needs string toolCallId and content")
    return Ok(
        Message(
            role=MessageRole.TOOL,
            content=[ToolResultPart(tool_call_id=tool_call_id, output=content)],
        )
    )
