"""
Agent loop boundary.

The bridge only depends on the contract in `types`; `adk_loop` is the
Google ADK implementation used by the server.
"""

from .types import (
    AgentLoop,
    AgentResult,
    AgentStreamCall,
    AgentStreamHooks,
    AgentTool,
    Message,
    MessagePart,
    MessageRole,
    ReasoningContent,
    StopCondition,
    TextPart,
    ToolCall,
    ToolCallContent,
    ToolCallPart,
    ToolInfo,
    ToolResponse,
    ToolResultContent,
    ToolResultContentType,
    ToolResultOutput,
    ToolResultOutputError,
    ToolResultOutputMedia,
    ToolResultOutputText,
    ToolResultPart,
    has_tool_call,
    media_response,
    text_error_response,
    text_response,
    with_response_metadata,
)


__all__ = [
    "AgentLoop",
    "AgentResult",
    "AgentStreamCall",
    "AgentStreamHooks",
    "AgentTool",
    "Message",
    "MessagePart",
    "MessageRole",
    "ReasoningContent",
    "StopCondition",
    "TextPart",
    "ToolCall",
    "ToolCallContent",
    "ToolCallPart",
    "ToolInfo",
    "ToolResponse",
    "ToolResultContent",
    "ToolResultContentType",
    "ToolResultOutput",
    "ToolResultOutputError",
    "ToolResultOutputMedia",
    "ToolResultOutputText",
    "ToolResultPart",
    "has_tool_call",
    "media_response",
    "text_error_response",
    "text_response",
    "with_response_metadata",
]
