"""
Tools Package

- ClientDeclaredTool: no-op acknowledgement for tools the client executes
- MCPTool / mcp_tools: host tools served by a remote MCP server
"""

from .client_tools import ClientDeclaredTool, client_declared_tools
from .mcp_tools import (
    NO_CONTENT_ERROR,
    MCPSessionFactory,
    MCPTool,
    bearer_token_headers,
    mcp_tools,
    render_call_result,
    stdio_session_factory,
    streamable_http_session_factory,
    tool_info_from_mcp_tool,
)


__all__ = [
    "NO_CONTENT_ERROR",
    "ClientDeclaredTool",
    "MCPSessionFactory",
    "MCPTool",
    "bearer_token_headers",
    "client_declared_tools",
    "mcp_tools",
    "render_call_result",
    "stdio_session_factory",
    "streamable_http_session_factory",
    "tool_info_from_mcp_tool",
]
