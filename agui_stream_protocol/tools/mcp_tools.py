"""
MCP Tool Source

Exposes the tools of a remote MCP (Model Context Protocol) server as
AgentTools.

- mcp_tools(): opens a session, lists the server's tools and wraps each one
- MCPTool.run(): opens a fresh session per invocation and calls the tool
- stdio_session_factory() / streamable_http_session_factory(): ready-made
  session factories; the HTTP one can derive request headers (e.g. a bearer
  token) from the RunContext of the run that uses the tools

Result rendering:
- structured content         → JSON text
- no content                 → error "no content returned from tool"
- text contents              → joined with newlines (other kinds logged, skipped)
- only image content         → media response
- isError                    → error response with the rendered text
- session or call failure    → error response (the run continues)
"""

from __future__ import annotations

import base64
import json
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from loguru import logger
from mcp import ClientSession, StdioServerParameters
from mcp import types as mcp_types
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from ..agent.types import (
    ToolCall,
    ToolInfo,
    ToolResponse,
    media_response,
    text_error_response,
    text_response,
)
from ..context import RunContext
from ..errors import MCPToolError


NO_CONTENT_ERROR = "no content returned from tool"

MCPSessionFactory = Callable[[RunContext | None], AbstractAsyncContextManager[ClientSession]]
HeaderProvider = Callable[[RunContext | None], dict[str, str]]


def tool_info_from_mcp_tool(tool: mcp_types.Tool) -> ToolInfo:
    """
    Convert an MCP tool definition to a ToolInfo.

    Raises:
        MCPToolError: If the input schema has no object `properties` or
            `required` is not a list of strings
    """
    schema = tool.inputSchema
    if not isinstance(schema, dict):
        raise MCPToolError(f"tool {tool.name}: input schema is not an object")

    properties = schema.get("properties", {})
    if not isinstance(properties, dict):
        raise MCPToolError(f"tool {tool.name}: input schema properties is not an object")

    required = schema.get("required", [])
    if not isinstance(required, list) or not all(isinstance(item, str) for item in required):
        raise MCPToolError(f"tool {tool.name}: input schema required is not a list of strings")

    return ToolInfo(
        name=tool.name,
        description=tool.description or "",
        parameters=properties,
        required=required,
    )


class MCPTool:
    def __init__(
        self,
        info: ToolInfo,
        session_factory: MCPSessionFactory,
        context: RunContext | None = None,
    ) -> None:
        self._info = info
        self._session_factory = session_factory
        self._context = context

    def info(self) -> ToolInfo:
        return self._info

    async def run(self, call: ToolCall) -> ToolResponse:
        try:
            arguments = json.loads(call.input) if call.input else {}
        except json.JSONDecodeError as e:
            return text_error_response(f"invalid tool arguments: {e}")

        try:  # nosemgrep: forbid-try-except - remote failures become tool errors
            async with self._session_factory(self._context) as session:
                result = await session.call_tool(self._info.name, arguments=arguments)
        except Exception as e:
            logger.error(f"[MCP] Call to {self._info.name} failed: {e!s}")
            return text_error_response(str(e))

        return render_call_result(self._info.name, result)


def render_call_result(tool_name: str, result: mcp_types.CallToolResult) -> ToolResponse:
    if result.structuredContent is not None:
        response = json.dumps(result.structuredContent)
        return text_error_response(response) if result.isError else text_response(response)

    if not result.content:
        return text_error_response(NO_CONTENT_ERROR)

    texts: list[str] = []
    images: list[mcp_types.ImageContent] = []
    for content in result.content:
        if isinstance(content, mcp_types.TextContent):
            texts.append(content.text)
        elif isinstance(content, mcp_types.ImageContent):
            images.append(content)
        else:
            logger.warning(f"[MCP] {tool_name}: skipping unsupported content type {content.type}")

    if not texts and images:
        if len(images) > 1:
            logger.warning(f"[MCP] {tool_name}: returning first of {len(images)} images")
        image = images[0]
        return media_response(base64.b64decode(image.data), image.mimeType)

    text = "\n".join(texts)
    if result.isError:
        return text_error_response(text)
    return text_response(text)


async def mcp_tools(
    session_factory: MCPSessionFactory,
    context: RunContext | None = None,
) -> list[MCPTool]:
    """List the tools of an MCP server, bound to `context` for later calls."""
    async with session_factory(context) as session:
        listing = await session.list_tools()

    tools = [
        MCPTool(tool_info_from_mcp_tool(tool), session_factory, context) for tool in listing.tools
    ]
    logger.info(f"[MCP] Loaded {len(tools)} tools: {[tool.info().name for tool in tools]}")
    return tools


def stdio_session_factory(
    command: str,
    args: list[str] | None = None,
    env: dict[str, str] | None = None,
) -> MCPSessionFactory:
    """Spawn the MCP server as a subprocess for each session."""
    server = StdioServerParameters(command=command, args=args or [], env=env)

    @asynccontextmanager
    async def open_session(context: RunContext | None) -> AsyncIterator[ClientSession]:
        async with stdio_client(server) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                yield session

    return open_session


def streamable_http_session_factory(
    url: str,
    headers: HeaderProvider | None = None,
) -> MCPSessionFactory:
    """Connect to a streamable-HTTP MCP endpoint for each session."""

    @asynccontextmanager
    async def open_session(context: RunContext | None) -> AsyncIterator[ClientSession]:
        request_headers: dict[str, Any] | None = headers(context) if headers else None
        async with streamablehttp_client(url, headers=request_headers) as (
            read_stream,
            write_stream,
            _get_session_id,
        ):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                yield session

    return open_session


def bearer_token_headers(token: str) -> HeaderProvider:
    def provide(context: RunContext | None) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    return provide
