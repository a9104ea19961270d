"""
AG-UI Backend Server with FastAPI

Streams AG-UI protocol events for agent runs backed by Google ADK.
Frontends (e.g. CopilotKit or any AG-UI client) POST a RunAgentInput to
/agui and read the event stream from the response.
"""

import json

from dotenv import load_dotenv


# Load environment variables from .env.local BEFORE any local imports
# This ensures EventRecorder reads the correct environment variables
load_dotenv(".env.local")

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import PlainTextResponse, Response  # noqa: E402
from loguru import logger  # noqa: E402

from agui_stream_protocol import (  # noqa: E402
    AdkAgentLoop,
    AGUIEventStreamResponse,
    AGUIHandler,
    IngestionError,
    RunContext,
    Settings,
    event_recorder,
    load_settings,
    mcp_tools,
    parse_run_input,
)
from agui_stream_protocol.agent import AgentTool  # noqa: E402
from agui_stream_protocol.logging_config import add_file_sink, configure_logging  # noqa: E402
from agui_stream_protocol.tools import (  # noqa: E402
    MCPSessionFactory,
    bearer_token_headers,
    stdio_session_factory,
    streamable_http_session_factory,
)


configure_logging()
log_file = add_file_sink("logs")

logger.info("AG-UI Backend Server starting up...")
logger.info(f"Logging to: {log_file}")

recorder_info = event_recorder.get_info()
logger.info(f"Event Recorder: enabled={recorder_info['enabled']}")
if recorder_info["enabled"]:
    logger.info(f"Event Recorder: output_path={recorder_info['output_path']}")


def build_system_prompt(base_prompt: str):
    """System prompt generator: the base prompt plus the run's shared state."""

    def generate(context: RunContext) -> str:
        if context.state is None:
            return base_prompt
        return (
            f"{base_prompt}\n\n"
            "Current shared state (JSON):\n"
            f"{json.dumps(context.state, ensure_ascii=False, default=str)}"
        )

    return generate


def build_mcp_session_factory(settings: Settings) -> MCPSessionFactory | None:
    if settings.mcp_server_url:
        headers = bearer_token_headers(settings.mcp_auth_token) if settings.mcp_auth_token else None
        logger.info(f"[MCP] Host tools from {settings.mcp_server_url}")
        return streamable_http_session_factory(settings.mcp_server_url, headers=headers)
    if settings.mcp_server_command:
        command, *args = settings.mcp_server_command
        logger.info(f"[MCP] Host tools from stdio server: {command}")
        return stdio_session_factory(command, args)
    return None


def build_tool_fetcher(session_factory: MCPSessionFactory | None):
    if session_factory is None:
        return None

    async def fetch(context: RunContext) -> list[AgentTool]:
        try:  # nosemgrep: forbid-try-except - an unreachable MCP server leaves the run without host tools
            return list(await mcp_tools(session_factory, context))
        except Exception as e:
            logger.warning(f"[MCP] Could not load host tools for run {context.run_id}: {e!s}")
            return []

    return fetch


def build_handler(settings: Settings) -> AGUIHandler:
    agent_loop = AdkAgentLoop(
        model=settings.model,
        include_thoughts=settings.include_thoughts,
        request_timeout_ms=settings.request_timeout_ms,
    )
    return AGUIHandler(
        agent_loop=agent_loop,
        system_prompt=build_system_prompt(settings.system_prompt),
        tool_fetcher=build_tool_fetcher(build_mcp_session_factory(settings)),
        options=settings.handler_options(),
    )


def create_app(handler: AGUIHandler | None = None, settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    agui_handler = handler or build_handler(settings)

    app = FastAPI(
        title="AG-UI Stream Protocol Server",
        description="Google ADK backend streaming AG-UI protocol events",
        version="0.1.0",
    )

    # CORS middleware for frontend communication
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": "AG-UI Stream Protocol Server",
            "version": "0.1.0",
            "status": "running",
            "reasoning_emission": agui_handler.options.reasoning_emission.value,
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "healthy"}

    @app.post("/agui")
    async def agui(request: Request) -> Response:
        """
        Run the agent and stream AG-UI events.

        Malformed bodies are rejected with 400 before any event is sent.
        """
        body = await request.body()
        try:  # nosemgrep: forbid-try-except - translate to 400
            run_input = parse_run_input(body)
        except IngestionError as e:
            logger.warning(f"[AGUI] Rejected malformed run input: {e!s}")
            return PlainTextResponse(str(e), status_code=400)

        return AGUIEventStreamResponse(
            agui_handler,
            run_input,
            accept=request.headers.get("accept"),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")  # noqa: S104
