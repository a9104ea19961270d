"""
Server Configuration

Reads settings from environment variables. server.py loads `.env.local`
with python-dotenv before calling load_settings().

Environment Variables:
    AGUI_MODEL: ADK model name (default: gemini-2.5-flash)
    AGUI_SYSTEM_PROMPT: Base system prompt
    AGUI_REASONING_EMISSION: "thinking" or "text" (default: thinking)
    AGUI_INCLUDE_THOUGHTS: Request thought summaries (default: false)
    AGUI_FALLBACK_PROMPT: Prompt used when the history is empty (default: Hello!)
    AGUI_EMIT_STEP_EVENTS: Emit STEP_STARTED/STEP_FINISHED (default: true)
    AGUI_REQUEST_TIMEOUT_MS: Model HTTP timeout (default: 300000)
    MCP_SERVER_URL: Streamable-HTTP MCP server providing host tools
    MCP_SERVER_COMMAND: Command line of a stdio MCP server (used if no URL)
    MCP_AUTH_TOKEN: Bearer token sent to MCP_SERVER_URL
    CORS_ALLOW_ORIGINS: Comma-separated origins
"""

import os
import shlex
from dataclasses import dataclass, field

from loguru import logger

from .options import (
    DEFAULT_FALLBACK_PROMPT,
    AGUIHandlerOptions,
    ReasoningEmission,
)


DEFAULT_MODEL = "gemini-2.5-flash"

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. "
    "When tools are available and relevant, call them instead of describing what you would do."
)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:3002",
]


@dataclass(frozen=True)
class Settings:
    model: str = DEFAULT_MODEL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    reasoning_emission: ReasoningEmission = ReasoningEmission.THINKING
    include_thoughts: bool = False
    fallback_prompt: str = DEFAULT_FALLBACK_PROMPT
    emit_step_events: bool = True
    request_timeout_ms: int = 300_000
    mcp_server_url: str | None = None
    mcp_server_command: list[str] = field(default_factory=list)
    mcp_auth_token: str | None = None
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    def handler_options(self) -> AGUIHandlerOptions:
        return AGUIHandlerOptions(
            reasoning_emission=self.reasoning_emission,
            fallback_prompt=self.fallback_prompt,
            emit_step_events=self.emit_step_events,
        )


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"[Config] {name}={value!r} is not an integer, using {default}")
        return default


def _reasoning_emission() -> ReasoningEmission:
    value = os.getenv("AGUI_REASONING_EMISSION", ReasoningEmission.THINKING.value).lower()
    try:
        return ReasoningEmission(value)
    except ValueError:
        logger.warning(f"[Config] Unknown AGUI_REASONING_EMISSION={value!r}, using thinking")
        return ReasoningEmission.THINKING


def load_settings() -> Settings:
    origins = os.getenv("CORS_ALLOW_ORIGINS")
    return Settings(
        model=os.getenv("AGUI_MODEL", DEFAULT_MODEL),
        system_prompt=os.getenv("AGUI_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
        reasoning_emission=_reasoning_emission(),
        include_thoughts=_env_bool("AGUI_INCLUDE_THOUGHTS", False),
        fallback_prompt=os.getenv("AGUI_FALLBACK_PROMPT", DEFAULT_FALLBACK_PROMPT),
        emit_step_events=_env_bool("AGUI_EMIT_STEP_EVENTS", True),
        request_timeout_ms=_env_int("AGUI_REQUEST_TIMEOUT_MS", 300_000),
        mcp_server_url=os.getenv("MCP_SERVER_URL") or None,
        mcp_server_command=shlex.split(os.getenv("MCP_SERVER_COMMAND", "")),
        mcp_auth_token=os.getenv("MCP_AUTH_TOKEN") or None,
        cors_origins=(
            [origin.strip() for origin in origins.split(",") if origin.strip()]
            if origins
            else list(DEFAULT_CORS_ORIGINS)
        ),
    )
