"""
Tool Result Classifier

Decides what a completed tool invocation means for the client:

1. Suppression: results whose metadata carries {"aguitool": true} are the
   synthetic acknowledgements of client-declared tools; the client executes
   those itself, so nothing is emitted.
2. State replacement: metadata {"stateUpdate": <value>} replaces the run's
   shared state; the caller broadcasts a state snapshot.
3. Rendering: the typed output becomes a single text payload
   - text  → verbatim
   - error → {"error": "<message>"} (fallback: "error encountered: <message>")
   - media → nothing (not representable as a tool-result payload, logged)
   - other → nothing (logged)

classify() never raises: malformed metadata is logged and ignored, and an
unexpected payload shape is rendered as a best-effort string.
"""

import json
from dataclasses import dataclass
from typing import Any

from loguru import logger

from ..agent.types import ToolResultContent, ToolResultContentType, ToolResultOutput
from ..result import Error, Ok, Result


AGUI_TOOL_METADATA_KEY = "aguitool"
STATE_UPDATE_METADATA_KEY = "stateUpdate"


@dataclass(frozen=True)
class ToolResultClassification:
    suppressed: bool = False
    has_state_update: bool = False
    state_update: Any = None
    content: str | None = None  # None: emit no tool-result event


class ToolResultClassifier:
    """Pure classification of tool results; identical input gives identical output."""

    def classify(self, result: ToolResultContent) -> ToolResultClassification:
        metadata: dict[str, Any] = {}
        match parse_metadata(result.client_metadata):
            case Ok(parsed):
                metadata = parsed
            case Error(reason):
                logger.warning(
                    f"[Classifier] Ignoring metadata of {result.tool_name} "
                    f"({result.tool_call_id}): {reason}"
                )

        if metadata.get(AGUI_TOOL_METADATA_KEY) is True:
            logger.debug(
                f"[Classifier] Suppressing client tool ack: {result.tool_name} ({result.tool_call_id})"
            )
            return ToolResultClassification(suppressed=True)

        state_update = metadata.get(STATE_UPDATE_METADATA_KEY)
        has_state_update = state_update is not None

        match render_output(result.result):
            case Ok(content):
                pass
            case Error(reason):
                logger.warning(
                    f"[Classifier] Not rendering result of {result.tool_name} "
                    f"({result.tool_call_id}): {reason}"
                )
                content = None

        return ToolResultClassification(
            has_state_update=has_state_update,
            state_update=state_update,
            content=content,
        )


def parse_metadata(raw: str | dict[str, Any] | None) -> Result[dict[str, Any], str]:
    """Decode out-of-band metadata. Empty metadata is an empty object."""
    if raw is None or raw == "":
        return Ok({})
    if isinstance(raw, dict):
        return Ok(raw)
    try:  # nosemgrep: forbid-try-except - metadata comes from arbitrary tools
        decoded = json.loads(raw)
    except (TypeError, ValueError) as e:
        return Error(f"metadata is not valid JSON: {e}")
    if not isinstance(decoded, dict):
        return Error(f"metadata is not a JSON object: {type(decoded).__name__}")
    return Ok(decoded)


def render_output(output: ToolResultOutput) -> Result[str, str]:
    """
    Render a typed tool output into the text payload of a tool-result event.

    Returns:
        Ok(text) when the output should be emitted, Error(reason) when it
        should be dropped
    """
    output_type = getattr(output, "type", None)
    try:
        content_type = ToolResultContentType(output_type)
    except ValueError:
        return Error(f"unsupported tool result content type: {output_type!r}")

    match content_type:
        case ToolResultContentType.TEXT:
            text = getattr(output, "text", "")
            if isinstance(text, str):
                return Ok(text)
            return Ok(_fallback_text(text))
        case ToolResultContentType.ERROR:
            return Ok(render_error(getattr(output, "error", "")))
        case ToolResultContentType.MEDIA:
            media_type = getattr(output, "media_type", "unknown")
            return Error(f"media content ({media_type}) is not supported in tool results")


def render_error(error: BaseException | str | Any) -> str:
    message = str(error)
    try:
        return json.dumps({"error": message})
    except (TypeError, ValueError):
        return f"error encountered: {message}"


def _fallback_text(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)
