"""Handler options fixed at AGUIHandler construction."""

from enum import Enum

from pydantic import BaseModel


class ReasoningEmission(str, Enum):
    """How reasoning fragments are rendered on the wire."""

    THINKING = "thinking"  # THINKING_START / THINKING_TEXT_MESSAGE_* / THINKING_END
    TEXT = "text"  # ordinary assistant text message prefixed with a label


DEFAULT_FALLBACK_PROMPT = "Hello!"
DEFAULT_REASONING_LABEL = "Reasoning: "


class AGUIHandlerOptions(BaseModel):
    reasoning_emission: ReasoningEmission = ReasoningEmission.THINKING
    reasoning_label: str = DEFAULT_REASONING_LABEL
    thinking_title: str | None = None
    fallback_prompt: str = DEFAULT_FALLBACK_PROMPT
    emit_step_events: bool = True
