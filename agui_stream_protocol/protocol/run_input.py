"""
Run Input Models

Pydantic models for the body of POST /agui. Keys are accepted in both
snake_case and camelCase. Messages are kept as raw values here; they are
decoded one by one (and dropped if malformed) by history normalization.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import IngestionError


class ToolParameters(BaseModel):
    type: str = "object"
    properties: dict[str, Any] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class ToolDescriptor(BaseModel):
    """A tool the client declares and executes itself."""

    name: str
    description: str = ""
    parameters: ToolParameters = Field(default_factory=ToolParameters)


class RunAgentInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    thread_id: str = Field(default="", validation_alias=AliasChoices("thread_id", "threadId"))
    run_id: str = Field(default="", validation_alias=AliasChoices("run_id", "runId"))
    state: Any = None
    messages: list[Any] = Field(default_factory=list)
    tools: list[ToolDescriptor] = Field(default_factory=list)
    context: list[Any] = Field(default_factory=list)
    forwarded_props: Any = Field(
        default=None, validation_alias=AliasChoices("forwarded_props", "forwardedProps")
    )

    @field_validator("thread_id", "run_id", mode="before")
    @classmethod
    def _none_as_empty_string(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("messages", "tools", "context", mode="before")
    @classmethod
    def _none_as_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value


def parse_run_input(body: bytes | str) -> RunAgentInput:
    """
    Decode a request body.

    Raises:
        IngestionError: If the body is not JSON or does not match the schema
    """
    try:  # nosemgrep: forbid-try-except - translate to 400
        return RunAgentInput.model_validate_json(body)
    except ValidationError as e:
        raise IngestionError(str(e)) from e
