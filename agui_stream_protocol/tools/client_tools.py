"""
Client-declared Tools

AG-UI clients declare tools they execute themselves (e.g. UI actions). The
model still needs to "call" them, so each descriptor is wrapped as an
AgentTool whose run() is a no-op acknowledgement:

- the response text is empty
- the response metadata is {"aguitool": true}, which makes the tool-result
  classifier suppress the result (the client produces the real one)

The bridge also registers a has_tool_call(name) stop condition per tool, so
the run ends after the step that called it and the client can take over.
"""

from collections.abc import Iterable

from loguru import logger

from ..agent.types import ToolCall, ToolInfo, ToolResponse, text_response, with_response_metadata
from ..protocol.run_input import ToolDescriptor
from ..protocol.tool_result_classifier import AGUI_TOOL_METADATA_KEY


class ClientDeclaredTool:
    def __init__(self, descriptor: ToolDescriptor) -> None:
        self._info = ToolInfo(
            name=descriptor.name,
            description=descriptor.description,
            parameters=dict(descriptor.parameters.properties),
            required=list(descriptor.parameters.required),
        )

    def info(self) -> ToolInfo:
        return self._info

    async def run(self, call: ToolCall) -> ToolResponse:
        logger.debug(f"[ClientTool] Acknowledging {call.name} ({call.id}); client executes it")
        return with_response_metadata(text_response(""), {AGUI_TOOL_METADATA_KEY: True})


def client_declared_tools(descriptors: Iterable[ToolDescriptor]) -> list[ClientDeclaredTool]:
    return [ClientDeclaredTool(descriptor) for descriptor in descriptors]
