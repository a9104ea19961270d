"""
AG-UI Stream Protocol

Bridges a callback-driven agent loop (Google ADK) to the AG-UI event
protocol streamed over SSE.

Layers:
    - Transport Layer: EventEmitter, AsgiPushTransport, AGUIEventStreamResponse
    - Bridge: AGUIHandler, RunOrchestrator
    - Protocol Layer: IDCorrelator, ToolResultClassifier, normalize_history, RunAgentInput
    - Agent Layer: agent-loop contract, AdkAgentLoop
    - Tools: ClientDeclaredTool, MCP tools
"""

from .agent.adk_loop import AdkAgentLoop
from .bridge import AGUIHandler, RunOrchestrator, RunOutcome
from .config import Settings, load_settings
from .context import RunContext
from .errors import (
    AgentLoopError,
    ClientDisconnectedError,
    CorrelationError,
    EventDeliveryError,
    IngestionError,
    MCPToolError,
)
from .event_recorder import EventRecorder, event_recorder
from .options import AGUIHandlerOptions, ReasoningEmission
from .protocol import (
    IDCorrelator,
    RunAgentInput,
    ToolDescriptor,
    ToolResultClassifier,
    normalize_history,
    parse_run_input,
)
from .tools import ClientDeclaredTool, MCPTool, mcp_tools
from .transport import AGUIEventStreamResponse, AsgiPushTransport, EventEmitter


__all__ = [
    "AGUIEventStreamResponse",
    "AGUIHandler",
    "AGUIHandlerOptions",
    "AdkAgentLoop",
    "AgentLoopError",
    "AsgiPushTransport",
    "ClientDeclaredTool",
    "ClientDisconnectedError",
    "CorrelationError",
    "EventDeliveryError",
    "EventEmitter",
    "EventRecorder",
    "IDCorrelator",
    "IngestionError",
    "MCPTool",
    "MCPToolError",
    "ReasoningEmission",
    "RunAgentInput",
    "RunContext",
    "RunOrchestrator",
    "RunOutcome",
    "Settings",
    "ToolDescriptor",
    "ToolResultClassifier",
    "event_recorder",
    "load_settings",
    "mcp_tools",
    "normalize_history",
    "parse_run_input",
]
