"""
Error taxonomy for the AG-UI bridge.

Each class corresponds to one failure family:

- IngestionError: the request body could not be decoded (HTTP 400, no events)
- EventDeliveryError: an event could not be encoded or pushed to the client
- ClientDisconnectedError: the transport was closed by the peer
- CorrelationError: a lifecycle hook referenced an identifier that was never
  started (programming error in the agent loop, hence an AssertionError)
- AgentLoopError: the agent loop itself failed (model error event, bad history)
- MCPToolError: a remote MCP tool definition could not be converted
"""


class IngestionError(ValueError):
    """Malformed run input."""


class EventDeliveryError(Exception):
    """An event could not be delivered to the client."""


class ClientDisconnectedError(ConnectionError):
    """The client went away before the stream finished."""


class CorrelationError(AssertionError):
    """Lookup of an untracked fragment or tool-call identifier."""


class AgentLoopError(RuntimeError):
    pass


class MCPToolError(ValueError):
    pass
