"""
Transport Layer

- EventEmitter / PushTransport: ordered encode-and-push of AG-UI events
- AsgiPushTransport / AGUIEventStreamResponse: the ASGI-backed transport
"""

from .asgi import SSE_HEADERS, AGUIEventStreamResponse, AsgiPushTransport
from .event_emitter import EventEmitter, PushTransport


__all__ = [
    "SSE_HEADERS",
    "AGUIEventStreamResponse",
    "AsgiPushTransport",
    "EventEmitter",
    "PushTransport",
]
