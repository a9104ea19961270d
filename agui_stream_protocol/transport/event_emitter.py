"""
Event Emitter

The only path from the bridge to the client. Each emit() encodes one AG-UI
event with the ag_ui EventEncoder (SSE framing by default), pushes it
through the transport, and returns once the transport has flushed it.
Nothing is buffered or retried.
"""

from typing import Protocol

from ag_ui.core import BaseEvent
from ag_ui.encoder import EventEncoder
from loguru import logger

from ..errors import EventDeliveryError
from ..event_recorder import EventRecorder


class PushTransport(Protocol):
    """Append-and-flush primitive. send() returns after the chunk is handed to the peer."""

    async def send(self, chunk: str | bytes) -> None: ...


class EventEmitter:
    def __init__(
        self,
        transport: PushTransport,
        encoder: EventEncoder | None = None,
        recorder: EventRecorder | None = None,
        run_id: str = "",
    ) -> None:
        self._transport = transport
        self._encoder = encoder or EventEncoder()
        self._recorder = recorder
        self._run_id = run_id
        self.emitted_count = 0

    @property
    def content_type(self) -> str:
        return self._encoder.get_content_type()

    async def emit(self, event: BaseEvent) -> None:
        """
        Encode and deliver one event.

        Raises:
            EventDeliveryError: If encoding or delivery fails (cause chained)
        """
        event_type = getattr(event.type, "value", event.type)
        try:  # nosemgrep: forbid-try-except - wrap transport failures
            chunk = self._encoder.encode(event)
            await self._transport.send(chunk)
        except Exception as e:
            logger.error(f"[Emitter] Failed to deliver {event_type}: {e!s}")
            raise EventDeliveryError(f"failed to deliver {event_type}: {e!s}") from e

        self.emitted_count += 1
        logger.debug(f"[Emitter] → {event_type}")
        if self._recorder is not None and self._recorder.is_enabled():
            self._recorder.record(
                "agui-event-out",
                run_id=self._run_id,
                payload=event.model_dump(mode="json", by_alias=True, exclude_none=True),
            )
