"""
ASGI Push Transport

Streams AG-UI events straight onto the ASGI `send` channel:

- AsgiPushTransport: one `http.response.body` message per event; the
  `http.response.start` message is deferred until the first event so a run
  that fails before anything was delivered can still answer with a 500.
- AGUIEventStreamResponse: Starlette response that runs an AGUIHandler
  against the transport while watching `receive()` for `http.disconnect`.

Unlike StreamingResponse, every send is awaited by the bridge itself, so a
disconnected client fails the very next event delivery instead of being
noticed only after the generator is exhausted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import anyio
from ag_ui.encoder import EventEncoder
from loguru import logger
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from ..errors import ClientDisconnectedError


if TYPE_CHECKING:
    from ..bridge import AGUIHandler
    from ..protocol.run_input import RunAgentInput


SSE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class AsgiPushTransport:
    def __init__(self, send: Send, media_type: str) -> None:
        self._send = send
        self._media_type = media_type
        self._started = False
        self._disconnected = False
        self._closed = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    def mark_disconnected(self) -> None:
        if not self._disconnected:
            logger.info("[Transport] Client disconnected")
        self._disconnected = True

    async def send(self, chunk: str | bytes) -> None:
        """
        Push one encoded event.

        Raises:
            ClientDisconnectedError: If the client has gone away
        """
        if self._disconnected:
            raise ClientDisconnectedError("client disconnected")
        if self._closed:
            raise ClientDisconnectedError("stream already closed")
        if not self._started:
            await self._send(
                {
                    "type": "http.response.start",
                    "status": 200,
                    "headers": _encode_headers(
                        {"content-type": self._media_type, **SSE_HEADERS}
                    ),
                }
            )
            self._started = True
        body = chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
        await self._send({"type": "http.response.body", "body": body, "more_body": True})

    async def close(self) -> None:
        """End the response body. An empty 200 is sent if nothing was streamed."""
        if self._closed or self._disconnected:
            self._closed = True
            return
        if not self._started:
            await self._send(
                {
                    "type": "http.response.start",
                    "status": 200,
                    "headers": _encode_headers({"content-type": self._media_type}),
                }
            )
            self._started = True
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})
        self._closed = True

    async def reject(self, status_code: int, message: str) -> None:
        """Answer with a plain-text error if no event was streamed yet, else just close."""
        if self._started or self._disconnected:
            await self.close()
            return
        body = message.encode("utf-8")
        await self._send(
            {
                "type": "http.response.start",
                "status": status_code,
                "headers": _encode_headers(
                    {
                        "content-type": "text/plain; charset=utf-8",
                        "content-length": str(len(body)),
                    }
                ),
            }
        )
        await self._send({"type": "http.response.body", "body": body, "more_body": False})
        self._started = True
        self._closed = True


def _encode_headers(headers: dict[str, str]) -> list[tuple[bytes, bytes]]:
    return [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()]


class AGUIEventStreamResponse(Response):
    """Runs one AG-UI run directly against the ASGI connection."""

    def __init__(
        self,
        handler: AGUIHandler,
        run_input: RunAgentInput,
        accept: str | None = None,
    ) -> None:
        self.handler = handler
        self.run_input = run_input
        self.encoder = EventEncoder(accept=accept)
        super().__init__(media_type=self.encoder.get_content_type())

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        transport = AsgiPushTransport(send, media_type=self.encoder.get_content_type())

        async def watch_disconnect() -> None:
            while True:
                message = await receive()
                if message["type"] == "http.disconnect":
                    transport.mark_disconnected()
                    return

        async with anyio.create_task_group() as task_group:
            task_group.start_soon(watch_disconnect)
            outcome = await self.handler.handle(self.run_input, transport, self.encoder)
            if outcome.ok:
                await transport.close()
            else:
                await transport.reject(outcome.status_code, outcome.error or "")
            task_group.cancel_scope.cancel()
