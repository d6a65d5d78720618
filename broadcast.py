import asyncio
import uuid
from typing import Iterable, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from constants import MAX_BUFFERED_BYTES
from logging_config import get_logger

logger = get_logger(__name__)


class ViewerConnection:
    """A viewer socket plus its outbound queue.

    Payloads are written by a dedicated writer task so a slow viewer never
    holds up the publisher or the other viewers. ``buffered_amount`` counts
    bytes accepted for sending that the transport has not taken yet.
    """

    def __init__(self, websocket: WebSocket, cam_id: str):
        self.websocket = websocket
        self.cam_id = cam_id
        self.connection_id = uuid.uuid4().hex
        self.buffered_amount = 0
        self._queue: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._closed = False

    def __repr__(self):
        return f"<ViewerConnection {self.connection_id[:8]} room={self.cam_id}>"

    def start(self):
        self._writer = asyncio.create_task(self._drain())

    @property
    def is_open(self) -> bool:
        if self._closed or self._writer is None or self._writer.done():
            return False
        return (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    def enqueue(self, payload: str):
        size = len(payload.encode("utf-8"))
        self.buffered_amount += size
        self._queue.put_nowait((payload, size))

    async def _drain(self):
        while True:
            payload, size = await self._queue.get()
            try:
                await self.websocket.send_text(payload)
            except Exception as e:
                logger.debug(f"Send failed for {self!r}, closing writer: {e}")
                self._closed = True
                self._discard_pending()
                return
            finally:
                self.buffered_amount -= size

    def _discard_pending(self):
        while not self._queue.empty():
            _, size = self._queue.get_nowait()
            self.buffered_amount -= size

    async def stop(self):
        """Stop the writer; queued payloads are dropped."""
        self._closed = True
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
        self._discard_pending()

    async def terminate(self, code: int = 1001):
        """Forcibly drop the connection (used for viewers whose transport is gone)."""
        await self.stop()
        try:
            await self.websocket.close(code=code)
        except Exception as e:
            logger.debug(f"Error closing WebSocket for {self!r}: {e}")


def deliver(connection: ViewerConnection, payload: str, max_buffered_bytes: int = MAX_BUFFERED_BYTES) -> bool:
    """Queue ``payload`` for one viewer unless it is closed or over the buffer threshold.

    Dropped payloads are discarded, never retried.
    """
    if not connection.is_open:
        return False
    if connection.buffered_amount > max_buffered_bytes:
        logger.debug(f"Dropping frame for {connection!r}: {connection.buffered_amount} bytes buffered")
        return False
    connection.enqueue(payload)
    return True


def broadcast(connections: Iterable[ViewerConnection], payload: str, max_buffered_bytes: int = MAX_BUFFERED_BYTES) -> int:
    """Deliver ``payload`` to every connection independently; returns how many accepted it."""
    delivered = 0
    for connection in list(connections):
        if deliver(connection, payload, max_buffered_bytes):
            delivered += 1
    return delivered
