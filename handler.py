from typing import AsyncIterator

from fastapi import WebSocket

from backend import RoomRegistry
from broadcast import ViewerConnection, broadcast, deliver
from constants import MAX_BUFFERED_BYTES
from gate import Role
from logging_config import get_logger
from schemas.frames import encode_frame, parse_frame_message

logger = get_logger(__name__)


async def iter_messages(websocket: WebSocket) -> AsyncIterator[str]:
    """Yield inbound messages as text until the client disconnects.

    Binary frames are decoded as UTF-8; undecodable ones are skipped.
    """
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        text = message.get("text")
        if text is None:
            try:
                text = (message.get("bytes") or b"").decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("Skipping undecodable binary message")
                continue
        yield text


class ConnectionHandler:
    """Wires admitted sockets into their room for the lifetime of the connection."""

    def __init__(self, registry: RoomRegistry, max_buffered_bytes: int = MAX_BUFFERED_BYTES):
        self.registry = registry
        self.max_buffered_bytes = max_buffered_bytes

    async def handle(self, websocket: WebSocket, role: Role, cam_id: str):
        await websocket.accept()
        client_host = websocket.client.host if websocket.client else "unknown"
        logger.info(f"{role.value.capitalize()} {client_host} connected to room {cam_id}")
        try:
            if role is Role.VIEWER:
                await self._serve_viewer(websocket, cam_id)
            else:
                await self._serve_publisher(websocket, cam_id)
        except Exception as e:
            logger.error(f"WebSocket error for {role.value} in room {cam_id}: {e}", exc_info=True)
        finally:
            logger.info(f"{role.value.capitalize()} {client_host} left room {cam_id}")

    async def _serve_viewer(self, websocket: WebSocket, cam_id: str):
        connection = ViewerConnection(websocket, cam_id)
        connection.start()
        room = self.registry.add_viewer(cam_id, connection)
        if room.last_frame is not None:
            deliver(connection, encode_frame(room.last_frame), self.max_buffered_bytes)
        try:
            # Viewers have nothing to publish; their messages are read and dropped.
            async for _ in iter_messages(websocket):
                pass
        finally:
            self.registry.remove_viewer(cam_id, connection)
            await connection.stop()

    async def _serve_publisher(self, websocket: WebSocket, cam_id: str):
        self.registry.attach_publisher(cam_id)
        try:
            async for data in iter_messages(websocket):
                self.on_publisher_message(cam_id, data)
        finally:
            self.registry.detach_publisher(cam_id)

    def on_publisher_message(self, cam_id: str, data: str) -> int:
        """Cache and fan out one publisher message. Returns the number of viewers it was queued for."""
        message = parse_frame_message(data)
        if message is None:
            logger.debug(f"Discarding malformed message from publisher in room {cam_id}")
            return 0
        # Looked up per message so a room deleted via the API is recreated for this publisher.
        room = self.registry.publish(cam_id, message.frame)
        return broadcast(room.viewers, encode_frame(message.frame), self.max_buffered_bytes)
