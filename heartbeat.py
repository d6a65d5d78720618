import asyncio
from typing import Optional

from backend import RoomRegistry
from constants import HEARTBEAT_INTERVAL, ROOM_IDLE_TTL
from logging_config import get_logger

logger = get_logger(__name__)


class HeartbeatMonitor:
    """Periodically reclaims viewers whose socket has gone away and evicts idle rooms.

    Liveness itself is checked by the server with WebSocket ping frames on the
    same interval (see ``entrypoint.server_config``); a peer that misses a pong
    has its transport closed. This sweep drops any viewer still registered
    after its socket or writer stopped, so the room never keeps sending to it.
    """

    def __init__(self, registry: RoomRegistry, interval: float = HEARTBEAT_INTERVAL,
                 room_idle_ttl: float = ROOM_IDLE_TTL):
        self.registry = registry
        self.interval = interval
        self.room_idle_ttl = room_idle_ttl
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        logger.info(f"Starting heartbeat monitor (interval={self.interval}s, room_idle_ttl={self.room_idle_ttl}s)")
        self._task = asyncio.create_task(self._run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Heartbeat monitor stopped")

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Heartbeat sweep failed: {e}", exc_info=True)

    async def sweep(self) -> int:
        """Run one tick. Returns the number of viewers reclaimed."""
        reclaimed = 0
        viewers = self.registry.iter_viewers()
        for connection in viewers:
            try:
                if connection.is_open:
                    continue
                logger.info(f"Reclaiming dead viewer {connection!r}")
                self.registry.remove_viewer(connection.cam_id, connection)
                await connection.terminate()
                reclaimed += 1
            except Exception as e:
                logger.warning(f"Heartbeat failed for {connection!r}: {e}", exc_info=True)

        if self.room_idle_ttl > 0:
            self.registry.evict_idle(self.room_idle_ttl)

        logger.debug(f"Heartbeat sweep: {len(viewers)} viewers, {reclaimed} reclaimed, {len(self.registry)} rooms")
        return reclaimed
