import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from logging_config import get_logger

logger = get_logger(__name__)


@dataclass(eq=False)
class Room:
    cam_id: str
    created_at: float
    last_activity: float
    viewers: Set = field(default_factory=set)
    last_frame: Optional[str] = None
    publishers: int = 0
    frames_published: int = 0

    def is_idle(self, now: float, ttl: float) -> bool:
        return not self.viewers and self.publishers == 0 and now - self.last_activity >= ttl


class RoomRegistry:
    """In-memory mapping of camera id -> Room.

    Every mutation runs on the event loop thread, so no locking is needed.
    Rooms are created lazily on first reference and only go away through
    evict_idle() or delete_room().
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._rooms: Dict[str, Room] = {}
        self.clock = clock

    def get_room(self, cam_id: str) -> Room:
        room = self._rooms.get(cam_id)
        if room is None:
            now = self.clock()
            room = Room(cam_id=cam_id, created_at=now, last_activity=now)
            self._rooms[cam_id] = room
            logger.info(f"Created room {cam_id} ({len(self._rooms)} rooms)")
        return room

    def find_room(self, cam_id: str) -> Optional[Room]:
        return self._rooms.get(cam_id)

    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    def __len__(self):
        return len(self._rooms)

    def add_viewer(self, cam_id: str, connection) -> Room:
        room = self.get_room(cam_id)
        room.viewers.add(connection)
        room.last_activity = self.clock()
        logger.debug(f"Viewer added to room {cam_id} ({len(room.viewers)} viewers)")
        return room

    def remove_viewer(self, cam_id: str, connection):
        room = self._rooms.get(cam_id)
        if room is None or connection not in room.viewers:
            return
        room.viewers.discard(connection)
        room.last_activity = self.clock()
        logger.debug(f"Viewer removed from room {cam_id} ({len(room.viewers)} viewers)")

    def attach_publisher(self, cam_id: str) -> Room:
        room = self.get_room(cam_id)
        room.publishers += 1
        room.last_activity = self.clock()
        if room.publishers > 1:
            logger.warning(f"Room {cam_id} now has {room.publishers} publishers, last write wins")
        return room

    def detach_publisher(self, cam_id: str):
        room = self._rooms.get(cam_id)
        if room is None:
            return
        room.publishers = max(0, room.publishers - 1)
        room.last_activity = self.clock()

    def publish(self, cam_id: str, frame: str) -> Room:
        """Replace the cached frame of a room and return the room for broadcasting."""
        room = self.get_room(cam_id)
        room.last_frame = frame
        room.frames_published += 1
        room.last_activity = self.clock()
        return room

    def iter_viewers(self) -> list:
        """Snapshot of every viewer connection across all rooms."""
        return [viewer for room in list(self._rooms.values()) for viewer in list(room.viewers)]

    def evict_idle(self, ttl: float) -> List[str]:
        now = self.clock()
        evicted = [cam_id for cam_id, room in self._rooms.items() if room.is_idle(now, ttl)]
        for cam_id in evicted:
            del self._rooms[cam_id]
        if evicted:
            logger.info(f"Evicted {len(evicted)} idle rooms: {', '.join(evicted)}")
        return evicted

    def delete_room(self, cam_id: str) -> Optional[Room]:
        room = self._rooms.pop(cam_id, None)
        if room is not None:
            logger.info(f"Deleted room {cam_id}")
        return room
