from fastapi import APIRouter, HTTPException, Request
from typing import List

from backend import Room
from gate import key_matches, single_key
from logging_config import get_logger
from schemas.rooms import DeleteRoomResponse, RoomSummary

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


def check_key(request: Request):
    if not key_matches(single_key(request.query_params), request.app.state.relay_key):
        client_host = request.client.host if request.client else "unknown"
        logger.warning(f"Rejected rooms API request from {client_host}: invalid key")
        raise HTTPException(status_code=401, detail="Invalid key")


def summarize(room: Room, now: float) -> RoomSummary:
    return RoomSummary(
        cam_id=room.cam_id,
        viewers=len(room.viewers),
        publishers=room.publishers,
        has_frame=room.last_frame is not None,
        frames_published=room.frames_published,
        idle_seconds=round(max(0.0, now - room.last_activity), 3),
        age_seconds=round(max(0.0, now - room.created_at), 3),
    )


@rooms_router.get("/", response_model=List[RoomSummary])
async def list_rooms(request: Request):
    check_key(request)
    registry = request.app.state.registry
    now = registry.clock()
    return [summarize(room, now) for room in registry.rooms()]


@rooms_router.get("/{cam_id}", response_model=RoomSummary)
async def get_room_details(cam_id: str, request: Request):
    check_key(request)
    registry = request.app.state.registry
    room = registry.find_room(cam_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return summarize(room, registry.clock())


@rooms_router.delete("/{cam_id}", response_model=DeleteRoomResponse)
async def delete_room(cam_id: str, request: Request):
    """Disconnect every viewer of a room and drop it, cached frame included.

    An attached publisher stays connected; its next frame recreates the room.
    """
    check_key(request)
    registry = request.app.state.registry
    room = registry.delete_room(cam_id)
    if room is None:
        logger.warning(f"Delete room failed: Room {cam_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    viewers = list(room.viewers)
    room.viewers.clear()
    for connection in viewers:
        await connection.terminate(code=1000)
    logger.info(f"Room {cam_id} deleted, {len(viewers)} viewers disconnected")
    return DeleteRoomResponse(cam_id=cam_id, viewers_terminated=len(viewers))
