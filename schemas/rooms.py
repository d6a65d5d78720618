from pydantic import BaseModel


class RoomSummary(BaseModel):
    cam_id: str
    viewers: int
    publishers: int
    has_frame: bool
    frames_published: int
    idle_seconds: float
    age_seconds: float

class DeleteRoomResponse(BaseModel):
    cam_id: str
    viewers_terminated: int
