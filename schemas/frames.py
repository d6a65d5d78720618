from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError
from typing import Optional


class FrameMessage(BaseModel):
    """A single frame as exchanged on the wire: ``{"frame": "<opaque string>"}``.

    Publishers may send extra fields; they are ignored and never forwarded.
    """
    model_config = ConfigDict(extra="ignore")

    frame: StrictStr


def parse_frame_message(data: str) -> Optional[FrameMessage]:
    """Parse a publisher message, returning None when it should be discarded."""
    try:
        return FrameMessage.model_validate_json(data)
    except ValidationError:
        return None


def encode_frame(frame: str) -> str:
    return FrameMessage(frame=frame).model_dump_json()
