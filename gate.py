import hmac
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from starlette.datastructures import QueryParams

from constants import CAM_ID_PATTERN

ROUTE_RE = re.compile(rf"/(pub|sub)/({CAM_ID_PATTERN})")


class Role(str, Enum):
    PUBLISHER = "publisher"
    VIEWER = "viewer"


@dataclass(frozen=True)
class Admission:
    role: Role
    cam_id: str


@dataclass(frozen=True)
class Rejection:
    status_code: int
    reason: str


NOT_FOUND = Rejection(404, "Not Found")
UNAUTHORIZED = Rejection(401, "Unauthorized")


def single_key(query_params: QueryParams) -> Optional[str]:
    """The `key` query parameter, or None when it is absent or repeated."""
    keys = query_params.getlist("key")
    return keys[0] if len(keys) == 1 else None


def key_matches(provided: Optional[str], relay_key: str) -> bool:
    """True when auth is disabled or the provided key equals the relay key exactly."""
    if not relay_key:
        return True
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), relay_key.encode("utf-8"))


def admit(path: str, query_params: QueryParams, relay_key: str) -> Union[Admission, Rejection]:
    """Decide whether a WebSocket request may be upgraded, and in which role.

    Only ``/pub/<cam_id>`` and ``/sub/<cam_id>`` are routable. When a relay
    key is configured the ``key`` query parameter must appear once and match it.
    """
    match = ROUTE_RE.fullmatch(path or "/")
    if match is None:
        return NOT_FOUND
    if not key_matches(single_key(query_params), relay_key):
        return UNAUTHORIZED
    kind, cam_id = match.groups()
    role = Role.PUBLISHER if kind == "pub" else Role.VIEWER
    return Admission(role=role, cam_id=cam_id)
