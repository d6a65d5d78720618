import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8765))

# Shared secret for /pub and /sub. Empty disables auth entirely.
RELAY_KEY = os.getenv("RELAY_KEY", "")

# WebSocket ping interval and pong timeout, also the heartbeat sweep period.
HEARTBEAT_INTERVAL = float(os.getenv("HEARTBEAT_INTERVAL", 30))
MAX_BUFFERED_BYTES = int(os.getenv("MAX_BUFFERED_BYTES", 5 * 1024 * 1024))
# Largest single WebSocket message accepted; bigger publisher frames close the socket with 1009.
MAX_MESSAGE_BYTES = int(os.getenv("MAX_MESSAGE_BYTES", 16 * 1024 * 1024))

# Rooms with no viewers, no publisher and no activity for this many seconds
# are evicted by the heartbeat sweep. 0 keeps rooms for the process lifetime.
ROOM_IDLE_TTL = float(os.getenv("ROOM_IDLE_TTL", 3600))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CAM_ID_PATTERN = r"[A-Za-z0-9_.\-]+"
