import uvicorn
from constants import HOST, PORT, LOG_LEVEL, LOG_FILE, HEARTBEAT_INTERVAL, MAX_MESSAGE_BYTES
from logging_config import setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

from app import app
from logging_config import get_logger

logger = get_logger(__name__)


def server_config(app, host: str = HOST, port: int = PORT, heartbeat_interval: float = HEARTBEAT_INTERVAL,
                  max_message_bytes: int = MAX_MESSAGE_BYTES) -> uvicorn.Config:
    """uvicorn settings for the relay.

    The websockets protocol sends a ping frame every ``heartbeat_interval``
    seconds and drops the TCP connection of any peer whose pong does not
    arrive within the same interval; the connection's handler then sees the
    disconnect and unregisters it.
    """
    ping = heartbeat_interval if heartbeat_interval > 0 else None
    return uvicorn.Config(
        app,
        host=host,
        port=port,
        ws="websockets-sansio",
        ws_ping_interval=ping,
        ws_ping_timeout=ping,
        ws_max_size=max_message_bytes,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    logger.info(f"Starting Frame Relay on {HOST}:{PORT}")
    uvicorn.Server(server_config(app)).run()
