from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse

from backend import RoomRegistry
from constants import HEARTBEAT_INTERVAL, LOG_FILE, LOG_LEVEL, MAX_BUFFERED_BYTES, RELAY_KEY, ROOM_IDLE_TTL
from gate import Rejection, admit
from handler import ConnectionHandler
from heartbeat import HeartbeatMonitor
from logging_config import get_logger, setup_logging
from routers.rooms import rooms_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

INDEX_HTML = """<!doctype html>
<html>
  <head><title>Frame Relay</title></head>
  <body>
    <h1>Frame Relay is running</h1>
    <p>Publisher: <code>wss://HOST/pub/cam1?key=SECRET</code></p>
    <p>Viewer: <code>wss://HOST/sub/cam1?key=SECRET</code></p>
    <p>Publishers send <code>{"frame": "&lt;base64 image&gt;"}</code>; viewers receive the same record.</p>
  </body>
</html>
"""


async def deny(websocket: WebSocket, rejection: Rejection):
    """Refuse a WebSocket request with a plain HTTP status, before any upgrade."""
    if "websocket.http.response" in websocket.scope.get("extensions", {}):
        await websocket.send_denial_response(
            PlainTextResponse(rejection.reason, status_code=rejection.status_code)
        )
    else:
        # Without the denial extension the server answers 403 instead.
        await websocket.close(code=1008, reason=rejection.reason)


def create_app(
    relay_key: str = RELAY_KEY,
    heartbeat_interval: float = HEARTBEAT_INTERVAL,
    max_buffered_bytes: int = MAX_BUFFERED_BYTES,
    room_idle_ttl: float = ROOM_IDLE_TTL,
) -> FastAPI:
    """Build a relay app with its own room registry.

    A heartbeat_interval of 0 disables the heartbeat monitor.
    """
    registry = RoomRegistry()
    handler = ConnectionHandler(registry, max_buffered_bytes=max_buffered_bytes)
    monitor = HeartbeatMonitor(registry, interval=heartbeat_interval, room_idle_ttl=room_idle_ttl)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if relay_key:
            logger.info("Auth enabled: ?key=RELAY_KEY required")
        if heartbeat_interval > 0:
            monitor.start()
        yield
        await monitor.stop()

    app = FastAPI(title="Frame Relay", lifespan=lifespan)

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry
    app.state.relay_key = relay_key
    app.state.handler = handler
    app.state.monitor = monitor

    app.include_router(rooms_router)

    @app.get("/", response_class=HTMLResponse)
    async def index():
        return INDEX_HTML

    @app.get("/healthz", response_class=PlainTextResponse)
    async def healthz():
        return "ok"

    @app.websocket("/{path:path}")
    async def relay_endpoint(websocket: WebSocket, path: str):
        decision = admit(websocket.url.path, websocket.query_params, relay_key)
        if isinstance(decision, Rejection):
            client_host = websocket.client.host if websocket.client else "unknown"
            logger.info(f"Rejected WebSocket {websocket.url.path} from {client_host}: {decision.status_code} {decision.reason}")
            await deny(websocket, decision)
            return
        await handler.handle(websocket, decision.role, decision.cam_id)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
