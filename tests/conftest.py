import socket
import threading

import pytest
import uvicorn
from fastapi.testclient import TestClient

from app import create_app
from entrypoint import server_config
from fakes import LIVE_HEARTBEAT, wait_until


@pytest.fixture
def relay_app():
    return create_app(relay_key="", heartbeat_interval=0)


@pytest.fixture
def client(relay_app):
    # Entering the client shares one event loop between all WebSocket sessions.
    with TestClient(relay_app) as client:
        yield client


@pytest.fixture
def secured_app():
    return create_app(relay_key="s3cret", heartbeat_interval=0)


@pytest.fixture
def secured_client(secured_app):
    with TestClient(secured_app) as client:
        yield client


@pytest.fixture
def live_relay():
    """A relay served by uvicorn on a free local port, with fast heartbeats.

    Yields ``(app, port)``.
    """
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    app = create_app(relay_key="", heartbeat_interval=LIVE_HEARTBEAT)
    server = uvicorn.Server(server_config(app, host="127.0.0.1", port=port, heartbeat_interval=LIVE_HEARTBEAT))
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    wait_until(lambda: server.started, timeout=10)
    try:
        yield app, port
    finally:
        server.should_exit = True
        thread.join(timeout=10)
