import asyncio

from broadcast import ViewerConnection, broadcast, deliver
from fakes import FakeWebSocket, settle


def test_deliver_writes_to_open_connection():
    async def scenario():
        ws = FakeWebSocket()
        connection = ViewerConnection(ws, "cam1")
        connection.start()
        assert deliver(connection, "hello")
        await settle()
        assert ws.sent == ["hello"]
        assert connection.buffered_amount == 0
        await connection.stop()

    asyncio.run(scenario())


def test_deliver_skips_connection_that_is_not_ready():
    async def scenario():
        never_started = ViewerConnection(FakeWebSocket(), "cam1")
        assert not deliver(never_started, "x")

        ws = FakeWebSocket()
        closing = ViewerConnection(ws, "cam1")
        closing.start()
        await ws.close()
        assert not deliver(closing, "x")
        await settle()
        assert ws.sent == []
        await closing.stop()

    asyncio.run(scenario())


def test_slow_viewer_drops_frames_over_threshold_then_recovers():
    async def scenario():
        ws = FakeWebSocket(blocked=True)
        connection = ViewerConnection(ws, "cam1")
        connection.start()

        assert deliver(connection, "a" * 8, max_buffered_bytes=10)
        await settle()
        assert deliver(connection, "b" * 8, max_buffered_bytes=10)
        assert connection.buffered_amount == 16
        assert not deliver(connection, "c" * 8, max_buffered_bytes=10)
        assert connection.buffered_amount == 16
        assert connection.is_open

        ws.release.set()
        await settle()
        assert connection.buffered_amount == 0
        assert deliver(connection, "d" * 8, max_buffered_bytes=10)
        await settle()
        assert ws.sent == ["a" * 8, "b" * 8, "d" * 8]
        await connection.stop()

    asyncio.run(scenario())


def test_broadcast_is_independent_per_viewer():
    async def scenario():
        fast_ws, stalled_ws, closed_ws = FakeWebSocket(), FakeWebSocket(blocked=True), FakeWebSocket()
        fast = ViewerConnection(fast_ws, "cam1")
        stalled = ViewerConnection(stalled_ws, "cam1")
        closed = ViewerConnection(closed_ws, "cam1")
        for connection in (fast, stalled, closed):
            connection.start()
        await closed_ws.close()

        # Stalled viewer already sits past the threshold.
        stalled.enqueue("x" * 32)
        await settle()

        assert broadcast({fast, stalled, closed}, "frame", max_buffered_bytes=16) == 1
        await settle()
        assert fast_ws.sent == ["frame"]
        assert stalled_ws.sent == []
        assert closed_ws.sent == []
        for connection in (fast, stalled, closed):
            await connection.stop()

    asyncio.run(scenario())


def test_failed_send_closes_only_that_connection():
    async def scenario():
        ws = FakeWebSocket()
        connection = ViewerConnection(ws, "cam1")
        connection.start()
        ws.application_state = None  # next send raises
        connection.enqueue("boom")
        await settle()
        assert not connection.is_open
        assert not deliver(connection, "after")
        assert connection.buffered_amount == 0
        await connection.stop()

    asyncio.run(scenario())


def test_terminate_drops_queued_payloads_and_closes_socket():
    async def scenario():
        ws = FakeWebSocket(blocked=True)
        connection = ViewerConnection(ws, "cam1")
        connection.start()
        assert deliver(connection, "stuck")
        assert deliver(connection, "queued")
        await settle()

        await connection.terminate()
        assert ws.close_code == 1001
        assert connection.buffered_amount == 0
        assert not connection.is_open
        assert not deliver(connection, "late")
        ws.release.set()
        await settle()
        assert ws.sent == []

    asyncio.run(scenario())
