"""Tests for the peer-side relay session.

The websocket is replaced by an in-memory fake handed out by the connector,
so reconnection can be exercised without a running relay.
"""

import asyncio
import json

import pytest

from app.schemas.game_engine import Move
from app.schemas.ws import MessageType
from app.services.sync.session import ConnectionUnavailable, RelaySession

URL = "ws://relay.test/api/v1/ws"


class FakeSocket:
    """Minimal stand-in for a websockets client connection."""

    def __init__(self):
        self.sent: list[dict] = []
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        return item

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(None)

    def feed(self, message: dict) -> None:
        self._incoming.put_nowait(json.dumps(message))

    def drop(self) -> None:
        """Simulate the relay closing the link."""
        self._incoming.put_nowait(None)


class ScriptedConnector:
    """Hands out the given sockets in order; exceptions in the script are raised."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = 0

    async def __call__(self, url: str):
        self.calls += 1
        if not self.script:
            raise OSError("relay down")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


async def wait_until(predicate, timeout: float = 1.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)


def make_session(connector, attempts: int = 3) -> RelaySession:
    return RelaySession(
        URL,
        connect_timeout=0.5,
        reconnect_attempts=attempts,
        reconnect_delay=0.0,
        reconnect_delay_max=0.0,
        heartbeat_interval=60.0,
        connector=connector,
    )


class TestDisconnected:
    """Sends before connecting are no-ops."""

    @pytest.mark.asyncio
    async def test_sends_return_false(self):
        session = make_session(ScriptedConnector())

        assert not session.connected
        assert not await session.send_move(Move(board_index=0, cell_index=0))
        assert not await session.send_reset()
        assert not await session.join("room-1")
        assert session.room_id is None


class TestConnect:
    """Connection establishment."""

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise(self):
        connector = ScriptedConnector()
        session = make_session(connector, attempts=3)

        with pytest.raises(ConnectionUnavailable):
            await session.connect()

        assert connector.calls == 3
        assert not session.connected

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failed_attempt(self):
        async def hang(url: str):
            await asyncio.sleep(10)

        session = RelaySession(URL, connect_timeout=0.01, reconnect_attempts=1, connector=hang)

        with pytest.raises(ConnectionUnavailable):
            await session.connect()

    @pytest.mark.asyncio
    async def test_retry_then_succeed(self):
        socket = FakeSocket()
        session = make_session(ScriptedConnector(OSError("refused"), socket))

        await session.connect()

        assert session.connected
        await session.close()

    @pytest.mark.asyncio
    async def test_connected_message_sets_connection_id(self):
        socket = FakeSocket()
        session = make_session(ScriptedConnector(socket))
        await session.connect()

        socket.feed({"type": "connected", "payload": {"connection_id": "c-1", "server_id": "s"}})
        await wait_until(lambda: session.connection_id == "c-1")

        await session.close()


class TestMessaging:
    """Outgoing envelopes and listener dispatch."""

    @pytest.mark.asyncio
    async def test_outgoing_envelopes(self):
        socket = FakeSocket()
        session = make_session(ScriptedConnector(socket))
        await session.connect()

        assert await session.join("room-1")
        assert await session.send_move(Move(board_index=3, cell_index=7))
        assert await session.send_reset()

        assert socket.sent == [
            {"type": "join", "payload": {"roomId": "room-1"}},
            {"type": "move", "payload": {"boardIndex": 3, "cellIndex": 7}},
            {"type": "reset"},
        ]
        assert session.room_id == "room-1"
        await session.close()

    @pytest.mark.asyncio
    async def test_listener_receives_and_unsubscribes(self):
        socket = FakeSocket()
        session = make_session(ScriptedConnector(socket))
        await session.connect()
        received = []

        unsubscribe = session.on(MessageType.RESET, received.append)
        socket.feed({"type": "reset"})
        await wait_until(lambda: len(received) == 1)

        unsubscribe()
        socket.feed({"type": "reset"})
        socket.feed({"type": "pong", "payload": {}})
        await asyncio.sleep(0.01)

        assert len(received) == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_loop(self):
        socket = FakeSocket()
        session = make_session(ScriptedConnector(socket))
        await session.connect()
        received = []

        def broken(message):
            raise RuntimeError("listener bug")

        session.on(MessageType.MOVE, broken)
        session.on(MessageType.RESET, received.append)
        socket.feed({"type": "move", "payload": {"boardIndex": 0, "cellIndex": 0}})
        socket.feed({"type": "reset"})

        await wait_until(lambda: len(received) == 1)
        await session.close()

    @pytest.mark.asyncio
    async def test_malformed_message_is_dropped(self):
        socket = FakeSocket()
        session = make_session(ScriptedConnector(socket))
        await session.connect()
        received = []
        session.on(MessageType.RESET, received.append)

        socket._incoming.put_nowait("not json")
        socket.feed({"type": "reset"})

        await wait_until(lambda: len(received) == 1)
        await session.close()


class TestReconnect:
    """Link loss handling."""

    @pytest.mark.asyncio
    async def test_rejoins_last_room_after_reconnect(self):
        first, second = FakeSocket(), FakeSocket()
        session = make_session(ScriptedConnector(first, second))
        await session.connect()
        await session.join("room-1")

        first.drop()
        await wait_until(lambda: len(second.sent) == 1)

        assert second.sent[0] == {"type": "join", "payload": {"roomId": "room-1"}}
        assert session.connected
        assert session.room_id == "room-1"
        await session.close()

    @pytest.mark.asyncio
    async def test_rejoin_listener_runs_before_new_messages(self):
        first, second = FakeSocket(), FakeSocket()
        session = make_session(ScriptedConnector(first, second))
        calls: list[str] = []
        session.on_rejoin(lambda room_id: calls.append(f"rejoin:{room_id}"))
        session.on(MessageType.ROOM_STATUS, lambda message: calls.append("room-status"))
        await session.connect()
        await session.join("room-1")

        second.feed({"type": "room-status", "payload": {"players": 2, "gameStarted": True}})
        first.drop()
        await wait_until(lambda: len(calls) == 2)

        assert calls == ["rejoin:room-1", "room-status"]
        await session.close()

    @pytest.mark.asyncio
    async def test_unsubscribed_rejoin_listener_not_called(self):
        first, second = FakeSocket(), FakeSocket()
        session = make_session(ScriptedConnector(first, second))
        calls: list[str] = []
        unsubscribe = session.on_rejoin(calls.append)
        await session.connect()
        await session.join("room-1")
        unsubscribe()

        first.drop()
        await wait_until(lambda: len(second.sent) == 1)

        assert calls == []
        await session.close()

    @pytest.mark.asyncio
    async def test_gives_up_and_forgets_room(self):
        socket = FakeSocket()
        session = make_session(ScriptedConnector(socket), attempts=2)
        await session.connect()
        await session.join("room-1")

        socket.drop()
        await wait_until(lambda: not session.connected and session.room_id is None)

        assert not await session.send_reset()
        await session.close()

    @pytest.mark.asyncio
    async def test_close_does_not_reconnect(self):
        socket = FakeSocket()
        connector = ScriptedConnector(socket, FakeSocket())
        session = make_session(connector)
        await session.connect()

        await session.close()
        await asyncio.sleep(0.01)

        assert socket.closed
        assert connector.calls == 1
        assert not session.connected
