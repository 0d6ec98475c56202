"""Peer-side connection to the relay.

One ``RelaySession`` per peer. It owns the websocket, the room the peer last
joined and the listeners registered with :meth:`RelaySession.on`.

Usage:
    session = RelaySession.from_settings()
    await session.connect()
    unsubscribe = session.on(MessageType.MOVE, on_remote_move)
    await session.join("ABC-123")
"""

import asyncio
import inspect
import json
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from app.config import get_settings
from app.schemas.game_engine import GameState, Move
from app.schemas.ws import (
    GameStatePayload,
    JoinRoomPayload,
    MessageType,
    MovePayload,
    WSClientMessage,
    WSServerMessage,
)

logger = logging.getLogger(__name__)

Listener = Callable[[WSServerMessage], Awaitable[None] | None]
RejoinListener = Callable[[str], Awaitable[None] | None]
Connector = Callable[[str], Awaitable[Any]]


class ConnectionUnavailable(Exception):
    """The relay could not be reached within the reconnection budget."""


class RelaySession:
    """Client side of the relay protocol with bounded reconnection.

    Sends while disconnected are no-ops that log a warning and return False.
    If the link drops, the receive loop reconnects with the same backoff
    policy used by :meth:`connect` and re-joins the last room. Once the
    attempts are exhausted the session stays disconnected and forgets the
    room; the caller has to connect and join again.
    """

    def __init__(
        self,
        url: str,
        connect_timeout: float = 5.0,
        reconnect_attempts: int = 5,
        reconnect_delay: float = 1.0,
        reconnect_delay_max: float = 5.0,
        heartbeat_interval: float = 30.0,
        connector: Connector | None = None,
    ):
        self._url = url
        self._connect_timeout = connect_timeout
        self._reconnect_attempts = reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._reconnect_delay_max = reconnect_delay_max
        self._heartbeat_interval = heartbeat_interval
        self._connector = connector or websockets.connect

        self._ws: Any = None
        self._room_id: str | None = None
        self._connection_id: str | None = None
        self._listeners: defaultdict[MessageType, list[Listener]] = defaultdict(list)
        self._rejoin_listeners: list[RejoinListener] = []
        self._receive_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._closed = True

    @classmethod
    def from_settings(cls, connector: Connector | None = None) -> "RelaySession":
        settings = get_settings()
        return cls(
            url=settings.RELAY_URL,
            connect_timeout=settings.RELAY_CONNECT_TIMEOUT,
            reconnect_attempts=settings.RELAY_RECONNECT_ATTEMPTS,
            reconnect_delay=settings.RELAY_RECONNECT_DELAY,
            reconnect_delay_max=settings.RELAY_RECONNECT_DELAY_MAX,
            heartbeat_interval=settings.WS_HEARTBEAT_INTERVAL,
            connector=connector,
        )

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @property
    def room_id(self) -> str | None:
        return self._room_id

    @property
    def connection_id(self) -> str | None:
        return self._connection_id

    # --- Lifecycle ---

    async def connect(self) -> None:
        """Connect to the relay, retrying with exponential backoff.

        Raises:
            ConnectionUnavailable: if every attempt failed or timed out.
        """
        if self.connected:
            return
        self._closed = False
        await self._open()
        self._receive_task = asyncio.create_task(self._receive_loop())
        if self._heartbeat_task is None:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())

    def _backoff(self, attempt: int) -> float:
        return min(self._reconnect_delay * (2**attempt), self._reconnect_delay_max)

    async def _open(self) -> None:
        for attempt in range(self._reconnect_attempts):
            try:
                self._ws = await asyncio.wait_for(
                    self._connector(self._url),
                    timeout=self._connect_timeout,
                )
                logger.info("Connected to relay %s (attempt %d)", self._url, attempt + 1)
                return
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning(
                    "Relay connection attempt %d/%d failed: %s",
                    attempt + 1,
                    self._reconnect_attempts,
                    e,
                )
            if attempt + 1 < self._reconnect_attempts:
                await asyncio.sleep(self._backoff(attempt))

        raise ConnectionUnavailable(
            f"Relay {self._url} unreachable after {self._reconnect_attempts} attempts"
        )

    async def close(self) -> None:
        """Close the link for good; no reconnection is attempted afterwards."""
        self._closed = True
        self._room_id = None
        for task in (self._heartbeat_task, self._receive_task):
            if task is None or task is asyncio.current_task():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._heartbeat_task = None
        self._receive_task = None

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug("Error closing relay websocket: %s", e)
        logger.info("Relay session closed")

    # --- Receiving ---

    def on(self, message_type: MessageType, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        self._listeners[message_type].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[message_type]:
                self._listeners[message_type].remove(listener)

        return unsubscribe

    def on_rejoin(self, listener: RejoinListener) -> Callable[[], None]:
        """Register a callback run with the room id after an automatic re-join.

        It runs before any message from the new link is dispatched, so the
        room status that answers the re-join already sees its effects.
        """
        self._rejoin_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._rejoin_listeners:
                self._rejoin_listeners.remove(listener)

        return unsubscribe

    async def _notify(self, listeners: list, argument: Any, label: str) -> None:
        for listener in list(listeners):
            try:
                result = listener(argument)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener for %s failed", label)

    async def _receive_loop(self) -> None:
        while not self._closed:
            ws = self._ws
            try:
                async for raw in ws:
                    await self._handle_raw(raw)
            except ConnectionClosed as e:
                logger.info("Relay link closed: %s", e)

            if self._closed:
                break

            self._ws = None
            self._connection_id = None
            try:
                await self._open()
            except ConnectionUnavailable as e:
                logger.error("%s; forgetting room %s", e, self._room_id)
                self._room_id = None
                break

            if self._room_id is not None:
                logger.info("Re-joining room %s after reconnect", self._room_id)
                await self._send(
                    MessageType.JOIN,
                    JoinRoomPayload(room_id=self._room_id).model_dump(by_alias=True),
                )
                await self._notify(self._rejoin_listeners, self._room_id, "rejoin")

    async def _handle_raw(self, raw: str | bytes) -> None:
        try:
            message = WSServerMessage.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Dropping malformed relay message: %s", e)
            return

        if message.type == MessageType.CONNECTED and message.payload:
            self._connection_id = message.payload.get("connection_id")
        elif message.type == MessageType.ERROR:
            logger.warning("Relay error: %s", message.payload)

        await self._notify(self._listeners[message.type], message, message.type.value)

    async def _heartbeat_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._heartbeat_interval)
                if self.connected:
                    await self._send(MessageType.PING)
            except asyncio.CancelledError:
                break

    # --- Sending ---

    async def _send(self, message_type: MessageType, payload: dict | None = None) -> bool:
        ws = self._ws
        if ws is None:
            logger.warning("Not connected to relay; dropping %s", message_type.value)
            return False

        message = WSClientMessage(type=message_type, payload=payload)
        try:
            await ws.send(json.dumps(message.model_dump(mode="json", exclude_none=True)))
            return True
        except ConnectionClosed as e:
            logger.warning("Relay link lost while sending %s: %s", message_type.value, e)
            return False

    async def join(self, room_id: str) -> bool:
        payload = JoinRoomPayload(room_id=room_id).model_dump(by_alias=True)
        sent = await self._send(MessageType.JOIN, payload)
        if sent:
            self._room_id = room_id
        return sent

    async def leave(self) -> bool:
        sent = await self._send(MessageType.LEAVE)
        self._room_id = None
        return sent

    async def send_move(self, move: Move) -> bool:
        payload = MovePayload(
            board_index=move.board_index,
            cell_index=move.cell_index,
        ).model_dump(by_alias=True)
        return await self._send(MessageType.MOVE, payload)

    async def send_game_state(self, state: GameState) -> bool:
        payload = GameStatePayload(game_state=state).model_dump(mode="json", by_alias=True)
        return await self._send(MessageType.GAME_STATE, payload)

    async def send_reset(self) -> bool:
        return await self._send(MessageType.RESET)
