import asyncio
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from fastapi import WebSocket, WebSocketDisconnect

from app.config import get_settings
from app.schemas.ws import (
    ConnectedPayload,
    MessageType,
    RoomStatusPayload,
    WSCloseCode,
    WSServerMessage,
)
from app.services.room.service import RoomRegistry, RoomStatusData, get_room_registry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Connection:
    """A relay peer's socket and when it was last heard from."""

    connection_id: str
    websocket: WebSocket
    connected_at: datetime = field(default_factory=_utcnow)
    last_heartbeat: datetime = field(default_factory=_utcnow)

    def idle_seconds(self, now: datetime) -> float:
        return (now - self.last_heartbeat).total_seconds()


def room_status_message(status: RoomStatusData) -> WSServerMessage:
    return WSServerMessage(
        type=MessageType.ROOM_STATUS,
        payload=RoomStatusPayload(
            players=status.players,
            game_started=status.game_started,
        ).model_dump(by_alias=True),
    )


class ConnectionManager:
    """Owns the relay's open sockets.

    Sockets are keyed by connection id. Which room a socket belongs to is the
    RoomRegistry's business; room fan-out asks the registry for member ids and
    writes to each socket in turn. A socket that fails a write is dropped as if
    it had disconnected.
    """

    def __init__(self, room_registry: RoomRegistry | None = None, server_id: str | None = None):
        self._rooms = room_registry or get_room_registry()
        self._server_id = server_id or os.getenv("HOSTNAME", uuid.uuid4().hex[:8])
        self._settings = get_settings()
        self._connections: dict[str, Connection] = {}
        self._cleanup_task: asyncio.Task | None = None

        logger.info("Relay %s ready", self._server_id)

    @property
    def server_id(self) -> str:
        return self._server_id

    @property
    def rooms(self) -> RoomRegistry:
        return self._rooms

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get_connection(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    async def connect(self, websocket: WebSocket) -> Connection:
        """Track an accepted socket and greet it with its connection id."""
        connection = Connection(connection_id=str(uuid.uuid4()), websocket=websocket)
        self._connections[connection.connection_id] = connection
        logger.info("Peer %s attached to relay %s", connection.connection_id, self._server_id)

        greeting = ConnectedPayload(
            connection_id=connection.connection_id,
            server_id=self._server_id,
        )
        await self.send_to_connection(
            connection.connection_id,
            WSServerMessage(type=MessageType.CONNECTED, payload=greeting.model_dump()),
        )
        return connection

    async def disconnect(self, connection_id: str) -> None:
        """Forget a socket, pull it out of its room and tell the rest of the room.

        Safe to call more than once for the same id.
        """
        if self._connections.pop(connection_id, None) is None:
            return

        result = await self._rooms.leave(connection_id)
        self._rooms.forget_peer(connection_id)
        logger.info("Peer %s detached", connection_id)

        if result.success and not result.room_closed and result.status is not None:
            await self.send_to_room(result.room_id, room_status_message(result.status))

    async def heartbeat(self, connection_id: str) -> None:
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.last_heartbeat = _utcnow()

    async def _close_socket(self, connection_id: str) -> None:
        connection = self._connections.get(connection_id)
        if connection is not None:
            try:
                await connection.websocket.close(code=WSCloseCode.GOING_AWAY)
            except (RuntimeError, WebSocketDisconnect) as e:
                # Already closed by the other side
                logger.debug("Socket %s close skipped: %s", connection_id, e)
        await self.disconnect(connection_id)

    def stale_connection_ids(self, now: datetime | None = None) -> list[str]:
        """Ids of sockets silent for longer than ``WS_CONNECTION_TIMEOUT``."""
        now = now or _utcnow()
        timeout = self._settings.WS_CONNECTION_TIMEOUT
        return [
            conn_id
            for conn_id, connection in list(self._connections.items())
            if connection.idle_seconds(now) > timeout
        ]

    async def cleanup_stale_connections(self) -> int:
        stale = self.stale_connection_ids()
        for conn_id in stale:
            logger.warning("Dropping silent peer %s", conn_id)
            await self._close_socket(conn_id)
        return len(stale)

    async def _cleanup_loop(self) -> None:
        interval = self._settings.WS_HEARTBEAT_INTERVAL
        logger.info("Stale peer sweep every %ds", interval)
        while True:
            await asyncio.sleep(interval)
            try:
                await self.cleanup_stale_connections()
            except Exception:
                logger.exception("Stale peer sweep failed")

    async def start_cleanup_task(self) -> None:
        if self._cleanup_task is not None:
            logger.warning("Stale peer sweep already running")
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup_task(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stale peer sweep stopped")

    async def close_all(self) -> None:
        """Close every socket, used on shutdown."""
        logger.info("Closing %d relay connections", len(self._connections))
        for conn_id in list(self._connections):
            await self._close_socket(conn_id)

    async def send_to_connection(self, connection_id: str, message: WSServerMessage) -> bool:
        """Write one message to one socket.

        Returns:
            False when the socket is unknown or the write failed. A failed write
            also disconnects the peer.
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            return False

        try:
            await connection.websocket.send_json(message.model_dump(mode="json", exclude_none=True))
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            logger.warning("Write to %s failed: %s", connection_id, e)
            await self.disconnect(connection_id)
            return False
        return True

    async def send_to_peers(self, peer_ids: list[str], message: WSServerMessage) -> int:
        """Write ``message`` to each listed socket; returns how many writes succeeded."""
        delivered = 0
        for peer_id in peer_ids:
            delivered += await self.send_to_connection(peer_id, message)
        return delivered

    async def send_to_room(
        self, room_id: str, message: WSServerMessage, exclude_connection: str | None = None
    ) -> int:
        members = [peer for peer in self._rooms.get_peers(room_id) if peer != exclude_connection]
        return await self.send_to_peers(members, message)


_connection_manager: ConnectionManager | None = None


def get_connection_manager() -> ConnectionManager:
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager()
    return _connection_manager


def set_connection_manager(manager: ConnectionManager) -> None:
    global _connection_manager
    _connection_manager = manager
