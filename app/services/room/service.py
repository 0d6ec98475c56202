"""Room registry for the relay.

Maps room ids to the ordered list of connected peers and the last snapshot a
peer reported. The snapshot is only used to evaluate the chaos triggers; the
relay never validates moves and is not an authoritative store.
"""

import asyncio
import logging
import random
from collections import defaultdict
from dataclasses import dataclass, field

from app.config import get_settings
from app.schemas.game_engine import GameState, Move
from app.services.game.engine.instability import (
    generate_shuffle_mapping,
    should_trigger_instability,
)
from app.services.game.engine.role_swap import role_swap_due

logger = logging.getLogger(__name__)

# No I, 1, O, 0 to avoid confusion when read aloud
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6


def generate_room_code(rng: random.Random | None = None) -> str:
    """Generate a short shareable room code such as ``A9X-2B4``."""
    rng = rng or random.Random()
    code = "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))
    return f"{code[:3]}-{code[3:]}"


@dataclass
class RoomData:
    """State the relay keeps for one room."""

    room_id: str
    peers: list[str] = field(default_factory=list)
    game_state: GameState | None = None
    # Each chaos event is issued at most once per game
    chaos_swap_issued: bool = False
    role_swap_issued: bool = False


@dataclass
class RoomStatusData:
    """Roster summary broadcast as 'room-status'."""

    room_id: str
    players: int

    @property
    def game_started(self) -> bool:
        return self.players >= 2


@dataclass
class JoinRoomResult:
    """Result of join operation."""

    success: bool
    status: RoomStatusData | None = None
    previous_status: RoomStatusData | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass
class LeaveRoomResult:
    """Result of leave operation."""

    success: bool
    room_id: str | None = None
    status: RoomStatusData | None = None
    room_closed: bool = False
    error_code: str | None = None
    error_message: str | None = None


@dataclass
class RelayResult:
    """Peers a relayed message must be delivered to."""

    success: bool
    room_id: str | None = None
    recipients: list[str] = field(default_factory=list)
    error_code: str | None = None
    error_message: str | None = None


@dataclass
class ObserveStateResult:
    """Chaos events triggered by a snapshot, if any."""

    success: bool
    room_id: str | None = None
    shuffle_mapping: tuple[int, ...] | None = None
    role_swap: bool = False
    error_code: str | None = None
    error_message: str | None = None


def _not_in_room(result_cls):
    return result_cls(
        success=False,
        error_code="NOT_IN_ROOM",
        error_message="You are not in a room",
    )


class RoomRegistry:
    """In-memory room bookkeeping for one relay process.

    A peer belongs to at most one room. Join and leave are serialized per
    peer so a connection can never appear in two rooms at once.
    """

    def __init__(
        self,
        role_swap_threshold: int | None = None,
        role_swap_probability: float | None = None,
        rng: random.Random | None = None,
    ):
        settings = get_settings()
        self._role_swap_threshold = (
            role_swap_threshold if role_swap_threshold is not None else settings.ROLE_SWAP_THRESHOLD
        )
        self._role_swap_probability = (
            role_swap_probability
            if role_swap_probability is not None
            else settings.ROLE_SWAP_PROBABILITY
        )
        self._rng = rng or random.Random()

        self._rooms: dict[str, RoomData] = {}
        self._peer_rooms: dict[str, str] = {}  # peer_id -> room_id
        self._peer_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        logger.info(
            "RoomRegistry initialized: role_swap_threshold=%d, role_swap_probability=%.2f",
            self._role_swap_threshold,
            self._role_swap_probability,
        )

    def _status(self, room_id: str) -> RoomStatusData:
        room = self._rooms.get(room_id)
        return RoomStatusData(room_id=room_id, players=len(room.peers) if room else 0)

    def get_room(self, room_id: str) -> RoomData | None:
        return self._rooms.get(room_id)

    def get_peers(self, room_id: str) -> list[str]:
        room = self._rooms.get(room_id)
        return list(room.peers) if room else []

    def get_peer_room(self, peer_id: str) -> str | None:
        return self._peer_rooms.get(peer_id)

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def _remove_peer(self, peer_id: str) -> LeaveRoomResult:
        room_id = self._peer_rooms.pop(peer_id, None)
        if room_id is None:
            return _not_in_room(LeaveRoomResult)

        room = self._rooms.get(room_id)
        room_closed = False
        if room is not None:
            if peer_id in room.peers:
                room.peers.remove(peer_id)
            if not room.peers:
                del self._rooms[room_id]
                room_closed = True
                logger.info("Room %s closed: last peer left", room_id)

        logger.info("Peer %s left room %s", peer_id, room_id)
        return LeaveRoomResult(
            success=True,
            room_id=room_id,
            status=self._status(room_id),
            room_closed=room_closed,
        )

    async def join(self, room_id: str, peer_id: str) -> JoinRoomResult:
        """Add a peer to a room, leaving its previous room first."""
        async with self._peer_locks[peer_id]:
            previous_status = None
            current = self._peer_rooms.get(peer_id)
            if current is not None and current != room_id:
                left = self._remove_peer(peer_id)
                previous_status = None if left.room_closed else left.status

            room = self._rooms.get(room_id)
            if room is None:
                room = RoomData(room_id=room_id)
                self._rooms[room_id] = room
                logger.info("Room %s created", room_id)

            if peer_id not in room.peers:
                room.peers.append(peer_id)
            self._peer_rooms[peer_id] = room_id

            status = self._status(room_id)
            logger.info(
                "Peer %s joined room %s (players=%d)",
                peer_id,
                room_id,
                status.players,
            )
            return JoinRoomResult(
                success=True,
                status=status,
                previous_status=previous_status,
            )

    async def leave(self, peer_id: str) -> LeaveRoomResult:
        """Remove a peer from its room; the room is deleted once empty."""
        async with self._peer_locks[peer_id]:
            return self._remove_peer(peer_id)

    def forget_peer(self, peer_id: str) -> None:
        """Drop per-peer bookkeeping once its connection is gone."""
        self._peer_locks.pop(peer_id, None)

    def relay_move(self, peer_id: str, move: Move) -> RelayResult:
        """Resolve the recipients of a move: every other peer in the room."""
        room_id = self._peer_rooms.get(peer_id)
        if room_id is None:
            return _not_in_room(RelayResult)

        recipients = [p for p in self.get_peers(room_id) if p != peer_id]
        logger.info(
            "Move in room %s: board %d, cell %d",
            room_id,
            move.board_index,
            move.cell_index,
        )
        return RelayResult(success=True, room_id=room_id, recipients=recipients)

    def observe_state(self, peer_id: str, snapshot: GameState) -> ObserveStateResult:
        """Store a snapshot and decide whether a chaos event fires.

        Both peers report the same post-move state, so the room latches each
        event the first time it is issued; the permutation and the coin flip
        are generated here exactly once per trigger.
        """
        room_id = self._peer_rooms.get(peer_id)
        if room_id is None:
            return _not_in_room(ObserveStateResult)

        room = self._rooms[room_id]
        room.game_state = snapshot
        result = ObserveStateResult(success=True, room_id=room_id)

        if not room.chaos_swap_issued and should_trigger_instability(snapshot):
            room.chaos_swap_issued = True
            result.shuffle_mapping = generate_shuffle_mapping(self._rng)
            logger.info(
                "Triggering chaos swap in room %s: %s",
                room_id,
                list(result.shuffle_mapping),
            )

        if not room.role_swap_issued and role_swap_due(snapshot, self._role_swap_threshold):
            room.role_swap_issued = True
            result.role_swap = self._rng.random() < self._role_swap_probability
            logger.info(
                "Role swap due in room %s: coin flip fired=%s",
                room_id,
                result.role_swap,
            )

        return result

    def relay_reset(self, peer_id: str) -> RelayResult:
        """Forget the room's snapshot and latches; recipients are the other peers."""
        room_id = self._peer_rooms.get(peer_id)
        if room_id is None:
            return _not_in_room(RelayResult)

        room = self._rooms[room_id]
        room.game_state = None
        room.chaos_swap_issued = False
        room.role_swap_issued = False

        logger.info("Reset in room %s", room_id)
        return RelayResult(
            success=True,
            room_id=room_id,
            recipients=[p for p in room.peers if p != peer_id],
        )


# Global registry instance
_room_registry: RoomRegistry | None = None


def get_room_registry() -> RoomRegistry:
    """Get the global RoomRegistry instance."""
    global _room_registry
    if _room_registry is None:
        _room_registry = RoomRegistry()
    return _room_registry


def set_room_registry(registry: RoomRegistry) -> None:
    """Set the global RoomRegistry instance."""
    global _room_registry
    _room_registry = registry
