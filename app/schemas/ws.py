from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.schemas.game_engine import BOARD_COUNT, CELL_COUNT, CamelModel, GameState


class MessageType(str, Enum):
    """WebSocket message types."""

    # Core
    PING = "ping"
    PONG = "pong"
    CONNECTED = "connected"
    ERROR = "error"

    # Room
    JOIN = "join"
    LEAVE = "leave"
    ROOM_STATUS = "room-status"

    # Game relay
    MOVE = "move"
    GAME_STATE = "game-state"
    RESET = "reset"

    # Chaos events issued by the relay
    CHAOS_SWAP = "chaos-swap"
    ROLE_SWAP = "role-swap"


class WSCloseCode:
    """WebSocket close codes (RFC 6455)."""

    NORMAL = 1000
    GOING_AWAY = 1001
    PROTOCOL_ERROR = 1002
    UNSUPPORTED_DATA = 1003
    INVALID_DATA = 1007
    POLICY_VIOLATION = 1008
    MESSAGE_TOO_BIG = 1009
    INTERNAL_ERROR = 1011


class WSClientMessage(BaseModel):
    """Envelope of every frame a peer sends to the relay."""

    type: MessageType
    request_id: str | None = None
    payload: dict[str, Any] | None = None


class WSServerMessage(BaseModel):
    """Envelope of every frame the relay sends; ``payload`` is omitted when empty."""

    type: MessageType
    request_id: str | None = None
    payload: dict[str, Any] | None = None


# --- Payload schemas ---


class ConnectedPayload(BaseModel):
    """First frame on every connection."""

    connection_id: str
    server_id: str


class PongPayload(BaseModel):
    """Payload for the 'pong' message; ``room_id`` is the sender's current room."""

    server_time: datetime = Field(default_factory=lambda: datetime.now())
    room_id: str | None = None


class ErrorPayload(BaseModel):
    """Payload for error messages."""

    error_code: str
    message: str


class JoinRoomPayload(CamelModel):
    """Payload for the 'join' message from client."""

    room_id: str = Field(..., min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_-]+$")


class RoomStatusPayload(CamelModel):
    """Payload for 'room-status' broadcasts."""

    players: int
    game_started: bool


class MovePayload(CamelModel):
    """Payload for 'move' messages; relayed without rule validation."""

    board_index: int = Field(..., ge=0, lt=BOARD_COUNT)
    cell_index: int = Field(..., ge=0, lt=CELL_COUNT)


class GameStatePayload(CamelModel):
    """Full snapshot a peer sends after each transition, used for trigger detection."""

    game_state: GameState


class ChaosSwapPayload(CamelModel):
    """Permutation issued by the relay; mapping[old_index] = new_index."""

    shuffle_mapping: list[int]

    @field_validator("shuffle_mapping")
    @classmethod
    def validate_permutation(cls, v: list[int]) -> list[int]:
        if sorted(v) != list(range(BOARD_COUNT)):
            raise ValueError("shuffle_mapping must be a permutation of 0..8")
        return v
