"""Game event types - emitted during state transitions.

Events describe what happened during a game action, enabling:
- Presentation updates (know exactly what transitioned)
- Shuffle and role-swap animations
- Action replay / audit logging
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from app.schemas.game_engine import BoardStatus, Player


class GameEvent(BaseModel):
    """Base class for all game events."""

    event_type: str
    seq: int = 0  # Sequence number assigned during processing


class MovePlayed(GameEvent):
    """A mark was placed."""

    event_type: Literal["move_played"] = "move_played"
    player: Player
    board_index: int
    cell_index: int
    next_forced_board: int | None = Field(
        None, description="Board the next mover must play in, None for free choice"
    )


class BoardDecided(GameEvent):
    """A small board was won or filled."""

    event_type: Literal["board_decided"] = "board_decided"
    board_index: int
    outcome: BoardStatus


class ChaosSwapped(GameEvent):
    """The nine boards were relocated."""

    event_type: Literal["chaos_swapped"] = "chaos_swapped"
    shuffle_mapping: list[int] = Field(..., description="mapping[old_index] = new_index")


class RolesSwapped(GameEvent):
    """Players exchange symbols; the board is untouched."""

    event_type: Literal["roles_swapped"] = "roles_swapped"


class GameEnded(GameEvent):
    """The game has finished."""

    event_type: Literal["game_ended"] = "game_ended"
    winner: Player | None = None
    is_draw: bool = False


class GameReset(GameEvent):
    """The game was restarted from an empty board."""

    event_type: Literal["game_reset"] = "game_reset"


# Union of all event types for type checking
AnyGameEvent = Annotated[
    MovePlayed
    | BoardDecided
    | ChaosSwapped
    | RolesSwapped
    | GameEnded
    | GameReset,
    Field(discriminator="event_type"),
]
