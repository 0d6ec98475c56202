from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

BOARD_COUNT = 9
CELL_COUNT = 9


# Marks placed on the board
class Player(str, Enum):
    X = "X"
    O = "O"

    @property
    def opponent(self) -> "Player":
        return Player.O if self is Player.X else Player.X


# Outcome of a small board; undecided boards carry None
class BoardStatus(str, Enum):
    X = "X"
    O = "O"
    DRAW = "DRAW"


Cells = tuple[Player | None, ...]


def empty_boards() -> tuple[Cells, ...]:
    return tuple((None,) * CELL_COUNT for _ in range(BOARD_COUNT))


def empty_board_status() -> tuple[BoardStatus | None, ...]:
    return (None,) * BOARD_COUNT


class CamelModel(BaseModel):
    """Base for models exchanged with peers: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Move(CamelModel):
    board_index: int = Field(..., ge=0, lt=BOARD_COUNT)
    cell_index: int = Field(..., ge=0, lt=CELL_COUNT)


# Game state for one peer; replaced wholesale on every accepted transition
class GameState(CamelModel):
    """Ultimate tic-tac-toe state plus the chaos-mechanic latches.

    The model is frozen and every container is a tuple, so a transition built
    with ``model_copy(update=...)`` never shares a mutable container with the
    state it was derived from.
    """

    boards: tuple[Cells, ...] = Field(default_factory=empty_boards)
    board_status: tuple[BoardStatus | None, ...] = Field(default_factory=empty_board_status)
    current_player: Player = Player.X
    forced_board: int | None = Field(None, ge=0, lt=BOARD_COUNT)
    game_over: bool = False
    winner: Player | None = None
    is_draw: bool = False

    # Instability shuffle
    instability_triggered: bool = False
    shuffle_just_happened: bool = False
    shuffle_mapping: tuple[int, ...] | None = None

    # Role swap
    post_shuffle_moves: int = Field(0, ge=0)
    role_swap_triggered: bool = False
    role_swap_just_happened: bool = False

    event_seq: int = 0  # Next sequence number for events (monotonically increasing)

    @field_validator("boards")
    @classmethod
    def validate_boards(cls, v: tuple[Cells, ...]) -> tuple[Cells, ...]:
        if len(v) != BOARD_COUNT or any(len(board) != CELL_COUNT for board in v):
            raise ValueError("boards must be 9 boards of 9 cells")
        return v

    @field_validator("board_status")
    @classmethod
    def validate_board_status(
        cls, v: tuple[BoardStatus | None, ...]
    ) -> tuple[BoardStatus | None, ...]:
        if len(v) != BOARD_COUNT:
            raise ValueError("board_status must have 9 entries")
        return v

    @field_validator("shuffle_mapping")
    @classmethod
    def validate_shuffle_mapping(cls, v: tuple[int, ...] | None) -> tuple[int, ...] | None:
        if v is not None and sorted(v) != list(range(BOARD_COUNT)):
            raise ValueError("shuffle_mapping must be a permutation of 0..8")
        return v
