"""Shared fixtures and state builders for game engine and relay tests."""

import random

import pytest

from app.schemas.game_engine import (
    BOARD_COUNT,
    BoardStatus,
    Cells,
    GameState,
    Player,
    empty_boards,
)

X = Player.X
O = Player.O

# Full board with no line: X O X / X O O / O X X
DRAWN_CELLS: Cells = (X, O, X, X, O, O, O, X, X)

EMPTY_CELLS: Cells = (None,) * 9


class FixedRandom(random.Random):
    """Random source whose ``random()`` always returns the same value."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


def won_cells(player: Player) -> Cells:
    """Board won by ``player`` along the top row."""
    return (player, player, player, None, None, None, None, None, None)


def cells_with(**marks: Player) -> Cells:
    """Board with marks at the given cells, e.g. ``cells_with(c0=X, c4=O)``."""
    cells = [None] * 9
    for key, player in marks.items():
        cells[int(key[1:])] = player
    return tuple(cells)


def make_state(
    statuses: dict[int, BoardStatus] | None = None,
    boards: dict[int, Cells] | None = None,
    **fields,
) -> GameState:
    """Build a GameState whose decided boards hold matching cells.

    Args:
        statuses: board index -> decided outcome; cells are filled to match.
        boards: board index -> explicit cells for undecided boards.
        **fields: any other GameState field.
    """
    all_boards = list(empty_boards())
    board_status: list[BoardStatus | None] = [None] * BOARD_COUNT

    for index, outcome in (statuses or {}).items():
        board_status[index] = outcome
        if outcome == BoardStatus.DRAW:
            all_boards[index] = DRAWN_CELLS
        else:
            all_boards[index] = won_cells(Player(outcome.value))

    for index, cells in (boards or {}).items():
        all_boards[index] = cells

    return GameState(
        boards=tuple(all_boards),
        board_status=tuple(board_status),
        **fields,
    )


def play_all(state: GameState, moves: list[tuple[int, int]], **kwargs) -> GameState:
    """Apply a sequence of moves, failing loudly if any is rejected."""
    from app.services.game.engine import apply_move

    for board_index, cell_index in moves:
        new_state = apply_move(state, board_index, cell_index, **kwargs)
        assert new_state is not None, f"move ({board_index}, {cell_index}) was rejected"
        state = new_state
    return state


# X wins board 0 on the top row in seven legal moves; O is then forced to board 2
BOARD_ZERO_WIN_MOVES = [(0, 0), (0, 3), (3, 2), (2, 0), (0, 1), (1, 0), (0, 2)]


@pytest.fixture
def fresh_state() -> GameState:
    return GameState()


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def instability_ready_state() -> GameState:
    """X is about to win board 8, making boards 0 (X), 4 (O) and 8 (X) conquered.

    The three boards sit on a diagonal but do not share one owner, so the
    move triggers the instability shuffle.
    """
    return make_state(
        statuses={0: BoardStatus.X, 4: BoardStatus.O},
        boards={8: cells_with(c0=X, c1=X, c4=O)},
        current_player=X,
        forced_board=8,
    )


@pytest.fixture
def meta_win_ready_state() -> GameState:
    """X owns boards 0 and 1 and can take board 2 to win the game."""
    return make_state(
        statuses={0: BoardStatus.X, 1: BoardStatus.X},
        boards={2: cells_with(c0=X, c1=X, c4=O)},
        current_player=X,
        forced_board=2,
    )


@pytest.fixture
def post_shuffle_state() -> GameState:
    """The shuffle has fired and four moves have been played since."""
    return make_state(
        statuses={1: BoardStatus.X, 3: BoardStatus.O, 8: BoardStatus.X},
        instability_triggered=True,
        post_shuffle_moves=4,
        current_player=X,
    )
