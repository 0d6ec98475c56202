"""Board geometry shared by small-board and meta-board evaluation."""

from collections.abc import Sequence

from app.schemas.game_engine import BoardStatus, Player

# Winning lines for a 3x3 grid (indices 0..8)
WINNING_LINES: tuple[tuple[int, int, int], ...] = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),  # rows
    (0, 3, 6), (1, 4, 7), (2, 5, 8),  # cols
    (0, 4, 8), (2, 4, 6),              # diags
)


def line_triples() -> tuple[tuple[int, int, int], ...]:
    """Return the 8 winning triples of a 3x3 grid."""
    return WINNING_LINES


def evaluate_small_board(cells: Sequence[Player | None]) -> BoardStatus | None:
    """Return the owner of a completed line, DRAW if the board is full, else None."""
    for a, b, c in WINNING_LINES:
        if cells[a] is not None and cells[a] == cells[b] == cells[c]:
            return BoardStatus(cells[a].value)
    if all(cell is not None for cell in cells):
        return BoardStatus.DRAW
    return None


def evaluate_meta_board(board_status: Sequence[BoardStatus | None]) -> Player | None:
    """Return the player owning three boards on one line.

    Drawn boards never count toward a meta win.
    """
    for a, b, c in WINNING_LINES:
        owner = board_status[a]
        if owner in (BoardStatus.X, BoardStatus.O) and owner == board_status[b] == board_status[c]:
            return Player(owner.value)
    return None


def is_conquered(status: BoardStatus | None) -> bool:
    return status in (BoardStatus.X, BoardStatus.O)


def count_conquered(board_status: Sequence[BoardStatus | None]) -> int:
    """Number of boards won by a player (draws excluded)."""
    return sum(1 for status in board_status if is_conquered(status))


def conquered_boards_form_line(board_status: Sequence[BoardStatus | None]) -> bool:
    """True if some winning line is made of three boards won by the same player."""
    return evaluate_meta_board(board_status) is not None


def all_boards_decided(board_status: Sequence[BoardStatus | None]) -> bool:
    return all(status is not None for status in board_status)
