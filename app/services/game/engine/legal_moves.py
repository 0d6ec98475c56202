"""Legal move calculation."""

from app.schemas.game_engine import BOARD_COUNT, CELL_COUNT, GameState, Move

from .validation import validate_move


def _playable_boards(state: GameState) -> list[int]:
    forced = state.forced_board
    if forced is not None and state.board_status[forced] is None:
        return [forced]
    return [b for b in range(BOARD_COUNT) if state.board_status[b] is None]


def get_legal_moves(state: GameState) -> list[Move]:
    """Determine every legal move for the current player.

    If a forced board is active and still undecided, only its empty cells are
    legal. Otherwise any empty cell of any undecided board is.

    Args:
        state: Current game state.

    Returns:
        Moves in board-major order; empty when the game is over.
    """
    if state.game_over:
        return []

    moves: list[Move] = []
    for b in _playable_boards(state):
        board = state.boards[b]
        for c in range(CELL_COUNT):
            if board[c] is None:
                moves.append(Move(board_index=b, cell_index=c))
    return moves


def has_any_legal_moves(state: GameState) -> bool:
    """Quick check if the current player can move at all."""
    if state.game_over:
        return False
    return any(
        cell is None for b in _playable_boards(state) for cell in state.boards[b]
    )


def is_legal_move(state: GameState, board_index: int, cell_index: int) -> bool:
    return validate_move(state, board_index, cell_index).is_valid
