"""Move application: the ultimate tic-tac-toe state transition."""

import logging
import random

from app.schemas.game_engine import GameState

from .board import all_boards_decided, evaluate_meta_board, evaluate_small_board
from .instability import perform_instability_shuffle, should_trigger_instability
from .role_swap import LOCAL_ROLE_SWAP_THRESHOLD, apply_role_swap, should_trigger_role_swap
from .validation import validate_move

logger = logging.getLogger(__name__)


def _replace_at(items: tuple, index: int, value) -> tuple:
    return items[:index] + (value,) + items[index + 1:]


def apply_move(
    state: GameState,
    board_index: int,
    cell_index: int,
    suppress_cascade: bool = False,
    rng: random.Random | None = None,
) -> GameState | None:
    """Apply one move and return the new state, or None if the move is illegal.

    On acceptance the mark is placed, the small board and then the meta-board
    are re-evaluated. A meta win or a full meta-board ends the game at once.
    Otherwise the played cell selects the next forced board (lifted if that
    board is decided), the turn passes and, after the instability shuffle,
    the post-shuffle move counter advances.

    Unless ``suppress_cascade`` is set, the instability shuffle and then the
    role swap are evaluated in-line. Online peers suppress the cascade and
    wait for the relay's chaos-swap / role-swap events; AI lookahead
    suppresses it to stay free of side effects.

    Args:
        state: Current game state (never modified).
        board_index: Small board to play in (0-8).
        cell_index: Cell within that board (0-8).
        suppress_cascade: Skip the chaos-mechanic triggers.
        rng: Random source for the shuffle and coin flip.

    Returns:
        The new GameState, or None when the move is rejected.
    """
    validation = validate_move(state, board_index, cell_index)
    if not validation.is_valid:
        logger.debug(
            "Move rejected: code=%s, board=%s, cell=%s",
            validation.error_code,
            board_index,
            cell_index,
        )
        return None

    player = state.current_player
    cells = _replace_at(state.boards[board_index], cell_index, player)
    boards = _replace_at(state.boards, board_index, cells)
    board_status = _replace_at(state.board_status, board_index, evaluate_small_board(cells))

    update = {
        "boards": boards,
        "board_status": board_status,
        # A new move consumes the previous one-shot signals
        "shuffle_just_happened": False,
        "shuffle_mapping": None,
        "role_swap_just_happened": False,
    }

    if board_status[board_index] is not None:
        logger.info(
            "Board %d decided: outcome=%s",
            board_index,
            board_status[board_index].value,
        )

    winner = evaluate_meta_board(board_status)
    if winner is not None:
        logger.info("Game won by %s", winner.value)
        return state.model_copy(update={**update, "game_over": True, "winner": winner})

    if all_boards_decided(board_status):
        logger.info("Game drawn: all boards decided without a meta win")
        return state.model_copy(update={**update, "game_over": True, "is_draw": True})

    next_forced = cell_index if board_status[cell_index] is None else None
    update["forced_board"] = next_forced
    update["current_player"] = player.opponent
    if state.instability_triggered:
        update["post_shuffle_moves"] = state.post_shuffle_moves + 1

    new_state = state.model_copy(update=update)
    logger.debug(
        "Move applied: player=%s, board=%d, cell=%d, next_forced=%s",
        player.value,
        board_index,
        cell_index,
        next_forced,
    )

    if suppress_cascade:
        return new_state

    if should_trigger_instability(new_state):
        new_state = perform_instability_shuffle(new_state, rng)

    if should_trigger_role_swap(new_state, LOCAL_ROLE_SWAP_THRESHOLD, rng):
        new_state = apply_role_swap(new_state)

    return new_state


def clear_animation_flags(state: GameState) -> GameState:
    """Consume the one-shot shuffle and role-swap signals."""
    return state.model_copy(
        update={
            "shuffle_just_happened": False,
            "shuffle_mapping": None,
            "role_swap_just_happened": False,
        }
    )
