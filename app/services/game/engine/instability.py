"""Instability shuffle: one-shot random relocation of the nine small boards."""

import logging
import random

from app.schemas.game_engine import BOARD_COUNT, BoardStatus, Cells, GameState

from .board import conquered_boards_form_line, count_conquered, evaluate_meta_board

logger = logging.getLogger(__name__)

# Number of conquered boards (X or O, not DRAW) that destabilizes the meta-board
INSTABILITY_CONQUERED_COUNT = 3

_rng = random.Random()


def should_trigger_instability(state: GameState) -> bool:
    """Check if the instability shuffle should fire.

    Conditions:
    1. Instability has not fired before this game
    2. The game is not over
    3. Exactly 3 boards are conquered (X or O, DRAW does not count)
    4. The conquered boards do not form a same-owner winning line
    5. No player already wins the meta-board
    """
    if state.instability_triggered or state.game_over:
        return False

    if count_conquered(state.board_status) != INSTABILITY_CONQUERED_COUNT:
        return False

    if conquered_boards_form_line(state.board_status):
        return False

    return evaluate_meta_board(state.board_status) is None


def generate_shuffle_mapping(rng: random.Random | None = None) -> tuple[int, ...]:
    """Generate a uniformly random permutation of 0..8 (Fisher-Yates)."""
    rng = rng or _rng
    mapping = list(range(BOARD_COUNT))
    for i in range(len(mapping) - 1, 0, -1):
        j = rng.randrange(i + 1)
        mapping[i], mapping[j] = mapping[j], mapping[i]
    return tuple(mapping)


def is_valid_mapping(mapping: tuple[int, ...] | list[int]) -> bool:
    return sorted(mapping) == list(range(BOARD_COUNT))


def apply_shuffle_mapping(state: GameState, mapping: tuple[int, ...] | list[int]) -> GameState:
    """Relocate every board to ``mapping[old_index]``.

    Cell contents and decided status travel with their board; the forced
    board is remapped through the same permutation. Latches the instability
    flag, records the mapping for presentation/replay and restarts the
    post-shuffle move counter.

    Raises:
        ValueError: If ``mapping`` is not a permutation of 0..8.
    """
    if not is_valid_mapping(mapping):
        raise ValueError(f"Invalid shuffle mapping: {list(mapping)}")

    mapping = tuple(mapping)
    new_boards: list[Cells] = [()] * BOARD_COUNT
    new_status: list[BoardStatus | None] = [None] * BOARD_COUNT
    for old_index, new_index in enumerate(mapping):
        new_boards[new_index] = state.boards[old_index]
        new_status[new_index] = state.board_status[old_index]

    forced = state.forced_board
    new_forced = mapping[forced] if forced is not None else None

    logger.info("Applying instability shuffle: mapping=%s", list(mapping))
    logger.debug("Forced board remapped: %s -> %s", forced, new_forced)

    return state.model_copy(
        update={
            "boards": tuple(new_boards),
            "board_status": tuple(new_status),
            "forced_board": new_forced,
            "instability_triggered": True,
            "shuffle_just_happened": True,
            "shuffle_mapping": mapping,
            "post_shuffle_moves": 0,
        }
    )


def perform_instability_shuffle(state: GameState, rng: random.Random | None = None) -> GameState:
    """Shuffle with a locally generated permutation (local and AI games only)."""
    return apply_shuffle_mapping(state, generate_shuffle_mapping(rng))
