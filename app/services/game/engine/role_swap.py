"""Role swap: a one-shot, coin-flip gated exchange of X and O between players."""

import logging
import random

from app.schemas.game_engine import GameState

logger = logging.getLogger(__name__)

# Post-shuffle moves before the single-process engine flips its coin.
# The relay uses its own threshold (Settings.ROLE_SWAP_THRESHOLD, default 2).
LOCAL_ROLE_SWAP_THRESHOLD = 5
ROLE_SWAP_PROBABILITY = 0.5

_rng = random.Random()


def role_swap_due(state: GameState, threshold: int = LOCAL_ROLE_SWAP_THRESHOLD) -> bool:
    """Deterministic part of the trigger, before the coin flip."""
    return (
        state.instability_triggered
        and not state.role_swap_triggered
        and not state.game_over
        and state.post_shuffle_moves == threshold
    )


def should_trigger_role_swap(
    state: GameState,
    threshold: int = LOCAL_ROLE_SWAP_THRESHOLD,
    rng: random.Random | None = None,
    probability: float = ROLE_SWAP_PROBABILITY,
) -> bool:
    """Check whether the role swap fires: due and the coin lands heads."""
    if not role_swap_due(state, threshold):
        return False
    rng = rng or _rng
    fired = rng.random() < probability
    logger.debug(
        "Role swap coin flip at post_shuffle_moves=%d: fired=%s",
        state.post_shuffle_moves,
        fired,
    )
    return fired


def apply_role_swap(state: GameState) -> GameState:
    """Latch the role swap.

    Only the flags change; who controls X and O is owned by the session
    layer, which reacts to ``role_swap_just_happened``.
    """
    logger.info("Role swap triggered after %d post-shuffle moves", state.post_shuffle_moves)
    return state.model_copy(
        update={
            "role_swap_triggered": True,
            "role_swap_just_happened": True,
        }
    )
