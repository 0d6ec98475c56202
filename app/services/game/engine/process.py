"""Action façade over the rules.

``process_action`` is what sessions call: it checks the action, applies it
and describes the transition as a numbered list of events.
"""

import logging
import random

from app.schemas.game_engine import GameState
from app.services.game.start_game import reset_game

from .actions import (
    ChaosSwapAction,
    GameAction,
    MoveAction,
    ResetAction,
    RoleSwapAction,
)
from .events import (
    AnyGameEvent,
    BoardDecided,
    ChaosSwapped,
    GameEnded,
    GameReset,
    MovePlayed,
    RolesSwapped,
)
from .instability import apply_shuffle_mapping
from .role_swap import apply_role_swap
from .rules import apply_move
from .validation import ProcessResult, validate_action

logger = logging.getLogger(__name__)


def process_action(
    state: GameState,
    action: GameAction,
    suppress_cascade: bool = False,
    rng: random.Random | None = None,
) -> ProcessResult:
    """Apply ``action`` to ``state``.

    Args:
        state: State before the action.
        action: Move, chaos swap, role swap or reset.
        suppress_cascade: Forwarded to ``apply_move``; online peers set it so
            chaos events only arrive from the relay.
        rng: Randomness for chaos triggers evaluated locally.

    Returns:
        A ProcessResult. On success its events carry ``seq`` values that
        continue from ``state.event_seq``; a reset starts over at zero.
    """
    verdict = validate_action(state, action)
    if not verdict.is_valid:
        return ProcessResult.failure(
            verdict.error_code or "VALIDATION_ERROR",
            verdict.error_message or "Invalid action",
        )

    if isinstance(action, ResetAction):
        return ProcessResult.ok(reset_game(), [GameReset()])

    if isinstance(action, MoveAction):
        result = process_move(state, action, suppress_cascade, rng)
    elif isinstance(action, ChaosSwapAction):
        result = process_chaos_swap(state, action)
    elif isinstance(action, RoleSwapAction):
        result = ProcessResult.ok(apply_role_swap(state), [RolesSwapped()])
    else:
        logger.error("No processor for %s", type(action).__name__)
        return ProcessResult.failure(
            "UNKNOWN_ACTION",
            f"Unknown action type: {type(action).__name__}",
        )

    if result.success:
        result = _number_events(result)
        logger.debug("%s -> %s", type(action).__name__, [type(e).__name__ for e in result.events])
    return result


def _number_events(result: ProcessResult) -> ProcessResult:
    if result.state is None or not result.events:
        return result

    start = result.state.event_seq
    for offset, event in enumerate(result.events):
        event.seq = start + offset

    state = result.state.model_copy(update={"event_seq": start + len(result.events)})
    return ProcessResult.ok(state, result.events)


def process_move(
    state: GameState,
    action: MoveAction,
    suppress_cascade: bool,
    rng: random.Random | None,
) -> ProcessResult:
    """Apply a move and describe every transition it caused."""
    new_state = apply_move(
        state,
        action.board_index,
        action.cell_index,
        suppress_cascade=suppress_cascade,
        rng=rng,
    )
    if new_state is None:
        # validate_action already covers every rejection apply_move makes
        return ProcessResult.failure("ILLEGAL_MOVE", "Move rejected")

    events: list[AnyGameEvent] = [
        MovePlayed(
            player=state.current_player,
            board_index=action.board_index,
            cell_index=action.cell_index,
            next_forced_board=None if new_state.game_over else new_state.forced_board,
        )
    ]

    # The shuffle may have relocated the played board; look it up through the mapping
    decided_index = action.board_index
    if new_state.shuffle_just_happened and new_state.shuffle_mapping is not None:
        decided_index = new_state.shuffle_mapping[action.board_index]
    outcome = new_state.board_status[decided_index]
    if outcome is not None:
        events.append(BoardDecided(board_index=action.board_index, outcome=outcome))

    if new_state.game_over:
        events.append(GameEnded(winner=new_state.winner, is_draw=new_state.is_draw))

    if new_state.shuffle_just_happened and new_state.shuffle_mapping is not None:
        events.append(ChaosSwapped(shuffle_mapping=list(new_state.shuffle_mapping)))

    if new_state.role_swap_just_happened:
        events.append(RolesSwapped())

    return ProcessResult.ok(new_state, events)


def process_chaos_swap(state: GameState, action: ChaosSwapAction) -> ProcessResult:
    """Apply a permutation supplied by the relay."""
    try:
        new_state = apply_shuffle_mapping(state, action.shuffle_mapping)
    except ValueError as e:
        logger.warning("Rejected shuffle mapping: %s", e)
        return ProcessResult.failure("INVALID_SHUFFLE_MAPPING", str(e))

    return ProcessResult.ok(
        new_state,
        [ChaosSwapped(shuffle_mapping=list(action.shuffle_mapping))],
    )
