"""Pure Chaos Ultimate Tic-Tac-Toe rules.

Everything here is a function of its inputs (plus an optional
``random.Random``): states go in, new frozen states come out. Sessions
either call ``apply_move`` directly, where ``None`` means the move was
refused, or go through ``process_action`` to get numbered events::

    result = process_action(state, MoveAction(board_index=4, cell_index=4))
    if result.success:
        state = result.state
"""

# Actions - explicit inputs
from .actions import (
    ChaosSwapAction,
    GameAction,
    MoveAction,
    ResetAction,
    RoleSwapAction,
    build_action_from_payload,
)

# Board geometry
from .board import (
    WINNING_LINES,
    count_conquered,
    evaluate_meta_board,
    evaluate_small_board,
    line_triples,
)

# Events
from .events import (
    AnyGameEvent,
    BoardDecided,
    ChaosSwapped,
    GameEnded,
    GameEvent,
    GameReset,
    MovePlayed,
    RolesSwapped,
)

# Chaos mechanics
from .instability import (
    apply_shuffle_mapping,
    generate_shuffle_mapping,
    perform_instability_shuffle,
    should_trigger_instability,
)

# Legal moves
from .legal_moves import get_legal_moves, has_any_legal_moves, is_legal_move

# Main processing
from .process import process_action
from .role_swap import (
    LOCAL_ROLE_SWAP_THRESHOLD,
    apply_role_swap,
    role_swap_due,
    should_trigger_role_swap,
)
from .rules import apply_move, clear_animation_flags

# Result types
from .validation import ProcessResult, ValidationResult, validate_action, validate_move

__all__ = [
    # Actions
    "GameAction",
    "MoveAction",
    "ChaosSwapAction",
    "RoleSwapAction",
    "ResetAction",
    "build_action_from_payload",
    # Board
    "WINNING_LINES",
    "line_triples",
    "evaluate_small_board",
    "evaluate_meta_board",
    "count_conquered",
    # Events
    "GameEvent",
    "AnyGameEvent",
    "MovePlayed",
    "BoardDecided",
    "ChaosSwapped",
    "RolesSwapped",
    "GameEnded",
    "GameReset",
    # Rules
    "apply_move",
    "clear_animation_flags",
    "process_action",
    # Chaos mechanics
    "should_trigger_instability",
    "generate_shuffle_mapping",
    "apply_shuffle_mapping",
    "perform_instability_shuffle",
    "LOCAL_ROLE_SWAP_THRESHOLD",
    "role_swap_due",
    "should_trigger_role_swap",
    "apply_role_swap",
    # Validation
    "ProcessResult",
    "ValidationResult",
    "validate_action",
    "validate_move",
    # Legal moves
    "get_legal_moves",
    "has_any_legal_moves",
    "is_legal_move",
]
