"""Legality checks and the result objects the engine returns.

Nothing in the engine raises for an illegal action; callers branch on
``ProcessResult.success`` or ``ValidationResult.is_valid`` and can show the
``error_code`` to the player.
"""

import logging
from dataclasses import dataclass, field

from app.schemas.game_engine import BOARD_COUNT, CELL_COUNT, GameState

from .actions import ChaosSwapAction, GameAction, MoveAction, RoleSwapAction
from .events import AnyGameEvent

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Outcome of ``process_action``: the next state and its events, or an error."""

    state: GameState | None = None
    events: list[AnyGameEvent] = field(default_factory=list)
    success: bool = True
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def ok(cls, state: GameState, events: list[AnyGameEvent] | None = None) -> "ProcessResult":
        return cls(state=state, events=list(events or []))

    @classmethod
    def failure(cls, code: str, message: str) -> "ProcessResult":
        return cls(success=False, error_code=code, error_message=message)


@dataclass
class ValidationResult:
    is_valid: bool = True
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def error(cls, code: str, message: str) -> "ValidationResult":
        return cls(is_valid=False, error_code=code, error_message=message)


def validate_move(state: GameState, board_index: int, cell_index: int) -> ValidationResult:
    """Validate a move against the ultimate tic-tac-toe rules.

    A move is legal iff the game is not over, the indices are on the board,
    the target board is undecided, the target cell is empty, and either no
    forced board is active, the forced board is already decided, or the move
    lands in the forced board.
    """
    if state.game_over:
        return ValidationResult.error("GAME_OVER", "Game is already over")

    if not (0 <= board_index < BOARD_COUNT and 0 <= cell_index < CELL_COUNT):
        return ValidationResult.error(
            "INVALID_INDEX",
            f"Move ({board_index}, {cell_index}) is off the board",
        )

    if state.board_status[board_index] is not None:
        return ValidationResult.error(
            "BOARD_DECIDED",
            f"Board {board_index} is already decided",
        )

    if state.boards[board_index][cell_index] is not None:
        return ValidationResult.error(
            "CELL_OCCUPIED",
            f"Cell {cell_index} of board {board_index} is occupied",
        )

    forced = state.forced_board
    if forced is not None and state.board_status[forced] is None and board_index != forced:
        return ValidationResult.error(
            "WRONG_BOARD",
            f"Move must be played in board {forced}",
        )

    return ValidationResult.ok()


def _once_per_game(state: GameState, already: bool, code: str, message: str) -> ValidationResult:
    if state.game_over:
        return ValidationResult.error("GAME_OVER", "Game is already over")
    if already:
        logger.warning("Rejected repeat chaos event: %s", code)
        return ValidationResult.error(code, message)
    return ValidationResult.ok()


def validate_action(state: GameState, action: GameAction) -> ValidationResult:
    """Check ``action`` against ``state`` without applying it.

    Chaos swaps and role swaps are accepted once per game, and only while the
    game is still running. Resets are always accepted.
    """
    if isinstance(action, MoveAction):
        result = validate_move(state, action.board_index, action.cell_index)
        if not result.is_valid:
            logger.debug(
                "Move (%d, %d) refused: %s",
                action.board_index,
                action.cell_index,
                result.error_code,
            )
        return result

    if isinstance(action, ChaosSwapAction):
        return _once_per_game(
            state,
            state.instability_triggered,
            "INSTABILITY_ALREADY_TRIGGERED",
            "The board shuffle has already happened this game",
        )

    if isinstance(action, RoleSwapAction):
        return _once_per_game(
            state,
            state.role_swap_triggered,
            "ROLE_SWAP_ALREADY_TRIGGERED",
            "Roles have already been swapped this game",
        )

    return ValidationResult.ok()
