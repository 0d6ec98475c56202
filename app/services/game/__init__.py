"""Game service module.

Provides:
- Game initialization (start_game.py)
- Game engine processing (engine/)
- AI move provider (ai.py)
- Local and AI game sessions (local.py)
"""

# Re-export from engine for convenience
from .engine import (
    ChaosSwapAction,
    GameAction,
    MoveAction,
    ProcessResult,
    ResetAction,
    RoleSwapAction,
    apply_move,
    build_action_from_payload,
    process_action,
)
from .start_game import initialize_game, reset_game
from .ai import get_ai_move
from .local import GameMode, LocalGame

__all__ = [
    # Initialization
    "initialize_game",
    "reset_game",
    # Engine
    "GameAction",
    "ProcessResult",
    "MoveAction",
    "ChaosSwapAction",
    "RoleSwapAction",
    "ResetAction",
    "apply_move",
    "process_action",
    "build_action_from_payload",
    # Sessions
    "get_ai_move",
    "GameMode",
    "LocalGame",
]
