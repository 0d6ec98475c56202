"""Game action types - explicit inputs separated from game state."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator

from app.schemas.game_engine import BOARD_COUNT, CELL_COUNT


class MoveAction(BaseModel):
    """Current player places a mark."""

    action_type: Literal["move"] = "move"
    board_index: int = Field(..., ge=0, lt=BOARD_COUNT, description="Small board (0-8)")
    cell_index: int = Field(..., ge=0, lt=CELL_COUNT, description="Cell within the board (0-8)")


class ChaosSwapAction(BaseModel):
    """Relocate the nine boards using a permutation chosen elsewhere (the relay)."""

    action_type: Literal["chaos_swap"] = "chaos_swap"
    shuffle_mapping: tuple[int, ...] = Field(
        ..., description="mapping[old_index] = new_index"
    )

    @field_validator("shuffle_mapping")
    @classmethod
    def validate_permutation(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if sorted(v) != list(range(BOARD_COUNT)):
            raise ValueError("shuffle_mapping must be a permutation of 0..8")
        return v


class RoleSwapAction(BaseModel):
    """Latch the role swap announced by the relay."""

    action_type: Literal["role_swap"] = "role_swap"


class ResetAction(BaseModel):
    """Start over with a fresh board."""

    action_type: Literal["reset"] = "reset"


# Union type for all game actions
GameAction = Annotated[
    MoveAction | ChaosSwapAction | RoleSwapAction | ResetAction,
    Field(discriminator="action_type"),
]


def build_action_from_payload(payload: dict) -> GameAction:
    """Build a typed action from a raw payload dict.

    Args:
        payload: Dict with 'action_type' key and action-specific fields.

    Returns:
        The appropriate GameAction subtype.

    Raises:
        ValueError: If action_type is missing or unknown.
    """
    action_type = payload.get("action_type")

    if action_type == "move":
        return MoveAction.model_validate(payload)
    elif action_type == "chaos_swap":
        return ChaosSwapAction.model_validate(payload)
    elif action_type == "role_swap":
        return RoleSwapAction.model_validate(payload)
    elif action_type == "reset":
        return ResetAction.model_validate(payload)
    else:
        raise ValueError(f"Unknown action type: {action_type}")
