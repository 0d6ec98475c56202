"""Tests for the role swap trigger."""

import pytest

from app.schemas.game_engine import GameState
from app.services.game.engine.role_swap import (
    LOCAL_ROLE_SWAP_THRESHOLD,
    apply_role_swap,
    role_swap_due,
    should_trigger_role_swap,
)

from .conftest import FixedRandom, make_state


class TestRoleSwapDue:
    """Deterministic part of the trigger."""

    def test_due_at_local_threshold(self):
        state = make_state(instability_triggered=True, post_shuffle_moves=LOCAL_ROLE_SWAP_THRESHOLD)
        assert role_swap_due(state)

    def test_due_at_relay_threshold(self):
        state = make_state(instability_triggered=True, post_shuffle_moves=2)
        assert role_swap_due(state, threshold=2)
        assert not role_swap_due(state)

    @pytest.mark.parametrize("moves", [0, 4, 6])
    def test_not_due_off_threshold(self, moves: int):
        state = make_state(instability_triggered=True, post_shuffle_moves=moves)
        assert not role_swap_due(state)

    def test_requires_shuffle(self):
        state = make_state(post_shuffle_moves=LOCAL_ROLE_SWAP_THRESHOLD)
        assert not role_swap_due(state)

    def test_only_once(self):
        state = make_state(
            instability_triggered=True,
            role_swap_triggered=True,
            post_shuffle_moves=LOCAL_ROLE_SWAP_THRESHOLD,
        )
        assert not role_swap_due(state)

    def test_not_after_game_over(self):
        state = make_state(
            instability_triggered=True,
            post_shuffle_moves=LOCAL_ROLE_SWAP_THRESHOLD,
            game_over=True,
        )
        assert not role_swap_due(state)


class TestCoinFlip:
    """should_trigger_role_swap gates on the coin."""

    @pytest.fixture
    def due_state(self) -> GameState:
        return make_state(instability_triggered=True, post_shuffle_moves=LOCAL_ROLE_SWAP_THRESHOLD)

    def test_heads(self, due_state: GameState):
        assert should_trigger_role_swap(due_state, rng=FixedRandom(0.49))

    def test_tails(self, due_state: GameState):
        assert not should_trigger_role_swap(due_state, rng=FixedRandom(0.5))

    def test_probability_override(self, due_state: GameState):
        assert should_trigger_role_swap(due_state, rng=FixedRandom(0.9), probability=1.0)

    def test_apply_role_swap_sets_flags_only(self, due_state: GameState):
        swapped = apply_role_swap(due_state)

        assert swapped.role_swap_triggered
        assert swapped.role_swap_just_happened
        assert swapped.current_player == due_state.current_player
        assert swapped.boards == due_state.boards
