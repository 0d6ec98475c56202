"""Tests for the instability shuffle.

Critical scenarios tested:
- Trigger fires only for exactly three conquered boards that do not line up
- Permutation relocates boards, statuses and the forced board together
- Cell contents are preserved as a multiset
"""

import random
from collections import Counter

import pytest

from app.schemas.game_engine import BoardStatus, GameState
from app.services.game.engine.instability import (
    apply_shuffle_mapping,
    generate_shuffle_mapping,
    is_valid_mapping,
    perform_instability_shuffle,
    should_trigger_instability,
)

from .conftest import O, X, cells_with, make_state


class TestTrigger:
    """should_trigger_instability."""

    def test_three_mixed_owner_boards_in_a_line(self):
        state = make_state(statuses={0: BoardStatus.X, 1: BoardStatus.O, 2: BoardStatus.X})
        assert should_trigger_instability(state)

    def test_three_scattered_boards(self):
        state = make_state(statuses={0: BoardStatus.X, 5: BoardStatus.X, 7: BoardStatus.O})
        assert should_trigger_instability(state)

    def test_same_owner_line_does_not_trigger(self):
        state = make_state(statuses={0: BoardStatus.X, 1: BoardStatus.X, 2: BoardStatus.X})
        assert not should_trigger_instability(state)

    def test_draws_are_not_conquered(self):
        state = make_state(
            statuses={
                0: BoardStatus.X,
                4: BoardStatus.DRAW,
                5: BoardStatus.O,
                8: BoardStatus.DRAW,
            }
        )
        assert not should_trigger_instability(state)

    def test_draws_do_not_block_trigger(self):
        state = make_state(
            statuses={
                0: BoardStatus.X,
                4: BoardStatus.DRAW,
                5: BoardStatus.O,
                7: BoardStatus.O,
            }
        )
        assert should_trigger_instability(state)

    @pytest.mark.parametrize("count", [2, 4])
    def test_wrong_conquered_count(self, count: int):
        owners = [BoardStatus.X, BoardStatus.O, BoardStatus.O, BoardStatus.X]
        boards = [0, 5, 7, 6]
        state = make_state(statuses=dict(zip(boards[:count], owners[:count])))
        assert not should_trigger_instability(state)

    def test_only_once_per_game(self):
        state = make_state(
            statuses={0: BoardStatus.X, 1: BoardStatus.O, 2: BoardStatus.X},
            instability_triggered=True,
        )
        assert not should_trigger_instability(state)

    def test_not_after_game_over(self):
        state = make_state(
            statuses={0: BoardStatus.X, 1: BoardStatus.O, 2: BoardStatus.X},
            game_over=True,
        )
        assert not should_trigger_instability(state)


class TestShuffleMapping:
    """Permutation generation and application."""

    def test_generated_mapping_is_permutation(self, seeded_rng):
        for _ in range(50):
            assert is_valid_mapping(generate_shuffle_mapping(seeded_rng))

    def test_generation_is_reproducible_with_seed(self):
        assert generate_shuffle_mapping(random.Random(7)) == generate_shuffle_mapping(
            random.Random(7)
        )

    def test_swap_of_first_two_boards(self):
        state = make_state(
            statuses={0: BoardStatus.X},
            boards={1: cells_with(c4=O), 5: cells_with(c2=X)},
            forced_board=0,
        )

        shuffled = apply_shuffle_mapping(state, [1, 0, 2, 3, 4, 5, 6, 7, 8])

        assert shuffled.boards[1] == state.boards[0]
        assert shuffled.boards[0] == state.boards[1]
        assert shuffled.board_status[1] == BoardStatus.X
        assert shuffled.board_status[0] is None
        assert shuffled.forced_board == 1
        for index in range(2, 9):
            assert shuffled.boards[index] == state.boards[index]
            assert shuffled.board_status[index] == state.board_status[index]

    def test_identity_mapping_keeps_boards(self):
        state = make_state(statuses={3: BoardStatus.O}, forced_board=6)

        shuffled = apply_shuffle_mapping(state, list(range(9)))

        assert shuffled.boards == state.boards
        assert shuffled.board_status == state.board_status
        assert shuffled.forced_board == 6
        assert shuffled.instability_triggered

    def test_sets_latch_and_signal(self):
        state = make_state(post_shuffle_moves=3)

        shuffled = apply_shuffle_mapping(state, [8, 7, 6, 5, 4, 3, 2, 1, 0])

        assert shuffled.instability_triggered
        assert shuffled.shuffle_just_happened
        assert shuffled.shuffle_mapping == (8, 7, 6, 5, 4, 3, 2, 1, 0)
        assert shuffled.post_shuffle_moves == 0

    def test_free_choice_stays_free(self):
        state = make_state(forced_board=None)

        shuffled = apply_shuffle_mapping(state, [2, 0, 1, 3, 4, 5, 6, 7, 8])

        assert shuffled.forced_board is None

    def test_cells_preserved_as_multiset(self, seeded_rng):
        state = make_state(
            statuses={0: BoardStatus.X, 4: BoardStatus.O, 8: BoardStatus.DRAW},
            boards={2: cells_with(c0=X, c8=O), 6: cells_with(c4=X)},
        )

        shuffled = perform_instability_shuffle(state, seeded_rng)

        assert Counter(shuffled.boards) == Counter(state.boards)
        assert sorted(s.value for s in shuffled.board_status if s) == sorted(
            s.value for s in state.board_status if s
        )

    @pytest.mark.parametrize(
        "mapping",
        [
            [0, 1, 2, 3, 4, 5, 6, 7],
            [0, 0, 2, 3, 4, 5, 6, 7, 8],
            [1, 2, 3, 4, 5, 6, 7, 8, 9],
        ],
    )
    def test_invalid_mapping_rejected(self, fresh_state: GameState, mapping: list[int]):
        with pytest.raises(ValueError):
            apply_shuffle_mapping(fresh_state, mapping)
