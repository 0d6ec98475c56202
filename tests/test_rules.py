"""Tests for apply_move: placement, forced boards, endings and the chaos cascade.

Critical scenarios tested:
- First move sends the opponent to the board matching the played cell
- Winning a small board mid-game without ending it
- Rejected moves leave the state untouched (None is returned)
- Meta win and full-board draw end the game immediately
- The cascade shuffles once three non-aligned boards are conquered
"""

import pytest

from app.schemas.game_engine import BoardStatus, GameState
from app.services.game.engine import apply_move, clear_animation_flags

from .conftest import (
    BOARD_ZERO_WIN_MOVES,
    DRAWN_CELLS,
    O,
    X,
    FixedRandom,
    make_state,
    play_all,
)


class TestPlacement:
    """Accepted moves."""

    def test_first_move_forces_matching_board(self, fresh_state: GameState):
        state = apply_move(fresh_state, 4, 4)

        assert state is not None
        assert state.boards[4][4] == X
        assert state.forced_board == 4
        assert state.current_player == O
        assert not state.game_over

    def test_input_state_is_not_modified(self, fresh_state: GameState):
        apply_move(fresh_state, 4, 4)

        assert fresh_state.boards[4][4] is None
        assert fresh_state.current_player == X

    def test_winning_a_small_board_mid_game(self, fresh_state: GameState):
        state = play_all(fresh_state, BOARD_ZERO_WIN_MOVES)

        assert state.board_status[0] == BoardStatus.X
        assert state.forced_board == 2
        assert state.current_player == O
        assert not state.game_over

    def test_forced_board_lifted_when_target_decided(self):
        state = make_state(statuses={0: BoardStatus.X}, current_player=O)

        new_state = apply_move(state, 5, 0)

        assert new_state is not None
        assert new_state.forced_board is None

    def test_decided_forced_board_allows_any_board(self):
        state = make_state(statuses={3: BoardStatus.O}, forced_board=3)

        assert apply_move(state, 7, 1) is not None


class TestRejection:
    """Rejected moves return None."""

    @pytest.mark.parametrize(("board_index", "cell_index"), [(-1, 0), (9, 0), (0, 9), (0, -1)])
    def test_out_of_range(self, fresh_state: GameState, board_index: int, cell_index: int):
        assert apply_move(fresh_state, board_index, cell_index) is None

    def test_occupied_cell(self, fresh_state: GameState):
        state = apply_move(fresh_state, 4, 4)
        assert apply_move(state, 4, 4) is None

    def test_wrong_board(self, fresh_state: GameState):
        state = apply_move(fresh_state, 4, 4)
        assert apply_move(state, 3, 0) is None

    def test_decided_board(self):
        state = make_state(statuses={0: BoardStatus.X})
        assert apply_move(state, 0, 5) is None

    def test_game_over(self):
        state = make_state(game_over=True, winner=X)
        assert apply_move(state, 4, 4) is None


class TestGameEnd:
    """Meta win and draw."""

    def test_meta_win(self, meta_win_ready_state: GameState):
        state = apply_move(meta_win_ready_state, 2, 2)

        assert state is not None
        assert state.game_over
        assert state.winner == X
        assert not state.is_draw
        # The turn does not pass once the game is over
        assert state.current_player == X

    def test_meta_win_preempts_instability(self, meta_win_ready_state: GameState):
        state = apply_move(meta_win_ready_state, 2, 2, rng=FixedRandom(0.0))

        assert not state.instability_triggered

    def test_draw_when_all_boards_decided_without_line(self):
        outcomes = {
            0: BoardStatus.X,
            1: BoardStatus.O,
            2: BoardStatus.X,
            3: BoardStatus.X,
            4: BoardStatus.O,
            5: BoardStatus.O,
            6: BoardStatus.O,
            7: BoardStatus.X,
        }
        last_board = DRAWN_CELLS[:8] + (None,)
        state = make_state(
            statuses=outcomes,
            boards={8: last_board},
            current_player=X,
            forced_board=8,
            instability_triggered=True,
        )

        new_state = apply_move(state, 8, 8)

        assert new_state is not None
        assert new_state.board_status[8] == BoardStatus.DRAW
        assert new_state.game_over
        assert new_state.is_draw
        assert new_state.winner is None


class TestCascade:
    """Instability and role swap evaluated in-line."""

    def test_instability_fires_on_third_conquered_board(
        self, instability_ready_state: GameState, seeded_rng
    ):
        state = apply_move(instability_ready_state, 8, 2, rng=seeded_rng)

        assert state.instability_triggered
        assert state.shuffle_just_happened
        assert sorted(state.shuffle_mapping) == list(range(9))
        assert state.post_shuffle_moves == 0
        assert sorted(s.value for s in state.board_status if s is not None) == ["O", "X", "X"]
        # The forced board follows the relocated board
        assert state.forced_board == state.shuffle_mapping[2]

    def test_suppressed_cascade_leaves_state_unshuffled(
        self, instability_ready_state: GameState
    ):
        state = apply_move(instability_ready_state, 8, 2, suppress_cascade=True)

        assert state.board_status[8] == BoardStatus.X
        assert not state.instability_triggered
        assert state.shuffle_mapping is None

    def test_moves_after_shuffle_are_counted(self, post_shuffle_state: GameState):
        state = apply_move(post_shuffle_state, 4, 4, rng=FixedRandom(0.99))

        assert state.post_shuffle_moves == 5

    def test_role_swap_fires_on_heads(self, post_shuffle_state: GameState):
        state = apply_move(post_shuffle_state, 4, 4, rng=FixedRandom(0.0))

        assert state.role_swap_triggered
        assert state.role_swap_just_happened

    def test_role_swap_skipped_on_tails(self, post_shuffle_state: GameState):
        state = apply_move(post_shuffle_state, 4, 4, rng=FixedRandom(0.99))

        assert not state.role_swap_triggered
        # Later moves never reach the threshold again
        state = apply_move(state, 4, 0, rng=FixedRandom(0.0))
        assert state.post_shuffle_moves == 6
        assert not state.role_swap_triggered

    def test_next_move_clears_signals(self, instability_ready_state: GameState, seeded_rng):
        state = apply_move(instability_ready_state, 8, 2, rng=seeded_rng)
        forced = state.forced_board
        cell = next(c for c in range(9) if state.boards[forced][c] is None)

        state = apply_move(state, forced, cell, rng=seeded_rng)

        assert not state.shuffle_just_happened
        assert state.shuffle_mapping is None
        assert state.instability_triggered
        assert state.post_shuffle_moves == 1

    def test_clear_animation_flags(self, instability_ready_state: GameState, seeded_rng):
        state = apply_move(instability_ready_state, 8, 2, rng=seeded_rng)

        cleared = clear_animation_flags(state)

        assert not cleared.shuffle_just_happened
        assert cleared.shuffle_mapping is None
        assert cleared.instability_triggered
        assert cleared.boards == state.boards

