"""Greedy AI move provider for single-player games.

Priorities, in order:
1. A move that wins the game
2. A move that wins a small board
3. A move that blocks the opponent from winning the board it is played in
4. The best heuristic score (strategic boards and cells, two-in-a-row
   setups, never sending the opponent to a board they can take at once)

Lookahead uses apply_move(suppress_cascade=True) so that simulating a move
can never shuffle the boards or swap roles. If scoring fails for any reason
the provider degrades to a uniformly random legal move.
"""

import logging
import random

from app.schemas.game_engine import BoardStatus, GameState, Move, Player

from .engine.board import WINNING_LINES, evaluate_small_board
from .engine.legal_moves import get_legal_moves
from .engine.rules import apply_move

logger = logging.getLogger(__name__)

# Center board first, then corners
_STRATEGIC_BOARDS = [4, 0, 2, 6, 8]
# Center cell, corners, then edges
_STRATEGIC_CELLS = [4, 0, 2, 6, 8, 1, 3, 5, 7]

_SETUP_BONUS = 15
_GIFT_PENALTY = 20
_FREE_CHOICE_PENALTY = 5
_JITTER = 3.0

_rng = random.Random()


def _count_line(line: list[Player | None], player: Player) -> tuple[int, int]:
    return sum(1 for cell in line if cell == player), sum(1 for cell in line if cell is None)


def score_move(state: GameState, move: Move, player: Player, rng: random.Random) -> float:
    """Heuristic value of ``move`` for ``player``; higher is better."""
    score = 0.0
    opponent = player.opponent

    if move.board_index in _STRATEGIC_BOARDS:
        score += (5 - _STRATEGIC_BOARDS.index(move.board_index)) * 2
    score += 9 - _STRATEGIC_CELLS.index(move.cell_index)

    cells = list(state.boards[move.board_index])
    cells[move.cell_index] = player
    for a, b, c in WINNING_LINES:
        mine, empty = _count_line([cells[a], cells[b], cells[c]], player)
        if mine == 2 and empty == 1:
            score += _SETUP_BONUS

    # The played cell is where the opponent goes next
    destination = move.cell_index
    if state.board_status[destination] is None:
        target = state.boards[destination]
        for a, b, c in WINNING_LINES:
            theirs, empty = _count_line([target[a], target[b], target[c]], opponent)
            if theirs == 2 and empty == 1:
                score -= _GIFT_PENALTY
    else:
        score -= _FREE_CHOICE_PENALTY

    return score + rng.random() * _JITTER


def _choose_move(state: GameState, moves: list[Move], rng: random.Random) -> Move:
    player = state.current_player
    opponent = player.opponent

    board_win: Move | None = None
    for move in moves:
        simulated = apply_move(state, move.board_index, move.cell_index, suppress_cascade=True)
        if simulated is None:
            continue
        if simulated.winner == player:
            logger.debug("AI found winning move: %s", move)
            return move
        if board_win is None and simulated.board_status[move.board_index] == BoardStatus(player.value):
            board_win = move
    if board_win is not None:
        return board_win

    for move in moves:
        cells = list(state.boards[move.board_index])
        cells[move.cell_index] = opponent
        if evaluate_small_board(cells) == BoardStatus(opponent.value):
            logger.debug("AI blocking opponent at %s", move)
            return move

    return max(moves, key=lambda m: score_move(state, m, player, rng))


def get_ai_move(state: GameState, rng: random.Random | None = None) -> Move | None:
    """Pick a move for the current player.

    Args:
        state: Current game state; must not be mid-animation.
        rng: Random source for jitter and the fallback.

    Returns:
        A legal Move, or None when no legal move exists.
    """
    rng = rng or _rng
    moves = get_legal_moves(state)
    if not moves:
        return None

    try:
        return _choose_move(state, moves, rng)
    except Exception:
        logger.exception("AI scoring failed, falling back to a random legal move")
        return rng.choice(moves)
