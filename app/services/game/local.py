"""Single-process game session for local (hot-seat) and AI modes."""

import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum

from pydantic import ValidationError

from app.schemas.game_engine import GameState, Player

from .ai import get_ai_move
from .engine.actions import GameAction, MoveAction, ResetAction
from .engine.events import AnyGameEvent, ChaosSwapped, RolesSwapped
from .engine.process import process_action
from .engine.rules import clear_animation_flags
from .start_game import initialize_game

logger = logging.getLogger(__name__)

# Delay range for the AI "thinking" timer, in seconds
AI_DELAY_RANGE = (0.8, 1.2)


class GameMode(str, Enum):
    LOCAL = "local"
    AI = "ai"
    ONLINE = "online"


@dataclass
class SymbolAssignment:
    """Which symbol the human and the AI control; swapped by a role swap."""

    human: Player = Player.X
    ai: Player = Player.O

    def swap(self) -> None:
        self.human, self.ai = self.ai, self.human


class LocalGame:
    """Owns the one authoritative GameState of a local or AI game.

    The AI move runs on a non-blocking ``loop.call_later`` timer. Every
    scheduled timer carries a generation token; reset, the start of a shuffle
    or role-swap animation, and returning to the menu bump the generation so
    a stale callback can never apply a move to a state that has moved on.

    ``last_events`` holds the numbered events of the latest transition, for
    the presentation layer to render.
    """

    def __init__(
        self,
        mode: GameMode = GameMode.LOCAL,
        rng: random.Random | None = None,
        ai_delay_range: tuple[float, float] = AI_DELAY_RANGE,
    ):
        if mode == GameMode.ONLINE:
            raise ValueError("Online games are driven by OnlinePeer")
        self.mode = mode
        self.symbols = SymbolAssignment()
        self._rng = rng or random.Random()
        self._ai_delay_range = ai_delay_range
        self._state = initialize_game()
        self.last_events: list[AnyGameEvent] = []
        self._ai_generation = 0
        self._ai_timer: asyncio.TimerHandle | None = None
        self.active = True

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def ai_pending(self) -> bool:
        return self._ai_timer is not None

    @property
    def animating(self) -> bool:
        return self._state.shuffle_just_happened or self._state.role_swap_just_happened

    def _is_ai_turn(self) -> bool:
        return self.mode == GameMode.AI and self._state.current_player == self.symbols.ai

    def play(self, board_index: int, cell_index: int) -> bool:
        """Human move. Returns False if the move was not applied."""
        if not self.active or self._state.game_over or self.animating:
            return False
        if self._is_ai_turn():
            logger.debug("Ignoring human move during the AI's turn")
            return False
        return self._apply(board_index, cell_index)

    def _run(self, action: GameAction) -> bool:
        result = process_action(self._state, action, rng=self._rng)
        if not result.success:
            logger.debug("%s refused: %s", type(action).__name__, result.error_code)
            return False
        self._state = result.state
        self.last_events = result.events
        return True

    def _apply(self, board_index: int, cell_index: int) -> bool:
        try:
            action = MoveAction(board_index=board_index, cell_index=cell_index)
        except ValidationError:
            return False
        if not self._run(action):
            return False

        if any(isinstance(event, (ChaosSwapped, RolesSwapped)) for event in self.last_events):
            self._begin_animation()
        else:
            self.schedule_ai_move()
        return True

    def _begin_animation(self) -> None:
        self.cancel_ai_move()
        swapped = any(isinstance(event, RolesSwapped) for event in self.last_events)
        if swapped and self.mode == GameMode.AI:
            self.symbols.swap()
            logger.info(
                "Roles swapped: human=%s, ai=%s",
                self.symbols.human.value,
                self.symbols.ai.value,
            )

    def acknowledge_signals(self) -> None:
        """Presentation finished the shuffle/role-swap animation."""
        if not self.animating:
            return
        self._state = clear_animation_flags(self._state)
        self.schedule_ai_move()

    def schedule_ai_move(self) -> bool:
        """Start the AI thinking timer if it is the AI's turn."""
        if not self.active or not self._is_ai_turn():
            return False
        if self._state.game_over or self.animating or self._ai_timer is not None:
            return False

        loop = asyncio.get_running_loop()
        token = self._ai_generation
        delay = self._rng.uniform(*self._ai_delay_range)
        self._ai_timer = loop.call_later(delay, self._on_ai_timer, token)
        logger.debug("AI move scheduled in %.2fs (generation=%d)", delay, token)
        return True

    def cancel_ai_move(self) -> None:
        self._ai_generation += 1
        if self._ai_timer is not None:
            self._ai_timer.cancel()
            self._ai_timer = None

    def _on_ai_timer(self, token: int) -> None:
        if token != self._ai_generation:
            logger.debug("Discarding stale AI timer (generation=%d)", token)
            return
        self._ai_timer = None
        if not self._is_ai_turn() or self._state.game_over or self.animating:
            return

        move = get_ai_move(self._state, self._rng)
        if move is None:
            logger.warning("AI found no legal move")
            return
        if not self._apply(move.board_index, move.cell_index):
            logger.error("AI produced an illegal move: %s", move)

    def reset(self) -> None:
        self.cancel_ai_move()
        self._run(ResetAction())
        # Default symbols so the AI cannot lock up after a role swap
        self.symbols = SymbolAssignment()

    def return_to_menu(self) -> None:
        self.cancel_ai_move()
        self.active = False
        self._state = initialize_game()
        self.last_events = []
        self.symbols = SymbolAssignment()
