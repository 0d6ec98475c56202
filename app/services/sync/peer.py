"""Online game driven through the relay.

Each peer keeps its own GameState copy. Moves are applied locally with the
chaos cascade suppressed; after every accepted move the peer reports a
snapshot and the relay decides whether a chaos swap or role swap fires, then
broadcasts the outcome to both peers.
"""

import logging
import random

from pydantic import ValidationError

from app.schemas.game_engine import GameState, Move, Player
from app.schemas.ws import (
    ChaosSwapPayload,
    MessageType,
    MovePayload,
    RoomStatusPayload,
    WSServerMessage,
)
from app.services.game.engine.actions import (
    ChaosSwapAction,
    GameAction,
    MoveAction,
    ResetAction,
    RoleSwapAction,
)
from app.services.game.engine.events import AnyGameEvent
from app.services.game.engine.process import process_action
from app.services.game.engine.rules import clear_animation_flags
from app.services.game.start_game import initialize_game
from app.services.room.service import generate_room_code

from .session import RelaySession

logger = logging.getLogger(__name__)


class OnlinePeer:
    """One player's side of an online game.

    The first peer in a room plays X and the second plays O. A role swap
    flips the local symbol; the board itself is untouched. A peer whose link
    dropped re-enters as the second seat, since its opponent kept the room.
    """

    def __init__(self, session: RelaySession, rng: random.Random | None = None):
        self.session = session
        self._rng = rng or random.Random()
        self._state = initialize_game()
        self.symbol: Player | None = None
        self.remote_connected = False
        self._first_in_room = False
        self.last_events: list[AnyGameEvent] = []
        self._unsubscribers = []

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def room_id(self) -> str | None:
        return self.session.room_id

    @property
    def is_my_turn(self) -> bool:
        if not self.remote_connected:
            return True
        return self._state.current_player == self.symbol

    # --- Room lifecycle ---

    async def join(self, room_id: str | None = None) -> str:
        """Join a room, generating a shareable code when none is given."""
        room_id = room_id or generate_room_code(self._rng)
        self._state = initialize_game()
        self.last_events = []
        self.symbol = None
        self.remote_connected = False
        self._first_in_room = False
        self._subscribe()
        await self.session.join(room_id)
        logger.info("Joining room %s", room_id)
        return room_id

    async def leave(self) -> None:
        self._unsubscribe()
        await self.session.leave()
        self.remote_connected = False
        self.symbol = None

    def _subscribe(self) -> None:
        self._unsubscribe()
        handlers = {
            MessageType.MOVE: self._on_remote_move,
            MessageType.CHAOS_SWAP: self._on_chaos_swap,
            MessageType.ROLE_SWAP: self._on_role_swap,
            MessageType.RESET: self._on_remote_reset,
            MessageType.ROOM_STATUS: self._on_room_status,
        }
        self._unsubscribers = [self.session.on(t, h) for t, h in handlers.items()]
        self._unsubscribers.append(self.session.on_rejoin(self._on_rejoined))

    def _unsubscribe(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # --- Local actions ---

    def _run(self, action: GameAction) -> bool:
        # Chaos events only ever arrive from the relay, so the cascade stays off
        result = process_action(self._state, action, suppress_cascade=True, rng=self._rng)
        if not result.success:
            logger.debug("%s refused: %s", type(action).__name__, result.error_code)
            return False
        self._state = result.state
        self.last_events = result.events
        return True

    async def play(self, board_index: int, cell_index: int) -> bool:
        """Apply a local move and relay it. Returns False if it was not applied."""
        if not self.is_my_turn:
            logger.debug("Ignoring move: it is %s's turn", self._state.current_player.value)
            return False

        try:
            action = MoveAction(board_index=board_index, cell_index=cell_index)
        except ValidationError:
            return False
        if not self._run(action):
            return False

        await self.session.send_move(Move(board_index=board_index, cell_index=cell_index))
        await self.session.send_game_state(self._state)
        return True

    def _restart(self) -> None:
        self._run(ResetAction())
        if self.symbol is not None:
            self.symbol = self._seat_symbol()

    async def reset(self) -> None:
        self._restart()
        await self.session.send_reset()

    def acknowledge_signals(self) -> None:
        """Presentation finished showing the shuffle or role-swap signal."""
        self._state = clear_animation_flags(self._state)

    # --- Relay events ---

    async def _on_remote_move(self, message: WSServerMessage) -> None:
        try:
            payload = MovePayload.model_validate(message.payload or {})
        except ValidationError as e:
            logger.warning("Dropping malformed remote move: %s", e)
            return

        if not self._run(MoveAction(board_index=payload.board_index, cell_index=payload.cell_index)):
            logger.warning(
                "Rejected remote move: board %d, cell %d",
                payload.board_index,
                payload.cell_index,
            )
            return
        await self.session.send_game_state(self._state)

    def _on_chaos_swap(self, message: WSServerMessage) -> None:
        try:
            payload = ChaosSwapPayload.model_validate(message.payload or {})
        except ValidationError as e:
            logger.warning("Dropping malformed chaos swap: %s", e)
            return

        # A repeated delivery fails validation on the latch and is dropped
        if self._run(ChaosSwapAction(shuffle_mapping=tuple(payload.shuffle_mapping))):
            logger.info("Chaos swap applied: %s", payload.shuffle_mapping)

    def _on_role_swap(self, message: WSServerMessage) -> None:
        if not self._run(RoleSwapAction()):
            return
        if self.symbol is not None:
            self.symbol = self._seat_symbol()
        logger.info("Role swap: now playing %s", self.symbol.value if self.symbol else None)

    def _on_remote_reset(self, message: WSServerMessage) -> None:
        self._restart()
        logger.info("Game reset by opponent")

    def _seat_symbol(self) -> Player:
        # Whoever was in the room first holds X until a role swap flips both seats
        seat = Player.X if self._first_in_room else Player.O
        return seat.opponent if self._state.role_swap_triggered else seat

    def _on_rejoined(self, room_id: str) -> None:
        """The link dropped and the session re-joined; the opponent now holds the first seat."""
        self._first_in_room = False
        self.remote_connected = False
        self.symbol = None
        logger.info("Re-joined room %s, waiting for room status", room_id)

    def _on_room_status(self, message: WSServerMessage) -> None:
        try:
            status = RoomStatusPayload.model_validate(message.payload or {})
        except ValidationError as e:
            logger.warning("Dropping malformed room status: %s", e)
            return

        if status.players <= 1:
            self._first_in_room = True
            self.remote_connected = False
            self.symbol = self._seat_symbol()
        elif self.symbol is None or not self.remote_connected:
            self.remote_connected = True
            self.symbol = self._seat_symbol()
        logger.debug(
            "Room status: players=%d, symbol=%s",
            status.players,
            self.symbol.value if self.symbol else None,
        )
