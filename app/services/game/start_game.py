from app.schemas.game_engine import GameState


def initialize_game() -> GameState:
    """Create a fresh game: empty boards, X to move, free choice of board."""
    return GameState()


def reset_game() -> GameState:
    """Discard the current game and start over.

    Resetting does not depend on the previous state, so resetting twice is
    the same as resetting once.
    """
    return initialize_game()
