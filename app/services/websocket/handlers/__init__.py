"""Relay message handlers.

Each client message type maps to one coroutine registered with
``@handler(MessageType.X)``. Types the relay only ever emits (room status,
chaos events, pong...) are refused when a client sends them, so a peer
cannot forge a chaos-swap for its opponent.
"""

import logging
from collections.abc import Awaitable, Callable

from app.schemas.ws import MessageType

from .base import HandlerContext, HandlerResult, error_response

logger = logging.getLogger(__name__)

HandlerFunc = Callable[[HandlerContext], Awaitable[HandlerResult]]

# Emitted by the relay, never accepted from a client
SERVER_ONLY_TYPES = frozenset(
    {
        MessageType.CONNECTED,
        MessageType.ERROR,
        MessageType.PONG,
        MessageType.ROOM_STATUS,
        MessageType.CHAOS_SWAP,
        MessageType.ROLE_SWAP,
    }
)

_handlers: dict[MessageType, HandlerFunc] = {}


def handler(message_type: MessageType) -> Callable[[HandlerFunc], HandlerFunc]:
    """Register the decorated coroutine as the handler for ``message_type``."""
    if message_type in SERVER_ONLY_TYPES:
        raise ValueError(f"{message_type.value} is emitted by the relay only")

    def decorator(func: HandlerFunc) -> HandlerFunc:
        if message_type in _handlers:
            logger.warning("Replacing handler for %s", message_type.value)
        _handlers[message_type] = func
        logger.debug("Handler for %s: %s", message_type.value, func.__name__)
        return func

    return decorator


def registered_types() -> frozenset[MessageType]:
    return frozenset(_handlers)


async def dispatch(ctx: HandlerContext) -> HandlerResult | None:
    """Route a message to its handler.

    Returns an error result for relay-only types and None for types nobody
    handles.
    """
    message_type = ctx.message.type
    if message_type in SERVER_ONLY_TYPES:
        logger.warning(
            "Connection %s sent relay-only message %s",
            ctx.connection_id,
            message_type.value,
        )
        return error_response(
            error_code="SERVER_ONLY_MESSAGE",
            message=f"'{message_type.value}' is issued by the relay",
            request_id=ctx.message.request_id,
        )

    handler_func = _handlers.get(message_type)
    if handler_func is None:
        logger.debug("No handler for %s from %s", message_type.value, ctx.connection_id)
        return None

    return await handler_func(ctx)


# Handler modules register themselves on import
from . import game_state  # noqa: E402, F401
from . import join_room  # noqa: E402, F401
from . import leave  # noqa: E402, F401
from . import move  # noqa: E402, F401
from . import ping  # noqa: E402, F401
from . import reset  # noqa: E402, F401

__all__ = [
    "HandlerContext",
    "HandlerResult",
    "SERVER_ONLY_TYPES",
    "dispatch",
    "handler",
    "registered_types",
]
