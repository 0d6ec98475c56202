"""Handler for PING messages."""

import logging

from app.schemas.ws import MessageType, PongPayload, WSServerMessage

from . import handler
from .base import HandlerContext, HandlerResult

logger = logging.getLogger(__name__)


@handler(MessageType.PING)
async def handle_ping(ctx: HandlerContext) -> HandlerResult:
    """Keep the connection alive and tell the peer which room it is in.

    After a reconnect the client can compare ``room_id`` with the room it
    meant to re-join.
    """
    await ctx.manager.heartbeat(ctx.connection_id)
    room_id = ctx.manager.rooms.get_peer_room(ctx.connection_id)
    logger.debug("Pong to %s (room=%s)", ctx.connection_id, room_id)

    return HandlerResult(
        success=True,
        response=WSServerMessage(
            type=MessageType.PONG,
            request_id=ctx.message.request_id,
            payload=PongPayload(room_id=room_id).model_dump(),
        ),
    )
