"""Handler for RESET messages."""

import logging

from app.schemas.ws import MessageType, WSServerMessage

from . import handler
from .base import HandlerContext, HandlerResult, result_error

logger = logging.getLogger(__name__)


@handler(MessageType.RESET)
async def handle_reset(ctx: HandlerContext) -> HandlerResult:
    """Clear the room's snapshot and forward the reset to the other peers."""
    result = ctx.manager.rooms.relay_reset(ctx.connection_id)
    if not result.success:
        return result_error(ctx, result.error_code, result.error_message)

    await ctx.manager.send_to_peers(result.recipients, WSServerMessage(type=MessageType.RESET))
    return HandlerResult(success=True, room_id=result.room_id)
