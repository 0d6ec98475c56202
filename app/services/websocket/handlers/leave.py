"""Handler for LEAVE messages."""

import logging

from app.schemas.ws import MessageType
from app.services.websocket.manager import room_status_message

from . import handler
from .base import HandlerContext, HandlerResult, result_error

logger = logging.getLogger(__name__)


@handler(MessageType.LEAVE)
async def handle_leave_room(ctx: HandlerContext) -> HandlerResult:
    """Handle LEAVE message.

    Removes the peer from its room and broadcasts the updated room status to
    the remaining members. The room is deleted once empty.
    """
    result = await ctx.manager.rooms.leave(ctx.connection_id)

    if not result.success:
        return result_error(ctx, result.error_code, result.error_message)

    if result.room_closed or result.status is None:
        return HandlerResult(success=True)

    return HandlerResult(
        success=True,
        broadcast=room_status_message(result.status),
        room_id=result.room_id,
    )
