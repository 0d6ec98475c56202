"""Handler for JOIN messages."""

import logging

from app.schemas.ws import JoinRoomPayload, MessageType
from app.services.websocket.manager import room_status_message

from . import handler
from .base import HandlerContext, HandlerResult, result_error, validate_payload

logger = logging.getLogger(__name__)


@handler(MessageType.JOIN)
async def handle_join_room(ctx: HandlerContext) -> HandlerResult:
    """Handle JOIN message.

    Leaves the previous room if any (its members get a fresh room status),
    then broadcasts the new room status to every member including the joiner.
    """
    logger.info(
        "JOIN request: connection=%s, payload=%s",
        ctx.connection_id,
        ctx.message.payload,
    )

    payload, error = validate_payload(
        ctx.message.payload,
        JoinRoomPayload,
        ctx.message.request_id,
    )
    if error:
        logger.warning("Invalid join payload from connection %s", ctx.connection_id)
        return error

    result = await ctx.manager.rooms.join(payload.room_id, ctx.connection_id)
    if not result.success or result.status is None:
        return result_error(ctx, result.error_code, result.error_message)

    if result.previous_status is not None:
        await ctx.manager.send_to_room(
            result.previous_status.room_id,
            room_status_message(result.previous_status),
        )

    return HandlerResult(
        success=True,
        broadcast=room_status_message(result.status),
        room_id=result.status.room_id,
        include_sender=True,
    )
