"""Handler for MOVE messages."""

import logging

from app.schemas.game_engine import Move
from app.schemas.ws import MessageType, MovePayload, WSServerMessage

from . import handler
from .base import HandlerContext, HandlerResult, result_error, validate_payload

logger = logging.getLogger(__name__)


@handler(MessageType.MOVE)
async def handle_move(ctx: HandlerContext) -> HandlerResult:
    """Relay a move to the other peers in the room.

    The relay does not check the move against the rules; each receiving peer
    applies it to its own state and drops it if it is illegal there.
    """
    payload, error = validate_payload(
        ctx.message.payload,
        MovePayload,
        ctx.message.request_id,
    )
    if error:
        return error

    move = Move(board_index=payload.board_index, cell_index=payload.cell_index)
    result = ctx.manager.rooms.relay_move(ctx.connection_id, move)
    if not result.success:
        return result_error(ctx, result.error_code, result.error_message)

    await ctx.manager.send_to_peers(
        result.recipients,
        WSServerMessage(
            type=MessageType.MOVE,
            payload=payload.model_dump(by_alias=True),
        ),
    )
    return HandlerResult(success=True, room_id=result.room_id)
