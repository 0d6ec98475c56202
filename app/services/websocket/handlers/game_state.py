"""Handler for GAME_STATE messages."""

import logging

from app.schemas.ws import (
    ChaosSwapPayload,
    GameStatePayload,
    MessageType,
    WSServerMessage,
)

from . import handler
from .base import HandlerContext, HandlerResult, result_error, validate_payload

logger = logging.getLogger(__name__)


@handler(MessageType.GAME_STATE)
async def handle_game_state(ctx: HandlerContext) -> HandlerResult:
    """Record a peer's snapshot and broadcast any chaos event it triggers.

    Chaos-swap and role-swap go to every member of the room, sender included,
    so both peers apply the same relay-generated outcome.
    """
    payload, error = validate_payload(
        ctx.message.payload,
        GameStatePayload,
        ctx.message.request_id,
    )
    if error:
        logger.warning("Invalid game-state snapshot from connection %s", ctx.connection_id)
        return error

    result = ctx.manager.rooms.observe_state(ctx.connection_id, payload.game_state)
    if not result.success:
        return result_error(ctx, result.error_code, result.error_message)

    if result.shuffle_mapping is not None:
        await ctx.manager.send_to_room(
            result.room_id,
            WSServerMessage(
                type=MessageType.CHAOS_SWAP,
                payload=ChaosSwapPayload(
                    shuffle_mapping=list(result.shuffle_mapping),
                ).model_dump(by_alias=True),
            ),
        )

    if result.role_swap:
        await ctx.manager.send_to_room(
            result.room_id,
            WSServerMessage(type=MessageType.ROLE_SWAP),
        )

    return HandlerResult(success=True, room_id=result.room_id)
