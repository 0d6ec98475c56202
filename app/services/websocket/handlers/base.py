"""Shared types for relay handlers."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, ValidationError

from app.schemas.ws import ErrorPayload, MessageType, WSClientMessage, WSServerMessage

if TYPE_CHECKING:
    from app.services.websocket.manager import ConnectionManager

T = TypeVar("T", bound=BaseModel)


@dataclass
class HandlerContext:
    """One inbound message and where it came from."""

    connection_id: str
    message: WSClientMessage
    manager: "ConnectionManager"


@dataclass
class HandlerResult:
    """What the router sends after a handler ran.

    ``response`` goes back to the sender only. ``broadcast`` goes to every
    member of ``room_id`` except the sender, or to all of them when
    ``include_sender`` is set. Handlers that address an explicit peer list
    send it themselves and leave both empty.
    """

    success: bool
    response: WSServerMessage | None = None
    broadcast: WSServerMessage | None = None
    room_id: str | None = None
    include_sender: bool = False


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "payload"
    return f"{location}: {first['msg']}"


def validate_payload(
    payload: dict | None,
    schema: type[T],
    request_id: str | None,
) -> tuple[T | None, HandlerResult | None]:
    """Parse ``payload`` into ``schema``.

    Returns:
        ``(model, None)`` on success, ``(None, error_result)`` otherwise. The
        error names the first offending field.
    """
    try:
        return schema.model_validate(payload or {}), None
    except ValidationError as e:
        return None, error_response("VALIDATION_ERROR", _describe(e), request_id=request_id)


def error_response(
    error_code: str,
    message: str,
    request_id: str | None = None,
) -> HandlerResult:
    return HandlerResult(
        success=False,
        response=WSServerMessage(
            type=MessageType.ERROR,
            request_id=request_id,
            payload=ErrorPayload(error_code=error_code, message=message).model_dump(),
        ),
    )


def result_error(ctx: HandlerContext, error_code: str | None, message: str | None) -> HandlerResult:
    """Turn a failed registry result into an error response."""
    return error_response(
        error_code or "INTERNAL_ERROR",
        message or "Unknown error",
        request_id=ctx.message.request_id,
    )
