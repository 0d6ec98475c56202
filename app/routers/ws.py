import json
import logging
import time
from collections import defaultdict, deque

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from app.schemas.ws import ErrorPayload, MessageType, WSClientMessage, WSServerMessage
from app.services.websocket.handlers import HandlerContext, HandlerResult, dispatch
from app.services.websocket.manager import ConnectionManager, get_connection_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

MAX_FRAME_BYTES = 64 * 1024
MAX_FRAMES_PER_WINDOW = 10
FRAME_WINDOW_SECONDS = 1.0


class FrameThrottle:
    """Caps how many frames one peer may send per sliding window."""

    def __init__(
        self,
        limit: int = MAX_FRAMES_PER_WINDOW,
        window: float = FRAME_WINDOW_SECONDS,
        clock=time.monotonic,
    ):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._seen: dict[str, deque[float]] = defaultdict(deque)

    def admit(self, connection_id: str) -> bool:
        now = self._clock()
        seen = self._seen[connection_id]
        while seen and seen[0] <= now - self.window:
            seen.popleft()
        if len(seen) >= self.limit:
            return False
        seen.append(now)
        return True

    def forget(self, connection_id: str) -> None:
        self._seen.pop(connection_id, None)


_throttle = FrameThrottle()


class FrameRejected(Exception):
    """A frame the relay answers with an error instead of dispatching."""

    def __init__(self, error_code: str, message: str):
        super().__init__(message)
        self.error_code = error_code
        self.message = message

    def to_message(self) -> WSServerMessage:
        return WSServerMessage(
            type=MessageType.ERROR,
            payload=ErrorPayload(error_code=self.error_code, message=self.message).model_dump(),
        )


def _frame_size(frame: dict) -> int | None:
    if text := frame.get("text"):
        return len(text.encode("utf-8"))
    if data := frame.get("bytes"):
        return len(data)
    return None


def decode_frame(frame: dict, connection_id: str) -> WSClientMessage | None:
    """Turn a raw ASGI receive event into a client message.

    Returns None for empty or binary frames. Raises FrameRejected for frames
    the peer should be told about: oversized, throttled or malformed.
    """
    size = _frame_size(frame)
    if size is None:
        return None

    if size > MAX_FRAME_BYTES:
        logger.warning("Frame of %d bytes from %s exceeds %d", size, connection_id, MAX_FRAME_BYTES)
        raise FrameRejected("MESSAGE_TOO_LARGE", f"Message exceeds maximum size of {MAX_FRAME_BYTES} bytes")

    if not _throttle.admit(connection_id):
        logger.warning("Throttling %s", connection_id)
        raise FrameRejected("RATE_LIMITED", "Too many messages, please slow down")

    text = frame.get("text")
    if not text:
        return None

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Unparseable frame from %s", connection_id)
        raise FrameRejected("INVALID_JSON", "Invalid JSON format") from None

    try:
        return WSClientMessage.model_validate(data)
    except ValidationError as e:
        logger.warning("Malformed envelope from %s: %s", connection_id, e.error_count())
        raise FrameRejected("INVALID_MESSAGE", "Invalid message format") from None


async def _deliver(manager: ConnectionManager, connection_id: str, result: HandlerResult) -> None:
    if result.response:
        await manager.send_to_connection(connection_id, result.response)

    if result.broadcast and result.room_id:
        await manager.send_to_room(
            result.room_id,
            result.broadcast,
            exclude_connection=None if result.include_sender else connection_id,
        )


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Relay endpoint at ``/api/v1/ws``.

    Anyone may connect; the first frame the server sends is 'connected' with
    the assigned connection id. A peer then sends 'join' to enter a room.
    Bad frames get an 'error' reply and the socket stays open.
    """
    await websocket.accept()

    manager = get_connection_manager()
    connection = await manager.connect(websocket)
    conn_id = connection.connection_id
    logger.info("Relay peer connected: %s", conn_id)

    try:
        while websocket.client_state == WebSocketState.CONNECTED:
            try:
                frame = await websocket.receive()
            except RuntimeError as e:
                logger.debug("Receive on %s failed: %s", conn_id, e)
                break

            if frame.get("type") == "websocket.disconnect":
                break

            try:
                message = decode_frame(frame, conn_id)
            except FrameRejected as rejected:
                await manager.send_to_connection(conn_id, rejected.to_message())
                continue

            if message is None:
                continue

            result = await dispatch(HandlerContext(connection_id=conn_id, message=message, manager=manager))
            if result is None:
                logger.debug("Ignoring %s from %s", message.type.value, conn_id)
                continue

            await _deliver(manager, conn_id, result)

    except WebSocketDisconnect as e:
        logger.info("Relay peer %s went away (code %s)", conn_id, e.code)
    except Exception:
        logger.exception("Relay loop failed for %s", conn_id)
    finally:
        _throttle.forget(conn_id)
        # Also notifies whoever is left in the room
        await manager.disconnect(conn_id)
