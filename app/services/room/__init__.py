from app.services.room.service import (
    RoomRegistry,
    generate_room_code,
    get_room_registry,
    set_room_registry,
)

__all__ = [
    "RoomRegistry",
    "generate_room_code",
    "get_room_registry",
    "set_room_registry",
]
