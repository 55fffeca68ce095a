from __future__ import annotations

from functools import lru_cache

from mafia_backend.room.room_manager import RoomManager


@lru_cache(maxsize=1)
def get_room_manager() -> RoomManager:
    return RoomManager()
