"""
Session State

Holds the mutable per-session fields of the client: who the local user is,
which room is open, whether the application has input focus, the active
room-list tab, and the recently active rooms. A single SessionState is
owned by the ChatClient and passed by reference to the components that
read it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)

# Maximum number of recent rooms to remember
DEFAULT_MAX_RECENT_ROOMS = 5


class RoomTab(str, Enum):
    """Room list tabs."""

    DMS = "dms"
    ROOMS = "rooms"
    INVITES = "invites"


class RecentRoomsList:
    """
    Bounded list of room IDs, most recently active first.

    Re-inserting a room moves it to the front instead of duplicating it.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_RECENT_ROOMS):
        self.max_size = max_size
        self._room_ids: List[str] = []

    def track(self, room_id: Optional[str]) -> None:
        """Move a room to the front of the list."""
        if not room_id:
            return
        self._room_ids = [room_id] + [
            existing for existing in self._room_ids if existing != room_id
        ]
        del self._room_ids[self.max_size :]

    def remove(self, room_id: str) -> None:
        """Forget a room, e.g. after leaving it."""
        self._room_ids = [r for r in self._room_ids if r != room_id]

    def as_list(self) -> List[str]:
        return list(self._room_ids)

    def __len__(self) -> int:
        return len(self._room_ids)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._room_ids


@dataclass
class SessionState:
    """
    Mutable state of the current session.

    Attributes:
        user_id: ID of the local user
        current_room_id: ID of the open room (None on the room list)
        has_focus: Application has input focus
        current_tab: Active room list tab
        recent_rooms: Recently active rooms
    """

    user_id: Optional[str] = None
    current_room_id: Optional[str] = None
    has_focus: bool = True
    current_tab: RoomTab = RoomTab.DMS
    recent_rooms: RecentRoomsList = field(default_factory=RecentRoomsList)

    def select_room(self, room_id: str) -> None:
        """Open a room and record it as recently active."""
        self.current_room_id = room_id
        self.recent_rooms.track(room_id)
        logger.debug("Current room set to: %s", room_id)

    def close_room(self) -> None:
        self.current_room_id = None

    def is_active(self, room_id: Optional[str]) -> bool:
        return room_id is not None and room_id == self.current_room_id
