"""
Room Schema Definitions

This module defines the room records exchanged with the sync client
(room snapshots and their members) and the derived room summaries shown
in room lists.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .base import BaseRecord
from .event import ProtocolEvent


class RoomKind(str, Enum):
    """Room classification."""

    DM = "dm"
    GROUP = "group"


@dataclass
class RoomMember(BaseRecord):
    """
    A member of a room.

    Attributes:
        user_id: Fully-qualified user ID (e.g. @alice:example.org)
        display_name: Display name, if set
        power_level: Room power level (0 for regular members)
        membership: join, invite, leave or ban
        avatar_url: Avatar media reference, if set
    """

    user_id: str
    display_name: Optional[str] = None
    power_level: int = 0
    membership: str = "join"
    avatar_url: Optional[str] = None


@dataclass
class RoomSnapshot(BaseRecord):
    """
    The sync client's current view of a room.

    Attributes:
        room_id: Unique identifier for the room
        name: Explicitly set room name (None when no name state exists)
        canonical_alias: Canonical alias, if any
        joined_count: Number of joined members
        invited_count: Number of invited members
        members: Members keyed by user ID
        my_membership: The local user's membership
        unread_count: Server-derived unread notification count
        is_encrypted: Room has encryption enabled
        inviter_id: Who invited the local user (for invites)
        timeline: Chronological timeline events
    """

    room_id: str
    name: Optional[str] = None
    canonical_alias: Optional[str] = None
    joined_count: int = 0
    invited_count: int = 0
    members: Dict[str, RoomMember] = field(default_factory=dict)
    my_membership: str = "join"
    unread_count: int = 0
    is_encrypted: bool = False
    inviter_id: Optional[str] = None
    timeline: List[ProtocolEvent] = field(default_factory=list)

    def get_member(self, user_id: str) -> Optional[RoomMember]:
        return self.members.get(user_id)

    def joined_members(self) -> List[RoomMember]:
        return [m for m in self.members.values() if m.membership == "join"]

    @property
    def has_explicit_name(self) -> bool:
        return bool(self.name and self.name.strip())

    def latest_event_id(self) -> Optional[str]:
        """ID of the newest server-acknowledged timeline event."""
        for event in reversed(self.timeline):
            if event.event_id:
                return event.event_id
        return None

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "RoomSnapshot":
        """Create from a room dictionary."""
        members = {
            user_id: RoomMember._from_data({"user_id": user_id, **member})
            for user_id, member in (data.get("members") or {}).items()
        }
        return cls(
            room_id=data["room_id"],
            name=data.get("name"),
            canonical_alias=data.get("canonical_alias"),
            joined_count=data.get("joined_count", 0),
            invited_count=data.get("invited_count", 0),
            members=members,
            my_membership=data.get("my_membership", "join"),
            unread_count=data.get("unread_count", 0),
            is_encrypted=data.get("is_encrypted", False),
            inviter_id=data.get("inviter_id"),
            timeline=[
                ProtocolEvent._from_data(event)
                for event in data.get("timeline", [])
            ],
        )


@dataclass
class RoomSummary(BaseRecord):
    """
    Room list entry derived on every sync tick.

    Attributes:
        room_id: Unique identifier for the room
        display_name: Resolved room name
        classification: DM or GROUP
        unread_count: Unread messages (0 once read locally)
        last_message_preview: Body of the newest message
        is_active: Room is the currently selected room
        is_invite: Local user is only invited
        is_encrypted: Room has encryption enabled
    """

    room_id: str
    display_name: str
    classification: RoomKind
    unread_count: int
    last_message_preview: str
    is_active: bool = False
    is_invite: bool = False
    is_encrypted: bool = False
