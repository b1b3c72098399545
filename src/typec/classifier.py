"""
Room Classification

Decides whether a room is a direct (1:1) conversation or a group
conversation, and resolves the names shown for rooms in lists and headers.

Classification order (first match wins):
    1. The account's direct-message index (m.direct account data) lists
       the room under any counterpart user.
    2. The room has at most two members (joined + invited) and no
       explicit name.
    3. Anything else is a group.

The result is never cached: membership and naming change after a room is
created, so callers re-run `classify()` on every evaluation.
"""

from typing import Dict, Iterable, List, Mapping, Optional

from .schemas import RoomKind, RoomMember, RoomSnapshot

# Account data key of the direct-message index
DIRECT_INDEX_KEY = "m.direct"

# Rooms with at most this many members (joined + invited) may be DMs
DM_MAX_MEMBERS = 2

UNNAMED_ROOM = "Unnamed room"

DirectIndex = Mapping[str, Iterable[str]]


def _in_direct_index(room_id: str, direct_index: Optional[DirectIndex]) -> bool:
    if not direct_index:
        return False
    for room_ids in direct_index.values():
        if isinstance(room_ids, (list, tuple, set)) and room_id in room_ids:
            return True
    return False


def classify(
    room: RoomSnapshot, direct_index: Optional[DirectIndex] = None
) -> RoomKind:
    """
    Classify a room snapshot as DM or GROUP.

    Args:
        room: Room snapshot to classify
        direct_index: Account direct-message index, user ID -> room IDs

    Returns:
        RoomKind.DM or RoomKind.GROUP
    """
    if _in_direct_index(room.room_id, direct_index):
        return RoomKind.DM

    total_members = room.joined_count + room.invited_count
    if total_members <= DM_MAX_MEMBERS and not room.has_explicit_name:
        return RoomKind.DM

    return RoomKind.GROUP


def is_direct(
    room: RoomSnapshot, direct_index: Optional[DirectIndex] = None
) -> bool:
    """Return True if the room classifies as a DM."""
    return classify(room, direct_index) == RoomKind.DM


def localpart(user_id: str) -> str:
    """Return the localpart of a user ID (@bob:example.org -> bob)."""
    if not user_id:
        return ""
    name = user_id.split(":", 1)[0]
    return name[1:] if name.startswith("@") else name


def counterpart(
    room: RoomSnapshot, local_user_id: Optional[str]
) -> Optional[RoomMember]:
    """Return the first joined member that is not the local user."""
    for member in room.joined_members():
        if member.user_id != local_user_id:
            return member
    return None


def room_display_name(
    room: RoomSnapshot,
    local_user_id: Optional[str] = None,
    direct_index: Optional[DirectIndex] = None,
) -> str:
    """
    Resolve the display name of a room.

    Explicit name first, then the canonical alias. Unnamed DMs are named
    after the counterpart user.
    """
    if room.has_explicit_name:
        return room.name.strip()

    if is_direct(room, direct_index):
        other = counterpart(room, local_user_id)
        if other:
            return other.display_name or localpart(other.user_id)

    if room.canonical_alias:
        return room.canonical_alias

    return UNNAMED_ROOM


def add_direct_room(
    direct_index: Optional[DirectIndex], user_id: str, room_id: str
) -> Dict[str, List[str]]:
    """
    Return a copy of the direct index with the room listed under the user.

    Args:
        direct_index: Current index (may be None)
        user_id: Counterpart user ID
        room_id: Room to mark as direct

    Returns:
        New index dictionary; the input is not modified.
    """
    updated: Dict[str, List[str]] = {}
    for other_user, room_ids in (direct_index or {}).items():
        if isinstance(room_ids, (list, tuple, set)):
            updated[other_user] = list(room_ids)

    rooms = updated.setdefault(user_id, [])
    if room_id not in rooms:
        rooms.append(room_id)
    return updated
