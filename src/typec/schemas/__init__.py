"""
Schemas Package

This package contains the records of the client core. Schemas are organized
by category: protocol events, rendered messages, and rooms.

All records share `BaseRecord`, which provides dictionary and JSON
conversion.
"""

from .base import BaseRecord
from .event import DecryptionState, EventType, ProtocolEvent
from .message import (
    MediaDescriptor,
    MediaKind,
    MediaState,
    Notification,
    RenderedMessage,
)
from .room import RoomKind, RoomMember, RoomSnapshot, RoomSummary

__all__ = [
    # Base classes
    "BaseRecord",
    # Event schemas
    "DecryptionState",
    "EventType",
    "ProtocolEvent",
    # Message schemas
    "MediaDescriptor",
    "MediaKind",
    "MediaState",
    "Notification",
    "RenderedMessage",
    # Room schemas
    "RoomKind",
    "RoomMember",
    "RoomSnapshot",
    "RoomSummary",
]
