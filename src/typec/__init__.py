"""
Type-C Client Package

This package provides the core of the Type-C chat client: room
classification, timeline reconciliation, unread and notification
handling, room membership, authenticated media resolution, the holiday
calendar feed and summary quotes, plus a terminal user interface.

Records are organized in the `schemas` subpackage by category:
    - event: Protocol events delivered by the sync client
    - message: Rendered messages, media descriptors, notifications
    - room: Room snapshots, members and room list summaries
"""

from .calendar_feed import HolidayCalendar, HolidayEntry, lookup, parse
from .chat_client import ChatClient
from .classifier import classify, room_display_name
from .config import ClientConfig
from .media import MediaResolver
from .notifications import NotificationGate, should_notify
from .quotes import Quote, QuoteBook
from .session import RecentRoomsList, RoomTab, SessionState
from .sync import (
    EncryptionUnavailableError,
    InMemorySyncClient,
    MembershipError,
    SendError,
    SyncClient,
    SyncClientError,
    SyncEvent,
    SyncEventKind,
)
from .timeline import TimelineReconciler
from .schemas import (
    # Base classes
    BaseRecord,
    # Event schemas
    DecryptionState,
    EventType,
    ProtocolEvent,
    # Message schemas
    MediaDescriptor,
    MediaKind,
    MediaState,
    Notification,
    RenderedMessage,
    # Room schemas
    RoomKind,
    RoomMember,
    RoomSnapshot,
    RoomSummary,
)

__all__ = [
    # Core classes
    "ChatClient",
    "ClientConfig",
    "HolidayCalendar",
    "MediaResolver",
    "NotificationGate",
    "QuoteBook",
    "RecentRoomsList",
    "SessionState",
    "TimelineReconciler",
    # Functions
    "classify",
    "lookup",
    "parse",
    "room_display_name",
    "should_notify",
    # Sync client interface
    "EncryptionUnavailableError",
    "InMemorySyncClient",
    "MembershipError",
    "SendError",
    "SyncClient",
    "SyncClientError",
    "SyncEvent",
    "SyncEventKind",
    # Schemas
    "BaseRecord",
    "DecryptionState",
    "EventType",
    "HolidayEntry",
    "MediaDescriptor",
    "MediaKind",
    "MediaState",
    "Notification",
    "ProtocolEvent",
    "Quote",
    "RenderedMessage",
    "RoomKind",
    "RoomMember",
    "RoomSnapshot",
    "RoomSummary",
    "RoomTab",
]
