"""
Rendered Message Schema Definitions

This module defines the view records produced by the timeline reconciler:
rendered messages, their media descriptors, and notification payloads.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .base import BaseRecord


class MediaKind(str, Enum):
    """What a media descriptor points at."""

    IMAGE = "image"
    FILE = "file"
    AVATAR = "avatar"


class MediaState(str, Enum):
    """Resolution progress of a media descriptor."""

    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass
class MediaDescriptor(BaseRecord):
    """
    Media attached to a rendered message (attachment or sender avatar).

    Descriptors start in the LOADING state and are resolved asynchronously
    by the chat client; only the descriptor itself is mutated.

    Attributes:
        kind: Image, file or avatar
        media_ref: Opaque media reference (mxc:// URI)
        filename: Display name of the attachment
        state: Resolution state
        data: Resolved bytes when READY
        error: Error notice when ERROR
    """

    kind: MediaKind
    media_ref: str
    filename: str = ""
    state: MediaState = MediaState.LOADING
    data: Optional[bytes] = None
    error: Optional[str] = None

    def resolve(self, data: bytes) -> None:
        self.state = MediaState.READY
        self.data = data
        self.error = None

    def fail(self, error: str) -> None:
        self.state = MediaState.ERROR
        self.data = None
        self.error = error

    def to_dict(self):
        data = super().to_dict()
        # Raw bytes stay out of serialized views
        data["data"] = None if self.data is None else len(self.data)
        return data


@dataclass
class RenderedMessage(BaseRecord):
    """
    A renderable message derived from one or more protocol events that
    share an identity key.

    Attributes:
        identity_key: Event ID, or transaction ID before one is assigned
        event_id: Server event ID if known
        transaction_id: Local transaction ID if known
        room_id: ID of the room
        sender_id: User ID of the sender
        sender_display_name: Resolved display name of the sender
        body_text: Message body (placeholder text for undecrypted events)
        placeholder_reason: Decryption failure reason for placeholders
        is_placeholder: True while content is not yet decrypted
        timestamp: Origin timestamp in milliseconds
        timestamp_display: Human-readable time
        is_admin_sender: Sender holds admin power in a group room
        initials: Avatar initials for the sender
        attachment: Image or file descriptor, if any
        avatar: Sender avatar descriptor, if any
    """

    identity_key: str
    event_id: Optional[str]
    transaction_id: Optional[str]
    room_id: str
    sender_id: str
    sender_display_name: str
    body_text: str
    placeholder_reason: Optional[str] = None
    is_placeholder: bool = False
    timestamp: int = 0
    timestamp_display: str = ""
    is_admin_sender: bool = False
    initials: str = "?"
    attachment: Optional[MediaDescriptor] = None
    avatar: Optional[MediaDescriptor] = None


@dataclass
class Notification(BaseRecord):
    """
    A user-visible notification for an incoming message.

    Attributes:
        room_id: Room the message arrived in
        room_name: Display name of the room
        title: Sender display name
        body: Message body or placeholder text
        tag: Grouping tag (one notification group per room)
    """

    room_id: str
    room_name: str
    title: str
    body: str
    tag: str
