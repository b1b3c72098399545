"""
Timeline Reconciler

This module turns the stream of protocol events for the open room into an
ordered, de-duplicated list of rendered messages. The same logical message
can arrive several times: as a local echo, as the server-confirmed event,
as a redundant sync delivery, or as an encrypted placeholder that is later
decrypted. Each of these shares an identity key, and the reconciler keeps
at most one rendering per key.

Architecture:
    - Renderings are stored in an insertion-ordered dict keyed by identity
    - A second index maps transaction IDs to their current identity key so
      that a server-confirmed event finds its local echo
    - Replacing a rendering removes it and appends the new one at the end;
      other messages keep their positions
    - Only the open room is held; room switches reset the state

Usage:
    reconciler = TimelineReconciler.for_sync_client(sync_client)
    reconciler.load_history(room.timeline)
    rendered = reconciler.upsert(event)
"""

import logging
import re
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .classifier import DIRECT_INDEX_KEY, classify, localpart
from .schemas import (
    DecryptionState,
    MediaDescriptor,
    MediaKind,
    ProtocolEvent,
    RenderedMessage,
    RoomKind,
    RoomSnapshot,
)

logger = logging.getLogger(__name__)

# Power level at which a sender is shown as a room admin
ADMIN_POWER_LEVEL = 50

# Group rooms need more joined members than this to show admin badges
ADMIN_BADGE_MIN_MEMBERS = 2

PENDING_REASON = "waiting for keys"
FAILED_REASON = "no keys"

IMAGE_EXTENSIONS = re.compile(r"\.(jpg|jpeg|png|gif|webp|bmp|svg)$", re.I)


def placeholder_text(reason: str) -> str:
    """Body shown in place of content that is not decrypted yet."""
    return f"🔒 [Encrypted: {reason}]"


def format_timestamp(timestamp_ms: int, now: Optional[datetime] = None) -> str:
    """
    Format a message timestamp for display.

    Messages from today show the time of day; older ones show the date.

    Args:
        timestamp_ms: Milliseconds since the epoch
        now: Reference time (defaults to the current local time)

    Returns:
        "HH:MM" for today, "D Mon" otherwise.
    """
    moment = datetime.fromtimestamp(timestamp_ms / 1000)
    now = now or datetime.now()
    if moment.date() == now.date():
        return moment.strftime("%H:%M")
    return f"{moment.day} {moment.strftime('%b')}"


def initials(name: Optional[str]) -> str:
    """Avatar initials: first letters of two words, or first two chars."""
    if not name:
        return "?"
    parts = name.split()
    if len(parts) >= 2:
        return (parts[0][0] + parts[1][0]).upper()
    return name[:2].upper()


def _is_image(content: Dict) -> bool:
    if content.get("msgtype") == "m.image":
        return True
    info = content.get("info")
    if isinstance(info, dict):
        mimetype = info.get("mimetype")
        if isinstance(mimetype, str) and mimetype.startswith("image/"):
            return True
    body = content.get("body")
    return isinstance(body, str) and bool(IMAGE_EXTENSIONS.search(body))


def _media_ref(content: Dict) -> Optional[str]:
    url = content.get("url")
    if isinstance(url, str) and url:
        return url
    encrypted_file = content.get("file")
    if isinstance(encrypted_file, dict):
        url = encrypted_file.get("url")
        if isinstance(url, str) and url:
            return url
    return None


def attachment_for(content: Dict) -> Optional[MediaDescriptor]:
    """
    Build a loading-state descriptor for image and file payloads.

    Returns:
        A MediaDescriptor, or None for plain text content.
    """
    ref = _media_ref(content)
    if ref is None:
        return None
    filename = content.get("body") if isinstance(content.get("body"), str) else ""
    if _is_image(content):
        return MediaDescriptor(MediaKind.IMAGE, ref, filename)
    if content.get("msgtype") == "m.file" and content.get("url"):
        return MediaDescriptor(MediaKind.FILE, ref, filename)
    return None


class TimelineReconciler:
    """
    Canonical message view for the open room.

    Attributes:
        room_id: ID of the room whose messages are held (None when empty)
    """

    def __init__(
        self,
        room_lookup: Callable[[str], Optional[RoomSnapshot]],
        direct_index_lookup: Optional[Callable[[], Dict]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the reconciler.

        Args:
            room_lookup: Returns the current snapshot of a room by ID
            direct_index_lookup: Returns the account direct-message index
            clock: Returns "now" for timestamp formatting
        """
        self.room_id: Optional[str] = None
        self._room_lookup = room_lookup
        self._direct_index_lookup = direct_index_lookup or dict
        self._clock = clock or datetime.now
        self._entries: Dict[str, RenderedMessage] = {}
        self._transactions: Dict[str, str] = {}

    @classmethod
    def for_sync_client(cls, sync_client, **kwargs) -> "TimelineReconciler":
        """Create a reconciler reading rooms and account data from a client."""
        return cls(
            sync_client.get_room,
            lambda: sync_client.get_account_data(DIRECT_INDEX_KEY),
            **kwargs,
        )

    def clear(self) -> None:
        """Drop every rendering. Called on room switch."""
        self._entries.clear()
        self._transactions.clear()
        self.room_id = None
        logger.debug("Timeline cleared")

    def load_history(
        self, events: Iterable[ProtocolEvent], room_id: Optional[str] = None
    ) -> List[RenderedMessage]:
        """
        Reset the view and render a historical page in timeline order.

        Historical loads never notify.

        Args:
            events: Chronological events of the room
            room_id: Room being opened (taken from the events if omitted)

        Returns:
            The resulting ordered messages.
        """
        self.clear()
        self.room_id = room_id
        for event in events:
            if not event.is_message:
                continue
            if self.room_id is None:
                self.room_id = event.room_id
            self.upsert(event)
        logger.debug(
            "Loaded %s messages for room %s", len(self._entries), self.room_id
        )
        return self.messages()

    def existing_key(self, event: ProtocolEvent) -> Optional[str]:
        """Key of the rendering an event would replace, if any."""
        if event.event_id and event.event_id in self._entries:
            return event.event_id
        if event.transaction_id:
            key = self._transactions.get(event.transaction_id)
            if key in self._entries:
                return key
        return None

    def upsert(self, event: ProtocolEvent) -> Optional[RenderedMessage]:
        """
        Insert or replace the rendering of an event.

        Args:
            event: Incoming protocol event

        Returns:
            The new rendering, or None if the event was a duplicate or could
            not be rendered.
        """
        key = event.identity_key
        if not key:
            logger.warning("Event without event_id or transaction_id ignored")
            return None

        previous_key = self.existing_key(event)
        if previous_key is not None:
            existing = self._entries[previous_key]
            if (
                existing.event_id is not None
                and existing.event_id == event.event_id
                and not existing.is_placeholder
                and not event.is_still_encrypted
            ):
                logger.debug("Duplicate event ignored: %s", event.event_id)
                return None

        try:
            rendered = self.render(event)
        except Exception as e:
            logger.error("Failed to render event %s: %s", key, e)
            return None

        if previous_key is not None:
            self._remove(previous_key)
            logger.debug("Replaced rendering %s with %s", previous_key, key)

        if self.room_id is None:
            self.room_id = event.room_id
        self._entries[key] = rendered
        if event.transaction_id:
            self._transactions[event.transaction_id] = key
        return rendered

    def _remove(self, key: str) -> None:
        removed = self._entries.pop(key, None)
        if removed and removed.transaction_id:
            if self._transactions.get(removed.transaction_id) == key:
                del self._transactions[removed.transaction_id]

    def render(self, event: ProtocolEvent) -> RenderedMessage:
        """
        Build the rendering of a single event.

        Still-encrypted events become placeholders carrying the failure
        reason. Image and file payloads get a loading-state descriptor that
        the caller resolves asynchronously.
        """
        room = self._room_lookup(event.room_id)
        member = room.get_member(event.sender_id) if room else None
        sender_name = (
            member.display_name
            if member and member.display_name
            else localpart(event.sender_id)
        )

        placeholder_reason = None
        attachment = None
        if event.is_still_encrypted:
            if event.decryption_state == DecryptionState.PENDING:
                placeholder_reason = event.decryption_error or PENDING_REASON
            else:
                placeholder_reason = event.decryption_error or FAILED_REASON
            body = placeholder_text(placeholder_reason)
            logger.warning(
                "Event %s not decrypted: %s",
                event.identity_key,
                placeholder_reason,
            )
        else:
            body = event.body
            attachment = attachment_for(event.content or {})

        avatar = None
        if member and member.avatar_url:
            avatar = MediaDescriptor(MediaKind.AVATAR, member.avatar_url)

        return RenderedMessage(
            identity_key=event.identity_key,
            event_id=event.event_id,
            transaction_id=event.transaction_id,
            room_id=event.room_id,
            sender_id=event.sender_id,
            sender_display_name=sender_name,
            body_text=body,
            placeholder_reason=placeholder_reason,
            is_placeholder=placeholder_reason is not None,
            timestamp=event.timestamp,
            timestamp_display=format_timestamp(event.timestamp, self._clock()),
            is_admin_sender=self.is_admin(room, event.sender_id),
            initials=initials(sender_name),
            attachment=attachment,
            avatar=avatar,
        )

    def is_admin(self, room: Optional[RoomSnapshot], sender_id: str) -> bool:
        """
        Return True if the sender gets an admin badge.

        Badges only apply to group rooms with more than two joined
        members; in DMs both participants usually hold elevated power.
        """
        if room is None or room.joined_count <= ADMIN_BADGE_MIN_MEMBERS:
            return False
        if classify(room, self._direct_index_lookup()) != RoomKind.GROUP:
            return False
        member = room.get_member(sender_id)
        return bool(member and member.power_level >= ADMIN_POWER_LEVEL)

    def messages(self) -> List[RenderedMessage]:
        """Return the renderings in view order."""
        return list(self._entries.values())

    def get(self, key: str) -> Optional[RenderedMessage]:
        """Return the rendering for an identity or transaction key."""
        if key in self._entries:
            return self._entries[key]
        mapped = self._transactions.get(key)
        return self._entries.get(mapped) if mapped else None

    def holds(self, message: RenderedMessage) -> bool:
        """True if this exact rendering is still part of the view."""
        return self._entries.get(message.identity_key) is message

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
