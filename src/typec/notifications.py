"""
Unread and Notification Gate

Decides whether an incoming message should produce a user-visible
notification, and keeps per-room unread state.

Unread counts come from the server (via the sync client). When the user
views a room's newest event, the gate zeroes the count locally right away
and then acknowledges the read to the server with a read receipt and a
fully-read marker. The two acknowledgements are independent: either may
fail without affecting the other, and neither failure restores the local
count.
"""

import asyncio
import logging
from typing import Dict, Optional

from .classifier import DIRECT_INDEX_KEY, room_display_name
from .schemas import DecryptionState, Notification, ProtocolEvent, RoomSnapshot
from .session import SessionState
from .timeline import FAILED_REASON, PENDING_REASON, placeholder_text

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 15.0


def should_notify(
    event: ProtocolEvent,
    current_room_id: Optional[str],
    has_focus: bool,
    local_user_id: Optional[str] = None,
) -> bool:
    """
    Decide whether an event should trigger a notification.

    Rules, in order:
        1. Never for events sent by the local user.
        2. Never when the event's room is open and the app has focus.
        3. Otherwise notify.

    Args:
        event: Incoming event
        current_room_id: ID of the open room (None if none)
        has_focus: Application has input focus
        local_user_id: ID of the local user

    Returns:
        True if a notification should be shown.
    """
    if local_user_id is not None and event.sender_id == local_user_id:
        return False
    if event.room_id == current_room_id and has_focus:
        return False
    return True


class NotificationGate:
    """
    Notification decisions and unread accounting for a session.

    Attributes:
        session: Shared session state (current room, focus, user)
        request_timeout: Timeout for each acknowledgement call
    """

    def __init__(
        self,
        session: SessionState,
        sync_client,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        Initialize the gate.

        Args:
            session: Shared session state
            sync_client: Sync client used for read acknowledgements
            request_timeout: Timeout in seconds per outbound call
        """
        self.session = session
        self.request_timeout = request_timeout
        self._sync_client = sync_client
        # room_id -> event_id the room was locally marked read at
        self._read_up_to: Dict[str, str] = {}

    def should_notify(self, event: ProtocolEvent) -> bool:
        """Apply `should_notify()` with the session's room and focus."""
        return should_notify(
            event,
            self.session.current_room_id,
            self.session.has_focus,
            self.session.user_id,
        )

    def unread_count(self, room: RoomSnapshot) -> int:
        """
        Unread count to display for a room.

        Zero while the room's newest event is the one it was marked read
        at; the server count otherwise.
        """
        marker = self._read_up_to.get(room.room_id)
        if marker is not None and marker == room.latest_event_id():
            return 0
        return room.unread_count

    async def mark_as_read(self, room_id: str) -> bool:
        """
        Mark a room read up to its newest event.

        The local count is zeroed first; then the read receipt and the
        fully-read marker are sent independently.

        Args:
            room_id: Room to mark

        Returns:
            True if the room had an event to mark, False otherwise.
        """
        room = self._sync_client.get_room(room_id)
        if room is None:
            logger.warning("Cannot mark unknown room %s as read", room_id)
            return False

        event_id = room.latest_event_id()
        if event_id is None:
            return False

        self._read_up_to[room_id] = event_id
        logger.info("Marking room %s read up to %s", room_id, event_id)

        await self._acknowledge(
            "read receipt",
            self._sync_client.send_read_receipt(room_id, event_id),
        )
        await self._acknowledge(
            "read marker",
            self._sync_client.set_room_read_markers(room_id, event_id),
        )
        return True

    async def _acknowledge(self, label: str, call) -> bool:
        try:
            await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            logger.warning("Sending %s timed out", label)
            return False
        except Exception as e:
            logger.warning("Sending %s failed: %s", label, e)
            return False
        return True

    def build_notification(
        self, event: ProtocolEvent, room: Optional[RoomSnapshot]
    ) -> Notification:
        """
        Build the notification payload for an event.

        Args:
            event: Incoming event
            room: Snapshot of the event's room, if known

        Returns:
            Notification titled with the sender and grouped by room.
        """
        member = room.get_member(event.sender_id) if room else None
        sender = (member.display_name if member else None) or event.sender_id

        if event.is_still_encrypted:
            reason = event.decryption_error or (
                PENDING_REASON
                if event.decryption_state == DecryptionState.PENDING
                else FAILED_REASON
            )
            body = placeholder_text(reason)
        else:
            body = event.body

        if room is not None:
            direct_index = self._sync_client.get_account_data(DIRECT_INDEX_KEY)
            room_name = room_display_name(
                room, self.session.user_id, direct_index
            )
        else:
            room_name = event.room_id

        return Notification(
            room_id=event.room_id,
            room_name=room_name,
            title=sender,
            body=body,
            tag=event.room_id,
        )
