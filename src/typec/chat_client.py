"""
Chat Client for Timeline Reconciliation and Notifications

This module provides a ChatClient class that wires a sync client into the
room classifier, the timeline reconciler and the notification gate, and
exposes callbacks for UI integration.

Architecture:
    - Registers one listener on the sync client and dispatches timeline and
      decryption events
    - Uses TimelineReconciler for the open room's de-duplicated view
    - Uses NotificationGate for notify/suppress decisions and unread state
    - Joins, leaves and creates rooms through the sync client
    - Resolves attachments and avatars in background tasks
    - Provides callback hooks for the UI layer

Usage:
    client = ChatClient(sync_client)
    client.set_on_message_rendered(show_message)
    await client.select_room("!room:example.org")
    await client.send_message("hello")
    await client.create_direct_message("@alice:example.org")
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from .classifier import (
    DIRECT_INDEX_KEY,
    add_direct_room,
    classify,
    room_display_name,
)
from .media import AVATAR_THUMBNAIL_SIZE, IMAGE_THUMBNAIL_SIZE, MediaResolver
from .notifications import DEFAULT_REQUEST_TIMEOUT, NotificationGate
from .schemas import (
    MediaDescriptor,
    MediaKind,
    Notification,
    RenderedMessage,
    RoomKind,
    RoomSnapshot,
    RoomSummary,
)
from .session import RoomTab, SessionState
from .sync import (
    EncryptionUnavailableError,
    MembershipError,
    SendError,
    SyncEvent,
    SyncEventKind,
)
from .timeline import TimelineReconciler

logger = logging.getLogger(__name__)

ENCRYPTED_PREVIEW = "🔒 [Encrypted]"
EMPTY_PREVIEW = "No messages"
INVITE_PREVIEW = "You are invited to this room"

VISIBLE_MEMBERSHIPS = ("join", "invite")


class ChatClient:
    """
    Application context of the chat client.

    This class owns:
    - The session state (open room, focus, tab, recent rooms)
    - The timeline reconciler for the open room
    - The notification gate
    - Background media resolution tasks

    Attributes:
        sync_client: The sync client events come from
        session: Shared session state
        reconciler: Timeline view of the open room
        gate: Notification decisions and unread accounting
        request_timeout: Timeout for outbound calls in seconds
    """

    def __init__(
        self,
        sync_client,
        session: Optional[SessionState] = None,
        media_resolver: Optional[MediaResolver] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        Initialize the chat client.

        Args:
            sync_client: Sync client implementation
            session: Session state (a new one is created if omitted)
            media_resolver: Optional HTTP media resolver; media is resolved
                            through the sync client when omitted
            request_timeout: Timeout for outbound calls in seconds
        """
        self.sync_client = sync_client
        self.session = session or SessionState()
        if self.session.user_id is None:
            self.session.user_id = sync_client.user_id
        self.request_timeout = request_timeout
        self.media_resolver = media_resolver

        self.reconciler = TimelineReconciler.for_sync_client(sync_client)
        self.gate = NotificationGate(
            self.session, sync_client, request_timeout=request_timeout
        )
        self._media_tasks: Set[asyncio.Task] = set()

        # Callbacks for UI integration
        self._on_message_rendered: Optional[
            Callable[[RenderedMessage, Optional[str]], None]
        ] = None
        self._on_notification: Optional[Callable[[Notification], None]] = None
        self._on_rooms_changed: Optional[Callable[[], None]] = None
        self._on_media_resolved: Optional[
            Callable[[RenderedMessage, MediaDescriptor], None]
        ] = None

        sync_client.add_listener(self._handle_sync_event)
        logger.info("ChatClient initialized for user: %s", self.session.user_id)

    @property
    def current_room_id(self) -> Optional[str]:
        return self.session.current_room_id

    def set_on_message_rendered(
        self, callback: Callable[[RenderedMessage, Optional[str]], None]
    ) -> None:
        """
        Register callback for new or replaced renderings in the open room.

        Args:
            callback: Function that receives the rendering and the identity
                      key of the rendering it replaces (None if new)
        """
        self._on_message_rendered = callback

    def set_on_notification(self, callback: Callable[[Notification], None]) -> None:
        """
        Register callback for notifications.

        Args:
            callback: Function that receives the Notification to show
        """
        self._on_notification = callback

    def set_on_rooms_changed(self, callback: Callable[[], None]) -> None:
        """
        Register callback for room list changes.

        Args:
            callback: Function called when summaries should be re-read
        """
        self._on_rooms_changed = callback

    def set_on_media_resolved(
        self, callback: Callable[[RenderedMessage, MediaDescriptor], None]
    ) -> None:
        """
        Register callback for finished media resolution.

        Args:
            callback: Function that receives the message and the descriptor
                      that reached the READY or ERROR state
        """
        self._on_media_resolved = callback

    async def _handle_sync_event(self, sync_event: SyncEvent) -> None:
        """
        Handle a delivery from the sync client.

        Back-paginated events and non-message events are ignored. Live
        events may notify; events of the open room are reconciled into the
        view and mark the room read.

        Args:
            sync_event: Timeline or decryption delivery
        """
        if sync_event.to_start_of_timeline:
            return

        event = sync_event.event
        if not event.is_message:
            logger.debug("Ignoring non-message event in room %s", event.room_id)
            return

        is_open = self.session.is_active(event.room_id)

        if sync_event.kind == SyncEventKind.TIMELINE:
            if self.gate.should_notify(event):
                room = self.sync_client.get_room(event.room_id)
                notification = self.gate.build_notification(event, room)
                logger.info(
                    "Notification for room %s from %s",
                    event.room_id,
                    event.sender_id,
                )
                if self._on_notification:
                    self._on_notification(notification)

            if is_open:
                self._reconcile(event)
                await self.gate.mark_as_read(event.room_id)

        elif sync_event.kind == SyncEventKind.DECRYPTED:
            if is_open:
                self._reconcile(event)

        if self._on_rooms_changed:
            self._on_rooms_changed()

    def _reconcile(self, event) -> Optional[RenderedMessage]:
        replaced_key = self.reconciler.existing_key(event)
        rendered = self.reconciler.upsert(event)
        if rendered is None:
            return None

        if self._on_message_rendered:
            self._on_message_rendered(rendered, replaced_key)
        self._schedule_media(rendered)
        return rendered

    async def select_room(self, room_id: str) -> List[RenderedMessage]:
        """
        Open a room: load its history into the view and mark it read.

        Args:
            room_id: Room to open

        Returns:
            The rendered history in view order.

        Raises:
            ValueError: If the room is unknown
        """
        room = self.sync_client.get_room(room_id)
        if room is None:
            raise ValueError(f"Unknown room: {room_id}")

        self.session.select_room(room_id)
        messages = self.reconciler.load_history(room.timeline, room_id)
        for message in messages:
            self._schedule_media(message)

        logger.info("Opened room %s with %s messages", room_id, len(messages))
        await self.gate.mark_as_read(room_id)

        if self._on_rooms_changed:
            self._on_rooms_changed()
        return messages

    def leave_current_room(self) -> None:
        """
        Close the open room and clear the view.

        Media still resolving for the cleared messages completes as a
        no-op.
        """
        if self.session.current_room_id:
            logger.info("Left room: %s", self.session.current_room_id)
        self.session.close_room()
        self.reconciler.clear()

    async def accept_invite(self, room_id: str) -> None:
        """
        Join a room the local user is invited to.

        Raises:
            ValueError: If there is no pending invitation to the room
            MembershipError: If the join fails or times out
        """
        self._require_invite(room_id)
        await self._membership_call(
            f"joining room {room_id}", self.sync_client.join_room(room_id)
        )
        logger.info("Accepted invite to room %s", room_id)
        if self._on_rooms_changed:
            self._on_rooms_changed()

    async def reject_invite(self, room_id: str) -> None:
        """
        Decline an invitation by leaving the room.

        Raises:
            ValueError: If there is no pending invitation to the room
            MembershipError: If the leave fails or times out
        """
        self._require_invite(room_id)
        await self._membership_call(
            f"rejecting invite to room {room_id}",
            self.sync_client.leave_room(room_id),
        )
        logger.info("Rejected invite to room %s", room_id)
        if self._on_rooms_changed:
            self._on_rooms_changed()

    async def leave_room(self, room_id: Optional[str] = None) -> None:
        """
        Leave a room on the server.

        The room is closed and dropped from the recent rooms before the
        server call is made, and stays closed if that call fails.

        Args:
            room_id: Room to leave (defaults to the open room)

        Raises:
            ValueError: If no room is given or open, or the room is unknown
            MembershipError: If the leave fails or times out
        """
        room_id = room_id or self.session.current_room_id
        if not room_id:
            raise ValueError("No room is open")
        if self.sync_client.get_room(room_id) is None:
            raise ValueError(f"Unknown room: {room_id}")

        if self.session.is_active(room_id):
            self.leave_current_room()
        self.session.recent_rooms.remove(room_id)

        try:
            await self._membership_call(
                f"leaving room {room_id}", self.sync_client.leave_room(room_id)
            )
        finally:
            if self._on_rooms_changed:
                self._on_rooms_changed()

    async def create_direct_message(
        self, user_id: str, encrypted: bool = False
    ) -> str:
        """
        Open a DM with a user, creating the room if there is none.

        A joined DM with the user is reused. Otherwise a private room
        inviting the user is created and listed under them in the
        direct-message index. Either way the room is opened on the DMs tab.

        Args:
            user_id: Full user ID of the counterpart (@name:server)
            encrypted: Enable encryption when a new room is created

        Returns:
            Room ID of the DM.

        Raises:
            ValueError: If the user ID is malformed or is the local user
            MembershipError: If creating the room fails or times out
        """
        if not _is_user_id(user_id):
            raise ValueError(f"Invalid user ID: {user_id!r}")
        if user_id == self.session.user_id:
            raise ValueError("Cannot start a DM with yourself")

        room_id = self.find_existing_dm(user_id)
        if room_id is not None:
            logger.info("Reusing DM %s with %s", room_id, user_id)
        else:
            room_id = await self._membership_call(
                f"creating DM with {user_id}",
                self.sync_client.create_room(
                    [user_id], is_direct=True, encrypted=encrypted
                ),
            )
            logger.info("Created DM %s with %s", room_id, user_id)
            await self.mark_room_as_direct(room_id, user_id)

        self.session.current_tab = RoomTab.DMS
        await self.select_room(room_id)
        return room_id

    def _require_invite(self, room_id: str) -> None:
        room = self.sync_client.get_room(room_id)
        if room is None or room.my_membership != "invite":
            raise ValueError(f"No pending invitation to room {room_id}")

    async def _membership_call(self, action: str, call):
        try:
            return await asyncio.wait_for(call, timeout=self.request_timeout)
        except MembershipError:
            logger.error("Failed %s", action)
            raise
        except asyncio.TimeoutError as e:
            logger.error("Timed out %s", action)
            raise MembershipError(f"Timed out {action}") from e
        except Exception as e:
            logger.error("Failed %s: %s", action, e)
            raise MembershipError(f"Failed {action}: {e}") from e

    async def send_message(self, body: str) -> str:
        """
        Send a text message to the open room.

        The view is updated by the local echo and confirmation the sync
        client delivers, not by this method.

        Args:
            body: Message text

        Returns:
            The server event ID.

        Raises:
            ValueError: If no room is open or the body is empty
            EncryptionUnavailableError: If the room is encrypted but
                encryption is not active
            SendError: If the sync client rejects or times out the send
        """
        room_id = self.session.current_room_id
        if not room_id:
            raise ValueError("No room is open")
        if not body or not body.strip():
            raise ValueError("Message body is empty")

        room = self.sync_client.get_room(room_id)
        if (
            room is not None
            and room.is_encrypted
            and not self.sync_client.is_encryption_active(room_id)
        ):
            logger.error("Encryption unavailable for room %s", room_id)
            raise EncryptionUnavailableError(
                f"Room {room_id} is encrypted but encryption is not active"
            )

        self.session.recent_rooms.track(room_id)

        try:
            event_id = await asyncio.wait_for(
                self.sync_client.send_message(room_id, body),
                timeout=self.request_timeout,
            )
        except SendError:
            logger.error("Failed to send message to room %s", room_id)
            raise
        except asyncio.TimeoutError as e:
            logger.error("Sending to room %s timed out", room_id)
            raise SendError(f"Sending to room {room_id} timed out") from e
        except Exception as e:
            logger.error("Failed to send message to room %s: %s", room_id, e)
            raise SendError(str(e)) from e

        logger.debug("Message sent to room %s: %s", room_id, event_id)
        return event_id

    def direct_index(self) -> Dict:
        return self.sync_client.get_account_data(DIRECT_INDEX_KEY)

    def summarize(self, room: RoomSnapshot) -> RoomSummary:
        """Build the room list entry for a room."""
        direct_index = self.direct_index()
        is_invite = room.my_membership == "invite"
        return RoomSummary(
            room_id=room.room_id,
            display_name=room_display_name(
                room, self.session.user_id, direct_index
            ),
            classification=classify(room, direct_index),
            unread_count=0 if is_invite else self.gate.unread_count(room),
            last_message_preview=_preview(room),
            is_active=self.session.is_active(room.room_id),
            is_invite=is_invite,
            is_encrypted=room.is_encrypted,
        )

    def room_summaries(self, tab: Optional[RoomTab] = None) -> List[RoomSummary]:
        """
        Summaries for one room list tab.

        Args:
            tab: Tab to list (defaults to the session's current tab)

        Returns:
            Summaries of joined DMs, joined groups, or pending invites.
        """
        tab = tab or self.session.current_tab
        summaries = []
        for room in self.sync_client.get_rooms():
            if room.my_membership not in VISIBLE_MEMBERSHIPS:
                continue
            summary = self.summarize(room)
            if tab == RoomTab.INVITES:
                if summary.is_invite:
                    summaries.append(summary)
            elif summary.is_invite:
                continue
            elif tab == RoomTab.DMS and summary.classification == RoomKind.DM:
                summaries.append(summary)
            elif (
                tab == RoomTab.ROOMS
                and summary.classification == RoomKind.GROUP
            ):
                summaries.append(summary)
        return summaries

    def unread_rooms(self) -> List[RoomSummary]:
        """Joined rooms with unread messages, most unread first."""
        summaries = [
            self.summarize(room)
            for room in self.sync_client.get_rooms()
            if room.my_membership == "join"
        ]
        unread = [s for s in summaries if s.unread_count > 0]
        return sorted(unread, key=lambda s: s.unread_count, reverse=True)

    def recent_rooms(self) -> List[RoomSummary]:
        """Summaries of recently active rooms that still exist."""
        summaries = []
        for room_id in self.session.recent_rooms.as_list():
            room = self.sync_client.get_room(room_id)
            if room is not None:
                summaries.append(self.summarize(room))
        return summaries

    def find_existing_dm(self, user_id: str) -> Optional[str]:
        """
        Find a joined DM with a user.

        Returns:
            Room ID of the DM, or None if there is none.
        """
        for room_id in self.direct_index().get(user_id) or []:
            room = self.sync_client.get_room(room_id)
            if room is not None and room.my_membership == "join":
                return room_id

        direct_index = self.direct_index()
        for room in self.sync_client.get_rooms():
            if room.my_membership != "join":
                continue
            if classify(room, direct_index) != RoomKind.DM:
                continue
            member = room.get_member(user_id)
            if member is not None and member.membership in VISIBLE_MEMBERSHIPS:
                return room.room_id
        return None

    async def mark_room_as_direct(self, room_id: str, user_id: str) -> None:
        """
        List a room under a user in the account direct-message index.

        Args:
            room_id: Room to mark
            user_id: Counterpart user ID
        """
        updated = add_direct_room(self.direct_index(), user_id, room_id)
        await asyncio.wait_for(
            self.sync_client.set_account_data(DIRECT_INDEX_KEY, updated),
            timeout=self.request_timeout,
        )
        logger.info("Marked room %s as direct with %s", room_id, user_id)
        if self._on_rooms_changed:
            self._on_rooms_changed()

    def _schedule_media(self, message: RenderedMessage) -> None:
        descriptors = [
            d for d in (message.attachment, message.avatar) if d is not None
        ]
        for descriptor in descriptors:
            task = asyncio.create_task(self._resolve_media(message, descriptor))
            self._media_tasks.add(task)
            task.add_done_callback(self._media_tasks.discard)

    async def _resolve_media(
        self, message: RenderedMessage, descriptor: MediaDescriptor
    ) -> None:
        size = (
            AVATAR_THUMBNAIL_SIZE
            if descriptor.kind == MediaKind.AVATAR
            else IMAGE_THUMBNAIL_SIZE
        )
        try:
            if self.media_resolver is not None:
                call = self.media_resolver.resolve(descriptor.media_ref, size)
            else:
                call = self.sync_client.resolve_media(descriptor.media_ref)
            data = await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            logger.warning("Media %s timed out", descriptor.media_ref)
            data = None
        except Exception as e:
            logger.warning("Media %s failed: %s", descriptor.media_ref, e)
            data = None

        if not self.reconciler.holds(message):
            logger.debug(
                "Dropping media %s for message no longer in view",
                descriptor.media_ref,
            )
            return

        if data is None:
            descriptor.fail(f"Failed to load {descriptor.kind.value}")
        else:
            descriptor.resolve(data)

        if self._on_media_resolved:
            self._on_media_resolved(message, descriptor)

    async def flush_pending_media(self) -> None:
        """Wait for all scheduled media resolution to finish."""
        while self._media_tasks:
            await asyncio.gather(*list(self._media_tasks))


def _preview(room: RoomSnapshot) -> str:
    if room.my_membership == "invite":
        return INVITE_PREVIEW
    for event in reversed(room.timeline):
        if not event.is_message:
            continue
        if event.is_still_encrypted or (event.is_encrypted and not event.body):
            return ENCRYPTED_PREVIEW
        return event.body
    return EMPTY_PREVIEW


def _is_user_id(user_id) -> bool:
    return (
        isinstance(user_id, str)
        and user_id.startswith("@")
        and ":" in user_id[2:]
    )
