"""
Sync Client Interface

The client core does not implement transport, sync or encryption. It
consumes them through the `SyncClient` protocol defined here. This module
also provides `InMemorySyncClient`, a reference implementation that keeps
rooms in memory; it drives the demo and the terminal UI and stands in for
the real SDK in tests.

Events reach the core through listeners registered with `add_listener()`.
Listeners are awaited one at a time, in delivery order.
"""

import logging
import time
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

from .schemas import (
    DecryptionState,
    EventType,
    ProtocolEvent,
    RoomMember,
    RoomSnapshot,
)

logger = logging.getLogger(__name__)


class SyncClientError(Exception):
    """Base class for errors raised at the sync client boundary."""


class SendError(SyncClientError):
    """A message could not be sent."""


class EncryptionUnavailableError(SendError):
    """The room is encrypted but encryption is not active on this device."""


class MembershipError(SyncClientError):
    """Joining, leaving or creating a room failed."""


class SyncEventKind(str, Enum):
    """Kinds of events delivered to listeners."""

    TIMELINE = "timeline"
    DECRYPTED = "decrypted"


@dataclass(frozen=True)
class SyncEvent:
    """
    A single delivery from the sync client.

    Attributes:
        kind: New timeline event, or an event that finished decrypting
        event: The protocol event
        to_start_of_timeline: Event was back-paginated (history), not live
    """

    kind: SyncEventKind
    event: ProtocolEvent
    to_start_of_timeline: bool = False


SyncListener = Callable[[SyncEvent], Awaitable[None]]


@runtime_checkable
class SyncClient(Protocol):
    """Interface consumed by the client core."""

    @property
    def user_id(self) -> str: ...

    def get_rooms(self) -> List[RoomSnapshot]: ...

    def get_room(self, room_id: str) -> Optional[RoomSnapshot]: ...

    def add_listener(self, listener: SyncListener) -> None: ...

    async def send_message(self, room_id: str, body: str) -> str: ...

    async def join_room(self, room_id: str) -> None: ...

    async def leave_room(self, room_id: str) -> None: ...

    async def create_room(
        self, invite: List[str], is_direct: bool = True, encrypted: bool = False
    ) -> str: ...

    async def send_read_receipt(self, room_id: str, event_id: str) -> None: ...

    async def set_room_read_markers(
        self, room_id: str, event_id: str
    ) -> None: ...

    def get_account_data(self, kind: str) -> Dict[str, Any]: ...

    async def set_account_data(
        self, kind: str, content: Dict[str, Any]
    ) -> None: ...

    async def resolve_media(self, media_ref: str) -> Optional[bytes]: ...

    def is_encryption_active(self, room_id: str) -> bool: ...


class InMemorySyncClient:
    """
    Sync client that keeps all state in memory.

    Sends behave like a real SDK: a local echo carrying a transaction ID is
    delivered first, followed by the server-confirmed event carrying both
    the event ID and the same transaction ID.

    Attributes:
        rooms: Rooms keyed by room ID
        account_data: Account data keyed by type
        media: Media bytes keyed by media reference
        encryption_active: Whether encryption is usable on this device
        read_receipts: (room_id, event_id) receipts sent
        read_markers: (room_id, event_id) fully-read markers set
        fail_sends: Reject every send with SendError
        fail_receipts: Reject receipt and marker calls
        fail_membership: Reject join, leave and create calls
    """

    def __init__(
        self,
        user_id: str,
        rooms: Optional[List[RoomSnapshot]] = None,
        encryption_active: bool = True,
    ):
        self._user_id = user_id
        self.rooms: Dict[str, RoomSnapshot] = {}
        self.account_data: Dict[str, Dict[str, Any]] = {}
        self.media: Dict[str, bytes] = {}
        self.encryption_active = encryption_active
        self.read_receipts: List[tuple] = []
        self.read_markers: List[tuple] = []
        self.fail_sends = False
        self.fail_receipts = False
        self.fail_membership = False
        self._listeners: List[SyncListener] = []

        for room in rooms or []:
            self.add_room(room)

        logger.info("InMemorySyncClient initialized for user: %s", user_id)

    @property
    def user_id(self) -> str:
        return self._user_id

    def add_room(self, room: RoomSnapshot) -> None:
        self.rooms[room.room_id] = room

    def get_rooms(self) -> List[RoomSnapshot]:
        return list(self.rooms.values())

    def get_room(self, room_id: str) -> Optional[RoomSnapshot]:
        return self.rooms.get(room_id)

    def add_listener(self, listener: SyncListener) -> None:
        self._listeners.append(listener)

    async def _emit(self, sync_event: SyncEvent) -> None:
        for listener in list(self._listeners):
            await listener(sync_event)

    def _store(self, event: ProtocolEvent) -> None:
        """Insert or replace an event in its room's timeline."""
        room = self.rooms.get(event.room_id)
        if room is None:
            logger.warning("Event for unknown room %s dropped", event.room_id)
            return

        for index, existing in enumerate(room.timeline):
            same_event = event.event_id and existing.event_id == event.event_id
            same_txn = (
                event.transaction_id
                and existing.transaction_id == event.transaction_id
            )
            if same_event or same_txn:
                room.timeline[index] = event
                return

        room.timeline.append(event)
        if event.sender_id != self._user_id:
            room.unread_count += 1

    async def deliver(
        self, event: ProtocolEvent, to_start_of_timeline: bool = False
    ) -> None:
        """Deliver a timeline event as if it arrived from the server."""
        self._store(event)
        await self._emit(
            SyncEvent(SyncEventKind.TIMELINE, event, to_start_of_timeline)
        )

    async def deliver_decryption(
        self,
        event_id: str,
        content: Dict[str, Any],
        succeeded: bool = True,
        error: Optional[str] = None,
    ) -> Optional[ProtocolEvent]:
        """
        Finish decrypting a stored event and notify listeners.

        Returns:
            The updated event, or None if no event has that ID.
        """
        for room in self.rooms.values():
            for existing in room.timeline:
                if existing.event_id != event_id:
                    continue
                updated = replace(
                    existing,
                    content=dict(content) if succeeded else existing.content,
                    decryption_state=(
                        DecryptionState.SUCCEEDED
                        if succeeded
                        else DecryptionState.FAILED
                    ),
                    decryption_error=None if succeeded else error,
                )
                self._store(updated)
                await self._emit(SyncEvent(SyncEventKind.DECRYPTED, updated))
                return updated
        logger.warning("No event %s to decrypt", event_id)
        return None

    async def send_message(self, room_id: str, body: str) -> str:
        room = self.rooms.get(room_id)
        if room is None or room.my_membership != "join":
            raise SendError(f"Not joined to room {room_id}")
        if self.fail_sends:
            raise SendError("Server rejected the message")

        transaction_id = f"txn-{uuid.uuid4().hex[:12]}"
        echo = ProtocolEvent(
            event_id=None,
            transaction_id=transaction_id,
            room_id=room_id,
            sender_id=self._user_id,
            type=EventType.ENCRYPTED if room.is_encrypted else EventType.MESSAGE,
            timestamp=_now_ms(),
            content={"msgtype": "m.text", "body": body},
        )
        await self.deliver(echo)

        event_id = f"${uuid.uuid4().hex}"
        await self.deliver(replace(echo, event_id=event_id))
        logger.debug("Message %s confirmed as %s", transaction_id, event_id)
        return event_id

    async def join_room(self, room_id: str) -> None:
        room = self.rooms.get(room_id)
        if room is None or room.my_membership not in ("invite", "join"):
            raise MembershipError(f"No invitation to room {room_id}")
        if self.fail_membership:
            raise MembershipError(f"Server refused to join room {room_id}")
        if room.my_membership == "join":
            return

        room.my_membership = "join"
        room.joined_count += 1
        room.invited_count = max(room.invited_count - 1, 0)
        room.members[self._user_id] = RoomMember(self._user_id)
        logger.info("Joined room %s", room_id)

    async def leave_room(self, room_id: str) -> None:
        room = self.rooms.get(room_id)
        if room is None:
            raise MembershipError(f"Unknown room {room_id}")
        if self.fail_membership:
            raise MembershipError(f"Server refused to leave room {room_id}")

        if room.my_membership == "join":
            room.joined_count = max(room.joined_count - 1, 0)
        elif room.my_membership == "invite":
            room.invited_count = max(room.invited_count - 1, 0)
        room.my_membership = "leave"
        member = room.members.get(self._user_id)
        if member is not None:
            member.membership = "leave"
        logger.info("Left room %s", room_id)

    async def create_room(
        self, invite: List[str], is_direct: bool = True, encrypted: bool = False
    ) -> str:
        if self.fail_membership:
            raise MembershipError("Server refused to create the room")

        server = self._user_id.partition(":")[2] or "localhost"
        room_id = f"!{uuid.uuid4().hex[:18]}:{server}"
        members = {self._user_id: RoomMember(self._user_id)}
        for user_id in invite:
            members[user_id] = RoomMember(user_id, membership="invite")

        self.add_room(
            RoomSnapshot(
                room_id=room_id,
                joined_count=1,
                invited_count=len(invite),
                members=members,
                is_encrypted=encrypted,
            )
        )
        logger.info(
            "Created room %s (direct=%s, encrypted=%s)",
            room_id,
            is_direct,
            encrypted,
        )
        return room_id

    async def send_read_receipt(self, room_id: str, event_id: str) -> None:
        if self.fail_receipts:
            raise SyncClientError("Receipt rejected")
        self.read_receipts.append((room_id, event_id))

    async def set_room_read_markers(self, room_id: str, event_id: str) -> None:
        if self.fail_receipts:
            raise SyncClientError("Read marker rejected")
        self.read_markers.append((room_id, event_id))

    def get_account_data(self, kind: str) -> Dict[str, Any]:
        return dict(self.account_data.get(kind) or {})

    async def set_account_data(self, kind: str, content: Dict[str, Any]) -> None:
        self.account_data[kind] = dict(content)

    async def resolve_media(self, media_ref: str) -> Optional[bytes]:
        return self.media.get(media_ref)

    def is_encryption_active(self, room_id: str) -> bool:
        return self.encryption_active


def _now_ms() -> int:
    return int(time.time() * 1000)
