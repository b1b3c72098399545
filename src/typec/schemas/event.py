"""
Protocol Event Schema

This module defines the immutable protocol event record delivered by the
sync client, together with the enums describing its type and decryption
state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .base import BaseRecord


class EventType(str, Enum):
    """Timeline event types. Only the two message types are rendered."""

    MESSAGE = "m.room.message"
    ENCRYPTED = "m.room.encrypted"
    MEMBER = "m.room.member"


class DecryptionState(str, Enum):
    """Decryption progress of an event."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ProtocolEvent(BaseRecord):
    """
    A timeline event as delivered by the sync client.

    Events are never mutated. A decryption transition is delivered as a new
    event sharing the same identity (see `dataclasses.replace`).

    Attributes:
        event_id: Server-assigned ID (None for unacknowledged local sends)
        transaction_id: Client-assigned ID, present on local sends
        room_id: ID of the room the event belongs to
        sender_id: User ID of the sender
        type: Event type (plain or encrypted message)
        timestamp: Origin timestamp in milliseconds since the epoch
        content: Event payload (cleartext once decrypted)
        decryption_state: Decryption progress
        decryption_error: Failure reason when decryption failed
    """

    event_id: Optional[str]
    transaction_id: Optional[str]
    room_id: str
    sender_id: str
    type: EventType = EventType.MESSAGE
    timestamp: int = 0
    content: Dict[str, Any] = field(default_factory=dict)
    decryption_state: DecryptionState = DecryptionState.SUCCEEDED
    decryption_error: Optional[str] = None

    @property
    def identity_key(self) -> Optional[str]:
        """Event ID when assigned, otherwise the transaction ID."""
        return self.event_id or self.transaction_id

    @property
    def is_encrypted(self) -> bool:
        return self.type == EventType.ENCRYPTED

    @property
    def is_still_encrypted(self) -> bool:
        """True while an encrypted event has no usable cleartext."""
        return (
            self.is_encrypted
            and self.decryption_state != DecryptionState.SUCCEEDED
        )

    @property
    def is_message(self) -> bool:
        return self.type in (EventType.MESSAGE, EventType.ENCRYPTED)

    @property
    def body(self) -> str:
        body = self.content.get("body") if self.content else None
        return body if isinstance(body, str) else ""

    @classmethod
    def _from_data(cls, data: Dict[str, Any]) -> "ProtocolEvent":
        """Create from an event dictionary."""
        raw_type = data.get("type", EventType.MESSAGE.value)
        try:
            event_type = EventType(raw_type)
        except ValueError:
            raise ValueError(f"Unsupported event type: {raw_type}")

        return cls(
            event_id=data.get("event_id"),
            transaction_id=data.get("transaction_id"),
            room_id=data["room_id"],
            sender_id=data.get("sender_id", data.get("sender", "")),
            type=event_type,
            timestamp=int(data.get("timestamp", 0)),
            content=dict(data.get("content") or {}),
            decryption_state=DecryptionState(
                data.get("decryption_state", DecryptionState.SUCCEEDED.value)
            ),
            decryption_error=data.get("decryption_error"),
        )
