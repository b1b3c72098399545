#!/usr/bin/env python3
"""
Demo Script for the Chat Client

This script drives a ChatClient over an InMemorySyncClient with a few
seeded rooms, and walks through local echo, delayed decryption,
notifications and the holiday overlay. It can be run standalone.

Usage:
    python -m typec.demo
    python -m typec.demo --demo decrypt
    python -m typec.demo --demo holidays --offline
"""

import argparse
import asyncio
import logging
import time
from datetime import date
from typing import Optional, Tuple

from .calendar_feed import HolidayCalendar, parse
from .chat_client import ChatClient
from .classifier import DIRECT_INDEX_KEY
from .config import LOG_FORMAT, ClientConfig
from .media import MediaResolver
from .schemas import (
    DecryptionState,
    EventType,
    ProtocolEvent,
    RoomMember,
    RoomSnapshot,
)
from .sync import InMemorySyncClient

logger = logging.getLogger(__name__)

ALICE = "@alice:localhost"
BOB = "@bob:localhost"
CAROL = "@carol:localhost"
DAVE = "@dave:localhost"

DM_ROOM = "!alice-dm:localhost"
TEAM_ROOM = "!team:localhost"
INVITE_ROOM = "!invite:localhost"

SAMPLE_FEED = """BEGIN:VCALENDAR
BEGIN:VEVENT
DTSTART;VALUE=DATE:20240101
RRULE:FREQ=YEARLY
SUMMARY:New Year's Day
DESCRIPTION:First day of the year
END:VEVENT
BEGIN:VEVENT
DTSTART;VALUE=DATE:{today}
SUMMARY:Demo Day
DESCRIPTION:Seeded for the demo\\, today only
END:VEVENT
END:VCALENDAR
"""


def _ms_ago(minutes: int) -> int:
    return int((time.time() - minutes * 60) * 1000)


def _message(
    event_id: str, room_id: str, sender_id: str, body: str, minutes_ago: int
) -> ProtocolEvent:
    return ProtocolEvent(
        event_id=event_id,
        transaction_id=None,
        room_id=room_id,
        sender_id=sender_id,
        timestamp=_ms_ago(minutes_ago),
        content={"msgtype": "m.text", "body": body},
    )


def seed_rooms(user_id: str):
    """Return the rooms the demo starts with."""
    dm = RoomSnapshot(
        room_id=DM_ROOM,
        joined_count=2,
        members={
            user_id: RoomMember(user_id, "Me"),
            ALICE: RoomMember(ALICE, "Alice Liddell"),
        },
        timeline=[
            _message("$dm1", DM_ROOM, ALICE, "Hi! Are you around?", 30),
            _message("$dm2", DM_ROOM, user_id, "Yes, what's up?", 28),
        ],
    )
    team = RoomSnapshot(
        room_id=TEAM_ROOM,
        name="Type-C Team",
        canonical_alias="#team:localhost",
        joined_count=4,
        is_encrypted=True,
        unread_count=1,
        members={
            user_id: RoomMember(user_id, "Me"),
            BOB: RoomMember(BOB, "Bob", power_level=100),
            CAROL: RoomMember(CAROL, "Carol"),
            DAVE: RoomMember(DAVE),
        },
        timeline=[
            _message("$team1", TEAM_ROOM, BOB, "Welcome to the team room", 120),
            ProtocolEvent(
                event_id="$team2",
                transaction_id=None,
                room_id=TEAM_ROOM,
                sender_id=CAROL,
                type=EventType.ENCRYPTED,
                timestamp=_ms_ago(60),
                content={},
                decryption_state=DecryptionState.PENDING,
            ),
        ],
    )
    invite = RoomSnapshot(
        room_id=INVITE_ROOM,
        name="Release planning",
        joined_count=3,
        invited_count=1,
        my_membership="invite",
        inviter_id=CAROL,
    )
    return [dm, team, invite]


def build_demo_client(
    config: Optional[ClientConfig] = None,
) -> Tuple[InMemorySyncClient, ChatClient]:
    """
    Build an in-memory sync client with seeded rooms and a chat client.

    Args:
        config: Client configuration (read from the environment if omitted)

    Returns:
        Tuple of (sync_client, chat_client)
    """
    config = config or ClientConfig.from_env()
    sync_client = InMemorySyncClient(config.user_id, seed_rooms(config.user_id))
    sync_client.account_data[DIRECT_INDEX_KEY] = {ALICE: [DM_ROOM]}

    media_resolver = None
    if config.has_media_credentials:
        media_resolver = MediaResolver(
            config.homeserver,
            config.access_token,
            timeout=config.request_timeout,
        )

    client = ChatClient(
        sync_client,
        media_resolver=media_resolver,
        request_timeout=config.request_timeout,
    )
    return sync_client, client


def _attach_logging_callbacks(client: ChatClient) -> None:
    client.set_on_message_rendered(
        lambda message, replaced: logger.info(
            "  [%s] %s: %s%s",
            message.timestamp_display,
            message.sender_display_name,
            message.body_text,
            f" (replaces {replaced})" if replaced else "",
        )
    )
    client.set_on_notification(
        lambda n: logger.info("  NOTIFY [%s] %s: %s", n.room_name, n.title, n.body)
    )


async def demo_local_echo(config: ClientConfig) -> None:
    """
    Demonstrate sending a message.

    The local echo is rendered first and then replaced in place by the
    server-confirmed event, leaving one message.
    """
    sync_client, client = build_demo_client(config)
    _attach_logging_callbacks(client)

    logger.info("=" * 60)
    logger.info("Chat Client Demo - Local Echo")
    logger.info("=" * 60)

    await client.select_room(DM_ROOM)
    event_id = await client.send_message("Lunch at noon?")
    logger.info("Sent as %s; view holds %s messages", event_id, len(client.reconciler))

    logger.info("Alice answers while the room is open (no notification):")
    await sync_client.deliver(
        _message("$dm3", DM_ROOM, ALICE, "Sounds good!", 0)
    )

    for summary in client.room_summaries():
        logger.info(
            "  DM %s: unread=%s preview=%r",
            summary.display_name,
            summary.unread_count,
            summary.last_message_preview,
        )


async def demo_decryption(config: ClientConfig) -> None:
    """
    Demonstrate delayed decryption and notifications.

    The encrypted message renders as a placeholder and is replaced once
    keys arrive. A message to a background room notifies.
    """
    sync_client, client = build_demo_client(config)
    _attach_logging_callbacks(client)

    logger.info("=" * 60)
    logger.info("Chat Client Demo - Delayed Decryption")
    logger.info("=" * 60)

    await client.select_room(TEAM_ROOM)
    logger.info("Keys arrive for $team2:")
    await sync_client.deliver_decryption(
        "$team2", {"msgtype": "m.text", "body": "Standup moved to 10:30"}
    )

    logger.info("Alice writes in the DM while the team room is open:")
    await sync_client.deliver(
        _message("$dm4", DM_ROOM, ALICE, "Did you see the standup change?", 0)
    )

    for summary in client.unread_rooms():
        logger.info("  Unread: %s (%s)", summary.display_name, summary.unread_count)


async def demo_holidays(config: ClientConfig, offline: bool) -> None:
    """Demonstrate the holiday overlay."""
    logger.info("=" * 60)
    logger.info("Chat Client Demo - Holidays")
    logger.info("=" * 60)

    calendar = HolidayCalendar(config.holiday_feed_url, timeout=config.request_timeout)
    if offline:
        today = date.today().strftime("%Y%m%d")
        calendar.index = parse(SAMPLE_FEED.format(today=today))
        calendar.loaded = True
    else:
        await calendar.load()

    holidays = calendar.holidays_for(date.today())
    if not holidays:
        logger.info("No holidays today")
    for holiday in holidays:
        logger.info("  %s: %s", holiday.summary, holiday.description)
    for holiday in calendar.holidays_for("20250101"):
        logger.info("  On 1 January: %s", holiday.summary)


def main():
    """Main entry point for the demo script."""
    parser = argparse.ArgumentParser(description="Demo chat client functionality")
    parser.add_argument(
        "--user-id",
        default=None,
        help="Local user ID (defaults to TYPEC_USER_ID)",
    )
    parser.add_argument(
        "--demo",
        choices=["echo", "decrypt", "holidays", "all"],
        default="all",
        help="Which demo to run",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Use a bundled calendar feed instead of fetching it",
    )

    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    config = ClientConfig.from_env()
    if args.user_id:
        config.user_id = args.user_id

    if args.demo in ("echo", "all"):
        asyncio.run(demo_local_echo(config))
    if args.demo in ("decrypt", "all"):
        asyncio.run(demo_decryption(config))
    if args.demo in ("holidays", "all"):
        asyncio.run(demo_holidays(config, args.offline))


if __name__ == "__main__":
    main()
