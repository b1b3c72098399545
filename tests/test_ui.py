"""
Tests for the Chat Client UI

Tests for the Textual-based user interface components.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from typec import ChatClient, InMemorySyncClient
from typec.calendar_feed import HolidayCalendar
from typec.quotes import Quote, QuoteBook
from typec.schemas import (
    MediaDescriptor,
    MediaKind,
    RenderedMessage,
    RoomMember,
    RoomSnapshot,
)
from typec.session import RoomTab
from typec.ui.app import (
    TAB_BUTTONS,
    ChatApp,
    ChatScreen,
    MessageDisplay,
    RoomListScreen,
    SummaryScreen,
    describe_media,
)


ME = "@me:example.org"
INVITE_ROOM = "!invite:example.org"
TEAM_ROOM = "!team:example.org"


def make_message(**kwargs):
    fields = dict(
        identity_key="$1",
        event_id="$1",
        transaction_id=None,
        room_id="!r:example.org",
        sender_id="@alice:example.org",
        sender_display_name="Alice",
        body_text="Hello, World!",
        timestamp_display="12:00",
    )
    fields.update(kwargs)
    return RenderedMessage(**fields)


def make_app(**kwargs):
    client = ChatClient(InMemorySyncClient(ME))
    return ChatApp(client, **kwargs)


def make_headless_app():
    """App over a small room set, with widget updates stubbed out."""
    sync_client = InMemorySyncClient(
        ME,
        [
            RoomSnapshot(
                room_id=INVITE_ROOM,
                name="Plans",
                joined_count=3,
                my_membership="invite",
                inviter_id="@bob:example.org",
            ),
            RoomSnapshot(
                room_id=TEAM_ROOM,
                name="Team",
                joined_count=3,
                members={ME: RoomMember(ME)},
            ),
        ],
    )
    app = ChatApp(ChatClient(sync_client))
    app.notify = MagicMock()
    app._refresh_rooms = MagicMock()
    app.client.set_on_rooms_changed(app._refresh_rooms)
    return app, sync_client


class TestUIComponentsCanBeImported:
    """Tests to verify UI components can be imported and created."""

    def test_screens_can_be_imported(self):
        """Test that the screen containers can be imported."""
        assert RoomListScreen is not None
        assert SummaryScreen is not None
        assert ChatScreen is not None

    def test_tab_buttons_cover_all_tabs(self):
        """Test that every room list tab has a button."""
        assert set(TAB_BUTTONS.values()) == set(RoomTab)


class TestChatAppInitialization:
    """Tests for ChatApp initialization."""

    def test_chat_app_initial_state(self):
        """Test ChatApp initial state."""
        app = make_app()
        assert app.client is not None
        assert app.calendar is None
        assert app._current_screen == "room-list"

    def test_chat_app_registers_callbacks(self):
        """Test that the app subscribes to client callbacks."""
        app = make_app()
        assert app.client._on_message_rendered is not None
        assert app.client._on_notification is not None
        assert app.client._on_rooms_changed is not None
        assert app.client._on_media_resolved is not None

    def test_chat_app_with_calendar(self):
        """Test that a holiday calendar can be supplied."""
        calendar = HolidayCalendar("https://feed.test/x.ics")
        app = make_app(calendar=calendar)
        assert app.calendar is calendar

    def test_focus_tracking(self):
        """Test that app focus changes update the session."""
        app = make_app()
        app.on_app_blur()
        assert app.client.session.has_focus is False
        app.on_app_focus()
        assert app.client.session.has_focus is True

    def test_chat_app_has_bindings_and_css(self):
        """Test that ChatApp has keybindings and CSS defined."""
        app = make_app()
        assert len(app.BINDINGS) > 0
        assert len(app.CSS) > 0


class TestMessageDisplayWidget:
    """Tests for MessageDisplay widget."""

    def test_message_text(self):
        """Test the text shown for a message."""
        widget = MessageDisplay(make_message())
        assert widget.render_text() == "Alice  12:00\nHello, World!"
        assert widget.is_own_message is False

    def test_own_message(self):
        """Test that own messages are labelled."""
        widget = MessageDisplay(make_message(), is_own_message=True)
        assert widget.render_text().startswith("You")
        assert widget.has_class("own-message")

    def test_admin_badge_and_placeholder(self):
        """Test admin badge and placeholder styling."""
        widget = MessageDisplay(
            make_message(
                is_admin_sender=True,
                is_placeholder=True,
                body_text="🔒 [Encrypted: no keys]",
            )
        )
        assert "(admin)" in widget.render_text()
        assert widget.has_class("placeholder")


class TestDescribeMedia:
    """Tests for attachment text."""

    def test_states(self):
        """Test loading, ready and error descriptions."""
        descriptor = MediaDescriptor(MediaKind.IMAGE, "mxc://x/y", "cat.png")
        assert describe_media(descriptor) == "[image: cat.png (loading...)]"

        descriptor.resolve(b"1234")
        assert describe_media(descriptor) == "[image: cat.png, 4 bytes]"

        descriptor.fail("Failed to load image")
        assert describe_media(descriptor) == "[Failed to load image: cat.png]"

    def test_no_attachment(self):
        """Test that messages without attachment add no text."""
        assert describe_media(None) == ""


class TestUIPackageExports:
    """Tests for UI package exports."""

    def test_ui_package_exports_chat_app(self):
        """Test that UI package exports ChatApp."""
        from typec.ui import ChatApp as ImportedChatApp

        assert ImportedChatApp is ChatApp


class TestInviteActions:
    """Tests for accepting and rejecting invitations from the Invites tab."""

    @pytest.mark.asyncio
    async def test_accept_selected_invite(self):
        """Test that Accept joins the picked invitation."""
        app, sync_client = make_headless_app()
        app._selected_invite = INVITE_ROOM

        await app._handle_invite_action(accept=True)

        assert sync_client.get_room(INVITE_ROOM).my_membership == "join"
        assert app._selected_invite is None
        app._refresh_rooms.assert_called()

    @pytest.mark.asyncio
    async def test_reject_selected_invite(self):
        """Test that Reject leaves the picked invitation."""
        app, sync_client = make_headless_app()
        app._selected_invite = INVITE_ROOM

        await app._handle_invite_action(accept=False)

        assert sync_client.get_room(INVITE_ROOM).my_membership == "leave"

    @pytest.mark.asyncio
    async def test_nothing_selected(self):
        """Test that the buttons do nothing without a picked invitation."""
        app, sync_client = make_headless_app()

        await app._handle_invite_action(accept=True)

        assert sync_client.get_room(INVITE_ROOM).my_membership == "invite"
        app.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_is_reported(self):
        """Test that a refused join shows an error notification."""
        app, sync_client = make_headless_app()
        sync_client.fail_membership = True
        app._selected_invite = INVITE_ROOM

        await app._handle_invite_action(accept=True)

        assert sync_client.get_room(INVITE_ROOM).my_membership == "invite"
        assert app.notify.call_args.kwargs["severity"] == "error"


class TestLeaveRoom:
    """Tests for the Leave button."""

    @pytest.mark.asyncio
    async def test_leave_open_room(self):
        """Test that Leave leaves the room and returns to the list."""
        app, sync_client = make_headless_app()
        app._clear_messages = AsyncMock()
        app._show_screen = MagicMock()
        await app.client.select_room(TEAM_ROOM)

        await app._handle_leave_room()

        assert sync_client.get_room(TEAM_ROOM).my_membership == "leave"
        assert app.client.current_room_id is None
        app._show_screen.assert_called_with("room-list")

    @pytest.mark.asyncio
    async def test_leave_without_room_reports_error(self):
        """Test that Leave with no open room shows an error."""
        app, _ = make_headless_app()
        app._clear_messages = AsyncMock()
        app._show_screen = MagicMock()

        await app._handle_leave_room()

        assert app.notify.call_args.kwargs["severity"] == "error"


class TestSummaryQuote:
    """Tests for the summary screen quote."""

    def test_no_quotes(self):
        """Test that the quote is empty without a quote book."""
        assert make_app().next_quote_text() == ""
        assert make_app(quotes=QuoteBook()).next_quote_text() == ""

    def test_quote_text(self):
        """Test that a loaded quote is rendered."""
        book = QuoteBook()
        book.quotes = [Quote("Keep it simple", "Someone")]
        app = make_app(quotes=book)
        assert app.quotes is book
        assert app.next_quote_text() == '"Keep it simple"\n- Someone'
