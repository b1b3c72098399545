"""
Chat Application UI

Main application class for the chat client terminal UI.
Built using the Textual framework.
"""

import asyncio
import logging
from datetime import date
from typing import Dict, Optional, Set

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import (
    Container,
    Horizontal,
    ScrollableContainer,
    Vertical,
)
from textual.css.query import NoMatches
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    ListItem,
    ListView,
    Label,
    Static,
)

from ..calendar_feed import HolidayCalendar
from ..chat_client import ChatClient
from ..classifier import room_display_name
from ..schemas import (
    MediaDescriptor,
    MediaKind,
    MediaState,
    Notification,
    RenderedMessage,
)
from ..quotes import QuoteBook
from ..session import RoomTab
from ..sync import SendError, SyncClientError

logger = logging.getLogger(__name__)

TAB_BUTTONS = {
    "dms-tab": RoomTab.DMS,
    "rooms-tab": RoomTab.ROOMS,
    "invites-tab": RoomTab.INVITES,
}


def describe_media(descriptor: Optional[MediaDescriptor]) -> str:
    """One-line text for an attachment in its current state."""
    if descriptor is None:
        return ""
    label = "image" if descriptor.kind == MediaKind.IMAGE else "file"
    name = descriptor.filename or label
    if descriptor.state == MediaState.LOADING:
        return f"[{label}: {name} (loading...)]"
    if descriptor.state == MediaState.ERROR:
        return f"[{descriptor.error or 'Failed to load'}: {name}]"
    size = len(descriptor.data or b"")
    return f"[{label}: {name}, {size} bytes]"


class MessageDisplay(Static):
    """Widget for displaying a single rendered message."""

    def __init__(self, message: RenderedMessage, is_own_message: bool = False):
        """Initialize message display."""
        super().__init__(markup=False)
        self.message = message
        self.is_own_message = is_own_message
        if is_own_message:
            self.add_class("own-message")
        if message.is_placeholder:
            self.add_class("placeholder")

    def on_mount(self) -> None:
        self.refresh_message()

    def render_text(self) -> str:
        message = self.message
        prefix = "You" if self.is_own_message else message.sender_display_name
        badge = " (admin)" if message.is_admin_sender else ""
        lines = [f"{prefix}{badge}  {message.timestamp_display}"]
        if message.body_text:
            lines.append(message.body_text)
        attachment = describe_media(message.attachment)
        if attachment:
            lines.append(attachment)
        return "\n".join(lines)

    def refresh_message(self) -> None:
        self.update(self.render_text())


class RoomListScreen(Container):
    """Screen for browsing rooms by tab."""

    def compose(self) -> ComposeResult:
        """Compose the room list screen."""
        yield Static(
            "[bold blue]Rooms[/]",
            id="rooms-title",
            classes="screen-title",
        )
        with Horizontal(id="room-tabs"):
            yield Button("DMs", id="dms-tab", variant="primary")
            yield Button("Rooms", id="rooms-tab", variant="default")
            yield Button("Invites", id="invites-tab", variant="default")
            yield Button("Summary", id="summary-btn", variant="default")
        with Horizontal(id="new-dm-row"):
            yield Input(
                placeholder="@user:server to start a DM",
                id="new-dm-input",
            )
            yield Button("Start DM", id="new-dm-btn", variant="primary")
        yield DataTable(id="room-table")
        with Horizontal(id="invite-actions"):
            yield Button("Accept", id="accept-invite-btn", variant="success")
            yield Button("Reject", id="reject-invite-btn", variant="error")
        yield Static("", id="room-status", classes="status-message")


class SummaryScreen(Container):
    """Screen listing unread rooms, recent rooms and today's holidays."""

    def compose(self) -> ComposeResult:
        """Compose the summary screen."""
        yield Static(
            "[bold blue]Summary[/]",
            classes="screen-title",
        )
        with Horizontal(id="summary-columns"):
            with Vertical(classes="summary-column"):
                yield Static("[bold]Unread[/]", classes="sidebar-header")
                yield ListView(id="unread-list")
            with Vertical(classes="summary-column"):
                yield Static("[bold]Recent[/]", classes="sidebar-header")
                yield ListView(id="recent-list")
            with Vertical(classes="summary-column"):
                yield Static("[bold]Today[/]", classes="sidebar-header")
                yield ListView(id="holiday-list")
        yield Static("", id="summary-quote", markup=False)
        yield Button("Back", id="summary-back-btn", variant="default")


class ChatScreen(Container):
    """Screen for chatting in a room."""

    def compose(self) -> ComposeResult:
        """Compose the chat screen."""
        with Vertical(id="chat-main"):
            yield Static("", id="room-header", classes="room-header")
            yield ScrollableContainer(id="messages-container")
            with Horizontal(id="message-input-row"):
                yield Input(
                    placeholder="Type a message...",
                    id="message-input",
                )
                yield Button("Send", id="send-btn", variant="primary")
                yield Button("Close", id="close-room-btn", variant="warning")
                yield Button("Leave", id="leave-room-btn", variant="error")


class ChatApp(App):
    """Main chat application."""

    CSS = """
    Screen {
        layout: vertical;
    }

    .screen-title {
        text-align: center;
        padding: 1 0;
        text-style: bold;
    }

    .status-message {
        text-align: center;
        padding: 1;
    }

    RoomListScreen {
        padding: 1;
    }

    #room-tabs {
        height: 3;
        padding: 0 0 1 0;
    }

    #room-tabs Button {
        margin: 0 1 0 0;
    }

    #room-table {
        height: 1fr;
    }

    #new-dm-row, #invite-actions {
        height: 3;
        padding: 0 0 1 0;
    }

    #new-dm-input {
        width: 1fr;
    }

    #summary-quote {
        padding: 1;
        text-align: center;
        text-style: italic;
    }

    SummaryScreen {
        padding: 1;
    }

    #summary-columns {
        height: 1fr;
    }

    .summary-column {
        width: 1fr;
        padding: 0 1;
    }

    .sidebar-header {
        padding: 1 0;
        text-align: center;
    }

    ChatScreen {
        height: 100%;
    }

    .room-header {
        padding: 1;
        background: $surface;
        text-align: center;
    }

    #messages-container {
        height: 1fr;
        padding: 1;
    }

    #message-input-row {
        height: 3;
        padding: 0 1;
    }

    #message-input {
        width: 1fr;
    }

    #message-input-row Button {
        margin: 0 0 0 1;
    }

    MessageDisplay {
        padding: 0 1 1 1;
    }

    .own-message {
        text-align: right;
    }

    .placeholder {
        text-style: italic;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("escape", "go_back", "Back", show=True),
        Binding("s", "show_summary", "Summary", show=False),
    ]

    def __init__(
        self,
        client: ChatClient,
        calendar: Optional[HolidayCalendar] = None,
        quotes: Optional[QuoteBook] = None,
    ) -> None:
        """
        Initialize the chat application.

        Args:
            client: Chat client to present
            calendar: Holiday calendar for the summary screen
            quotes: Quotes for the summary screen
        """
        super().__init__()
        self.client = client
        self.calendar = calendar
        self.quotes = quotes
        self._current_screen = "room-list"
        self._selected_invite: Optional[str] = None
        self._message_widgets: Dict[str, MessageDisplay] = {}
        self._background_tasks: Set[asyncio.Task] = set()

        client.set_on_message_rendered(self._on_message_rendered)
        client.set_on_notification(self._on_notification)
        client.set_on_rooms_changed(self._on_rooms_changed)
        client.set_on_media_resolved(self._on_media_resolved)

    def compose(self) -> ComposeResult:
        """Compose the main application layout."""
        yield Header()
        yield RoomListScreen(id="room-list-screen")
        yield SummaryScreen(id="summary-screen")
        yield ChatScreen(id="chat-screen")
        yield Footer()

    def on_mount(self) -> None:
        """Handle application mount."""
        self._show_screen("room-list")
        self._refresh_rooms()
        if self.calendar is not None and not self.calendar.loaded:
            self._spawn(self._load_holidays())
        if self.quotes is not None and not self.quotes.loaded:
            self._spawn(self._load_quotes())

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _show_screen(self, screen_name: str) -> None:
        """Show a specific screen and hide others."""
        screens = {
            "room-list": "room-list-screen",
            "summary": "summary-screen",
            "chat": "chat-screen",
        }

        for name, screen_id in screens.items():
            try:
                screen = self.query_one(f"#{screen_id}")
                screen.display = name == screen_name
            except NoMatches:
                pass

        self._current_screen = screen_name

    def on_app_focus(self) -> None:
        self.client.session.has_focus = True

    def on_app_blur(self) -> None:
        self.client.session.has_focus = False

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button press events."""
        button_id = event.button.id

        if button_id in TAB_BUTTONS:
            self._select_tab(TAB_BUTTONS[button_id])
        elif button_id == "summary-btn":
            self.action_show_summary()
        elif button_id == "summary-back-btn":
            self._show_screen("room-list")
        elif button_id == "new-dm-btn":
            await self._handle_create_dm()
        elif button_id == "accept-invite-btn":
            await self._handle_invite_action(accept=True)
        elif button_id == "reject-invite-btn":
            await self._handle_invite_action(accept=False)
        elif button_id == "send-btn":
            await self._handle_send_message()
        elif button_id == "close-room-btn":
            await self._handle_close_room()
        elif button_id == "leave-room-btn":
            await self._handle_leave_room()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        """Handle input submit events (Enter key)."""
        if event.input.id == "message-input":
            await self._handle_send_message()
        elif event.input.id == "new-dm-input":
            await self._handle_create_dm()

    async def on_data_table_row_selected(
        self, event: DataTable.RowSelected
    ) -> None:
        """Handle room selection from table."""
        if event.row_key:
            room_id = str(event.row_key.value)
            await self._handle_open_room(room_id)

    def _select_tab(self, tab: RoomTab) -> None:
        self.client.session.current_tab = tab
        self._selected_invite = None
        for button_id, button_tab in TAB_BUTTONS.items():
            try:
                button = self.query_one(f"#{button_id}", Button)
                button.variant = "primary" if button_tab == tab else "default"
            except NoMatches:
                pass
        self._refresh_rooms()

    def _refresh_rooms(self) -> None:
        """Refresh the room list for the current tab."""
        try:
            table = self.query_one("#room-table", DataTable)
            status = self.query_one("#room-status", Static)
            invite_actions = self.query_one("#invite-actions")
        except NoMatches:
            return

        invite_actions.display = (
            self.client.session.current_tab == RoomTab.INVITES
        )
        summaries = self.client.room_summaries()
        table.clear(columns=True)
        table.add_columns("Name", "Unread", "Last message")
        table.cursor_type = "row"
        for summary in summaries:
            name = summary.display_name
            if summary.is_encrypted:
                name = f"🔒 {name}"
            table.add_row(
                name,
                str(summary.unread_count) if summary.unread_count else "",
                summary.last_message_preview,
                key=summary.room_id,
            )

        if summaries:
            status.update(f"{len(summaries)} room(s)")
        else:
            status.update("[yellow]Nothing here yet[/]")

    async def _handle_open_room(self, room_id: str) -> None:
        """Handle opening a room from the list."""
        room = self.client.sync_client.get_room(room_id)
        if room is None:
            return

        status = self.query_one("#room-status", Static)
        if room.my_membership == "invite":
            self._selected_invite = room_id
            inviter = room.inviter_id or "someone"
            status.update(
                f"[yellow]Invitation from {inviter}: Accept or Reject[/]"
            )
            return

        await self._clear_messages()
        try:
            messages = await self.client.select_room(room_id)
        except ValueError as e:
            logger.error("Failed to open room: %s", e)
            status.update(f"[red]Error: {e}[/]")
            return

        self._present_room(room_id, messages)

    def _present_room(self, room_id: str, messages) -> None:
        """Switch to the chat screen showing an opened room."""
        room = self.client.sync_client.get_room(room_id)
        header = self.query_one("#room-header", Static)
        name = room_display_name(
            room, self.client.session.user_id, self.client.direct_index()
        )
        header.update(f"[bold]{name}[/]")

        self._show_screen("chat")
        for message in messages:
            self._add_chat_message(message, None)
        self.query_one("#message-input", Input).focus()

    async def _handle_invite_action(self, accept: bool) -> None:
        """Accept or reject the invitation picked in the Invites tab."""
        room_id = self._selected_invite
        if room_id is None:
            return
        self._selected_invite = None

        try:
            if accept:
                await self.client.accept_invite(room_id)
            else:
                await self.client.reject_invite(room_id)
        except (SyncClientError, ValueError) as e:
            logger.error("Failed to answer invitation: %s", e)
            self.notify(str(e), title="Invitation", severity="error")
            return

        self.notify("Invitation accepted" if accept else "Invitation rejected")
        self._refresh_rooms()

    async def _handle_create_dm(self) -> None:
        """Open or create a DM with the user typed in the DM field."""
        dm_input = self.query_one("#new-dm-input", Input)
        user_id = dm_input.value.strip()
        if not user_id:
            return

        await self._clear_messages()
        try:
            room_id = await self.client.create_direct_message(user_id)
        except (SyncClientError, ValueError) as e:
            logger.error("Failed to start DM: %s", e)
            self.notify(str(e), title="Direct message", severity="error")
            return

        dm_input.value = ""
        self._select_tab(self.client.session.current_tab)
        self._present_room(room_id, self.client.reconciler.messages())

    async def _handle_close_room(self) -> None:
        self.client.leave_current_room()
        await self._clear_messages()
        self._show_screen("room-list")
        self._refresh_rooms()

    async def _handle_leave_room(self) -> None:
        """Leave the open room on the server and return to the list."""
        try:
            await self.client.leave_room()
        except (SyncClientError, ValueError) as e:
            logger.error("Failed to leave room: %s", e)
            self.notify(str(e), title="Leave room", severity="error")
        await self._clear_messages()
        self._show_screen("room-list")
        self._refresh_rooms()

    async def _clear_messages(self) -> None:
        self._message_widgets.clear()
        try:
            container = self.query_one("#messages-container", ScrollableContainer)
            await container.remove_children()
        except NoMatches:
            pass

    async def _handle_send_message(self) -> None:
        """Handle sending a message."""
        message_input = self.query_one("#message-input", Input)
        content = message_input.value.strip()
        if not content:
            return

        try:
            await self.client.send_message(content)
            message_input.value = ""
        except (SendError, ValueError) as e:
            logger.error("Failed to send message: %s", e)
            self.notify(str(e), title="Message not sent", severity="error")

    def _on_message_rendered(
        self, message: RenderedMessage, replaced_key: Optional[str]
    ) -> None:
        """Callback when a message is rendered or replaced."""
        self.call_later(lambda: self._add_chat_message(message, replaced_key))

    def _on_notification(self, notification: Notification) -> None:
        self.notify(
            notification.body,
            title=f"{notification.title} ({notification.room_name})",
        )

    def _on_rooms_changed(self) -> None:
        if self._current_screen == "room-list":
            self.call_later(self._refresh_rooms)
        elif self._current_screen == "summary":
            self.call_later(self._refresh_summary)

    def _on_media_resolved(
        self, message: RenderedMessage, descriptor: MediaDescriptor
    ) -> None:
        widget = self._message_widgets.get(message.identity_key)
        if widget is not None and widget.message is message:
            self.call_later(widget.refresh_message)

    def _add_chat_message(
        self, message: RenderedMessage, replaced_key: Optional[str]
    ) -> None:
        """Add a rendering to the display, removing the one it replaces."""
        if not self.client.reconciler.holds(message):
            return
        try:
            container = self.query_one("#messages-container", ScrollableContainer)
        except NoMatches:
            return

        stale = [
            key
            for key, widget in self._message_widgets.items()
            if key in (replaced_key, message.identity_key)
            or not self.client.reconciler.holds(widget.message)
        ]
        for key in stale:
            self._message_widgets.pop(key).remove()

        widget = MessageDisplay(
            message,
            is_own_message=message.sender_id == self.client.session.user_id,
        )
        self._message_widgets[message.identity_key] = widget
        container.mount(widget)
        container.scroll_end()

    async def _load_holidays(self) -> None:
        await self.calendar.load()
        if self._current_screen == "summary":
            self._refresh_summary()

    def _refresh_summary(self) -> None:
        """Fill the summary lists."""
        try:
            unread_list = self.query_one("#unread-list", ListView)
            recent_list = self.query_one("#recent-list", ListView)
            holiday_list = self.query_one("#holiday-list", ListView)
        except NoMatches:
            return

        unread_list.clear()
        for summary in self.client.unread_rooms():
            unread_list.append(
                ListItem(Label(f"{summary.display_name} ({summary.unread_count})"))
            )

        recent_list.clear()
        for summary in self.client.recent_rooms():
            recent_list.append(ListItem(Label(summary.display_name)))

        holiday_list.clear()
        holidays = self.calendar.holidays_for(date.today()) if self.calendar else []
        for holiday in holidays:
            holiday_list.append(ListItem(Label(holiday.summary)))
        if not holidays:
            holiday_list.append(ListItem(Label("No holidays today")))

    async def _load_quotes(self) -> None:
        await self.quotes.load()
        if self._current_screen == "summary":
            self._show_quote()

    def next_quote_text(self) -> str:
        quote = self.quotes.pick() if self.quotes else None
        return quote.render() if quote else ""

    def _show_quote(self) -> None:
        try:
            self.query_one("#summary-quote", Static).update(self.next_quote_text())
        except NoMatches:
            pass

    def action_show_summary(self) -> None:
        self._refresh_summary()
        self._show_quote()
        self._show_screen("summary")

    async def action_go_back(self) -> None:
        """Handle back action."""
        if self._current_screen == "chat":
            await self._handle_close_room()
        elif self._current_screen == "summary":
            self._show_screen("room-list")
