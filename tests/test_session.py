"""
Tests for Session State and Configuration

Tests for the recent rooms list, the session state and the
environment-driven client configuration.
"""

from typec.calendar_feed import DEFAULT_FEED_URL
from typec.config import DEFAULT_REQUEST_TIMEOUT, ClientConfig
from typec.quotes import DEFAULT_QUOTES_URL
from typec.session import RecentRoomsList, RoomTab, SessionState


class TestRecentRoomsList:
    """Tests for RecentRoomsList."""

    def test_most_recent_first(self):
        """Test that the latest room comes first."""
        recent = RecentRoomsList()
        recent.track("!a")
        recent.track("!b")
        assert recent.as_list() == ["!b", "!a"]

    def test_reinsertion_moves_to_front(self):
        """Test that tracking a known room does not duplicate it."""
        recent = RecentRoomsList()
        for room_id in ("!a", "!b", "!c", "!a"):
            recent.track(room_id)
        assert recent.as_list() == ["!a", "!c", "!b"]

    def test_bounded_to_five(self):
        """Test that only five rooms are kept by default."""
        recent = RecentRoomsList()
        for i in range(8):
            recent.track(f"!{i}")
        assert recent.as_list() == ["!7", "!6", "!5", "!4", "!3"]
        assert len(recent) == 5

    def test_custom_size(self):
        """Test a custom bound."""
        recent = RecentRoomsList(max_size=2)
        for room_id in ("!a", "!b", "!c"):
            recent.track(room_id)
        assert recent.as_list() == ["!c", "!b"]

    def test_empty_ids_ignored(self):
        """Test that missing room IDs are not tracked."""
        recent = RecentRoomsList()
        recent.track(None)
        recent.track("")
        assert len(recent) == 0

    def test_remove_and_contains(self):
        """Test removal and membership."""
        recent = RecentRoomsList()
        recent.track("!a")
        recent.track("!b")
        recent.remove("!a")
        assert "!a" not in recent
        assert "!b" in recent
        assert recent.as_list() == ["!b"]


class TestSessionState:
    """Tests for SessionState."""

    def test_defaults(self):
        """Test the initial state."""
        session = SessionState()
        assert session.current_room_id is None
        assert session.has_focus is True
        assert session.current_tab == RoomTab.DMS
        assert len(session.recent_rooms) == 0

    def test_select_and_close_room(self):
        """Test opening and closing a room."""
        session = SessionState(user_id="@me:example.org")
        session.select_room("!a")
        assert session.is_active("!a")
        assert not session.is_active("!b")
        assert session.recent_rooms.as_list() == ["!a"]

        session.close_room()
        assert session.current_room_id is None
        assert not session.is_active(None)

    def test_sessions_do_not_share_recent_rooms(self):
        """Test that each session has its own recent list."""
        first, second = SessionState(), SessionState()
        first.select_room("!a")
        assert len(second.recent_rooms) == 0


class TestClientConfig:
    """Tests for ClientConfig.from_env()."""

    def test_defaults(self):
        """Test defaults with an empty environment."""
        config = ClientConfig.from_env({})
        assert config.user_id == "@me:localhost"
        assert config.homeserver is None
        assert config.holiday_feed_url == DEFAULT_FEED_URL
        assert config.quotes_url == DEFAULT_QUOTES_URL
        assert config.request_timeout == DEFAULT_REQUEST_TIMEOUT
        assert config.log_level == "WARNING"
        assert config.has_media_credentials is False

    def test_values_from_environment(self):
        """Test that variables override defaults."""
        config = ClientConfig.from_env(
            {
                "TYPEC_USER_ID": "@alice:example.org",
                "TYPEC_HOMESERVER": "https://matrix.example.org",
                "TYPEC_ACCESS_TOKEN": "token",
                "TYPEC_QUOTES_URL": "https://quotes.test/q.json",
                "TYPEC_REQUEST_TIMEOUT": "5",
                "TYPEC_LOG_LEVEL": "debug",
                "TYPEC_LOG_FILE": "/tmp/typec.log",
            }
        )
        assert config.user_id == "@alice:example.org"
        assert config.quotes_url == "https://quotes.test/q.json"
        assert config.request_timeout == 5.0
        assert config.log_level == "DEBUG"
        assert config.log_file == "/tmp/typec.log"
        assert config.has_media_credentials is True

    def test_invalid_timeout_uses_default(self):
        """Test that unusable timeouts fall back to the default."""
        for raw in ("soon", "0", "-3"):
            config = ClientConfig.from_env({"TYPEC_REQUEST_TIMEOUT": raw})
            assert config.request_timeout == DEFAULT_REQUEST_TIMEOUT
