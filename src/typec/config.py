"""
Client Configuration

Settings are read from the environment with defaults, so that the terminal
client and the demo can run without a config file.

Environment variables:
    TYPEC_USER_ID: Local user ID (default @me:localhost)
    TYPEC_HOMESERVER: Homeserver base URL for authenticated media
    TYPEC_ACCESS_TOKEN: Access token for authenticated media
    TYPEC_HOLIDAY_FEED_URL: Calendar feed URL for the holiday overlay
    TYPEC_QUOTES_URL: Quotes document URL for the summary screen
    TYPEC_REQUEST_TIMEOUT: Timeout in seconds for outbound calls
    TYPEC_LOG_LEVEL: Logging level name (default WARNING)
    TYPEC_LOG_FILE: Log file for the terminal client
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .calendar_feed import DEFAULT_FEED_URL
from .quotes import DEFAULT_QUOTES_URL

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "@me:localhost"
DEFAULT_REQUEST_TIMEOUT = 15.0
DEFAULT_LOG_FILE = "typec_client.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ClientConfig:
    """Runtime settings of the client."""

    user_id: str = DEFAULT_USER_ID
    homeserver: Optional[str] = None
    access_token: Optional[str] = None
    holiday_feed_url: str = DEFAULT_FEED_URL
    quotes_url: str = DEFAULT_QUOTES_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = "WARNING"
    log_file: str = DEFAULT_LOG_FILE

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """
        Build the configuration from environment variables.

        Args:
            environ: Mapping to read (defaults to os.environ)

        Returns:
            ClientConfig with defaults for unset or invalid values.
        """
        env = os.environ if environ is None else environ

        timeout = DEFAULT_REQUEST_TIMEOUT
        raw_timeout = env.get("TYPEC_REQUEST_TIMEOUT")
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                logger.warning(
                    "Invalid TYPEC_REQUEST_TIMEOUT %r, using %s",
                    raw_timeout,
                    DEFAULT_REQUEST_TIMEOUT,
                )
            if timeout <= 0:
                timeout = DEFAULT_REQUEST_TIMEOUT

        return cls(
            user_id=env.get("TYPEC_USER_ID", DEFAULT_USER_ID),
            homeserver=env.get("TYPEC_HOMESERVER") or None,
            access_token=env.get("TYPEC_ACCESS_TOKEN") or None,
            holiday_feed_url=env.get("TYPEC_HOLIDAY_FEED_URL", DEFAULT_FEED_URL),
            quotes_url=env.get("TYPEC_QUOTES_URL", DEFAULT_QUOTES_URL),
            request_timeout=timeout,
            log_level=env.get("TYPEC_LOG_LEVEL", "WARNING").upper(),
            log_file=env.get("TYPEC_LOG_FILE", DEFAULT_LOG_FILE),
        )

    @property
    def has_media_credentials(self) -> bool:
        return bool(self.homeserver and self.access_token)
