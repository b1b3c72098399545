#!/usr/bin/env python3
"""
Chat Client Application

Terminal chat client over the in-memory sync client seeded by the demo.
Provides a terminal-based user interface using the Textual framework.

Configuration is read from the environment, see `typec.config`.
"""

import logging
import sys

from .calendar_feed import HolidayCalendar
from .config import LOG_FORMAT, ClientConfig
from .quotes import QuoteBook

logger = logging.getLogger(__name__)


def configure_logging(config: ClientConfig) -> None:
    """Log to a file so that log output does not draw over the UI."""
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format=LOG_FORMAT,
        handlers=[logging.FileHandler(config.log_file, mode="a")],
    )


def main():
    """Main entry point for the chat client."""
    config = ClientConfig.from_env()
    configure_logging(config)
    logger.info("Starting chat client as %s", config.user_id)

    from .demo import build_demo_client
    from .ui import ChatApp

    _, client = build_demo_client(config)
    calendar = HolidayCalendar(
        config.holiday_feed_url, timeout=config.request_timeout
    )

    quotes = QuoteBook(config.quotes_url, timeout=config.request_timeout)

    try:
        ChatApp(client, calendar=calendar, quotes=quotes).run()
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
