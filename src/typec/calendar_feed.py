"""
Calendar Feed Parser

Parses an iCalendar-style holiday feed into a date-indexed lookup table,
and loads that feed over HTTP for the holiday overlay.

The parse is best-effort: it unfolds continuation lines, scans VEVENT
blocks, and keeps only events that carry both a start date and a summary.
Yearly events are indexed a second time under their MMDD suffix so that
they match the same day in any year.

Usage:
    index = parse(document)
    entries = lookup(index, "20240101")

    calendar = HolidayCalendar()
    await calendar.load()
    calendar.holidays_for(date.today())
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Union

import httpx

from .schemas import BaseRecord

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = (
    "https://raw.githubusercontent.com/umniystakan/Type-C/"
    "refs/heads/main/ical-wholeworld.ics"
)
DEFAULT_TIMEOUT = 15.0

EVENT_MARKER = "VEVENT"

_FOLDED_LINE = re.compile(r"\r?\n[ \t]")
_LINE_BREAK = re.compile(r"\r?\n")
_DATE_KEY = re.compile(r"(\d{8})")
_ESCAPE = re.compile(r"\\([nN,;\\])")
_UNESCAPED = {"n": "\n", "N": "\n", ",": ",", ";": ";", "\\": "\\"}


@dataclass(frozen=True)
class HolidayEntry(BaseRecord):
    """
    One calendar event.

    Attributes:
        summary: Event title
        description: Event description (may be empty)
    """

    summary: str
    description: str = ""


HolidayIndex = Dict[str, List[HolidayEntry]]


def unescape(value: Optional[str]) -> str:
    """
    Undo text escaping (\\n, \\, \\; \\\\) and trim whitespace.

    Escapes are decoded in one left-to-right pass, so an escaped backslash
    followed by n stays a backslash and the letter n.
    """
    if not value:
        return ""
    return _ESCAPE.sub(lambda m: _UNESCAPED[m.group(1)], value).strip()


def parse(document: str) -> HolidayIndex:
    """
    Parse a calendar feed into a date-indexed table.

    Args:
        document: Feed text

    Returns:
        Dictionary mapping YYYYMMDD (and MMDD for yearly events) to the
        entries on that day. Empty for unusable input.
    """
    if not isinstance(document, str):
        logger.warning("Calendar feed is not text: %r", type(document))
        return {}

    index: HolidayIndex = {}
    lines = _LINE_BREAK.split(_FOLDED_LINE.sub("", document))

    current: Optional[Dict[str, object]] = None
    for line in lines:
        if line.startswith(f"BEGIN:{EVENT_MARKER}"):
            current = {
                "date": "",
                "summary": "",
                "description": "",
                "yearly": False,
            }
        elif line.startswith(f"END:{EVENT_MARKER}"):
            if current and current["date"] and current["summary"]:
                _index_event(index, current)
            current = None
        elif current is not None:
            name, sep, value = line.partition(":")
            if not sep:
                continue
            if name.startswith("DTSTART"):
                match = _DATE_KEY.search(value)
                if match:
                    current["date"] = match.group(1)
            elif name.startswith("RRULE"):
                if "FREQ=YEARLY" in value:
                    current["yearly"] = True
            elif name.startswith("SUMMARY"):
                current["summary"] = unescape(value)
            elif name.startswith("DESCRIPTION"):
                current["description"] = unescape(value)

    return index


def _index_event(index: HolidayIndex, event: Dict[str, object]) -> None:
    entry = HolidayEntry(
        summary=str(event["summary"]),
        description=str(event["description"] or ""),
    )
    day_key = str(event["date"])
    index.setdefault(day_key, []).append(entry)
    if event["yearly"]:
        index.setdefault(day_key[4:], []).append(entry)


def date_key(day: Union[date, str]) -> str:
    """Return the YYYYMMDD key for a date (strings pass through)."""
    if isinstance(day, date):
        return day.strftime("%Y%m%d")
    return day


def lookup(index: HolidayIndex, key: Union[date, str]) -> List[HolidayEntry]:
    """
    Return the entries for a date.

    For a full YYYYMMDD key, the exact-date entries are combined with the
    yearly entries stored under MMDD. Duplicates (same summary and
    description) are dropped; order is preserved.
    """
    key = date_key(key)
    candidates = list(index.get(key, []))
    if len(key) == 8:
        candidates.extend(index.get(key[4:], []))

    seen = set()
    entries: List[HolidayEntry] = []
    for entry in candidates:
        identity = (entry.summary, entry.description)
        if identity in seen:
            continue
        seen.add(identity)
        entries.append(entry)
    return entries


class HolidayCalendar:
    """
    Holiday overlay backed by a remote calendar feed.

    Attributes:
        url: Feed URL
        index: Parsed date index (empty until loaded, or after a failure)
        loaded: True after a successful load
    """

    def __init__(
        self,
        url: str = DEFAULT_FEED_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the calendar.

        Args:
            url: Feed URL
            timeout: Request timeout in seconds
            client: Optional HTTP client (for dependency injection/testing)
        """
        self.url = url
        self.timeout = timeout
        self.index: HolidayIndex = {}
        self.loaded = False
        self._client = client

    async def load(self, url: Optional[str] = None) -> HolidayIndex:
        """
        Fetch and parse the feed.

        Any network or status failure leaves an empty index.

        Returns:
            The parsed index.
        """
        target = url or self.url
        try:
            document = await self._fetch(target)
        except httpx.HTTPError as e:
            logger.error("Failed to load holidays from %s: %s", target, e)
            self.index = {}
            self.loaded = False
            return self.index

        self.index = parse(document)
        self.loaded = True
        logger.info("Loaded %s holiday dates", len(self.index))
        return self.index

    async def _fetch(self, url: str) -> str:
        if self._client is not None:
            response = await self._client.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.text

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.text

    def holidays_for(self, day: Union[date, str]) -> List[HolidayEntry]:
        """Return the holidays on a date (exact and yearly)."""
        return lookup(self.index, day)
