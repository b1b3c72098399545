"""
Summary Screen Quotes

Loads a JSON list of quotes ({"text": ..., "author": ...}) over HTTP and
picks one at random each time the summary screen is shown, never the same
one twice in a row.

Usage:
    book = QuoteBook()
    await book.load()
    quote = book.pick()
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, List, Optional

import httpx

from .schemas import BaseRecord

logger = logging.getLogger(__name__)

DEFAULT_QUOTES_URL = (
    "https://raw.githubusercontent.com/umniystakan/Type-C/"
    "refs/heads/main/quotes.json"
)
DEFAULT_TIMEOUT = 15.0


@dataclass(frozen=True)
class Quote(BaseRecord):
    """
    A quote shown on the summary screen.

    Attributes:
        text: Quote text
        author: Attribution (may be empty)
    """

    text: str
    author: str = ""

    def render(self) -> str:
        if self.author:
            return f'"{self.text}"\n- {self.author}'
        return f'"{self.text}"'


def parse_quotes(data: Any) -> List[Quote]:
    """Keep the entries of a decoded quotes document that carry text."""
    if not isinstance(data, list):
        logger.warning("Quotes document is not a list: %r", type(data))
        return []

    quotes = []
    for item in data:
        if not isinstance(item, dict):
            continue
        text = item.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        author = item.get("author")
        quotes.append(
            Quote(text.strip(), author.strip() if isinstance(author, str) else "")
        )
    return quotes


class QuoteBook:
    """
    Quotes backed by a remote JSON document.

    A failed load keeps whatever quotes were loaded before.

    Attributes:
        url: Document URL
        quotes: Loaded quotes
        loaded: True after a successful load
    """

    def __init__(
        self,
        url: str = DEFAULT_QUOTES_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the quote book.

        Args:
            url: Document URL
            timeout: Request timeout in seconds
            client: Optional HTTP client (for dependency injection/testing)
            rng: Random source for picking quotes
        """
        self.url = url
        self.timeout = timeout
        self.quotes: List[Quote] = []
        self.loaded = False
        self._client = client
        self._rng = rng or random.Random()
        self._last_index: Optional[int] = None

    async def load(self) -> List[Quote]:
        """Fetch the quotes; network, status and decode errors are logged."""
        try:
            data = await self._fetch()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to load quotes from %s: %s", self.url, e)
            return self.quotes

        self.quotes = parse_quotes(data)
        self._last_index = None
        self.loaded = True
        logger.info("Loaded %s quotes", len(self.quotes))
        return self.quotes

    async def _fetch(self) -> Any:
        if self._client is not None:
            response = await self._client.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(self.url)
            response.raise_for_status()
            return response.json()

    def pick(self) -> Optional[Quote]:
        """Pick a random quote other than the previous pick."""
        if not self.quotes:
            return None
        candidates = [
            i for i in range(len(self.quotes)) if i != self._last_index
        ] or [0]
        index = self._rng.choice(candidates)
        self._last_index = index
        return self.quotes[index]
