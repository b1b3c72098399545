"""
Tests for Summary Screen Quotes

Tests for quote document parsing, loading over HTTP and the no-repeat
random pick.
"""

import random

import httpx
import pytest

from typec.quotes import Quote, QuoteBook, parse_quotes

QUOTES = [
    {"text": "Simple is better than complex.", "author": "Tim Peters"},
    {"text": "  Talk is cheap.  ", "author": "Linus Torvalds"},
    {"text": "Anonymous wisdom"},
]


def book_with(quotes, seed=0):
    book = QuoteBook(rng=random.Random(seed))
    book.quotes = list(quotes)
    return book


class TestParseQuotes:
    """Tests for parse_quotes()."""

    def test_valid_entries(self):
        """Test that text and author are read and trimmed."""
        assert parse_quotes(QUOTES) == [
            Quote("Simple is better than complex.", "Tim Peters"),
            Quote("Talk is cheap.", "Linus Torvalds"),
            Quote("Anonymous wisdom", ""),
        ]

    def test_invalid_entries_are_skipped(self):
        """Test that entries without usable text are dropped."""
        data = [{"author": "Nobody"}, {"text": "   "}, "loose", {"text": 5}]
        assert parse_quotes(data) == []

    def test_non_list_document(self):
        """Test that a non-list document yields no quotes."""
        assert parse_quotes({"text": "x"}) == []
        assert parse_quotes(None) == []

    def test_render(self):
        """Test quote rendering with and without an author."""
        assert Quote("Hi", "Me").render() == '"Hi"\n- Me'
        assert Quote("Hi").render() == '"Hi"'


class TestPick:
    """Tests for QuoteBook.pick()."""

    def test_empty_book(self):
        """Test that an empty book has nothing to pick."""
        assert QuoteBook().pick() is None

    def test_single_quote_repeats(self):
        """Test that a lone quote is always picked."""
        book = book_with([Quote("Only")])
        assert book.pick() == Quote("Only")
        assert book.pick() == Quote("Only")

    def test_never_same_quote_twice_in_a_row(self):
        """Test that consecutive picks differ."""
        book = book_with(parse_quotes(QUOTES), seed=42)
        picks = [book.pick() for _ in range(50)]
        assert all(a != b for a, b in zip(picks, picks[1:]))


class TestLoad:
    """Tests for QuoteBook.load()."""

    @pytest.mark.asyncio
    async def test_load_success(self):
        """Test that a successful fetch is parsed."""
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, json=QUOTES)

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        ) as client:
            book = QuoteBook("https://quotes.test/q.json", client=client)
            quotes = await book.load()

        assert requested == ["https://quotes.test/q.json"]
        assert book.loaded is True
        assert len(quotes) == 3

    @pytest.mark.asyncio
    async def test_status_error_keeps_previous_quotes(self):
        """Test that a failed fetch leaves the loaded quotes in place."""
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(404))
        ) as client:
            book = QuoteBook("https://quotes.test/q.json", client=client)
            book.quotes = [Quote("Kept")]
            await book.load()

        assert book.loaded is False
        assert book.quotes == [Quote("Kept")]

    @pytest.mark.asyncio
    async def test_invalid_json_is_a_failure(self):
        """Test that an undecodable body is handled like a failed fetch."""
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, text="not json")
            )
        ) as client:
            book = QuoteBook("https://quotes.test/q.json", client=client)
            assert await book.load() == []

        assert book.loaded is False

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Test that a connection error is handled."""

        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler)
        ) as client:
            book = QuoteBook("https://quotes.test/q.json", client=client)
            await book.load()

        assert book.loaded is False
        assert book.quotes == []
