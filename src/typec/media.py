"""
Authenticated Media Resolution

Resolves opaque media references (mxc://server/media-id) to bytes by
trying an ordered list of endpoint URL templates against the homeserver
until one answers with a success status.

Architecture:
    - Strategies are plain URL templates, tried in order
    - Each attempt is bounded by the request timeout
    - Any failure (status, network, timeout) falls through to the next
      strategy; exhausting the list yields None (not found)
    - The HTTP client can be injected for testing

Usage:
    resolver = MediaResolver("https://matrix.example.org", access_token)
    data = await resolver.resolve("mxc://example.org/abc123")
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0

# Thumbnail size used for message images and avatars
IMAGE_THUMBNAIL_SIZE = (1000, 1000)
AVATAR_THUMBNAIL_SIZE = (40, 40)


@dataclass(frozen=True)
class MediaStrategy:
    """
    One endpoint shape to try.

    The template may reference {homeserver}, {server_name}, {media_id},
    {width} and {height}.
    """

    name: str
    template: str

    def url(
        self,
        homeserver: str,
        server_name: str,
        media_id: str,
        size: Tuple[int, int],
    ) -> str:
        return self.template.format(
            homeserver=homeserver,
            server_name=server_name,
            media_id=media_id,
            width=size[0],
            height=size[1],
        )


DEFAULT_STRATEGIES: List[MediaStrategy] = [
    MediaStrategy(
        "client-v1-download",
        "{homeserver}/_matrix/client/v1/media/download/{server_name}/{media_id}",
    ),
    MediaStrategy(
        "media-v3-download",
        "{homeserver}/_matrix/media/v3/download/{server_name}/{media_id}",
    ),
    MediaStrategy(
        "media-r0-download",
        "{homeserver}/_matrix/media/r0/download/{server_name}/{media_id}",
    ),
    MediaStrategy(
        "client-v3-download",
        "{homeserver}/_matrix/client/v3/media/download/{server_name}/{media_id}",
    ),
    MediaStrategy(
        "media-v3-thumbnail",
        "{homeserver}/_matrix/media/v3/thumbnail/{server_name}/{media_id}"
        "?width={width}&height={height}&method=scale",
    ),
]


def parse_media_ref(media_ref: str) -> Optional[Tuple[str, str]]:
    """
    Split an mxc:// reference into (server_name, media_id).

    Returns:
        Tuple of server name and media ID, or None if malformed.
    """
    if not isinstance(media_ref, str) or not media_ref.startswith("mxc://"):
        return None
    parts = media_ref[len("mxc://") :].split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


class MediaResolver:
    """
    Resolves media references against a homeserver.

    Attributes:
        homeserver: Base URL of the homeserver (no trailing slash)
        strategies: Ordered endpoint strategies
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        homeserver: str,
        access_token: Optional[str] = None,
        strategies: Optional[Sequence[MediaStrategy]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the resolver.

        Args:
            homeserver: Base URL of the homeserver
            access_token: Bearer token for authenticated media
            strategies: Endpoint strategies (defaults to DEFAULT_STRATEGIES)
            timeout: Per-request timeout in seconds
            client: Optional HTTP client (for dependency injection/testing)
        """
        self.homeserver = homeserver.rstrip("/")
        self.strategies = list(strategies or DEFAULT_STRATEGIES)
        self.timeout = timeout
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = client or httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        if client is not None and access_token:
            self._client.headers.update(headers)

    def candidate_urls(
        self, media_ref: str, size: Tuple[int, int] = IMAGE_THUMBNAIL_SIZE
    ) -> List[str]:
        """Return the URLs that would be tried for a reference, in order."""
        parsed = parse_media_ref(media_ref)
        if parsed is None:
            return []
        server_name, media_id = parsed
        return [
            strategy.url(self.homeserver, server_name, media_id, size)
            for strategy in self.strategies
        ]

    async def resolve(
        self, media_ref: str, size: Tuple[int, int] = IMAGE_THUMBNAIL_SIZE
    ) -> Optional[bytes]:
        """
        Fetch the bytes behind a media reference.

        Args:
            media_ref: mxc:// reference
            size: Thumbnail size for the scaled fallback

        Returns:
            The media bytes, or None if no strategy succeeded.
        """
        urls = self.candidate_urls(media_ref, size)
        if not urls:
            logger.warning("Invalid media reference: %s", media_ref)
            return None

        logger.debug("Trying %s endpoints for %s", len(urls), media_ref)
        for url in urls:
            try:
                response = await self._client.get(url, timeout=self.timeout)
            except httpx.HTTPError as e:
                logger.debug("Media fetch failed for %s: %s", url, e)
                continue

            if response.is_success:
                logger.debug("Loaded %s from %s", media_ref, url)
                return response.content

            logger.debug(
                "Media endpoint %s answered %s", url, response.status_code
            )

        logger.warning("All media endpoints failed for %s", media_ref)
        return None

    async def aclose(self) -> None:
        await self._client.aclose()
