"""RSS/Atom feed parsing using feedparser."""

import calendar
from dataclasses import dataclass
from time import struct_time
from urllib.parse import urlparse

import feedparser

from newsfeed_sync.models import Headline, Publisher


@dataclass
class ParsedFeed:
    """Result of parsing an RSS/Atom feed."""

    publisher: Publisher
    headlines: list[Headline]
    warnings: list[str]


class FeedParseError(Exception):
    """Raised when a feed cannot be fetched or parsed."""


def fetch_and_parse(url: str) -> ParsedFeed:
    """Fetch and parse an RSS or Atom feed from a URL.

    Items keep the order they have in the document. No retries are made.

    Args:
        url: The feed URL to fetch and parse.

    Returns:
        ParsedFeed with the publisher and its headlines.

    Raises:
        FeedParseError: If the URL is invalid, unreachable, or not a valid feed.
    """
    _validate_url(url)

    parsed = feedparser.parse(url)

    if parsed.get("status", 200) in (401, 403):
        raise FeedParseError(
            "Feed requires authentication. Ensure the URL is publicly accessible."
        )

    if parsed.get("status", 200) >= 400:
        raise FeedParseError(
            f"Could not reach URL: HTTP {parsed.get('status', 'unknown')}"
        )

    return parse_document(parsed)


def parse_document(parsed) -> ParsedFeed:
    """Build a ParsedFeed from a feedparser result."""
    if not parsed.feed.get("title"):
        if parsed.get("bozo") and parsed.get("bozo_exception"):
            raise FeedParseError(
                f"URL does not point to a valid RSS or Atom feed: "
                f"{parsed.bozo_exception}"
            )
        raise FeedParseError("URL does not point to a valid RSS or Atom feed")

    warnings: list[str] = []
    if parsed.get("bozo"):
        warnings.append(
            f"Feed has formatting issues: {parsed.get('bozo_exception')}"
        )

    publisher = Publisher(
        title=parsed.feed.get("title"),
        link=parsed.feed.get("link"),
        image=_image_url(parsed.feed.get("image")),
    )

    return ParsedFeed(
        publisher=publisher,
        headlines=[_to_headline(entry) for entry in parsed.entries],
        warnings=warnings,
    )


def _validate_url(url: str) -> None:
    """Validate that the URL has a valid format."""
    try:
        result = urlparse(url)
        if not result.scheme or not result.netloc:
            raise FeedParseError("Invalid URL format")
        if result.scheme not in ("http", "https"):
            raise FeedParseError("Invalid URL format: only http and https are supported")
    except ValueError:
        raise FeedParseError("Invalid URL format")


def _to_headline(entry) -> Headline:
    """Pull the fields we mirror out of a feedparser entry."""
    return Headline(
        title=entry.get("title", ""),
        published=_published_ms(entry),
        link=entry.get("link"),
        author=entry.get("author"),
        category=entry.get("category"),
        thumbnail=_thumbnail_url(entry),
    )


def _published_ms(entry) -> str | None:
    """Publication time as epoch milliseconds, in string form."""
    for field in ("published_parsed", "updated_parsed"):
        time_struct = entry.get(field)
        if isinstance(time_struct, struct_time):
            try:
                return str(calendar.timegm(time_struct) * 1000)
            except (ValueError, OverflowError):
                continue
    return None


def _thumbnail_url(entry) -> str | None:
    thumbnails = entry.get("media_thumbnail") or []
    for thumbnail in thumbnails:
        if thumbnail.get("url"):
            return thumbnail["url"]
    return None


def _image_url(image) -> str | None:
    if not image:
        return None
    return image.get("href") or image.get("url")
