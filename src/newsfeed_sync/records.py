"""Turning raw headlines into persisted feed entries."""

import json
import math
from datetime import datetime, timezone, tzinfo

from newsfeed_sync.models import FeedEntry, Headline, Publisher

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


def coerce_published(value) -> int | float:
    """Coerce a publish timestamp (epoch ms, often a string) to a number.

    Raises:
        ValueError: If the value is missing, not numeric, or not finite.
    """
    if value is None:
        raise ValueError("Headline has no publish timestamp")
    if isinstance(value, bool):
        raise ValueError(f"Invalid publish timestamp: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid publish timestamp: {value!r}")
    if not math.isfinite(number):
        raise ValueError(f"Invalid publish timestamp: {value!r}")
    return int(number) if number.is_integer() else number


def format_display_date(published_ms: int | float, tz: tzinfo | None = None) -> str:
    """Format epoch milliseconds as e.g. 'Tue 14 Nov 2023, 10:13pm (+00:00)'.

    Uses the local timezone unless tz is given.
    """
    try:
        moment = datetime.fromtimestamp(published_ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Publish timestamp out of range: {published_ms!r}") from e
    moment = moment.astimezone(tz)

    hour = moment.hour % 12 or 12
    meridiem = "am" if moment.hour < 12 else "pm"
    return (
        f"{WEEKDAYS[moment.weekday()]} {moment.day} {MONTHS[moment.month - 1]} "
        f"{moment.year:04d}, {hour}:{moment.minute:02d}{meridiem} "
        f"({_format_offset(moment)})"
    )


def build_entry(
    headline: Headline, publisher: Publisher, tz: tzinfo | None = None
) -> FeedEntry:
    """Normalize a raw headline into the record that gets stored."""
    published = coerce_published(headline.published)
    return FeedEntry(
        title=headline.title,
        published=published,
        published_date=format_display_date(published, tz),
        link=headline.link,
        author=headline.author,
        category=headline.category,
        thumbnail=headline.thumbnail,
        publisher=publisher,
    )


def entry_to_dict(entry: FeedEntry) -> dict:
    """Build the JSON document for an entry, leaving out absent fields."""
    publisher = {
        "title": entry.publisher.title,
        "link": entry.publisher.link,
        "image": entry.publisher.image,
    }
    content = {
        "title": entry.title,
        "published": entry.published,
        "publishedDate": entry.published_date,
        "link": entry.link,
        "author": entry.author,
        "category": entry.category,
        "thumbnail": entry.thumbnail,
        "publisher": {k: v for k, v in publisher.items() if v is not None},
    }
    return {k: v for k, v in content.items() if v is not None}


def serialize_entry(entry: FeedEntry) -> bytes:
    """Compact UTF-8 JSON, with keys in a fixed order."""
    return json.dumps(
        entry_to_dict(entry), ensure_ascii=False, separators=(",", ":")
    ).encode("utf-8")


def _format_offset(moment: datetime) -> str:
    offset = moment.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset else 0
    sign = "-" if minutes < 0 else "+"
    minutes = abs(minutes)
    return f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"
