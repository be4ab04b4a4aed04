"""Data models for the news feed synchronizer."""

from dataclasses import dataclass


@dataclass
class Publisher:
    """The channel a batch of headlines came from."""

    title: str
    link: str | None = None
    image: str | None = None


@dataclass
class Headline:
    """A single item as delivered by the feed parser, before normalization."""

    title: str
    published: str | None
    link: str | None = None
    author: str | None = None
    category: str | None = None
    thumbnail: str | None = None


@dataclass
class FeedEntry:
    """The record persisted for each headline."""

    title: str
    published: int | float
    published_date: str
    publisher: Publisher
    link: str | None = None
    author: str | None = None
    category: str | None = None
    thumbnail: str | None = None


@dataclass(frozen=True)
class DriveKeys:
    """Public identity and encryption material for an opened drive."""

    public_key: bytes
    encryption_key: bytes
