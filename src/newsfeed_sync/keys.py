"""Storage key derivation for headlines."""

import posixpath
import re

FEED_PREFIX = "/feed"

_SEPARATORS = re.compile(r"[^a-z0-9]+")


def slugify(published, title: str) -> str:
    """Lowercase, trim and collapse every non-alphanumeric run to '-'."""
    text = f"{_as_text(published)} {_as_text(title)}".lower().strip()
    return _SEPARATORS.sub("-", text)


def derive_key(prefix: str, published, title: str) -> str:
    """Build the stable storage key for a headline.

    Headlines sharing both timestamp and title map to the same key.
    """
    return posixpath.join(prefix, slugify(published, title))


def _as_text(value) -> str:
    if value is None:
        return ""
    return str(value)
