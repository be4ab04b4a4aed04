"""Compare-then-write guard over a drive."""

from newsfeed_sync.storage import FeedStorage


class UpsertGuard:
    """Writes a value only when it is missing or its bytes differ.

    Comparison is byte-for-byte: a re-serialization that only changes
    whitespace or field order still counts as a change.
    """

    def __init__(self, storage: FeedStorage):
        self.storage = storage

    def ensure(self, drive_id: str, key: str, content: bytes) -> bool:
        """Make sure key holds content. Returns True if a write happened."""
        batch = self.storage.batch(drive_id)
        existing = batch.get(key)
        if existing is not None and existing == content:
            batch.abort()
            return False

        batch.put(key, content)
        batch.flush()
        return True
