import json
import sqlite3
from unittest.mock import patch

import pytest

from newsfeed_sync.storage import SCHEMA_KEY, FeedStorage, StorageError
from newsfeed_sync.upsert import UpsertGuard


# --- Drives ---


def test_feed_keys_are_stable_across_reopen(tmp_path, schema):
    path = str(tmp_path / "drives")

    first = FeedStorage(path, schema)
    first.connect()
    keys = first.feed("news", announce=True)
    first.close()

    second = FeedStorage(path, schema)
    second.connect()
    assert second.feed("news") == keys
    second.close()

    assert len(keys.public_key) == 32
    assert len(keys.encryption_key) == 32
    assert keys.public_key != keys.encryption_key


def test_feed_writes_schema(storage, schema):
    assert json.loads(storage.get("news", SCHEMA_KEY)) == schema


def test_reopening_with_same_schema_does_not_write(storage):
    version = storage.version("news")
    storage.feed("news")
    assert storage.version("news") == version


def test_in_memory_storage(schema):
    store = FeedStorage(":memory:", schema)
    store.connect()
    store.feed("news")
    assert store.get("news", "/missing") is None
    store.close()


def test_unopened_drive_rejected(storage):
    with pytest.raises(StorageError, match="has not been opened"):
        storage.batch("other")


def test_conn_requires_connect(schema):
    with pytest.raises(RuntimeError, match="not connected"):
        FeedStorage(":memory:", schema).conn


# --- Batches ---


def test_batch_reads_its_own_writes(storage):
    batch = storage.batch("news")
    batch.put("/feed/a", b"one")

    assert batch.get("/feed/a") == b"one"
    assert storage.get("news", "/feed/a") is None

    assert batch.flush() == 1
    assert storage.get("news", "/feed/a") == b"one"


def test_batch_flush_bumps_version_once(storage):
    version = storage.version("news")
    batch = storage.batch("news")
    batch.put("/feed/a", b"one")
    batch.put("/feed/b", b"two")
    batch.flush()

    assert storage.version("news") == version + 1
    assert storage.list_keys("news", "/feed/") == ["/feed/a", "/feed/b"]


def test_aborted_batch_writes_nothing(storage):
    version = storage.version("news")
    batch = storage.batch("news")
    batch.put("/feed/a", b"one")
    batch.abort()

    assert storage.get("news", "/feed/a") is None
    assert storage.version("news") == version
    with pytest.raises(StorageError):
        batch.put("/feed/b", b"two")


def test_empty_flush_is_not_a_version(storage):
    version = storage.version("news")
    assert storage.batch("news").flush() == 0
    assert storage.version("news") == version


def test_sqlite_errors_are_wrapped(storage):
    batch = storage.batch("news")
    batch.put("/feed/a", b"one")
    with patch.object(storage, "_conn") as conn:
        conn.executemany.side_effect = sqlite3.OperationalError("disk I/O error")
        with pytest.raises(StorageError, match="disk I/O error"):
            batch.flush()


# --- UpsertGuard ---


def test_ensure_is_idempotent(storage):
    guard = UpsertGuard(storage)
    version = storage.version("news")

    assert guard.ensure("news", "/feed/k", b'{"a":1}') is True
    assert guard.ensure("news", "/feed/k", b'{"a":1}') is False
    assert storage.version("news") == version + 1


def test_ensure_detects_changes(storage):
    guard = UpsertGuard(storage)

    assert guard.ensure("news", "/feed/k", b"content A") is True
    assert guard.ensure("news", "/feed/k", b"content B") is True
    assert storage.get("news", "/feed/k") == b"content B"


def test_ensure_compares_bytes_not_structure(storage):
    guard = UpsertGuard(storage)

    assert guard.ensure("news", "/feed/k", b'{"a":1,"b":2}') is True
    assert guard.ensure("news", "/feed/k", b'{"a": 1, "b": 2}') is True
    assert guard.ensure("news", "/feed/k", b'{"b":2,"a":1}') is True
    assert storage.get("news", "/feed/k") == b'{"b":2,"a":1}'


def test_ensure_writes_empty_value_when_missing(storage):
    guard = UpsertGuard(storage)
    assert guard.ensure("news", "/feed/empty", b"") is True
    assert guard.ensure("news", "/feed/empty", b"") is False
