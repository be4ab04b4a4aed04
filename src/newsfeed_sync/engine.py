"""Synchronization loop that mirrors RSS headlines into a drive."""

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import tzinfo

from newsfeed_sync.config import Config, load_logo
from newsfeed_sync.discovery import format_connection_url
from newsfeed_sync.feed_parser import FeedParseError, fetch_and_parse
from newsfeed_sync.keys import FEED_PREFIX, derive_key
from newsfeed_sync.models import Headline, Publisher
from newsfeed_sync.records import build_entry, serialize_entry
from newsfeed_sync.storage import FeedStorage
from newsfeed_sync.upsert import UpsertGuard

logger = logging.getLogger(__name__)

LOGO_KEY = "/images/news.svg"


class InvalidStateError(RuntimeError):
    """Raised when the engine is used out of order."""


class FailureKind(enum.Enum):
    FETCH = "fetch"
    RECORD = "record"
    WRITE = "write"


@dataclass
class SourceResult:
    """Outcome of syncing one source during a cycle."""

    url: str
    processed: int = 0
    written: int = 0
    failure: FailureKind | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class SyncEngine:
    """Polls the configured feeds and keeps a drive in step with them.

    Sources are visited one at a time in configured order, and headlines one
    at a time in feed order. A failure anywhere in a source abandons the rest
    of that source for the cycle; the next cycle retries it.
    """

    def __init__(
        self,
        config: Config,
        schema: dict,
        storage: FeedStorage | None = None,
        tz: tzinfo | None = None,
    ):
        self.config = config
        self.schema = schema
        self.drive_id = config.drive_id
        self.refresh_interval = config.refresh_interval
        self.tz = tz
        self.connection_url: str | None = None
        self._storage = storage
        self._guard: UpsertGuard | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._cycle_task: asyncio.Task | None = None
        self._running = False
        self._initialized = False

    @property
    def storage(self) -> FeedStorage:
        if self._guard is None:
            raise InvalidStateError("Engine not initialized. Call initialize() first.")
        return self._storage

    async def initialize(self) -> str:
        """Open the drive, publish the logo and return the connection URL."""
        if self._initialized:
            raise InvalidStateError("initialize() called twice")
        self._initialized = True

        if self._storage is None:
            self._storage = FeedStorage(self.config.storage_path, self.schema)
        self._storage.connect()

        try:
            keys = self._storage.feed(self.drive_id, announce=True)
            guard = UpsertGuard(self._storage)
            guard.ensure(self.drive_id, LOGO_KEY, load_logo())
        except Exception:
            self._storage.close()
            raise
        self._guard = guard

        self.connection_url = format_connection_url(
            keys.public_key, keys.encryption_key
        )
        logger.info(self.schema.get("name"))
        logger.info(self.connection_url)
        logger.info(
            "Refreshing every %.0f minutes", self.refresh_interval / 1000 / 60
        )
        return self.connection_url

    async def start(self) -> None:
        """Run a cycle now and keep running one every refresh interval."""
        if self._guard is None:
            raise InvalidStateError("Must call initialize() before start()")

        self._running = True
        await self.run_cycle()

    def stop(self) -> None:
        """Stop scheduling cycles. A cycle already running is left to finish."""
        self._running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait_idle(self) -> None:
        """Wait for a timer-started cycle that is still in progress."""
        if self._cycle_task is not None and not self._cycle_task.done():
            await self._cycle_task

    def close(self) -> None:
        """Stop scheduling and release storage."""
        self.stop()
        if self._storage is not None:
            self._storage.close()

    async def run_cycle(self) -> list[SourceResult]:
        """Sync every source once. Never raises for source failures."""
        if self._guard is None:
            raise InvalidStateError("Must call initialize() before run_cycle()")

        results = []
        for url in self.config.feeds:
            results.append(await self._sync_source(url))

        failed = sum(1 for r in results if not r.ok)
        logger.info(
            "Sync cycle complete: %d headlines updated, %d of %d sources failed",
            sum(r.written for r in results),
            failed,
            len(results),
        )

        if self._running and self._timer is None:
            self._arm_timer()
        return results

    async def _sync_source(self, url: str) -> SourceResult:
        result = SourceResult(url=url)
        logger.info("Processing %s for new headlines...", url)

        try:
            parsed = await asyncio.to_thread(fetch_and_parse, url)
        except FeedParseError as e:
            return _abandon(result, FailureKind.FETCH, e)
        except Exception as e:
            return _abandon(result, FailureKind.FETCH, e, exc_info=True)

        for warning in parsed.warnings:
            logger.warning("Feed %s: %s", url, warning)

        for headline in parsed.headlines:
            try:
                entry_bytes, display_date = self._prepare(headline, parsed.publisher)
            except Exception as e:
                return _abandon(result, FailureKind.RECORD, e)

            key = derive_key(FEED_PREFIX, headline.published, headline.title)
            try:
                updated = self._guard.ensure(self.drive_id, key, entry_bytes)
            except Exception as e:
                return _abandon(result, FailureKind.WRITE, e)

            result.processed += 1
            if updated:
                result.written += 1
                logger.info("  %s - %s", display_date, headline.title)

        return result

    def _prepare(self, headline: Headline, publisher: Publisher) -> tuple[bytes, str]:
        entry = build_entry(headline, publisher, self.tz)
        return serialize_entry(entry), entry.published_date

    def _arm_timer(self) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(
            self.refresh_interval / 1000, self._on_timer, loop
        )

    def _on_timer(self, loop: asyncio.AbstractEventLoop) -> None:
        self._timer = None
        if not self._running:
            return
        self._cycle_task = loop.create_task(self._run_scheduled())

    async def _run_scheduled(self) -> None:
        # stop() may land between the timer firing and this task starting.
        if not self._running:
            return
        await self.run_cycle()


def _abandon(
    result: SourceResult, kind: FailureKind, error: Exception, exc_info: bool = False
) -> SourceResult:
    logger.error(
        "Error processing RSS feed %s (%s) - skipping for now: %s",
        result.url,
        kind.value,
        error,
        exc_info=exc_info,
    )
    result.failure = kind
    result.error = error
    return result
