"""Entry point for the news feed synchronizer: python -m newsfeed_sync"""

import asyncio
import logging
import os

from newsfeed_sync.config import load_config, load_schema
from newsfeed_sync.engine import SyncEngine

logging.basicConfig(
    level=os.environ.get("NEWSFEED_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("newsfeed_sync")


async def main() -> None:
    """Load configuration and keep the drive in sync until interrupted."""
    config = load_config()
    schema = load_schema()

    engine = SyncEngine(config, schema)
    await engine.initialize()

    try:
        await engine.start()
        # The engine reschedules itself; just keep the loop alive.
        await asyncio.Event().wait()
    finally:
        engine.stop()
        await engine.wait_idle()
        engine.close()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Goodbye!")


if __name__ == "__main__":
    run()
