"""
Run the sync poller against a dashboard API until interrupted.

    python -m voicedash.sync
"""

import asyncio
import contextlib

from voicedash.shared.logging import get_logger, setup_logging
from voicedash.sync.cache import ViewCache
from voicedash.sync.client import DashboardApiClient
from voicedash.sync.config import get_sync_settings
from voicedash.sync.poller import PollerSnapshot, SyncPoller

logger = get_logger(__name__)


def _log_snapshot(snapshot: PollerSnapshot) -> None:
    if snapshot.is_polling:
        return
    logger.info(
        "View state",
        extra={
            "events": len(snapshot.events),
            "connected": snapshot.connected,
            "last_update": snapshot.last_update,
        },
    )


async def run() -> None:
    settings = get_sync_settings()
    client = DashboardApiClient(
        settings.api_base_url,
        timeout_seconds=settings.request_timeout_seconds,
    )
    poller = SyncPoller(
        client,
        cache=ViewCache(settings.cache_path),
        interval=settings.poll_interval_seconds,
        probe_interval=settings.probe_interval_seconds,
        fetch_limit=settings.fetch_limit,
    )
    poller.subscribe(_log_snapshot)

    await poller.start()
    try:
        await asyncio.Event().wait()
    finally:
        await poller.stop()
        await client.aclose()


def main() -> None:
    setup_logging()
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run())


if __name__ == "__main__":
    main()
