"""Run the connection monitor without the HTTP API."""

import asyncio
import logging

from fleetwatch.core.config import get_settings
from fleetwatch.db.session import AsyncSessionLocal
from fleetwatch.services.broadcast import RedisBroadcaster
from fleetwatch.services.event_handlers import build_event_bus
from fleetwatch.workers.connection_monitor import ConnectionMonitor

log = logging.getLogger("connection-monitor")


async def main():
    """Worker entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    broadcaster = RedisBroadcaster(settings)
    monitor = ConnectionMonitor(
        settings, AsyncSessionLocal, build_event_bus(AsyncSessionLocal, broadcaster), broadcaster
    )
    log.info(
        "Connection monitor worker starting (stale after %ss, offline after %ss)",
        settings.stale_threshold_seconds,
        settings.offline_threshold_seconds,
    )
    monitor.start()
    try:
        await asyncio.Event().wait()
    finally:
        await monitor.stop()
        await broadcaster.close()


if __name__ == "__main__":
    asyncio.run(main())
