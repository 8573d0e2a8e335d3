from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis

from fleetwatch.core.config import Settings

log = logging.getLogger("fleetwatch.broadcast")


class RedisBroadcaster:
    """Publishes live updates on Redis pub/sub channels for dashboards.

    Redis is optional: when it is not configured or unreachable the update is
    dropped with a log line.
    """

    def __init__(self, settings: Settings, redis: Redis | None = None):
        self.prefix = settings.broadcast_channel_prefix
        if redis is not None:
            self._redis: Redis | None = redis
        elif settings.redis_url:
            self._redis = Redis.from_url(settings.redis_url, decode_responses=True)
        else:
            self._redis = None

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    def channel_name(self, channel: str) -> str:
        return f"{self.prefix}:{channel}" if self.prefix else channel

    async def emit(self, channel: str, payload: dict[str, Any]) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.publish(self.channel_name(channel), json.dumps(payload, default=str))
        except Exception as exc:
            log.warning("Broadcast on %s dropped: %s", channel, exc)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.close()
