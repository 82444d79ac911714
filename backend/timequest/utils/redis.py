from __future__ import annotations

import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

LEADERBOARD_KEY_TEMPLATE = "timequest:leaderboard:{kind}:{limit}"
LEADERBOARD_KEY_PATTERN = "timequest:leaderboard:*"


async def create_redis_pool(url: str) -> Redis:
    return Redis.from_url(
        url,
        encoding="utf8",
        decode_responses=True,
    )


def leaderboard_key(kind: str, limit: int) -> str:
    return LEADERBOARD_KEY_TEMPLATE.format(kind=kind, limit=limit)


async def get_cached_leaderboard(
    redis: Redis, kind: str, limit: int
) -> Optional[list[dict[str, Any]]]:
    raw = await redis.get(leaderboard_key(kind, limit))
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding unreadable leaderboard cache entry %s/%s", kind, limit)
        return None


async def cache_leaderboard(
    redis: Redis,
    kind: str,
    limit: int,
    entries: list[dict[str, Any]],
    ttl_seconds: int,
) -> None:
    await redis.set(leaderboard_key(kind, limit), json.dumps(entries), ex=ttl_seconds)


async def invalidate_leaderboards(redis: Optional[Redis]) -> int:
    if redis is None:
        return 0
    keys = [key async for key in redis.scan_iter(match=LEADERBOARD_KEY_PATTERN)]
    if not keys:
        return 0
    return await redis.delete(*keys)
