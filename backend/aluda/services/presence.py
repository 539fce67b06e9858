"""在线状态 - 用户心跳记录在 Redis 有序集合中，score 为最后活跃时间戳"""

import time
from typing import Optional

from redis.asyncio import Redis

PRESENCE_KEY = "presence:online"


async def mark_online(redis: Redis, user_id: str, now: Optional[float] = None) -> None:
    await redis.zadd(PRESENCE_KEY, {str(user_id): now if now is not None else time.time()})


async def count_online(redis: Redis, window_seconds: int, now: Optional[float] = None) -> int:
    """统计窗口内有心跳的用户，并清理过期记录"""
    now = now if now is not None else time.time()
    cutoff = now - window_seconds
    await redis.zremrangebyscore(PRESENCE_KEY, "-inf", f"({cutoff}")
    return int(await redis.zcount(PRESENCE_KEY, cutoff, "+inf"))
