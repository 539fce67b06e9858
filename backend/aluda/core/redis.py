"""Redis 连接（在线状态）

只有 presence 使用 redis：心跳写入有序集合，统计时按分数计数。
成员和分数都按字符串读写，所以连接统一开启 decode_responses。
"""

from typing import Optional

from redis.asyncio import ConnectionPool, Redis

from aluda.core.config import get_settings

settings = get_settings()

_pool: Optional[ConnectionPool] = None
_client: Optional[Redis] = None


def _build_pool() -> ConnectionPool:
    # 心跳是短命令，超时设短一些，redis 不可用时尽快失败而不是拖住请求
    return ConnectionPool.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        health_check_interval=30,
    )


async def get_redis() -> Redis:
    """获取共享的 Redis 客户端（首次调用时创建连接池，不立即连接）"""
    global _pool, _client
    if _client is None:
        _pool = _build_pool()
        _client = Redis(connection_pool=_pool)
    return _client


async def close_redis() -> None:
    """关闭客户端并断开连接池"""
    global _pool, _client
    if _client is not None:
        await _client.aclose()
        _client = None
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
