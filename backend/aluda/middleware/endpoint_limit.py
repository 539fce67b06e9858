"""API 端点特定限流装饰器（固定窗口，内存计数）"""

from functools import wraps
from fastapi import Request, HTTPException, status
from typing import Callable, Tuple
import math
import time
from collections import defaultdict
import asyncio

from aluda.core.i18n import t
from aluda.core.responses import request_locale


class EndpointRateLimiter:
    """端点级别的速率限制器"""
    
    def __init__(self, clock: Callable[[], float] = time.time):
        # (endpoint, IP) -> (请求次数, 窗口到期时间)
        self.requests = defaultdict(lambda: (0, 0.0))
        self.lock = asyncio.Lock()
        self.clock = clock
    
    async def check_limit(
        self, 
        key: str, 
        max_requests: int, 
        window: int
    ) -> Tuple[bool, int]:
        """
        检查端点限流

        Returns:
            (是否允许, 需要等待的秒数)
        """
        async with self.lock:
            current_time = self.clock()
            count, expires_at = self.requests[key]
            
            # 新窗口
            if expires_at < current_time:
                self.requests[key] = (1, current_time + window)
                return True, 0
            
            # 检查限制
            if count >= max_requests:
                return False, max(0, math.ceil(expires_at - current_time))
            
            # 增加计数
            self.requests[key] = (count + 1, expires_at)
            return True, 0

    async def reset(self) -> None:
        async with self.lock:
            self.requests.clear()


endpoint_limiter = EndpointRateLimiter()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit(max_requests: int = 10, window: int = 60):
    """
    端点限流装饰器
    
    Args:
        max_requests: 时间窗口内最大请求数
        window: 时间窗口（秒）
    
    Example:
        @router.post("/check")
        @rate_limit(max_requests=30, window=10)
        async def check(request: Request):
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            # 从参数中获取 request
            request = None
            for arg in args:
                if isinstance(arg, Request):
                    request = arg
                    break
            
            if not request:
                request = kwargs.get('request')
            
            if request:
                key = f"{request.url.path}:{client_ip(request)}"
                allowed, retry_after = await endpoint_limiter.check_limit(key, max_requests, window)
                
                if not allowed:
                    raise HTTPException(
                        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                        detail=t("errors.rate_limit", request_locale(request), retry_after=retry_after),
                        headers={"Retry-After": str(retry_after)},
                    )
            
            return await func(*args, **kwargs)
        return wrapper
    return decorator
