"""管理员 API 路由"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from redis.asyncio import Redis
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from aluda.core.auth_deps import get_admin_user, get_current_user
from aluda.core.config import get_settings
from aluda.core.database import get_db
from aluda.core.redis import get_redis
from aluda.models.user import User, UserPlan
from aluda.services.presence import count_online, mark_online
from aluda.services.usage_tracker import UsageStore

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger(__name__)


# ============================================================================
# 请求/响应模型
# ============================================================================

class StatsResponse(BaseModel):
    total_users: int
    premium_users: int
    free_users: int
    online_users: int
    tokens_today: int
    generated_at: datetime


# ============================================================================
# 在线状态 / 统计 API
# ============================================================================

@router.post("/heartbeat")
async def heartbeat(
    current_user: User = Depends(get_current_user),
    redis: Redis = Depends(get_redis),
):
    """前端定期上报，标记用户在线"""
    await mark_online(redis, current_user.id)
    return {"ok": True}


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    """
    管理后台统计

    - 用户总数 / 付费用户数
    - 最近 presence_window_seconds 秒内有心跳的在线用户
    - 今日 token 消耗总量
    """
    logger.info("Admin stats requested by %s", admin.email)

    result = await db.execute(select(func.count(User.id)))
    total_users = result.scalar() or 0

    result = await db.execute(
        select(func.count(User.id)).where(User.plan == UserPlan.PREMIUM)
    )
    premium_users = result.scalar() or 0

    online_users = await count_online(redis, get_settings().presence_window_seconds)
    tokens_today = await UsageStore(db).tokens_today()

    return StatsResponse(
        total_users=total_users,
        premium_users=premium_users,
        free_users=total_users - premium_users,
        online_users=online_users,
        tokens_today=tokens_today,
        generated_at=datetime.utcnow(),
    )
