"""Token / 图片用量跟踪服务

UsageStore 负责计数的读写（按 日 / 月 分桶，upsert 累加），
QuotaGate 在其之上结合套餐限额回答“能否继续消耗”。

检查与记录是两步操作，不做预占：并发请求可能同时通过检查，
因此限额是软限制，最多超出一次请求的用量。
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends
from pydantic import BaseModel
from sqlalchemy import and_, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from aluda.core.config import get_settings
from aluda.core.database import get_db
from aluda.models.usage import ImageUsage, TokenUsage
from aluda.services.limits import (
    Actor,
    LimitSet,
    Usage,
    get_limits,
    get_period_keys,
    utcnow,
)

logger = logging.getLogger(__name__)

CONFLICT_COLUMNS = ["actor_type", "actor_id", "period", "period_key"]


class QuotaCheck(BaseModel):
    allowed: bool
    usage: Usage
    limits: LimitSet


def _check_amount(amount: int, name: str) -> int:
    amount = int(amount)
    if amount < 0:
        raise ValueError(f"{name} must be >= 0, got {amount}")
    return amount


class UsageStore:
    """用量计数存储"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self, table):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(table)
        if dialect == "sqlite":
            return sqlite.insert(table)
        raise NotImplementedError(f"upsert not supported for dialect {dialect}")

    async def _upsert(self, model, column: str, actor: Actor, period: str, period_key: str, amount: int) -> None:
        """不存在则创建，存在则原子累加"""
        table = model.__table__
        stmt = self._insert(table).values(
            actor_type=actor.type,
            actor_id=actor.id,
            period=period,
            period_key=period_key,
            **{column: amount},
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=CONFLICT_COLUMNS,
            set_={
                column: table.c[column] + stmt.excluded[column],
                "updated_at": datetime.utcnow(),
            },
        )
        await self.db.execute(stmt)

    async def get_usage(self, actor: Actor, now: Optional[datetime] = None) -> Usage:
        """读取当前日 / 月桶的用量，没有记录视为 0"""
        keys = get_period_keys(now)

        result = await self.db.execute(
            select(TokenUsage.period, TokenUsage.tokens).where(
                TokenUsage.actor_type == actor.type,
                TokenUsage.actor_id == actor.id,
                or_(
                    and_(TokenUsage.period == "day", TokenUsage.period_key == keys.day),
                    and_(TokenUsage.period == "month", TokenUsage.period_key == keys.month),
                ),
            )
        )
        tokens = {period: count for period, count in result.all()}

        # 图片计数读取失败不影响 token 检查：补建表后按 0 处理
        try:
            result = await self.db.execute(
                select(ImageUsage.images).where(
                    ImageUsage.actor_type == actor.type,
                    ImageUsage.actor_id == actor.id,
                    ImageUsage.period == "month",
                    ImageUsage.period_key == keys.month,
                )
            )
            images = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("Image usage read failed, treating as 0: %s", e)
            await self.ensure_image_table()
            images = 0

        return Usage(
            daily=tokens.get("day") or 0,
            monthly=tokens.get("month") or 0,
            images=images or 0,
        )

    async def add_usage(self, actor: Actor, tokens: int, now: Optional[datetime] = None) -> None:
        """日桶和月桶在同一个事务里累加，失败时回滚并向上抛出"""
        tokens = _check_amount(tokens, "tokens")
        keys = get_period_keys(now)
        try:
            await self._upsert(TokenUsage, "tokens", actor, "day", keys.day, tokens)
            await self._upsert(TokenUsage, "tokens", actor, "month", keys.month, tokens)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Token usage write failed: actor=%s:%s tokens=%s", actor.type, actor.id, tokens)
            raise

    async def add_image_usage(self, actor: Actor, images: int = 1, now: Optional[datetime] = None) -> None:
        """
        累加月度图片用量

        写入失败时先确保表存在再重试一次；仍失败则只记录警告，不影响调用方。
        注意：这意味着存储不可用时图片用量会少算。
        """
        images = _check_amount(images, "images")
        keys = get_period_keys(now)
        try:
            await self._upsert(ImageUsage, "images", actor, "month", keys.month, images)
            await self.db.commit()
            return
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.info("Image usage upsert failed, ensuring table and retrying: %s", e)

        await self.ensure_image_table()
        try:
            await self._upsert(ImageUsage, "images", actor, "month", keys.month, images)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("ImageUsage upsert failed after ensure (skipping). Reason: %s", e)

    async def ensure_image_table(self) -> None:
        """image_usage 表及唯一约束不存在时创建（受限环境下可能没有权限）"""
        try:
            conn = await self.db.connection()
            await conn.run_sync(lambda sync_conn: ImageUsage.__table__.create(sync_conn, checkfirst=True))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("Could not ensure image_usage table: %s", e)

    async def tokens_today(self, now: Optional[datetime] = None) -> int:
        """所有主体当天消耗的 token 总数"""
        keys = get_period_keys(now)
        result = await self.db.execute(
            select(func.coalesce(func.sum(TokenUsage.tokens), 0)).where(
                TokenUsage.period == "day",
                TokenUsage.period_key == keys.day,
            )
        )
        return int(result.scalar_one())


class QuotaGate:
    """
    配额检查与记录

    Args:
        store: 用量存储；tracking_enabled 为 False 时可以为 None
        tracking_enabled: 关闭后不访问存储，用量恒为 0，所有检查放行
        clock: 返回当前时间，决定使用哪个日 / 月桶
    """

    def __init__(
        self,
        store: Optional[UsageStore],
        tracking_enabled: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        if tracking_enabled and store is None:
            raise ValueError("a UsageStore is required when tracking is enabled")
        self.store = store
        self.tracking_enabled = tracking_enabled
        self.clock = clock

    def get_limits(self, actor: Actor) -> LimitSet:
        return get_limits(actor)

    async def get_usage(self, actor: Actor) -> Usage:
        if not self.tracking_enabled:
            return Usage()
        return await self.store.get_usage(actor, now=self.clock())

    async def can_consume(self, actor: Actor, tokens: int) -> QuotaCheck:
        """tokens=0 时仅用于查询当前用量和限额，总是放行"""
        tokens = _check_amount(tokens, "tokens")
        limits = self.get_limits(actor)
        if not self.tracking_enabled:
            logger.debug("Token tracking disabled, allowing %s tokens for %s", tokens, actor.id)
            return QuotaCheck(allowed=True, usage=Usage(), limits=limits)

        usage = await self.get_usage(actor)
        allowed = tokens == 0 or (
            usage.daily + tokens <= limits.daily
            and usage.monthly + tokens <= limits.monthly
        )
        return QuotaCheck(allowed=allowed, usage=usage, limits=limits)

    async def add_usage(self, actor: Actor, tokens: int) -> None:
        tokens = _check_amount(tokens, "tokens")
        if not self.tracking_enabled:
            logger.debug("Token tracking disabled, not recording %s tokens", tokens)
            return
        await self.store.add_usage(actor, tokens, now=self.clock())

    async def can_generate_image(self, actor: Actor) -> QuotaCheck:
        limits = self.get_limits(actor)
        if not self.tracking_enabled:
            logger.debug("Token tracking disabled, allowing image generation for %s", actor.id)
            return QuotaCheck(allowed=True, usage=Usage(), limits=limits)

        usage = await self.get_usage(actor)
        return QuotaCheck(allowed=usage.images < limits.images, usage=usage, limits=limits)

    async def add_image_usage(self, actor: Actor, images: int = 1) -> None:
        images = _check_amount(images, "images")
        if not self.tracking_enabled:
            logger.debug("Token tracking disabled, not recording %s images", images)
            return
        await self.store.add_image_usage(actor, images, now=self.clock())


async def get_quota_gate(db: AsyncSession = Depends(get_db)) -> QuotaGate:
    """FastAPI 依赖：按配置构建 QuotaGate"""
    settings = get_settings()
    if settings.disable_token_tracking:
        return QuotaGate(None, tracking_enabled=False)
    return QuotaGate(UsageStore(db))
