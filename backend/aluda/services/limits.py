"""用量主体、统计周期与套餐限额"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel

from aluda.models.user import UserPlan


class Actor(BaseModel):
    """被计量的主体：访客（cookie 会话）或登录用户"""

    type: Literal["guest", "user"]
    id: str
    plan: Optional[UserPlan] = None

    @classmethod
    def guest(cls, guest_id: str) -> "Actor":
        return cls(type="guest", id=guest_id)

    @classmethod
    def user(cls, user_id: str, plan=UserPlan.FREE) -> "Actor":
        return cls(type="user", id=user_id, plan=UserPlan.normalize(plan))

    @property
    def is_guest(self) -> bool:
        return self.type == "guest"

    @property
    def is_premium(self) -> bool:
        return self.type == "user" and self.plan == UserPlan.PREMIUM

    def to_dict(self) -> dict:
        data = {"type": self.type, "id": self.id}
        if self.type == "user":
            data["plan"] = UserPlan.normalize(self.plan).value
        return data


class LimitSet(BaseModel):
    daily: int
    monthly: int
    images: int


class Usage(BaseModel):
    daily: int = 0
    monthly: int = 0
    images: int = 0


class PeriodKeys(BaseModel):
    day: str    # YYYY-MM-DD
    month: str  # YYYY-MM


# 限额表：日 token / 月 token / 月图片
GUEST_LIMITS = LimitSet(daily=1500, monthly=10000, images=2)
FREE_LIMITS = LimitSet(daily=7500, monthly=60000, images=5)
PREMIUM_LIMITS = LimitSet(daily=25000, monthly=300000, images=60)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_period_keys(now: Optional[datetime] = None) -> PeriodKeys:
    """按 UTC 日历计算日 / 月统计键，naive datetime 视为 UTC"""
    now = now or utcnow()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return PeriodKeys(day=now.strftime("%Y-%m-%d"), month=now.strftime("%Y-%m"))


def get_limits(actor: Actor) -> LimitSet:
    if actor.is_guest:
        return GUEST_LIMITS.model_copy()
    if actor.is_premium:
        return PREMIUM_LIMITS.model_copy()
    return FREE_LIMITS.model_copy()


def estimate_tokens(text: Optional[str]) -> int:
    """粗略估算：每 4 个字符约 1 个 token"""
    return -(-len(text or "") // 4)
