"""用户模型"""

from datetime import datetime
from enum import Enum
import uuid

from sqlalchemy import Column, DateTime, String, Enum as SQLEnum

from aluda.core.database import Base


class UserPlan(str, Enum):
    """用户套餐"""
    FREE = "FREE"           # 免费用户
    PREMIUM = "PREMIUM"     # 付费用户（支付成功后升级）

    @classmethod
    def normalize(cls, value) -> "UserPlan":
        """旧数据中的 USER 以及未知值一律按免费处理"""
        if isinstance(value, cls):
            return value
        if str(value or "").strip().upper() == cls.PREMIUM.value:
            return cls.PREMIUM
        return cls.FREE


class User(Base):
    """用户表"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    password_hash = Column(String(255), nullable=True)  # OAuth 用户没有密码
    plan = Column(
        SQLEnum(UserPlan, name="user_plan", values_callable=lambda x: [e.value for e in x]),
        default=UserPlan.FREE,
        nullable=False,
    )

    # 时间戳
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
