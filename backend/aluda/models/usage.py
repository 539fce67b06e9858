"""用量计数模型

每个 (actor_type, actor_id, period, period_key) 只有一行，首次记录时通过 upsert 创建。
"""

from datetime import datetime
import uuid

from sqlalchemy import Column, String, Integer, DateTime, UniqueConstraint

from aluda.core.database import Base


class TokenUsage(Base):
    """Token 用量（按日 / 按月）"""

    __tablename__ = "token_usage"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor_type = Column(String(10), nullable=False)  # guest / user
    actor_id = Column(String(64), nullable=False, index=True)
    period = Column(String(10), nullable=False)  # day / month
    period_key = Column(String(10), nullable=False)  # YYYY-MM-DD / YYYY-MM
    tokens = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "actor_type", "actor_id", "period", "period_key",
            name="uq_token_usage_actor_period",
        ),
    )


class ImageUsage(Base):
    """图片生成用量（实际只按月统计）"""

    __tablename__ = "image_usage"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor_type = Column(String(10), nullable=False)
    actor_id = Column(String(64), nullable=False, index=True)
    period = Column(String(10), nullable=False)
    period_key = Column(String(10), nullable=False)
    images = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "actor_type", "actor_id", "period", "period_key",
            name="uq_image_usage_actor_period",
        ),
    )
