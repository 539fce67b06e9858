"""数据模型模块"""

from aluda.models.user import User, UserPlan
from aluda.models.usage import TokenUsage, ImageUsage

__all__ = [
    "User",
    "UserPlan",
    "TokenUsage",
    "ImageUsage",
]
