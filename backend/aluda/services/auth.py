"""认证服务 - 访问令牌的签发与校验

登录流程本身（账号密码 / OAuth）由前端的 NextAuth 负责，这里只签发和校验
前端转发过来的 Bearer token（sub 为用户 ID）。
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from pydantic import BaseModel

from aluda.core.config import get_settings


class AuthResult(BaseModel):
    """认证结果"""

    token: str
    user_id: str
    expires_at: datetime


def create_access_token(user_id: str, expire_minutes: Optional[int] = None) -> AuthResult:
    """生成 JWT token"""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=expire_minutes or settings.jwt_expire_minutes)

    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": expires_at,
    }

    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return AuthResult(token=token, user_id=str(user_id), expires_at=expires_at)


def verify_access_token(token: str) -> Optional[str]:
    """
    验证 JWT token 并返回 user_id

    Args:
        token: JWT token

    Returns:
        user_id: 如果有效返回用户 ID，否则返回 None
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        return payload.get("sub")
    except jwt.InvalidTokenError:
        return None
