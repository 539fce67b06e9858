"""用户认证与计量主体依赖函数"""

from typing import Optional

from fastapi import Depends, HTTPException, Header, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from aluda.core.config import get_settings
from aluda.core.database import get_db
from aluda.models.user import User
from aluda.services.auth import verify_access_token
from aluda.services.limits import Actor
from aluda.services.session import get_or_create_session


def _parse_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header"
        )
    if scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication scheme"
        )
    return token


async def get_current_user(
    authorization: str = Header(None),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    获取当前登录用户（必须登录）
    
    从 Authorization header 中解析 JWT token，每次都从数据库读取用户，
    保证支付升级后的套餐立即生效。
    """
    token = _parse_bearer(authorization)
    user_id = verify_access_token(token)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials"
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


async def get_current_user_optional(
    authorization: str = Header(None),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """获取当前登录用户（可选，未登录或 token 无效返回 None）"""
    if not authorization:
        return None
    
    try:
        return await get_current_user(authorization, db)
    except HTTPException:
        return None


async def get_actor(
    request: Request,
    response: Response,
    user: Optional[User] = Depends(get_current_user_optional),
) -> Actor:
    """
    解析计量主体

    登录用户按数据库中的当前套餐计量，否则使用 cookie 访客会话。
    """
    if user is not None:
        return Actor.user(user.id, user.plan)
    session = get_or_create_session(request, response)
    return Actor.guest(session.actor_id)


async def get_admin_user(user: User = Depends(get_current_user)) -> User:
    """管理员：邮箱在 ADMIN_EMAILS 列表中"""
    if (user.email or "").lower() not in get_settings().admin_email_list:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user
