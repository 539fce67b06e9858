"""访客会话

cookie 中保存一个签名的 JWT：sid（会话 ID）、gid（访客 ID）。
没有或无效的 cookie 会被替换为新的访客会话。
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request, Response
from pydantic import BaseModel

from aluda.core.config import get_settings

logger = logging.getLogger(__name__)


class SessionData(BaseModel):
    session_id: str
    guest_id: Optional[str] = None
    expires_at: datetime

    @property
    def actor_id(self) -> str:
        return self.guest_id or self.session_id


def encode_session(data: SessionData) -> str:
    settings = get_settings()
    payload = {
        "sid": data.session_id,
        "gid": data.guest_id,
        "exp": data.expires_at,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_session(value: Optional[str]) -> Optional[SessionData]:
    """解析 cookie，过期或签名错误返回 None"""
    if not value:
        return None
    settings = get_settings()
    try:
        payload = jwt.decode(value, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid session cookie: %s", e)
        return None

    if not payload.get("sid"):
        return None
    return SessionData(
        session_id=payload["sid"],
        guest_id=payload.get("gid"),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def set_session_cookie(response: Response, data: SessionData) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=encode_session(data),
        expires=data.expires_at,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def new_guest_session() -> SessionData:
    settings = get_settings()
    return SessionData(
        session_id=str(uuid.uuid4()),
        guest_id=str(uuid.uuid4()),
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.session_duration_days),
    )


def get_or_create_session(request: Request, response: Response) -> SessionData:
    """读取当前请求的会话，没有则创建访客会话并写入 cookie"""
    settings = get_settings()
    data = decode_session(request.cookies.get(settings.session_cookie_name))
    if data is None:
        data = new_guest_session()
        set_session_cookie(response, data)
    return data