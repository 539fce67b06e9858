"""Token / 图片用量 API

聊天与图片生成代理在调用外部 AI 之前检查额度，调用完成后上报实际用量。
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field

from aluda.core.auth_deps import get_actor
from aluda.core.responses import localized_error
from aluda.middleware.endpoint_limit import rate_limit
from aluda.services.limits import Actor, LimitSet, Usage, estimate_tokens
from aluda.services.usage_tracker import QuotaGate, get_quota_gate

router = APIRouter(prefix="/api", tags=["tokens"])
logger = logging.getLogger(__name__)


# ============================================================================
# Schemas
# ============================================================================

class UsageSummaryResponse(BaseModel):
    actor: dict
    usage: Usage
    limits: LimitSet


class TokenCheckRequest(BaseModel):
    """额度检查请求：未给出 tokens 时按 message 长度估算"""
    tokens: Optional[int] = Field(default=None, ge=0)
    message: Optional[str] = None


class TokenUsageRequest(BaseModel):
    tokens: int = Field(ge=0)


class ImageUsageRequest(BaseModel):
    images: int = Field(default=1, ge=1)


def _upgrade_target(actor: Actor) -> str:
    return "/auth/signin" if actor.is_guest else "/buy"


# ============================================================================
# Token API
# ============================================================================

@router.get("/tokens", response_model=UsageSummaryResponse)
async def get_tokens(
    actor: Actor = Depends(get_actor),
    gate: QuotaGate = Depends(get_quota_gate),
):
    """当前主体的用量和限额（零消耗检查，供前端轮询）"""
    check = await gate.can_consume(actor, 0)
    return {"actor": actor.to_dict(), "usage": check.usage, "limits": check.limits}


@router.post("/tokens/check")
@rate_limit(max_requests=30, window=10)
async def check_tokens(
    request: Request,
    response: Response,
    payload: TokenCheckRequest,
    actor: Actor = Depends(get_actor),
    gate: QuotaGate = Depends(get_quota_gate),
):
    """检查是否还能消耗指定数量的 token，额度不足返回 402"""
    tokens = payload.tokens if payload.tokens is not None else estimate_tokens(payload.message)
    check = await gate.can_consume(actor, tokens)
    body = {
        "allowed": check.allowed,
        "tokens": tokens,
        "usage": check.usage.model_dump(),
        "limits": check.limits.model_dump(),
    }
    if not check.allowed:
        logger.info("Token limit reached: actor=%s:%s tokens=%s", actor.type, actor.id, tokens)
        response.status_code = status.HTTP_402_PAYMENT_REQUIRED
        return localized_error(
            request,
            "errors.token_limit",
            data={"redirect": _upgrade_target(actor), **body},
        )
    return body


@router.post("/tokens/usage", response_model=UsageSummaryResponse)
async def record_tokens(
    payload: TokenUsageRequest,
    actor: Actor = Depends(get_actor),
    gate: QuotaGate = Depends(get_quota_gate),
):
    """记录已消耗的 token（日桶 + 月桶）"""
    await gate.add_usage(actor, payload.tokens)
    usage = await gate.get_usage(actor)
    return {"actor": actor.to_dict(), "usage": usage, "limits": gate.get_limits(actor)}


# ============================================================================
# 图片 API
# ============================================================================

@router.get("/images/quota")
async def get_image_quota(
    request: Request,
    response: Response,
    actor: Actor = Depends(get_actor),
    gate: QuotaGate = Depends(get_quota_gate),
):
    """本月是否还能生成图片，额度不足返回 402"""
    check = await gate.can_generate_image(actor)
    body = check.model_dump()
    if not check.allowed:
        response.status_code = status.HTTP_402_PAYMENT_REQUIRED
        return localized_error(
            request,
            "errors.image_limit",
            data={"redirect": _upgrade_target(actor), **body},
        )
    return body


@router.post("/images/usage", response_model=UsageSummaryResponse)
async def record_images(
    payload: ImageUsageRequest,
    actor: Actor = Depends(get_actor),
    gate: QuotaGate = Depends(get_quota_gate),
):
    """记录已生成的图片数量（写入失败只记日志，不影响调用方）"""
    await gate.add_image_usage(actor, payload.images)
    usage = await gate.get_usage(actor)
    return {"actor": actor.to_dict(), "usage": usage, "limits": gate.get_limits(actor)}
