"""FastAPI 应用入口"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from aluda.api.tokens import router as tokens_router  # 用量检查 / 记录
from aluda.api.admin import router as admin_router  # 管理后台
from aluda.api.debug import router as debug_router  # 部署自检
from aluda.core.config import get_settings
from aluda.core.database import close_db
from aluda.core.redis import close_redis

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理"""
    if settings.disable_token_tracking:
        logger.warning("Token tracking is disabled: all usage checks are allowed")

    yield

    # 关闭时
    await close_db()
    await close_redis()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Aluda AI 用量统计 API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """未处理异常统一返回 500"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# 注册路由
app.include_router(tokens_router)
app.include_router(admin_router)
app.include_router(debug_router)


@app.get("/health")
async def health_check() -> dict:
    """健康检查端点"""
    return {"status": "ok", "version": settings.app_version}
