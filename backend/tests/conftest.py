import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["DISABLE_TOKEN_TRACKING"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["ADMIN_EMAILS"] = "admin@aluda.ge"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from aluda.core.database import Base, get_db
from aluda.core.redis import get_redis
from aluda.main import app
from aluda.middleware.endpoint_limit import endpoint_limiter
from aluda.models.user import User, UserPlan
from aluda.services.auth import create_access_token


class FakeRedis:
    """只实现在线状态用到的有序集合命令"""

    def __init__(self):
        self.zsets = {}

    @staticmethod
    def _bound(value):
        value = str(value)
        if value == "-inf":
            return float("-inf"), False
        if value == "+inf":
            return float("inf"), False
        if value.startswith("("):
            return float(value[1:]), True
        return float(value), False

    def _match(self, score, min_, max_):
        low, low_excl = self._bound(min_)
        high, high_excl = self._bound(max_)
        above = score > low if low_excl else score >= low
        below = score < high if high_excl else score <= high
        return above and below

    async def zadd(self, key, mapping):
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zremrangebyscore(self, key, min_, max_):
        zset = self.zsets.get(key, {})
        doomed = [m for m, s in zset.items() if self._match(s, min_, max_)]
        for member in doomed:
            del zset[member]
        return len(doomed)

    async def zcount(self, key, min_, max_):
        zset = self.zsets.get(key, {})
        return sum(1 for s in zset.values() if self._match(s, min_, max_))


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest_asyncio.fixture
async def client(session_maker, fake_redis):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    async def override_get_redis():
        return fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    await endpoint_limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(db):
    async def _make(email="user@aluda.ge", plan=UserPlan.FREE):
        user = User(email=email, plan=plan)
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
def auth_header():
    def _header(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id).token}"}

    return _header
