from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from timequest.api.deps import get_clock, get_redis_connection
from timequest.core.security import get_password_hash
from timequest.db import Base, get_session
from timequest.main import create_app
from timequest.models import User

START = datetime(2024, 5, 6, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced stand-in for ``utc_now``."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'timequest.db'}")
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
async def fakeredis_client() -> AsyncIterator[fakeredis.aioredis.FakeRedis]:
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    try:
        yield redis
    finally:
        await redis.flushall()
        await redis.aclose()


@pytest.fixture
async def app(
    session_factory: async_sessionmaker[AsyncSession],
    fakeredis_client: fakeredis.aioredis.FakeRedis,
    clock: FakeClock,
):
    application = create_app()
    application.state.redis = fakeredis_client

    async def override_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    async def override_redis() -> fakeredis.aioredis.FakeRedis:
        return fakeredis_client

    application.dependency_overrides[get_session] = override_session
    application.dependency_overrides[get_redis_connection] = override_redis
    application.dependency_overrides[get_clock] = lambda: clock
    try:
        yield application
    finally:
        application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://testserver/api"
    ) as test_client:
        yield test_client


@pytest.fixture
def make_user(session_factory: async_sessionmaker[AsyncSession]):
    async def factory(email: str, name: str | None = None) -> User:
        async with session_factory() as session:
            user = User(
                email=email,
                name=name,
                hashed_password=get_password_hash("Secret123"),
            )
            session.add(user)
            await session.commit()
            return user

    return factory
