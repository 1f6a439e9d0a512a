"""pytest fixtures for thumbforge tests.

Provides:
- postgres_url: Session-scoped PostgreSQL testcontainer (only with THUMBFORGE_TEST_POSTGRES=1)
- database_url: Per-test database (temporary SQLite file unless Postgres is enabled)
- session_factory: Function-scoped async session factory with fresh tables
- thumbnail_repo / cache_repo / transactions / service: Wired components
- redis_client: In-memory stand-in for the redis.asyncio client surface we use
"""

import os
import time
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

# Settings are loaded when thumbforge.app is imported
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from thumbforge import models  # noqa: E402,F401  # registers tables
from thumbforge.core.database import setup_db_session  # noqa: E402
from thumbforge.repositories.cache import CacheRepository  # noqa: E402
from thumbforge.repositories.thumbnail import ThumbnailRepository  # noqa: E402
from thumbforge.services.thumbnails import ThumbnailService  # noqa: E402
from thumbforge.uow import TransactionManager  # noqa: E402


class InMemoryRedis:
    """Minimal async stand-in for redis.asyncio.Redis with decode_responses=True.

    Set ``fail = True`` to make every command raise a redis ConnectionError.
    """

    def __init__(self):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.fail = False
        self.commands: list[str] = []

    def _check(self, command: str) -> None:
        self.commands.append(command)
        if self.fail:
            raise RedisConnectionError("Connection refused")

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.store.pop(key, None)
            self.expiry.pop(key, None)

    async def get(self, key: str) -> str | None:
        self._check("GET")
        self._purge(key)
        return self.store.get(key)

    async def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self._check("SET")
        self.store[key] = value
        if ex is not None:
            self.expiry[key] = time.monotonic() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        self._check("DEL")
        removed = 0
        for key in keys:
            self._purge(key)
            if self.store.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def exists(self, *keys: str) -> int:
        self._check("EXISTS")
        for key in keys:
            self._purge(key)
        return sum(1 for key in keys if key in self.store)

    async def expire(self, key: str, seconds: int) -> bool:
        self._check("EXPIRE")
        self._purge(key)
        if key not in self.store:
            return False
        self.expiry[key] = time.monotonic() + seconds
        return True

    async def ping(self) -> bool:
        self._check("PING")
        return True

    async def aclose(self) -> None:
        pass


@pytest.fixture(scope="session")
def postgres_url():
    """Provide session-scoped PostgreSQL container URL when enabled.

    Set THUMBFORGE_TEST_POSTGRES=1 to run the suite against PostgreSQL 17
    (requires Docker). Otherwise yields None and tests use SQLite.
    """
    if os.environ.get("THUMBFORGE_TEST_POSTGRES") != "1":
        yield None
        return

    from testcontainers.postgres import PostgresContainer

    with PostgresContainer(
        image="postgres:17",
        username="test",
        password="test",
        dbname="test_thumbforge",
    ) as container:
        yield container.get_connection_url(driver="psycopg")


@pytest.fixture
def database_url(postgres_url, tmp_path) -> str:
    return postgres_url or f"sqlite+aiosqlite:///{tmp_path / 'thumbforge.db'}"


@pytest_asyncio.fixture(scope="function")
async def session_factory(database_url) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide function-scoped session factory with freshly created tables.

    Tables are dropped after each test for isolation.
    """
    factory = setup_db_session(database_url, pool_size=5)
    engine = factory.kw["bind"]

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield factory

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def thumbnail_repo(session_factory) -> ThumbnailRepository:
    return ThumbnailRepository(session_factory)


@pytest.fixture
def redis_client() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def cache_repo(redis_client) -> CacheRepository:
    return CacheRepository(redis_client)  # type: ignore[arg-type]


@pytest.fixture
def transactions(session_factory) -> TransactionManager:
    return TransactionManager(session_factory)


@pytest.fixture
def service(thumbnail_repo, cache_repo, transactions) -> ThumbnailService:
    return ThumbnailService(thumbnails=thumbnail_repo, cache=cache_repo, transactions=transactions)
