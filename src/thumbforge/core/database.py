"""Database session factory setup."""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def setup_db_session(db_url: str, pool_size: int = 20) -> async_sessionmaker[AsyncSession]:
    """Create async database session factory.

    PostgreSQL gets a fixed-size queue pool. SQLite keeps the dialect's own pool
    choice (StaticPool for in-memory databases), so pool sizing is not applied.

    Args:
        db_url: Async connection URL (postgresql+psycopg://... or sqlite+aiosqlite://...)
        pool_size: Maximum number of connections in the pool (ignored for SQLite)

    Returns:
        Async session factory for creating database sessions
    """
    engine_options: dict = {"pool_pre_ping": True, "echo": False}
    if make_url(db_url).get_backend_name() != "sqlite":
        engine_options.update(pool_size=pool_size, max_overflow=0)

    engine = create_async_engine(db_url, **engine_options)

    # Returned entities stay readable after commit
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
