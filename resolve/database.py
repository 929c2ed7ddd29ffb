"""
Database engine, session dependency and schema bootstrap.

Production runs on PostgreSQL through asyncpg; tests point ``DATABASE_URL`` at
an in-memory SQLite database, so pool options are only applied to drivers
that accept them.
"""
import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from resolve.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    if make_url(url).get_backend_name() == "sqlite":
        return {}
    return {"pool_pre_ping": True, "poolclass": NullPool}


engine = create_async_engine(settings.DATABASE_URL, echo=False, **_engine_options(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.

    Commits when the handler returns normally and rolls back when it raises,
    so a ``ResolveError`` halfway through a handler leaves no partial writes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.error("Database session rolled back: %s", exc)
            raise


async def ping(session: AsyncSession) -> bool:
    """``SELECT 1`` on *session*; False instead of raising when it fails."""
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Database ping failed: %s", exc)
        return False
    return True


async def init_db() -> None:
    """Create any missing tables and confirm the database answers."""
    from resolve.models import database_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")

    async with AsyncSessionLocal() as session:
        if not await ping(session):
            raise RuntimeError("Database did not answer after schema bootstrap")


async def close_db() -> None:
    await engine.dispose()
    logger.info("Database connections closed")
