from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from app.core.config import settings

logger = structlog.get_logger(__name__)

Base = declarative_base()


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """Async engine for ``database_url``.

    In-memory SQLite keeps a single shared connection so every session sees
    the same database. Server databases get pre-ping and connection recycling.
    """
    url = make_url(database_url)
    options = {"echo": False}
    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
    else:
        options.update(pool_pre_ping=True, pool_recycle=300)
    options.update(kwargs)
    return create_async_engine(url, **options)


engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def init_db(bind: Optional[AsyncEngine] = None):
    """Check the connection and create any missing tables."""
    # Registers every model on Base.metadata
    import app.models  # noqa: F401

    bind = bind or engine
    try:
        async with bind.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Database ready",
            backend=bind.url.get_backend_name(),
            tables=sorted(Base.metadata.tables),
        )
    except SQLAlchemyError as e:
        logger.error(
            "Failed to initialize database",
            url=bind.url.render_as_string(hide_password=True),
            exc_info=e,
        )
        raise


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session, rolled back when the request fails."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.warning("Rolled back database session", error=str(e))
            raise
