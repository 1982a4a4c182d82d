"""
SolBridge - Database Session
Async engine, session factory and repository scopes
"""
from typing import AsyncIterator
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from db.base import Base
from db.repositories.base import RepositoryScope
from db.repositories.position import PositionRepository
from db.repositories.credential import CredentialRepository

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.async_database_url,
    pool_size=settings.DATABASE_POOL_SIZE,
    max_overflow=settings.DATABASE_MAX_OVERFLOW,
    pool_pre_ping=True,
    echo=False
)

# Objects stay readable after commit; the monitor works on detached snapshots
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Unit-of-work scopes used by long-running workers
position_scope = RepositoryScope(PositionRepository, AsyncSessionLocal)
credential_scope = RepositoryScope(CredentialRepository, AsyncSessionLocal)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session, committed when the request succeeds"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create tables (models must be imported to register metadata)"""
    import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db() -> None:
    """Dispose the connection pool"""
    await engine.dispose()
