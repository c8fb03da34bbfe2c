# backend/database/connection.py

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from config.settings import get_settings
from sqlalchemy import text
import logging

logger = logging.getLogger(__name__)
settings = get_settings()


def normalize_database_url(url: str) -> str:
    """Rewrite sync Postgres URLs to the asyncpg driver form"""
    # Hosted Postgres often hands out postgres:// which SQLAlchemy rejects
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    if url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


database_url = normalize_database_url(settings.DATABASE_URL)
logger.info(f"Using database driver: {database_url.split('://', 1)[0]}")

# Create async engine
engine = create_async_engine(
    database_url,
    poolclass=NullPool,
    echo=settings.DEBUG,
)

# Async session factory
async_session_maker = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession
)

async def get_db():
    """FastAPI dependency to get DB session"""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


def get_session_maker() -> async_sessionmaker:
    """FastAPI dependency for work that outlives the request session"""
    return async_session_maker


async def init_db():
    """Create extensions + tables"""
    from database.models import Base

    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            # Enable pg_trgm for log text search
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS pg_trgm"))

        await conn.run_sync(Base.metadata.create_all)

    logger.info("✅ Database initialized")


async def close_db():
    await engine.dispose()
    logger.info("✅ Database engine disposed")
