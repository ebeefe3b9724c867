"""
Database Connection Manager
Engine and session maker are created lazily on first use
"""
from typing import AsyncGenerator, Optional
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool
from sqlalchemy.orm import declarative_base
import logging

from .config import postgres_settings

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

# Global engine variable - created on first use
_engine: Optional[AsyncEngine] = None
_async_session_maker: Optional[async_sessionmaker] = None


def build_engine(database_url: str, use_null_pool: Optional[bool] = None) -> AsyncEngine:
    """Create an async engine; SQLite URLs always get a NullPool."""
    if use_null_pool is None:
        use_null_pool = postgres_settings.use_null_pool
    if database_url.startswith("sqlite"):
        use_null_pool = True

    if use_null_pool:
        return create_async_engine(database_url, poolclass=NullPool, echo=False)

    return create_async_engine(
        database_url,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=postgres_settings.pool_size,
        max_overflow=postgres_settings.max_overflow,
        pool_pre_ping=postgres_settings.pool_pre_ping,
        pool_recycle=postgres_settings.pool_recycle,
        echo=False,
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Get or create the database engine"""
    global _engine

    if _engine is None:
        try:
            _engine = build_engine(postgres_settings.database_url)
            logger.info("Database engine created successfully")
        except Exception as e:
            logger.error(f"Failed to create database engine: {e}")
            raise

    return _engine


def get_session_maker() -> async_sessionmaker:
    """Get or create the session maker"""
    global _async_session_maker

    if _async_session_maker is None:
        _async_session_maker = build_session_maker(get_engine())

    return _async_session_maker


def reset_engine() -> None:
    """Forget the engine so the configuration is reloaded on next connection"""
    global _engine, _async_session_maker
    _engine = None
    _async_session_maker = None
    logger.info("Database engine reset - will reload config on next connection")


async def init_postgres_db() -> None:
    """
    Initialize database by creating all tables defined in models.
    This should be called during application startup.
    """
    engine = get_engine()
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database tables: {e}")
        raise


async def get_postgres_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that provides a database session to routes.
    The session is rolled back on error and closed after the request completes.
    """
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def close_postgres_db() -> None:
    """Close the database connection pool when the application shuts down."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connection pool closed")
    reset_engine()
