# sis/core/database.py
"""Database connection and session management using SQLAlchemy."""
from typing import AsyncGenerator, Optional
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from .config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def create_database_engine(url: str, config: Optional[Settings] = None) -> AsyncEngine:
    """Create an async engine; SQLite URLs share one connection across sessions."""
    config = config or default_settings
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=config.db_echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        url,
        echo=config.db_echo,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_recycle=config.db_pool_recycle,
        pool_pre_ping=True,
        connect_args={
            "server_settings": {
                "application_name": "sis_core",
                # Row locks taken by registration/waitlist must not hang requests
                "lock_timeout": "30s",
                "idle_in_transaction_session_timeout": "60s",
            }
        },
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory with explicit transaction control."""
    return async_sessionmaker(
        engine,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_database_engine(default_settings.database_url)
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session with proper error handling"""
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception as e:
            logger.error("Database session error: %s", e)
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables (tests and local bootstrap; production uses alembic)."""
    from ..models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def health_check_db(engine: Optional[AsyncEngine] = None) -> bool:
    engine = engine or get_engine()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        return False


async def close_db_connections():
    """Properly close all database connections"""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
    _session_factory = None
