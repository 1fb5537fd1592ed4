"""
Database connection and session management
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from seo_metrics.config import get_settings
from seo_metrics.models import Base

# Lazy initialization
_engine = None
_async_session_maker = None
_sync_engine = None
_sync_session_maker = None


def _get_database_url() -> str:
    """Get and convert database URL for async"""
    settings = get_settings()
    database_url = settings.DATABASE_URL
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def _get_sync_database_url() -> str:
    """Strip async drivers so workers can use a blocking engine"""
    database_url = get_settings().DATABASE_URL
    return (
        database_url
        .replace("postgresql+asyncpg://", "postgresql://", 1)
        .replace("sqlite+aiosqlite://", "sqlite://", 1)
    )


def _get_engine():
    """Lazy engine initialization"""
    global _engine
    if _engine is None:
        settings = get_settings()
        database_url = _get_database_url()

        engine_kwargs = {
            "echo": settings.DEBUG,
            "pool_pre_ping": True,
        }

        if not database_url.startswith("sqlite"):
            engine_kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
            engine_kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW

        _engine = create_async_engine(database_url, **engine_kwargs)
    return _engine


def get_session_maker() -> async_sessionmaker:
    """Lazy session maker initialization"""
    global _async_session_maker
    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            _get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_maker


def dialect_insert(session: AsyncSession, model):
    """INSERT construct supporting ON CONFLICT for the session's dialect"""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")


async def init_db():
    """Initialize database tables"""
    engine = _get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections"""
    global _engine, _async_session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_maker = None


# For Celery workers (sync context) - also lazy loaded
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session


def _get_sync_engine():
    """Lazy sync engine initialization"""
    global _sync_engine
    if _sync_engine is None:
        settings = get_settings()
        database_url = _get_sync_database_url()
        engine_kwargs = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
            engine_kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        _sync_engine = create_engine(database_url, **engine_kwargs)
    return _sync_engine


def _get_sync_session_maker():
    """Lazy sync session maker initialization"""
    global _sync_session_maker
    if _sync_session_maker is None:
        _sync_session_maker = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=_get_sync_engine(),
        )
    return _sync_session_maker


def get_sync_db() -> Session:
    """Get synchronous database session for Celery workers"""
    session_maker = _get_sync_session_maker()
    return session_maker()
