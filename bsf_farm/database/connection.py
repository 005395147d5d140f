"""
Database Connection Management

Async SQLAlchemy 2.0 engine and session management for the farm schema.
Sessions commit on success, roll back on error and translate integrity
errors into ConstraintViolationError.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bsf_farm.config import get_settings
from bsf_farm.database.errors import translate_integrity_error
from bsf_farm.database.models import Base
from bsf_farm.exceptions import DatabaseNotInitializedError

logger = structlog.get_logger(__name__)

# Global engine and session factory
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    """SQLite ships with foreign key enforcement off"""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite connections get foreign key enforcement switched on so cascades
    and restrictions behave as on the server products.

    Args:
        url: Async SQLAlchemy URL
        echo: Echo SQL statements

    Returns:
        AsyncEngine: The new engine
    """
    settings = get_settings()
    engine_config = {
        "echo": echo,
        "pool_pre_ping": settings.database.pool_pre_ping,
    }

    engine = create_async_engine(url, **engine_config)

    if make_url(url).get_backend_name() == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return engine


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the database engine and session factory.

    Args:
        url: Async database URL; defaults to the configured one

    Returns:
        AsyncEngine: The initialized database engine
    """
    global _engine, _async_session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    url = url or settings.database.async_url

    _engine = create_engine(url, echo=settings.database.echo)
    _async_session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    # Verify connection
    try:
        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(
            "Database connection established",
            backend=_engine.dialect.name,
            database=_engine.url.database,
        )
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        await close_database()
        raise

    return _engine


async def close_database() -> None:
    """Dispose of the engine and its connection pool."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connection pool closed")


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Returns:
        AsyncEngine: The active database engine

    Raises:
        DatabaseNotInitializedError: If database is not initialized
    """
    if _engine is None:
        raise DatabaseNotInitializedError()
    return _engine


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session.

    Everything done inside the block is one transaction: it is committed
    when the block exits normally and rolled back otherwise.

    Yields:
        AsyncSession: Database session

    Raises:
        ConstraintViolationError: If the store rejected a write

    Example:
        async with get_db() as db:
            db.add(Batch(start_date=date.today(), stage=BatchStage.EGG))
    """
    if _async_session_factory is None:
        logger.error("Database not initialized when get_db() called")
        raise DatabaseNotInitializedError()

    session = _async_session_factory()
    try:
        yield session
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        violation = translate_integrity_error(e)
        logger.warning(
            "Write rejected by constraint",
            kind=violation.kind.value,
            table=violation.table,
            columns=list(violation.columns),
            constraint=violation.constraint,
        )
        raise violation from e
    except Exception as e:
        logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
        await session.rollback()
        raise
    finally:
        await session.close()


async def create_schema() -> None:
    """Create all tables, constraints and indices that do not exist yet."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema created", tables=len(Base.metadata.tables))


async def drop_schema() -> None:
    """Drop every table of the schema."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Schema dropped", tables=len(Base.metadata.tables))


async def check_database_health() -> dict:
    """
    Check database health status.

    Returns:
        dict: Health status with latency information
    """
    try:
        start = time.perf_counter()
        async with get_db() as db:
            await db.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        return {
            "status": "healthy",
            "backend": get_engine().dialect.name,
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }
