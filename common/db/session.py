"""
Engine and session factories.

The API serves many concurrent requests and keeps a connection pool. The
sweep worker sets ``DB_USE_NULLPOOL`` and opens a connection per operation,
since it sits idle between sweeps for most of the hour.
"""

import time
from typing import Any, AsyncGenerator
from uuid import uuid4

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


def _engine_options() -> dict[str, Any]:
    options: dict[str, Any] = {
        "echo": settings.debug,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        # Unique statement names keep asyncpg working behind pgbouncer
        "connect_args": {
            "prepared_statement_name_func": lambda: f"__asyncpg_{uuid4()}__",
        },
    }
    if settings.db_use_nullpool:
        logger.info("Database pooling disabled (worker mode)")
        options["poolclass"] = pool.NullPool
    else:
        logger.info(
            f"Database pool size={settings.db_pool_size}, overflow={settings.db_pool_overflow}"
        )
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_pool_overflow
    return options


engine = create_async_engine(
    settings.database_url.replace("postgresql://", "postgresql+asyncpg://"),
    **_engine_options(),
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Separate factory so reads can move to a replica without touching callers
AsyncSessionLocalReadonly = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db_readonly() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for the database health check."""
    start = time.perf_counter()
    async with AsyncSessionLocalReadonly() as session:
        logger.debug(
            f"Readonly session acquire: {(time.perf_counter() - start) * 1000:.2f}ms"
        )
        try:
            yield session
        except Exception as e:
            logger.error(f"Error in readonly session: {e}")
            await session.rollback()
            raise


async def dispose_engine() -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
