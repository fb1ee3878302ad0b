from collections.abc import AsyncIterator
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from postdigest.logging_utils import structured_log
from postdigest.settings import ConfigurationError, settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options() -> dict[str, object]:
    if settings.database_pool_mode.strip().lower() == "null":
        return {"pool_pre_ping": True, "poolclass": NullPool}
    return {
        "pool_pre_ping": True,
        "pool_size": max(1, int(settings.database_pool_size)),
        "max_overflow": max(0, int(settings.database_pool_max_overflow)),
        "pool_timeout": max(1, int(settings.database_pool_timeout_seconds)),
    }


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL is not configured.")
        options = _engine_options()
        _engine = create_async_engine(settings.database_url, **options)
        structured_log(
            logger,
            "info",
            "db.engine_initialized",
            pool_mode="null" if "poolclass" in options else "queue",
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def get_db_session() -> AsyncIterator[AsyncSession]:
    async with get_session_factory()() as session:
        yield session


async def check_database() -> bool:
    try:
        async with get_engine().connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar_one() == 1
    except Exception:
        logger.exception("db.healthcheck_failed", extra={"event": "db.healthcheck_failed"})
        return False


async def close_engine() -> None:
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    structured_log(logger, "info", "db.engine_disposed")
    _engine = None
    _session_factory = None
