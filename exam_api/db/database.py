"""
SQLAlchemy Engine Configuration
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
import logging

from exam_api.core.config import settings

logger = logging.getLogger(__name__)


def create_engine_from_settings() -> AsyncEngine:
    """
    Create the async engine (and its connection pool)

    Returns:
        AsyncEngine bound to the configured database
    """
    logger.info(
        f"Creating database pool for {settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}"
    )
    return create_async_engine(
        settings.database_url_computed,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=0,
        pool_timeout=settings.db_connection_timeout_seconds,
        pool_recycle=settings.db_pool_recycle_seconds,
        pool_pre_ping=True,
        # asyncpg connect timeout for new connections
        connect_args={"timeout": settings.db_connection_timeout_seconds},
    )
