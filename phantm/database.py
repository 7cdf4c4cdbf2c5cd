"""
Database plumbing for the provisioning engine.

Engines are built per environment and handed to the engine as an explicit
session factory; nothing here keeps a process-wide pool.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from phantm.config import Settings, settings as default_settings
from phantm.core.exceptions import StorageError
from phantm.schemas.environment import EnvironmentConfig

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def build_database_url(env: EnvironmentConfig) -> URL:
    """Build a psycopg (v3) URL from stored connection parameters."""
    query = {"sslmode": "require"} if env.ssl else {}
    return URL.create(
        "postgresql+psycopg",
        username=env.user,
        password=env.password or None,
        host=env.host,
        port=env.port,
        database=env.database,
        query=query,
    )


def create_engine(env: EnvironmentConfig, settings: Optional[Settings] = None) -> AsyncEngine:
    """Create an async engine for one environment."""
    settings = settings or default_settings
    return create_async_engine(
        build_database_url(env),
        echo=settings.DB_ECHO,
        pool_pre_ping=True,  # Check connection health before use
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        connect_args={
            "prepare_threshold": None,  # Disable prepared statements for PgBouncer-style poolers
            "connect_timeout": settings.DB_CONNECT_TIMEOUT,
        },
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by the registry and the provisioner."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def database_scope(
    env: EnvironmentConfig,
    settings: Optional[Settings] = None,
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Acquire an engine for the duration of one command and dispose it afterwards."""
    engine = create_engine(env, settings)
    logger.debug(f"Opened engine for {env.host}:{env.port}/{env.database}")
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()
        logger.debug(f"Disposed engine for {env.host}:{env.port}/{env.database}")


async def verify_connection(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Run ``SELECT 1`` against the target database."""
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        raise StorageError(f"Failed to connect to database: {e}") from e


async def verify_pool_table(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Check that the common schema and the schema_pool table exist."""
    from phantm.models.schema_pool import POOL_SCHEMA, POOL_TABLE

    try:
        async with session_factory() as session:
            schema_row = await session.execute(
                text("SELECT 1 FROM information_schema.schemata WHERE schema_name = :schema"),
                {"schema": POOL_SCHEMA},
            )
            if schema_row.first() is None:
                raise StorageError(f"Schema '{POOL_SCHEMA}' does not exist in the database")

            table_row = await session.execute(
                text("""
                    SELECT 1 FROM information_schema.tables
                    WHERE table_schema = :schema AND table_name = :table
                """),
                {"schema": POOL_SCHEMA, "table": POOL_TABLE},
            )
            if table_row.first() is None:
                raise StorageError(f"Table {POOL_SCHEMA}.{POOL_TABLE} does not exist")
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to verify {POOL_SCHEMA} schema: {e}") from e
