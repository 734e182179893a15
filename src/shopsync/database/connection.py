"""
Database connection and session management.

One ``Database`` object owns the async engine and session factory. It is
built once by the application factory or the CLI and handed to the
repositories, so nothing here reads global state.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from shopsync.database.models import Base
from shopsync.utils.exceptions import ConfigurationError
from shopsync.utils.logger import get_logger


logger = get_logger(__name__)


class Database:
    """Async engine plus session factory for one database URL."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url

        engine_kwargs = {"echo": echo}

        if url.startswith("postgresql"):
            engine_kwargs.update({
                "poolclass": AsyncAdaptedQueuePool,
                "pool_size": 10,
                "max_overflow": 20,
                "pool_timeout": 30,
                "pool_recycle": 3600,
                "pool_pre_ping": True,
            })
        else:
            # SQLite: no pool, wait on the file lock instead of failing
            engine_kwargs["poolclass"] = NullPool
            engine_kwargs["connect_args"] = {"timeout": 30}

        self.engine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        logger.info(f"Database engine created ({self.dialect_name})")

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def insert(self, model):
        """
        Dialect-specific INSERT that supports ``on_conflict_do_update``.

        Both PostgreSQL and SQLite render ``INSERT ... ON CONFLICT``, which
        is what makes every upsert here a single atomic statement.
        """
        if self.dialect_name == "postgresql":
            return pg_insert(model)
        if self.dialect_name == "sqlite":
            return sqlite_insert(model)
        raise ConfigurationError(
            f"Unsupported database dialect: {self.dialect_name}",
            {"url": self.engine.url.render_as_string(hide_password=True)},
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Transactional session scope.

        Usage:
            async with db.session() as session:
                await session.execute(stmt)

        Commits on success, rolls back and re-raises on error.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init_models(self) -> None:
        """Create all tables. Production deployments use Alembic instead."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def drop_models(self) -> None:
        """Drop all tables. USE WITH CAUTION."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("All database tables dropped")

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database ping failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")
