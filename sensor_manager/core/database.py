"""Database handle with explicit open/close lifecycle"""

from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import event, text
import logging

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the async engine and session factory.

    Constructed once per process (or per test) and passed to whoever needs
    it; nothing in the package reaches for a module-level engine.
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 20,
    ):
        self.database_url = database_url
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    async def open(self, create_tables: bool = True):
        """Create the engine and (optionally) the schema"""
        if self.engine is not None:
            return

        engine_kwargs = {"echo": self.echo, "pool_pre_ping": True}
        if not self.is_sqlite:
            engine_kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_recycle=3600,
            )

        self.engine = create_async_engine(self.database_url, **engine_kwargs)
        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        if create_tables:
            # Import models so they register on Base.metadata
            from .. import models  # noqa: F401

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        logger.info(f"Database opened ({self.engine.url.render_as_string(hide_password=True)})")

    async def close(self):
        """Dispose of pooled connections"""
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self._sessionmaker = None
        logger.info("Database connections closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Transactional session: commit on success, rollback on error"""
        if self._sessionmaker is None:
            raise RuntimeError("Database is not open")

        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"Database session error: {e}")
                raise

    async def ping(self) -> bool:
        """Database liveness check"""
        async with self.session() as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar() == 1
