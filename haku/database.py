"""
Database layer for Haku.

Provides the SQLAlchemy ORM model for the durable key-value table and async
engine/session management for SQLite persistence.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import DateTime, String, Text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from haku.config import DEFAULT_DATABASE_URL
from haku.logging_config import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class KeyValueORM(Base):
    """
    SQLAlchemy ORM model for one durable storage slot.

    Values are opaque text; the application stores JSON documents here.
    """
    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<KeyValueORM(key={self.key}, size={len(self.value)})>"


def _ensure_sqlite_dir(database_url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return
    if url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


class DatabaseManager:
    """
    Owns the async engine behind the key-value storage.

    One manager is created per process (or per test) and passed explicitly to
    the storage layer. Every session it hands out is a single transaction.
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL):
        """
        Args:
            database_url: SQLAlchemy async URL, a SQLite file by default
        """
        self.database_url = database_url
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_initialized(self) -> bool:
        return self.session_maker is not None

    async def initialize(self) -> None:
        """
        Open the engine and create the kv_store table if it is missing.

        Calling it again on an initialized manager does nothing.
        """
        if self.is_initialized:
            return

        logger.info(f"Opening storage database: {self.database_url}")
        try:
            _ensure_sqlite_dir(self.database_url)
            self.engine = create_async_engine(self.database_url, echo=False)
            self.session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            logger.error(f"Could not open storage database: {e}", exc_info=True)
            raise

        logger.info(f"Storage database ready ({', '.join(Base.metadata.tables)})")

    async def close(self) -> None:
        """Dispose of the engine. Safe to call more than once."""
        if self.engine is None:
            return

        engine = self.engine
        self.engine = None
        self.session_maker = None
        await engine.dispose()
        logger.info("Storage database closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Open a session that commits on exit and rolls back if the block raises.

        Yields:
            AsyncSession for one transaction

        Raises:
            RuntimeError: If initialize() has not been called

        Example:
            async with db_manager.get_session() as session:
                row = await session.get(KeyValueORM, "haku:v1:state")
        """
        if self.session_maker is None:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")

        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                logger.error(f"Storage transaction rolled back: {e}", exc_info=True)
                await session.rollback()
                raise


async def init_database(database_url: str = DEFAULT_DATABASE_URL) -> DatabaseManager:
    """
    Create and initialize a database manager for application startup.

    Args:
        database_url: SQLAlchemy async URL

    Returns:
        Initialized DatabaseManager
    """
    db_manager = DatabaseManager(database_url)
    await db_manager.initialize()
    return db_manager
