"""
Durable key-value storage for Haku.

The persistence layer only needs get/set/remove by key. ``KeyValueStorage``
describes that primitive; ``SQLiteKeyValueStorage`` implements it on the
SQLite database, where every write is a single transaction.
"""

from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import delete

from haku.database import DatabaseManager, KeyValueORM
from haku.exceptions import StorageError, StorageQuotaExceededError
from haku.logging_config import get_logger

logger = get_logger(__name__)


class KeyValueStorage(Protocol):
    """Asynchronous string key-value storage."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


class SQLiteKeyValueStorage:
    """
    Key-value storage backed by the ``kv_store`` table.

    A write either replaces the stored value completely or leaves the previous
    value untouched: the upsert runs inside one session, which commits on
    success and rolls back on any error.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        max_value_bytes: Optional[int] = None,
    ) -> None:
        """
        Initialize the storage.

        Args:
            db_manager: Initialized database manager
            max_value_bytes: Optional per-value quota in UTF-8 bytes
        """
        self.db_manager = db_manager
        self.max_value_bytes = max_value_bytes

    async def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Returns:
            The stored text, or None if the key is absent

        Raises:
            StorageError: If the database read fails
        """
        try:
            async with self.db_manager.get_session() as session:
                row = await session.get(KeyValueORM, key)
        except Exception as e:
            raise StorageError(f"Failed to read '{key}': {e}") from e

        return row.value if row is not None else None

    async def set(self, key: str, value: str) -> None:
        """
        Store a value under a key, replacing any previous value.

        Raises:
            StorageQuotaExceededError: If the value is larger than the quota
            StorageError: If the database write fails
        """
        size = len(value.encode("utf-8"))
        if self.max_value_bytes is not None and size > self.max_value_bytes:
            logger.warning(f"Refusing to store {size} bytes under '{key}': quota is {self.max_value_bytes}")
            raise StorageQuotaExceededError(key, size, self.max_value_bytes)

        try:
            async with self.db_manager.get_session() as session:
                await session.merge(
                    KeyValueORM(key=key, value=value, updated_at=datetime.now(timezone.utc))
                )
        except Exception as e:
            raise StorageError(f"Failed to write '{key}': {e}") from e

        logger.debug(f"Stored {size} bytes under '{key}'")

    async def remove(self, key: str) -> None:
        """
        Delete a key. Removing an absent key is not an error.

        Raises:
            StorageError: If the database delete fails
        """
        try:
            async with self.db_manager.get_session() as session:
                await session.execute(delete(KeyValueORM).where(KeyValueORM.key == key))
        except Exception as e:
            raise StorageError(f"Failed to remove '{key}': {e}") from e

        logger.debug(f"Removed '{key}'")
