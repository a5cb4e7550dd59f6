"""
Persistence gateway for Haku state.

Reads, writes and clears the single durable slot holding the serialized
state. None of the operations raise: storage and serialization problems are
logged and reported through the return value.
"""

import json
from typing import Optional

from haku.logging_config import get_logger
from haku.models import PersistedState
from haku.services.migration import migrate_persisted_state
from haku.services.storage import KeyValueStorage
from haku.state_schema import STORAGE_KEY, to_record

logger = get_logger(__name__)

_PROBE_KEY = "__haku_storage_test__"


class PersistenceGateway:
    """
    Durable copy of the application state.

    The state is stored as the JSON object
    ``{"version": <int>, "activities": [...], "lists": {...}, "settings": {...}}``
    under one well-known key. No other key is ever written, apart from the
    scratch key used by is_storage_available(), which is removed immediately.
    """

    def __init__(self, storage: KeyValueStorage, key: str = STORAGE_KEY) -> None:
        """
        Initialize the gateway.

        Args:
            storage: Key-value storage primitive
            key: Storage key of the state slot
        """
        self.storage = storage
        self.key = key

    async def save(self, state: PersistedState) -> bool:
        """
        Serialize the state, tagged with the current schema version, and store it.

        Args:
            state: State to persist

        Returns:
            True if the write succeeded, False otherwise
        """
        try:
            payload = json.dumps(to_record(state), ensure_ascii=False)
            await self.storage.set(self.key, payload)
        except Exception as e:
            logger.warning(f"Failed to save state to '{self.key}': {e}")
            return False

        logger.debug(f"Saved state with {len(state.activities)} activities")
        return True

    async def load(self) -> Optional[PersistedState]:
        """
        Read and migrate the stored state.

        Returns:
            The current-version state, or None if nothing is stored, the stored
            text is corrupt, or it cannot be migrated
        """
        try:
            raw = await self.storage.get(self.key)
        except Exception as e:
            logger.warning(f"Failed to read state from '{self.key}': {e}")
            return None

        if raw is None:
            logger.debug(f"No stored state under '{self.key}'")
            return None

        try:
            parsed = json.loads(raw)
        except (ValueError, RecursionError) as e:
            logger.warning(f"Stored state is not valid JSON: {e}")
            return None

        state = migrate_persisted_state(parsed)
        if state is None:
            logger.warning("Stored state could not be migrated to the current schema")
        return state

    async def clear(self) -> bool:
        """
        Remove the stored state. Failures are logged, not raised.

        Returns:
            True if the slot is now empty, False if the removal failed
        """
        try:
            await self.storage.remove(self.key)
        except Exception as e:
            logger.warning(f"Failed to clear state '{self.key}': {e}")
            return False

        logger.info(f"Cleared stored state '{self.key}'")
        return True

    async def is_storage_available(self) -> bool:
        """
        Check that the storage accepts writes.

        Returns:
            True if a probe value could be written and removed
        """
        try:
            await self.storage.set(_PROBE_KEY, "1")
            await self.storage.remove(_PROBE_KEY)
        except Exception as e:
            logger.warning(f"Storage is not available: {e}")
            return False
        return True
