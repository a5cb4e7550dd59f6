"""
Automatic persistence of store changes.

Subscribes to the store and writes the state to durable storage shortly after
changes stop arriving, so rapid edits produce one write instead of many.
"""

import asyncio
from typing import Callable, Optional

from haku.logging_config import get_logger
from haku.services.persistence import PersistenceGateway
from haku.store import ActivityStore

logger = get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3


class AutoPersist:
    """
    Debounced store-to-storage persistence.

    Must be started from a running event loop. Each change (re)arms a timer;
    when it fires, the current store snapshot is saved.
    """

    def __init__(
        self,
        store: ActivityStore,
        gateway: PersistenceGateway,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        """
        Initialize auto-persistence.

        Args:
            store: Store to watch
            gateway: Gateway to save through
            debounce_seconds: Quiet period before a save
        """
        self.store = store
        self.gateway = gateway
        self.debounce_seconds = debounce_seconds
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._pending: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def start(self) -> None:
        """Subscribe to store changes. Starting twice is a no-op."""
        if self.is_running:
            logger.warning("Auto-persist already started")
            return
        self._unsubscribe = self.store.subscribe(self._on_change)
        logger.debug(f"Auto-persist started (debounce={self.debounce_seconds}s)")

    def stop(self) -> None:
        """Unsubscribe and drop any pending save."""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self.cancel_pending()

    def cancel_pending(self) -> None:
        """Drop a scheduled save that has not started yet."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def persist_now(self) -> bool:
        """
        Save immediately, bypassing the debounce.

        Returns:
            Whether the save succeeded
        """
        self.cancel_pending()
        return await self._persist()

    def _on_change(self) -> None:
        self.cancel_pending()
        self._pending = asyncio.get_running_loop().create_task(self._persist_later())

    async def _persist_later(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        await self._persist()

    async def _persist(self) -> bool:
        saved = await self.gateway.save(self.store.to_persisted_state())
        if not saved:
            logger.warning("Auto-persist failed to save state")
        return saved
