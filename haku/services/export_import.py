"""
Export/Import service for Haku backups.

Import replaces the whole application state from an untrusted JSON backup.
It runs as a fixed pipeline:

    IDLE -> PARSING -> MIGRATING -> PERSISTING -> HYDRATING -> DONE

with FAILED reachable from every step. The durable copy is written before the
in-memory store is touched, and a failure before the durable write leaves both
exactly as they were.
"""

import asyncio
import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

from haku import __version__
from haku.exceptions import (
    FileReadError,
    FileTypeError,
    HydrationError,
    ImportFailure,
    ParseError,
    PersistenceError,
    SchemaError,
)
from haku.logging_config import get_logger
from haku.models import PersistedState
from haku.services.autosave import AutoPersist
from haku.services.migration import migrate_persisted_state
from haku.services.persistence import PersistenceGateway
from haku.state_schema import APP_NAME, CURRENT_SCHEMA_VERSION
from haku.store import ActivityStore
from haku.utils.datetime_utils import now_iso, today_iso_date

logger = get_logger(__name__)


def reject_json_constant(name: str) -> Any:
    """``parse_constant`` hook for json.loads: NaN and Infinity are not JSON."""
    raise ValueError(f"Invalid JSON constant: {name}")


class ImportStage(str, Enum):
    """Where an import currently is, or where it ended."""

    IDLE = "idle"
    PARSING = "parsing"
    MIGRATING = "migrating"
    PERSISTING = "persisting"
    HYDRATING = "hydrating"
    DONE = "done"
    FAILED = "failed"


class ImportResult(BaseModel):
    """Outcome of an import, as reported to the UI layer."""

    ok: bool = Field(..., description="Whether the state was replaced")
    error: Optional[str] = Field(default=None, description="Fixed user-facing message on failure")

    @classmethod
    def success(cls) -> "ImportResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> "ImportResult":
        return cls(ok=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """``{"ok": True}`` or ``{"ok": False, "error": <message>}``."""
        return self.model_dump(exclude_none=True)


class ExportImportService:
    """
    Service for exporting and importing the full application state.

    Supports:
    - Export snapshots (JSON string or file)
    - Import from pasted text or a .json file, with schema migration
    - All-or-nothing replacement of store and durable copy

    Imports must not overlap; callers disable their import trigger while one
    is running.
    """

    def __init__(
        self,
        store: ActivityStore,
        gateway: PersistenceGateway,
        autosave: Optional[AutoPersist] = None,
    ):
        """
        Initialize export/import service.

        Args:
            store: Application store to hydrate
            gateway: Persistence gateway owning the durable copy
            autosave: Auto-persist whose pending save must not interleave
                with an import
        """
        self.store = store
        self.gateway = gateway
        self.autosave = autosave
        self.stage = ImportStage.IDLE
        self.failure_reason: Optional[str] = None

    # =========================================================================
    # EXPORT FUNCTIONS
    # =========================================================================

    def create_snapshot(self) -> Dict[str, Any]:
        """
        Build an export snapshot of the current store.

        Returns:
            Ordered dict: app, version (package version), schemaVersion,
            exportedAt, activities, lists, settings
        """
        state = self.store.to_persisted_state().to_json_dict()
        return {
            "app": APP_NAME,
            "version": __version__,
            "schemaVersion": CURRENT_SCHEMA_VERSION,
            "exportedAt": now_iso(),
            **state,
        }

    def export_to_json(self) -> str:
        """Export the current state as pretty-printed JSON."""
        return json.dumps(self.create_snapshot(), indent=2, ensure_ascii=False)

    @staticmethod
    def default_export_filename() -> str:
        """``haku-export-YYYY-MM-DD.json`` for today (UTC)."""
        return f"haku-export-{today_iso_date()}.json"

    async def export_to_file(self, filepath: Optional[Union[str, Path]] = None) -> Path:
        """
        Export the current state to a JSON file.

        Args:
            filepath: Output path, defaults to haku-export-<date>.json in the
                working directory

        Returns:
            Path that was written
        """
        path = Path(filepath) if filepath is not None else Path(self.default_export_filename())
        content = self.export_to_json()
        await asyncio.to_thread(path.write_text, content, encoding="utf-8")

        logger.info(f"Exported state to: {path}")
        return path

    # =========================================================================
    # IMPORT FUNCTIONS
    # =========================================================================

    async def import_from_text(self, raw: str) -> ImportResult:
        """
        Import state from a JSON string.

        Either the whole pipeline succeeds and both the store and the durable
        copy hold the imported state, or the result carries one of the fixed
        error messages.

        Args:
            raw: Untrusted JSON text

        Returns:
            ImportResult
        """
        self.stage = ImportStage.IDLE
        self.failure_reason = None
        try:
            parsed = self._parse(raw)
            state = self._migrate(parsed)
            await self._persist(state)
            self._hydrate(state)
        except ImportFailure as failure:
            return self._fail(failure)

        self.stage = ImportStage.DONE
        logger.info(f"Import complete: {len(state.activities)} activities")
        return ImportResult.success()

    async def import_from_file(self, filepath: Union[str, Path]) -> ImportResult:
        """
        Import state from a .json file.

        The name check is case-sensitive and happens before the file is
        opened.

        Args:
            filepath: Path of the backup file

        Returns:
            ImportResult
        """
        path = Path(filepath)
        self.failure_reason = None
        try:
            if not path.name.endswith(".json"):
                raise FileTypeError(f"Not a JSON file: {path.name}")
            text = await self._read_file(path)
        except ImportFailure as failure:
            return self._fail(failure)

        return await self.import_from_text(text)

    # =========================================================================
    # PIPELINE STEPS
    # =========================================================================

    async def _read_file(self, path: Path) -> str:
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FileReadError(f"Cannot read {path}: {e}") from e

    def _parse(self, raw: str) -> Any:
        self._enter(ImportStage.PARSING)
        try:
            return json.loads(raw, parse_constant=reject_json_constant)
        except (TypeError, ValueError, RecursionError) as e:
            raise ParseError(str(e)) from e

    def _migrate(self, parsed: Any) -> PersistedState:
        self._enter(ImportStage.MIGRATING)
        state = migrate_persisted_state(parsed)
        if state is None:
            raise SchemaError("Payload failed validation or migration")
        return state

    async def _persist(self, state: PersistedState) -> None:
        self._enter(ImportStage.PERSISTING)
        if self.autosave is not None:
            self.autosave.cancel_pending()
        try:
            saved = await self.gateway.save(state)
        except Exception as e:
            raise PersistenceError(str(e)) from e
        if not saved:
            raise PersistenceError("Durable write was rejected")

    def _hydrate(self, state: PersistedState) -> None:
        self._enter(ImportStage.HYDRATING)
        try:
            self.store.replace_state(state)
        except Exception as e:
            # The durable copy is already ahead of memory; next load() restores it
            logger.error("Durable copy written but store hydration failed", exc_info=True)
            raise HydrationError(str(e)) from e

    def _enter(self, stage: ImportStage) -> None:
        logger.debug(f"Import stage: {self.stage.value} -> {stage.value}")
        self.stage = stage

    def _fail(self, failure: ImportFailure) -> ImportResult:
        self.stage = ImportStage.FAILED
        self.failure_reason = failure.user_message
        logger.warning(f"Import failed ({type(failure).__name__}): {failure.detail or failure.user_message}")
        return ImportResult.failure(failure.user_message)
