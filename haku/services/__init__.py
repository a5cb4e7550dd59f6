"""Service layer: validation, migration, storage, persistence and import/export."""

from haku.services.export_import import ExportImportService, ImportResult, ImportStage
from haku.services.migration import migrate_persisted_state
from haku.services.persistence import PersistenceGateway
from haku.services.storage import KeyValueStorage, SQLiteKeyValueStorage

__all__ = [
    "ExportImportService",
    "ImportResult",
    "ImportStage",
    "KeyValueStorage",
    "PersistenceGateway",
    "SQLiteKeyValueStorage",
    "migrate_persisted_state",
]
