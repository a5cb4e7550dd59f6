"""
Pytest configuration and fixtures for Haku tests.

Provides database and storage fixtures, payload factories, and a fresh
application store for every test.
"""

import copy

import pytest
import pytest_asyncio

from haku.database import DatabaseManager
from haku.services.export_import import ExportImportService
from haku.services.persistence import PersistenceGateway
from haku.services.storage import SQLiteKeyValueStorage
from haku.store import ActivityStore


@pytest_asyncio.fixture
async def db_manager():
    """
    Create an in-memory SQLite database for testing.

    Yields:
        DatabaseManager instance with in-memory database
    """
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.initialize()

    yield manager

    await manager.close()


@pytest.fixture
def storage(db_manager):
    """Key-value storage on the in-memory database, without a quota."""
    return SQLiteKeyValueStorage(db_manager)


@pytest.fixture
def gateway(storage):
    """Persistence gateway using the default storage key."""
    return PersistenceGateway(storage)


@pytest.fixture
def store():
    """Empty application store."""
    return ActivityStore()


@pytest.fixture
def service(store, gateway):
    """Export/import service wired to the test store and gateway."""
    return ExportImportService(store, gateway)


@pytest.fixture
def make_activity_data():
    """
    Factory fixture for raw (wire format) activity dictionaries.

    Returns:
        Function that creates activity dicts; pass schema_version=1 to omit
        the repeat field

    Example:
        def test_something(make_activity_data):
            activity = make_activity_data(id="a1", bucket="inbox")
    """
    def _make_activity_data(schema_version: int = 2, **overrides) -> dict:
        data = {
            "id": "imported-1",
            "title": "Imported",
            "bucket": "scheduled",
            "date": "2026-02-01",
            "time": None,
            "durationMinutes": None,
            "note": "from backup",
            "isDone": False,
            "orderIndex": None,
            "createdAt": "2026-02-01T01:00:00.000Z",
            "updatedAt": "2026-02-01T01:00:00.000Z",
        }
        if schema_version >= 2:
            data["repeat"] = "none"
        data.update(overrides)
        return data
    return _make_activity_data


@pytest.fixture
def v2_payload(make_activity_data):
    """A valid current-version (schema 2) payload."""
    return {
        "version": 2,
        "activities": [
            make_activity_data(),
            make_activity_data(
                id="imported-2",
                title="Standup",
                time="09:00",
                durationMinutes=15,
                repeat="daily",
                note="",
                orderIndex=0,
            ),
        ],
        "lists": {"version": 1},
        "settings": {"weekStart": "sunday", "themeMode": "dark"},
    }


@pytest.fixture
def v1_payload(make_activity_data):
    """A valid schema 1 payload, equivalent to v2_payload minus repeat patterns."""
    return {
        "version": 1,
        "activities": [
            make_activity_data(schema_version=1),
            make_activity_data(
                schema_version=1,
                id="imported-2",
                title="Standup",
                time="09:00",
                durationMinutes=15,
                note="",
                orderIndex=0,
            ),
        ],
        "lists": {"version": 1},
        "settings": {"weekStart": "sunday", "themeMode": "dark"},
    }


@pytest.fixture
def clone():
    """Deep copy helper so tests can mutate shared payload fixtures."""
    return copy.deepcopy
