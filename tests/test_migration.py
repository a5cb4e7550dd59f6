"""
Tests for the schema registry, payload validation and migration chain.
"""

import pytest

from haku.models import PersistedState
from haku.services import migration
from haku.services.migration import (
    MIGRATIONS,
    migrate_persisted_state,
    migrate_v1_to_v2,
    resolve_schema_version,
)
from haku.services.validation import ValidationFailure, validate_payload
from haku.state_schema import (
    CURRENT_SCHEMA_VERSION,
    SCHEMA_VERSIONS,
    STORAGE_KEY,
    PersistedStateV1,
    PersistedStateV2,
    current_version,
    is_supported_version,
    to_record,
)


# ==============================================================================
# REGISTRY
# ==============================================================================


class TestSchemaRegistry:
    """Tests for version constants and the registry."""

    def test_current_version(self):
        assert CURRENT_SCHEMA_VERSION == 2
        assert current_version() == CURRENT_SCHEMA_VERSION

    def test_storage_key(self):
        assert STORAGE_KEY == "haku:v1:state"

    def test_registry_covers_every_version(self):
        """Versions 1..current are registered with no gaps."""
        assert sorted(SCHEMA_VERSIONS) == list(range(1, CURRENT_SCHEMA_VERSION + 1))

    def test_every_older_version_has_a_step(self):
        assert all(v in MIGRATIONS for v in range(1, CURRENT_SCHEMA_VERSION))

    @pytest.mark.parametrize("version,expected", [
        (1, True),
        (2, True),
        (0, False),
        (3, False),
        (999, False),
        ("1", False),
        (1.0, False),
        (True, False),
        (None, False),
    ])
    def test_is_supported_version(self, version, expected):
        assert is_supported_version(version) is expected

    def test_chain_check_detects_missing_step(self, monkeypatch):
        """A registered schema without an upgrade step is a startup error."""
        monkeypatch.setattr(migration, "MIGRATIONS", {})
        with pytest.raises(RuntimeError, match="No migration step"):
            migration._check_migration_chain()

    def test_to_record_tags_current_version(self, v2_payload):
        state = migrate_persisted_state(v2_payload)
        record = to_record(state)
        assert record["version"] == CURRENT_SCHEMA_VERSION
        assert set(record) == {"version", "activities", "lists", "settings"}


# ==============================================================================
# VALIDATION
# ==============================================================================


class TestValidatePayload:
    """Tests for validate_payload()."""

    def test_valid_v2(self, v2_payload):
        result = validate_payload(v2_payload, 2)
        assert isinstance(result, PersistedStateV2)
        assert len(result.activities) == 2

    def test_valid_v1(self, v1_payload):
        result = validate_payload(v1_payload, 1)
        assert isinstance(result, PersistedStateV1)

    def test_v1_lists_defaulted(self, v1_payload):
        """Schema 1 payloads may omit lists."""
        del v1_payload["lists"]
        result = validate_payload(v1_payload, 1)
        assert isinstance(result, PersistedStateV1)
        assert result.lists.version == 1

    def test_v2_requires_lists(self, v2_payload):
        del v2_payload["lists"]
        assert isinstance(validate_payload(v2_payload, 2), ValidationFailure)

    def test_v1_payload_is_not_v2(self, v1_payload):
        """Activities without repeat do not satisfy schema 2."""
        result = validate_payload(v1_payload, 2)
        assert isinstance(result, ValidationFailure)
        assert any("repeat" in error for error in result.errors)

    def test_version_argument_overrides_payload_tag(self, v1_payload):
        """The requested version decides the shape, not the payload's own tag."""
        v1_payload["version"] = 2
        assert isinstance(validate_payload(v1_payload, 1), PersistedStateV1)

    def test_unsupported_version(self, v2_payload):
        result = validate_payload(v2_payload, 999)
        assert isinstance(result, ValidationFailure)
        assert "unsupported" in str(result)

    @pytest.mark.parametrize("raw", [None, [], "state", 42])
    def test_non_object_rejected(self, raw):
        assert isinstance(validate_payload(raw, 2), ValidationFailure)

    def test_errors_name_the_field(self, v2_payload):
        v2_payload["activities"][0]["bucket"] = "someday"
        result = validate_payload(v2_payload, 2)
        assert isinstance(result, ValidationFailure)
        assert any("activities.0.bucket" in error for error in result.errors)

    def test_never_raises(self):
        """Deeply wrong payloads are reported, not raised."""
        result = validate_payload({"activities": "nope", "settings": 1}, 2)
        assert isinstance(result, ValidationFailure)
        assert result.errors


# ==============================================================================
# MIGRATION
# ==============================================================================


class TestResolveSchemaVersion:
    """Tests for resolve_schema_version()."""

    def test_version_key(self):
        assert resolve_schema_version({"version": 2}) == 2

    def test_missing_version_is_one(self):
        assert resolve_schema_version({"activities": []}) == 1

    def test_schema_version_key_wins(self):
        assert resolve_schema_version({"app": "haku", "version": "1.0.1", "schemaVersion": 2}) == 2

    def test_legacy_export_snapshot_is_one(self):
        """Snapshots without schemaVersion predate schema 2."""
        assert resolve_schema_version({"app": "haku", "version": "0.9.0"}) == 1

    def test_unknown_tag_returned_unchecked(self):
        assert resolve_schema_version({"version": "x"}) == "x"


class TestMigratePersistedState:
    """Tests for migrate_persisted_state()."""

    def test_current_version_passes_through(self, v2_payload):
        state = migrate_persisted_state(v2_payload)
        assert isinstance(state, PersistedState)
        assert [a.id for a in state.activities] == ["imported-1", "imported-2"]
        assert state.activities[1].repeat == "daily"
        assert state.settings.week_start == "sunday"

    def test_idempotent_on_current_version(self, v2_payload):
        """Migrating a migrated state again changes nothing."""
        once = migrate_persisted_state(v2_payload)
        twice = migrate_persisted_state(to_record(once))
        assert twice == once

    def test_v1_upgrades_to_v2(self, v1_payload):
        """The step adds repeat "none" to every activity and nothing else."""
        state = migrate_persisted_state(v1_payload)
        assert state is not None
        assert [a.repeat for a in state.activities] == ["none", "none"]
        assert state.activities[1].time == "09:00"
        assert state.activities[1].duration_minutes == 15

    def test_v1_chain_equals_hand_built_v2(self, v1_payload, v2_payload):
        """Upgrading v1 matches the equivalent v2 payload with repeat "none"."""
        for activity in v2_payload["activities"]:
            activity["repeat"] = "none"
        assert migrate_persisted_state(v1_payload) == migrate_persisted_state(v2_payload)

    def test_v1_without_lists(self, v1_payload):
        del v1_payload["lists"]
        state = migrate_persisted_state(v1_payload)
        assert state is not None
        assert state.lists.version == 1

    def test_missing_version_treated_as_v1(self, v1_payload):
        del v1_payload["version"]
        state = migrate_persisted_state(v1_payload)
        assert state is not None
        assert state.activities[0].repeat == "none"

    def test_export_snapshot(self, v2_payload):
        """Export snapshots migrate using schemaVersion and ignore metadata."""
        snapshot = {
            "app": "haku",
            "version": "1.0.1",
            "schemaVersion": 2,
            "exportedAt": "2026-02-01T01:00:00.000Z",
            **{k: v for k, v in v2_payload.items() if k != "version"},
        }
        state = migrate_persisted_state(snapshot)
        assert state == migrate_persisted_state(v2_payload)

    @pytest.mark.parametrize("version", [0, 3, 999, "x", "2", 2.0, True, None])
    def test_unsupported_versions_rejected(self, v2_payload, version):
        v2_payload["version"] = version
        assert migrate_persisted_state(v2_payload) is None

    @pytest.mark.parametrize("raw", [None, [], "state", 1, True])
    def test_non_object_rejected(self, raw):
        assert migrate_persisted_state(raw) is None

    def test_invalid_v1_rejected(self, v1_payload):
        v1_payload["activities"][0]["isDone"] = "yes"
        assert migrate_persisted_state(v1_payload) is None

    def test_duplicate_ids_rejected(self, v2_payload):
        v2_payload["activities"][1]["id"] = "imported-1"
        assert migrate_persisted_state(v2_payload) is None

    def test_invalid_intermediate_result_rejected(self, v1_payload, monkeypatch):
        """A step producing an invalid next-version payload rejects the whole input."""
        def broken_step(state):
            data = migrate_v1_to_v2(state)
            data["activities"][0]["repeat"] = "fortnightly"
            return data

        monkeypatch.setitem(MIGRATIONS, 1, broken_step)
        assert migrate_persisted_state(v1_payload) is None

    def test_step_does_not_mutate_input(self, v1_payload, clone):
        original = clone(v1_payload)
        migrate_persisted_state(v1_payload)
        assert v1_payload == original

    def test_v1_recorded_repeat_is_kept(self, v1_payload):
        """Version 1 activities that already carry a repeat pattern keep it."""
        v1_payload["activities"][1]["repeat"] = "daily"
        state = migrate_persisted_state(v1_payload)
        assert state is not None
        assert [a.repeat for a in state.activities] == ["none", "daily"]

    def test_legacy_snapshot_keeps_repeat(self, v1_payload):
        """A legacy export snapshot has no schemaVersion but may carry repeats."""
        snapshot = {
            "app": "haku",
            "version": "1.0.0",
            "exportedAt": "2026-02-01T01:00:00.000Z",
            **{k: v for k, v in v1_payload.items() if k != "version"},
        }
        snapshot["activities"][1]["repeat"] = "weekly"
        state = migrate_persisted_state(snapshot)
        assert state is not None
        assert state.activities[1].repeat == "weekly"

    def test_v1_null_repeat_becomes_none(self, v1_payload):
        v1_payload["activities"][0]["repeat"] = None
        state = migrate_persisted_state(v1_payload)
        assert state.activities[0].repeat == "none"

    def test_v1_unknown_repeat_rejected(self, v1_payload):
        v1_payload["activities"][0]["repeat"] = "yearly"
        assert migrate_persisted_state(v1_payload) is None
