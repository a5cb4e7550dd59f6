"""
Schema migration for persisted and imported state.

Older payloads are upgraded one version at a time through the registered
chain of pairwise steps (v1 -> v2 -> ... -> current). Each step's output is
validated against the next version before the following step runs, so a
payload is either fully upgraded or rejected.
"""

from typing import Any, Callable, Dict, Optional

from haku.logging_config import get_logger
from haku.models import HakuModel, PersistedState
from haku.services.validation import ValidationFailure, validate_payload
from haku.state_schema import (
    APP_NAME,
    CURRENT_SCHEMA_VERSION,
    SCHEMA_VERSIONS,
    PersistedStateV1,
    PersistedStateV2,
    is_supported_version,
)

logger = get_logger(__name__)

MigrationStep = Callable[[HakuModel], Dict[str, Any]]


def migrate_v1_to_v2(state: PersistedStateV1) -> Dict[str, Any]:
    """
    Upgrade a schema 1 payload to schema 2.

    - Every activity without a repeat pattern gets ``repeat: "none"``;
      recorded patterns are kept
    - ``lists`` is always present (schema 1 already defaulted it)

    Args:
        state: Validated schema 1 state

    Returns:
        Raw schema 2 payload, not yet validated
    """
    data = state.to_json_dict()
    for activity in data["activities"]:
        activity["repeat"] = activity.get("repeat") or "none"
    data["version"] = 2
    return data


# Upgrade step keyed by the version it upgrades *from*
MIGRATIONS: Dict[int, MigrationStep] = {
    1: migrate_v1_to_v2,
}


def _check_migration_chain() -> None:
    """Every schema below the current one must have an upgrade step."""
    expected = list(range(1, CURRENT_SCHEMA_VERSION + 1))
    if sorted(SCHEMA_VERSIONS) != expected:
        raise RuntimeError(
            f"Schema registry must cover versions {expected}, has {sorted(SCHEMA_VERSIONS)}"
        )
    missing = [v for v in expected[:-1] if v not in MIGRATIONS]
    if missing:
        raise RuntimeError(f"No migration step registered for schema versions {missing}")


_check_migration_chain()


def resolve_schema_version(raw: Dict[str, Any]) -> Any:
    """
    Determine which schema a raw payload claims to follow.

    Rules:
    - ``schemaVersion`` wins when present (export snapshots)
    - Export snapshots without it (``app`` marker plus a string app
      ``version``) predate schema 2 and are schema 1
    - Otherwise ``version``, defaulting to 1 when absent (earliest format)

    Args:
        raw: Parsed payload object

    Returns:
        The claimed version tag, unchecked; callers test it with
        is_supported_version()
    """
    if "schemaVersion" in raw:
        return raw["schemaVersion"]
    if raw.get("app") == APP_NAME and isinstance(raw.get("version"), str):
        return 1
    return raw.get("version", 1)


def migrate_persisted_state(raw: Any) -> Optional[PersistedState]:
    """
    Validate and migrate a raw payload to the current schema.

    Args:
        raw: Parsed, untrusted value

    Returns:
        The current-version state, or None if the payload is not an object,
        claims an unknown version, or fails validation at any step
    """
    if not isinstance(raw, dict):
        logger.debug(f"Migration rejected non-object payload: {type(raw).__name__}")
        return None

    version = resolve_schema_version(raw)
    if not is_supported_version(version):
        logger.info(f"Migration rejected unsupported schema version: {version!r}")
        return None

    result = validate_payload(raw, version)

    while True:
        if isinstance(result, ValidationFailure):
            logger.info(f"Migration rejected invalid payload at {result}")
            return None

        if isinstance(result, PersistedStateV2):
            if version != result.version:
                logger.info(f"Migrated state from schema {version} to {result.version}")
            return result.to_state()

        step = MIGRATIONS[result.version]
        result = validate_payload(step(result), result.version + 1)
