"""
Versioned schema for persisted and imported Haku state.

Every historical format of the persisted state has its own model tagged with a
literal ``version``. ``VersionedState`` is the discriminated union of all of
them and ``SCHEMA_VERSIONS`` maps each version number to its model. When the
schema changes, add a new model here, bump ``CURRENT_SCHEMA_VERSION`` and
register the upgrade step in ``haku.services.migration``.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import AfterValidator, Field

from haku.models import (
    Activity,
    ActivityBase,
    HakuModel,
    ListsState,
    PersistedState,
    RepeatPattern,
    Settings,
    default_lists_state,
    ensure_unique_ids,
)


CURRENT_SCHEMA_VERSION = 2

# Single durable slot holding the serialized state
STORAGE_KEY = "haku:v1:state"

# Marker on export snapshots
APP_NAME = "haku"


class ActivityV1(ActivityBase):
    """
    Activity as stored by schema version 1.

    Early version 1 data has no repeat pattern; later version 1 data already
    carries one.
    """

    repeat: Optional[RepeatPattern] = Field(default=None, description="Recurrence, if recorded")


class PersistedStateV1(HakuModel):
    """
    Schema version 1.

    ``lists`` was added late in the life of this version, so payloads without
    it are accepted and receive the default lists state.
    """

    version: Literal[1]
    activities: Annotated[List[ActivityV1], AfterValidator(ensure_unique_ids)]
    lists: ListsState = Field(default_factory=default_lists_state)
    settings: Settings


class PersistedStateV2(HakuModel):
    """
    Schema version 2 (current).

    Activities carry a ``repeat`` pattern and ``lists`` is required.
    """

    version: Literal[2]
    activities: Annotated[List[Activity], AfterValidator(ensure_unique_ids)]
    lists: ListsState
    settings: Settings

    def to_state(self) -> PersistedState:
        """Drop the version tag, yielding the in-memory state."""
        return PersistedState(
            activities=self.activities,
            lists=self.lists,
            settings=self.settings,
        )


VersionedState = Annotated[
    Union[PersistedStateV1, PersistedStateV2],
    Field(discriminator="version"),
]

SCHEMA_VERSIONS: Dict[int, Type[HakuModel]] = {
    1: PersistedStateV1,
    2: PersistedStateV2,
}


def current_version() -> int:
    """Return the schema version written by this build."""
    return CURRENT_SCHEMA_VERSION


def is_supported_version(version: Any) -> bool:
    """
    Check whether a version tag names a known schema.

    Args:
        version: Candidate version taken from untrusted input

    Returns:
        True only for integers (not booleans) registered in SCHEMA_VERSIONS
    """
    if isinstance(version, bool) or not isinstance(version, int):
        return False
    return version in SCHEMA_VERSIONS


def to_record(state: PersistedState) -> Dict[str, Any]:
    """
    Build the durable record for a state: the state's fields tagged with
    the current schema version.
    """
    return {"version": CURRENT_SCHEMA_VERSION, **state.to_json_dict()}
