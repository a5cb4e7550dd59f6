"""
Pydantic models for Haku application state.

Defines the current-version activity, settings and lists structures. All
models validate strictly: values are never coerced between types and enum
fields only accept their known values.
"""

from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from haku.utils.datetime_utils import is_iso_date, is_iso_timestamp


Bucket = Literal["inbox", "later", "scheduled"]
RepeatPattern = Literal["none", "daily", "weekly", "monthly"]
WeekStart = Literal["sunday", "monday"]
ThemeMode = Literal["system", "light", "dark"]

TIME_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"


class HakuModel(BaseModel):
    """Base model: strict types, camelCase on the wire, unknown keys ignored."""

    model_config = ConfigDict(
        strict=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict:
        """Serialize using the wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)


class ActivityBase(HakuModel):
    """
    Fields shared by every schema version of an activity.

    Schema version 1 activities have exactly these fields.
    """

    id: str = Field(..., description="Unique identifier")
    title: str = Field(..., description="Short description of the activity")
    bucket: Bucket = Field(..., description="Where the activity lives")
    date: Optional[str] = Field(..., description="YYYY-MM-DD for scheduled items")
    time: Optional[str] = Field(..., pattern=TIME_PATTERN, description="24h HH:MM start time")
    duration_minutes: Optional[int] = Field(..., ge=0, description="Duration in whole minutes")
    note: Optional[str] = Field(..., description="Free-text note")
    is_done: bool = Field(..., description="Completion flag")
    order_index: Optional[int] = Field(..., description="Manual ordering hint")
    created_at: str = Field(..., description="ISO-8601 creation timestamp")
    updated_at: str = Field(..., description="ISO-8601 last update timestamp")

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_iso_date(v):
            raise ValueError(f"Invalid ISO date: {v!r}")
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        if not is_iso_timestamp(v):
            raise ValueError(f"Invalid ISO-8601 timestamp: {v!r}")
        return v

    @property
    def is_anchored(self) -> bool:
        """True when the activity has a start time."""
        return self.time is not None

    @property
    def is_scheduled(self) -> bool:
        """True when the activity is scheduled on a specific date."""
        return self.bucket == "scheduled" and self.date is not None

    @property
    def has_duration(self) -> bool:
        return self.duration_minutes is not None and self.duration_minutes > 0


class Activity(ActivityBase):
    """
    A single piece of work (task or event) in the current schema.

    Adds the repeat pattern introduced in schema version 2.
    """

    repeat: RepeatPattern = Field(..., description="Recurrence of an anchored activity")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "activity_1769907600000_0",
                "title": "Morning run",
                "bucket": "scheduled",
                "date": "2026-02-01",
                "time": "07:00",
                "durationMinutes": 45,
                "repeat": "daily",
                "note": "",
                "isDone": False,
                "orderIndex": None,
                "createdAt": "2026-02-01T01:00:00.000Z",
                "updatedAt": "2026-02-01T01:00:00.000Z",
            }
        }
    )


class Settings(HakuModel):
    """User preferences."""

    week_start: WeekStart = Field(..., description="First day of the week")
    theme_mode: ThemeMode = Field(..., description="Colour scheme")


class ListsState(BaseModel):
    """
    List configuration.

    Versioned independently of the persisted state. Only the ``version`` key
    is checked; any other keys are kept as they are.
    """

    model_config = ConfigDict(strict=True, extra="allow")

    version: int = Field(..., ge=1, description="Lists schema version")


def default_settings() -> Settings:
    return Settings(week_start="monday", theme_mode="system")


def default_lists_state() -> ListsState:
    return ListsState(version=1)


def ensure_unique_ids(activities: list) -> list:
    """
    Reject activity sequences that repeat an id.

    Raises:
        ValueError: If two activities share an id
    """
    seen = set()
    for activity in activities:
        if activity.id in seen:
            raise ValueError(f"Duplicate activity id: {activity.id!r}")
        seen.add(activity.id)
    return activities


class PersistedState(HakuModel):
    """
    The application state that is persisted and imported as a whole.

    The schema version is not part of this value; it is attached when the
    state is serialized.
    """

    activities: Annotated[List[Activity], AfterValidator(ensure_unique_ids)] = Field(
        default_factory=list, description="All activities, in stored order"
    )
    lists: ListsState = Field(default_factory=default_lists_state)
    settings: Settings = Field(default_factory=default_settings)


def default_persisted_state() -> PersistedState:
    """Fresh state used on first run and after a reset."""
    return PersistedState(
        activities=[],
        lists=default_lists_state(),
        settings=default_settings(),
    )
