"""
Application store for Haku.

Holds the in-memory ``activities``, ``lists`` and ``settings`` and the
mutations the planner applies to them. The store is an explicit object that
is passed to whatever needs it (import service, auto-persist, CLI); there is
no process-wide instance.
"""

from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from haku.logging_config import get_logger
from haku.models import (
    Activity,
    Bucket,
    ListsState,
    PersistedState,
    RepeatPattern,
    Settings,
    ThemeMode,
    WeekStart,
    default_persisted_state,
)
from haku.utils.datetime_utils import now_iso, today_iso_date, week_dates

logger = get_logger(__name__)

Listener = Callable[[], None]

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 300
DURATION_STEP_MINUTES = 15

_UPDATABLE_FIELDS = {
    "title",
    "bucket",
    "date",
    "time",
    "duration_minutes",
    "repeat",
    "note",
    "is_done",
    "order_index",
}


def normalize_duration(value: Optional[int]) -> Optional[int]:
    """
    Keep durations between 15 and 300 minutes in 15 minute steps.

    Returns:
        The duration, or None if it is missing or outside the allowed grid
    """
    if value is None:
        return None
    if (
        MIN_DURATION_MINUTES <= value <= MAX_DURATION_MINUTES
        and value % DURATION_STEP_MINUTES == 0
    ):
        return value
    return None


def normalize_repeat(value: Optional[str]) -> RepeatPattern:
    if value in ("daily", "weekly", "monthly"):
        return value
    return "none"


def _revise(activity: Activity, **changes: Any) -> Activity:
    """Return a validated copy of an activity with changes and a fresh updated_at."""
    return Activity.model_validate(
        {**activity.model_dump(), **changes, "updated_at": now_iso()}
    )


def _unchanged(activity: Activity, changes: Dict[str, Any]) -> bool:
    return all(getattr(activity, name) == value for name, value in changes.items())


class ActivityStore:
    """
    In-memory application state.

    Listeners registered with subscribe() are called after every change,
    including a wholesale replace_state().
    """

    def __init__(self, state: Optional[PersistedState] = None) -> None:
        """
        Initialize the store.

        Args:
            state: Initial state, defaults to an empty planner
        """
        state = state or default_persisted_state()
        self.activities: List[Activity] = list(state.activities)
        self.lists: ListsState = state.lists
        self.settings: Settings = state.settings
        self._listeners: List[Listener] = []

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # =========================================================================
    # WHOLE-STATE OPERATIONS
    # =========================================================================

    def replace_state(self, state: PersistedState) -> None:
        """
        Replace activities, lists and settings wholesale.

        Nothing is merged: the previous values are discarded entirely.

        Raises:
            TypeError: If state is not a PersistedState
        """
        if not isinstance(state, PersistedState):
            raise TypeError(f"Expected PersistedState, got {type(state).__name__}")

        self.activities = list(state.activities)
        self.lists = state.lists
        self.settings = state.settings
        logger.debug(f"Store replaced with {len(self.activities)} activities")
        self._notify()

    def to_persisted_state(self) -> PersistedState:
        """Snapshot the current store contents."""
        return PersistedState(
            activities=list(self.activities),
            lists=self.lists,
            settings=self.settings,
        )

    async def reset_all_data(self, gateway) -> bool:
        """
        Clear the durable copy and restore the default state.

        The store is only reset once the durable slot is gone; if clearing
        fails, both copies keep the current data.

        Args:
            gateway: PersistenceGateway owning the durable slot

        Returns:
            True if the data was reset
        """
        if not await gateway.clear():
            logger.warning("Reset aborted: stored state could not be cleared")
            return False

        self.replace_state(default_persisted_state())
        logger.info("All data reset to defaults")
        return True

    # =========================================================================
    # ACTIVITY MUTATIONS
    # =========================================================================

    def get_activity(self, activity_id: str) -> Optional[Activity]:
        return next((a for a in self.activities if a.id == activity_id), None)

    def _update_where(self, predicate: Callable[[Activity], bool], revise: Callable[[Activity], Activity]) -> bool:
        """
        Apply revise() to every matching activity.

        Returns:
            True if any activity changed (listeners are notified once)
        """
        changed = False
        activities = []
        for activity in self.activities:
            if predicate(activity):
                revised = revise(activity)
                if revised is not activity:
                    changed = True
                activities.append(revised)
            else:
                activities.append(activity)

        if changed:
            self.activities = activities
            self._notify()
        return changed

    def _update_one(self, activity_id: str, revise: Callable[[Activity], Activity]) -> bool:
        return self._update_where(lambda a: a.id == activity_id, revise)

    def add_activity(
        self,
        title: str,
        bucket: Bucket = "inbox",
        date: Optional[str] = None,
        time: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        repeat: Optional[RepeatPattern] = None,
        note: Optional[str] = None,
    ) -> Activity:
        """
        Create a new activity at the end of the list.

        Date and time only apply to scheduled activities; duration and repeat
        only apply when a scheduled activity also has a time.

        Returns:
            The created activity

        Raises:
            pydantic.ValidationError: If a field has an invalid value
        """
        now = now_iso()
        scheduled = bucket == "scheduled"
        date = date if scheduled else None
        time = time if scheduled else None
        anchored = scheduled and time is not None

        activity = Activity(
            id=f"activity_{uuid4().hex}",
            title=title.strip(),
            bucket=bucket,
            date=date,
            time=time,
            duration_minutes=normalize_duration(duration_minutes) if anchored else None,
            repeat=normalize_repeat(repeat) if anchored else "none",
            note=note,
            is_done=False,
            order_index=None,
            created_at=now,
            updated_at=now,
        )

        self.activities = [*self.activities, activity]
        logger.debug(f"Added activity {activity.id} to {bucket}")
        self._notify()
        return activity

    def update_activity(self, activity_id: str, **updates: Any) -> bool:
        """
        Update fields of an activity, keeping its invariants.

        A done activity is always scheduled; time, duration and repeat are
        cleared unless the activity is scheduled with a time.

        Args:
            activity_id: Activity to update
            **updates: Any of title, bucket, date, time, duration_minutes,
                repeat, note, is_done, order_index

        Returns:
            True if the activity changed

        Raises:
            ValueError: If an unknown field is passed
        """
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        if not updates:
            return False

        def revise(activity: Activity) -> Activity:
            is_done = updates.get("is_done", activity.is_done)
            requested_bucket = updates.get("bucket") or activity.bucket
            bucket = "scheduled" if is_done else requested_bucket

            date = (updates.get("date") or activity.date) if bucket == "scheduled" else None
            raw_time = updates["time"] if "time" in updates else activity.time
            anchored = bucket == "scheduled" and raw_time is not None
            raw_duration = (
                updates["duration_minutes"] if "duration_minutes" in updates
                else activity.duration_minutes
            )
            raw_repeat = updates["repeat"] if "repeat" in updates else activity.repeat

            changes = {
                "bucket": bucket,
                "date": date,
                "time": raw_time if anchored else None,
                "duration_minutes": normalize_duration(raw_duration) if anchored else None,
                "repeat": normalize_repeat(raw_repeat) if anchored else "none",
                "title": updates.get("title") or activity.title,
                "note": updates["note"] if "note" in updates else activity.note,
                "is_done": is_done,
                "order_index": updates["order_index"] if "order_index" in updates else activity.order_index,
            }
            if _unchanged(activity, changes):
                return activity
            return _revise(activity, **changes)

        return self._update_one(activity_id, revise)

    def delete_activity(self, activity_id: str) -> bool:
        """Remove an activity. Returns True if it existed."""
        remaining = [a for a in self.activities if a.id != activity_id]
        if len(remaining) == len(self.activities):
            return False
        self.activities = remaining
        self._notify()
        return True

    def _move_to_bucket(self, activity_id: str, bucket: Bucket) -> bool:
        def revise(activity: Activity) -> Activity:
            if activity.is_done:
                return activity
            changes = {
                "bucket": bucket,
                "date": None,
                "time": None,
                "duration_minutes": None,
                "repeat": "none",
            }
            if activity.bucket == bucket and activity.date is None and activity.time is None:
                return activity
            return _revise(activity, **changes)

        return self._update_one(activity_id, revise)

    def move_to_inbox(self, activity_id: str) -> bool:
        """Unschedule an open activity into the inbox."""
        return self._move_to_bucket(activity_id, "inbox")

    def move_to_later(self, activity_id: str) -> bool:
        """Defer an open activity to the later bucket."""
        return self._move_to_bucket(activity_id, "later")

    def schedule_activity(self, activity_id: str, date: str) -> bool:
        """Schedule an activity on a date (YYYY-MM-DD)."""
        def revise(activity: Activity) -> Activity:
            if activity.bucket == "scheduled" and activity.date == date:
                return activity
            return _revise(activity, bucket="scheduled", date=date)

        return self._update_one(activity_id, revise)

    def set_time(
        self,
        activity_id: str,
        time: Optional[str],
        duration_minutes: Optional[int] = None,
        repeat: Optional[RepeatPattern] = None,
    ) -> bool:
        """
        Set or clear the start time of a scheduled activity.

        Duration and repeat default to the activity's current values and are
        dropped when the activity ends up without a time.
        """
        def revise(activity: Activity) -> Activity:
            anchored = activity.bucket == "scheduled" and time is not None
            raw_duration = duration_minutes if duration_minutes is not None else activity.duration_minutes
            changes = {
                "time": time if anchored else None,
                "duration_minutes": normalize_duration(raw_duration) if anchored else None,
                "repeat": normalize_repeat(repeat or activity.repeat) if anchored else "none",
            }
            if _unchanged(activity, changes):
                return activity
            return _revise(activity, **changes)

        return self._update_one(activity_id, revise)

    def toggle_done(self, activity_id: str) -> bool:
        """
        Flip the done flag.

        Completing an inbox or later activity schedules it for today.
        """
        def revise(activity: Activity) -> Activity:
            is_done = not activity.is_done
            if is_done and activity.bucket in ("inbox", "later"):
                return _revise(
                    activity,
                    bucket="scheduled",
                    date=today_iso_date(),
                    time=None,
                    duration_minutes=None,
                    repeat="none",
                    order_index=None,
                    is_done=True,
                )
            return _revise(activity, is_done=is_done)

        return self._update_one(activity_id, revise)

    def _reorder(self, predicate: Callable[[Activity], bool], ordered_ids: List[str]) -> bool:
        order = {activity_id: index for index, activity_id in enumerate(ordered_ids)}

        def revise(activity: Activity) -> Activity:
            index = order.get(activity.id)
            if index is None or activity.order_index == index:
                return activity
            return _revise(activity, order_index=index)

        return self._update_where(predicate, revise)

    def reorder_in_day(self, date: str, ordered_ids: List[str]) -> bool:
        """Assign order indexes to the activities of one day."""
        return self._reorder(lambda a: a.date == date, ordered_ids)

    def reorder_in_bucket(self, bucket: Bucket, ordered_ids: List[str]) -> bool:
        """
        Assign order indexes within the inbox or later bucket.

        Raises:
            ValueError: If bucket is "scheduled" (use reorder_in_day)
        """
        if bucket not in ("inbox", "later"):
            raise ValueError(f"Cannot reorder bucket {bucket!r}")
        return self._reorder(lambda a: a.bucket == bucket, ordered_ids)

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def set_week_start(self, week_start: WeekStart) -> None:
        self.settings = Settings(week_start=week_start, theme_mode=self.settings.theme_mode)
        self._notify()

    def set_theme_mode(self, theme_mode: ThemeMode) -> None:
        self.settings = Settings(week_start=self.settings.week_start, theme_mode=theme_mode)
        self._notify()


# =============================================================================
# SELECTORS
# =============================================================================


def _manual_order_key(activity: Activity):
    # Manually ordered activities first, then by creation time
    return (
        activity.order_index is None,
        activity.order_index if activity.order_index is not None else 0,
        activity.created_at,
    )


def get_inbox_activities(activities: List[Activity]) -> List[Activity]:
    return sorted((a for a in activities if a.bucket == "inbox"), key=_manual_order_key)


def get_later_activities(activities: List[Activity]) -> List[Activity]:
    return sorted((a for a in activities if a.bucket == "later"), key=_manual_order_key)


def get_activities_for_date(activities: List[Activity], date: str) -> List[Activity]:
    return [a for a in activities if a.is_scheduled and a.date == date]


def get_activities_for_week(activities: List[Activity], week_start_date: str) -> Dict[str, List[Activity]]:
    """
    Group scheduled activities by day for the week starting at a date.

    Returns:
        Mapping of each of the seven dates to its activities
    """
    return {day: get_activities_for_date(activities, day) for day in week_dates(week_start_date)}


async def load_store(gateway) -> ActivityStore:
    """
    Build the store at startup from the durable copy.

    The durable copy is the source of truth; defaults are used when it is
    missing or unreadable.

    Args:
        gateway: PersistenceGateway to load from

    Returns:
        Populated ActivityStore
    """
    state = await gateway.load()
    if state is None:
        logger.info("No usable stored state, starting with defaults")
        return ActivityStore()
    logger.info(f"Loaded stored state with {len(state.activities)} activities")
    return ActivityStore(state)
