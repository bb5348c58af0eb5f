"""Slot rules and recurrence expansion. Pure functions, no database access."""

import re
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, List, NamedTuple, Optional, Union

from studio_crm.core.enums import RECURRENCE_SLOT_COUNT, ScheduleRecurrence
from studio_crm.core.exceptions import ValidationError
from studio_crm.core.intervals import DateInterval

TIME_REGEX = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")

MAX_DURATION_HOURS = 24
MINUTES_PER_DAY = 24 * 60


class SlotSpec(NamedTuple):
    day_of_week: int  # 1=Monday .. 7=Sunday
    start_time: time
    sort_order: int


class SessionCandidate(NamedTuple):
    date: date
    start_time: time
    end_time: time


def parse_hhmm(value: Union[str, time]) -> time:
    """Parse a 24-hour HH:mm string. time objects pass through."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str) or not TIME_REGEX.match(value.strip()):
        raise ValidationError(f"Invalid time {value!r}: expected HH:mm")
    return datetime.strptime(value.strip(), "%H:%M").time()


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def iso_weekday(value: date) -> int:
    return value.isoweekday()


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every day from start to end, both included."""
    return DateInterval(start, end).days()


def add_hours(start: time, duration_hours: float) -> time:
    """start + duration. Sessions crossing midnight are not supported."""
    total = start.hour * 60 + start.minute + round(duration_hours * 60)
    if total >= MINUTES_PER_DAY:
        raise ValidationError(
            f"Session starting at {format_hhmm(start)} lasting {duration_hours}h would cross midnight"
        )
    return time(total // 60, total % 60)


def validate_duration(duration_hours: float) -> float:
    if duration_hours is None or duration_hours <= 0:
        raise ValidationError("Duration per session (hours) is required and must be positive")
    if duration_hours > MAX_DURATION_HOURS:
        raise ValidationError(f"Duration per session cannot exceed {MAX_DURATION_HOURS} hours")
    return float(duration_hours)


def validate_slots(recurrence: ScheduleRecurrence, slots: Iterable) -> List[SlotSpec]:
    """Check slot cardinality against the recurrence and normalise each slot.

    `slots` items expose day_of_week, start_time and an optional sort_order.
    """
    slots = list(slots or [])
    expected = RECURRENCE_SLOT_COUNT[ScheduleRecurrence(recurrence)]
    if len(slots) != expected:
        if expected == 2:
            raise ValidationError("Twice-weekly schedule must have exactly two slots")
        raise ValidationError("Weekly and one-time schedules must have exactly one slot")

    normalised: List[SlotSpec] = []
    for i, slot in enumerate(slots):
        dow = slot.day_of_week
        if isinstance(dow, bool) or not isinstance(dow, int) or dow < 1 or dow > 7:
            raise ValidationError(f"Slot {i + 1}: day_of_week must be 1-7 (Monday-Sunday)")
        try:
            start = parse_hhmm(slot.start_time)
        except ValidationError:
            raise ValidationError(f"Slot {i + 1}: start_time must be HH:mm")
        sort_order = slot.sort_order if getattr(slot, "sort_order", None) is not None else i
        normalised.append(SlotSpec(dow, start, sort_order))

    days = [s.day_of_week for s in normalised]
    if len(set(days)) != len(days):
        # (group, date) is the session key: two slots on one weekday would collide.
        raise ValidationError("Slots of one schedule must fall on different days of the week")
    return sorted(normalised, key=lambda s: s.sort_order)


def validate_slot_times(slots: Iterable[SlotSpec], duration_hours: float) -> None:
    for slot in slots:
        add_hours(slot.start_time, duration_hours)


def _first_matching_day(interval: DateInterval, day_of_week: int) -> Optional[date]:
    offset = (day_of_week - iso_weekday(interval.start)) % 7
    candidate = interval.start + timedelta(days=offset)
    if interval.end is not None and candidate > interval.end:
        return None
    return candidate


def expand_version(
    recurrence: ScheduleRecurrence,
    effective: DateInterval,
    slots: Iterable[SlotSpec],
    duration_hours: float,
    window: DateInterval,
) -> List[SessionCandidate]:
    """Concrete sessions a schedule version yields inside `window`, ordered by date.

    A one-time version occurs once: the first day on or after effective_from
    matching its slot. It is only returned when that day falls in the window.
    """
    slots = list(slots)
    candidates: List[SessionCandidate] = []

    if ScheduleRecurrence(recurrence) == ScheduleRecurrence.ONE_TIME:
        for slot in slots:
            occurs_on = _first_matching_day(effective, slot.day_of_week)
            if occurs_on is not None and window.is_active_on(occurs_on):
                candidates.append(
                    SessionCandidate(occurs_on, slot.start_time, add_hours(slot.start_time, duration_hours))
                )
        return candidates

    clamped = effective.clamp(window)
    if clamped is None:
        return candidates
    by_day = {slot.day_of_week: slot for slot in slots}
    for day in iter_days(clamped.start, clamped.end):
        slot = by_day.get(iso_weekday(day))
        if slot is None:
            continue
        candidates.append(SessionCandidate(day, slot.start_time, add_hours(slot.start_time, duration_hours)))
    return candidates
