from enum import Enum


class GroupStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class ScheduleRecurrence(str, Enum):
    ONE_TIME = "one_time"
    WEEKLY = "weekly"
    TWICE_WEEKLY = "twice_weekly"


class ClassSessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    HELD = "held"
    CANCELLED = "cancelled"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    EXCUSED = "excused"
    LATE = "late"


# Number of slots each recurrence must carry.
RECURRENCE_SLOT_COUNT = {
    ScheduleRecurrence.ONE_TIME: 1,
    ScheduleRecurrence.WEEKLY: 1,
    ScheduleRecurrence.TWICE_WEEKLY: 2,
}


def enum_values(enum_cls) -> list:
    """Column values for sqlalchemy.Enum (store .value, not the member name)."""
    return [member.value for member in enum_cls]
