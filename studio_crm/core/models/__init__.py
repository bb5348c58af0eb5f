from studio_crm.core.models.organization import Organization
from studio_crm.core.models.student import Student
from studio_crm.core.models.teacher import Teacher
from studio_crm.core.models.venue import Venue
from studio_crm.core.models.group import Group
from studio_crm.core.models.enrollment import Enrollment
from studio_crm.core.models.schedule import ScheduleSlot, ScheduleVersion
from studio_crm.core.models.class_session import ClassSession
from studio_crm.core.models.attendance_record import AttendanceRecord

__all__ = [
    "AttendanceRecord",
    "ClassSession",
    "Enrollment",
    "Group",
    "Organization",
    "ScheduleSlot",
    "ScheduleVersion",
    "Student",
    "Teacher",
    "Venue",
]
