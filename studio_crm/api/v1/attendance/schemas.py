from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from studio_crm.core.enums import AttendanceStatus

from studio_crm.api.v1.enrollments.schemas import StudentSummary
from studio_crm.api.v1.sessions.schemas import ClassSessionResponse


class AttendanceRecordResponse(BaseModel):
    id: UUID
    class_session_id: UUID
    student_id: UUID
    status: AttendanceStatus
    marked_at: datetime
    student: StudentSummary


class ExpectedStudent(BaseModel):
    student_id: UUID
    student: StudentSummary
    enrollment_id: UUID


class SessionAttendanceRow(BaseModel):
    """Merged row: one per expected or recorded student. status=None means not marked."""

    student_id: UUID
    student: StudentSummary
    status: Optional[AttendanceStatus] = None
    record_id: Optional[UUID] = None
    marked_at: Optional[datetime] = None
    expected: bool = True


class SessionAttendanceResponse(BaseModel):
    session_id: UUID
    expected: List[ExpectedStudent]
    rows: List[SessionAttendanceRow]


class AttendanceEntry(BaseModel):
    """Single entry in a bulk update. status is a plain string so a bad value is rejected for the whole batch."""

    student_id: UUID
    status: str = Field(..., description="present, absent, excused, late")


class AttendanceBulkUpdate(BaseModel):
    entries: List[AttendanceEntry]


class AttendanceBulkUpdateResponse(BaseModel):
    updated: int
    created: int
    message: str = "Attendance updated"


class MissingAttendanceSession(BaseModel):
    session: ClassSessionResponse
    expected_count: int
    missing_count: int


class MissingAttendanceResponse(BaseModel):
    sessions: List[MissingAttendanceSession]


class StudentAttendanceHistoryItem(BaseModel):
    id: UUID
    status: AttendanceStatus
    marked_at: datetime
    session: ClassSessionResponse


class StudentAttendanceHistoryResponse(BaseModel):
    student_id: UUID
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    records: List[StudentAttendanceHistoryItem]


class OrganizationAttendanceItem(BaseModel):
    """Attendance row with its session and student, for organization-wide listings."""

    id: UUID
    status: AttendanceStatus
    marked_at: datetime
    student: StudentSummary
    session: ClassSessionResponse


class OrganizationAttendanceResponse(BaseModel):
    records: List[OrganizationAttendanceItem]
