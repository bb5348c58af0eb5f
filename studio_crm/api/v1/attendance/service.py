"""Attendance reconciliation: expected roster (from enrollments) versus recorded attendance."""

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.core.app_logger import get_logger
from studio_crm.core.enums import AttendanceStatus, ClassSessionStatus
from studio_crm.core.exceptions import NotFoundError, ValidationError
from studio_crm.core.models import AttendanceRecord, ClassSession, Student
from studio_crm.core.tenant_service import get_session, get_student
from studio_crm.db.transaction import atomic

from studio_crm.api.v1.enrollments import service as enrollments_service
from studio_crm.api.v1.enrollments.schemas import StudentSummary
from studio_crm.api.v1.sessions.service import session_to_response

from .schemas import (
    AttendanceBulkUpdateResponse,
    AttendanceRecordResponse,
    ExpectedStudent,
    MissingAttendanceSession,
    OrganizationAttendanceItem,
    SessionAttendanceResponse,
    SessionAttendanceRow,
    StudentAttendanceHistoryItem,
)

logger = get_logger("attendance")

VALID_STATUSES = ", ".join(s.value for s in AttendanceStatus)


def _student_summary(s: Student) -> StudentSummary:
    return StudentSummary(id=s.id, full_name=s.full_name, email=s.email, phone=s.phone)


def _check_range(date_from: Optional[date], date_to: Optional[date]) -> None:
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValidationError("date_from must be on or before date_to")


async def _records_for_session(
    db: AsyncSession,
    organization_id: UUID,
    session_id: UUID,
) -> List[Tuple[AttendanceRecord, Student]]:
    result = await db.execute(
        select(AttendanceRecord, Student)
        .join(Student, AttendanceRecord.student_id == Student.id)
        .where(
            AttendanceRecord.class_session_id == session_id,
            Student.organization_id == organization_id,
        )
        .order_by(Student.full_name)
    )
    return list(result.all())


async def get_attendance_by_session(
    db: AsyncSession,
    organization_id: UUID,
    session_id: UUID,
) -> List[AttendanceRecordResponse]:
    """Recorded attendance only."""
    await get_session(db, organization_id, session_id)
    return [
        AttendanceRecordResponse(
            id=rec.id,
            class_session_id=rec.class_session_id,
            student_id=rec.student_id,
            status=rec.status,
            marked_at=rec.marked_at,
            student=_student_summary(student),
        )
        for rec, student in await _records_for_session(db, organization_id, session_id)
    ]


async def get_attendance_for_session_with_expected(
    db: AsyncSession,
    organization_id: UUID,
    session_id: UUID,
) -> SessionAttendanceResponse:
    """Expected students merged with recorded attendance. Read-only.

    Grouped session: one row per student enrolled on the session date, status
    None when not marked, followed by recorded students who are no longer
    expected. Session without a group: the recorded attendees.
    """
    session = await get_session(db, organization_id, session_id)
    records = await _records_for_session(db, organization_id, session_id)

    def _row(rec: AttendanceRecord, student: Student, expected: bool) -> SessionAttendanceRow:
        return SessionAttendanceRow(
            student_id=student.id,
            student=_student_summary(student),
            status=rec.status,
            record_id=rec.id,
            marked_at=rec.marked_at,
            expected=expected,
        )

    if session.group_id is None:
        return SessionAttendanceResponse(
            session_id=session.id,
            expected=[],
            rows=[_row(rec, student, False) for rec, student in records],
        )

    enrollments = await enrollments_service.get_enrollments_by_group_on_date(
        db, organization_id, session.group_id, session.date
    )
    expected: List[ExpectedStudent] = []
    for e in enrollments:
        # Overlapping stints in one group are allowed; a student is expected once.
        if any(x.student_id == e.student_id for x in expected):
            continue
        expected.append(ExpectedStudent(student_id=e.student_id, student=e.student, enrollment_id=e.id))

    record_by_student: Dict[UUID, Tuple[AttendanceRecord, Student]] = {
        rec.student_id: (rec, student) for rec, student in records
    }
    rows: List[SessionAttendanceRow] = []
    for exp in expected:
        found = record_by_student.pop(exp.student_id, None)
        if found:
            rows.append(_row(found[0], found[1], True))
        else:
            rows.append(SessionAttendanceRow(student_id=exp.student_id, student=exp.student))
    for rec, student in record_by_student.values():
        rows.append(_row(rec, student, False))

    return SessionAttendanceResponse(session_id=session.id, expected=expected, rows=rows)


def _validate_entries(entries: Iterable) -> List[Tuple[UUID, AttendanceStatus]]:
    validated: List[Tuple[UUID, AttendanceStatus]] = []
    seen = set()
    for i, entry in enumerate(entries):
        student_id = getattr(entry, "student_id", None)
        if not isinstance(student_id, UUID):
            raise ValidationError(f"Entry {i + 1}: student_id is required")
        try:
            entry_status = AttendanceStatus(entry.status)
        except ValueError:
            raise ValidationError(f"Entry {i + 1}: status must be one of {VALID_STATUSES}")
        if student_id in seen:
            raise ValidationError(f"Entry {i + 1}: student {student_id} appears more than once")
        seen.add(student_id)
        validated.append((student_id, entry_status))
    return validated


async def bulk_upsert_attendance_for_session(
    db: AsyncSession,
    organization_id: UUID,
    session_id: UUID,
    entries: Iterable,
) -> AttendanceBulkUpdateResponse:
    """Set attendance for many students in one transaction.

    Every entry is checked before anything is written; one bad entry rejects the
    whole batch and leaves stored attendance untouched.
    """
    session = await get_session(db, organization_id, session_id)
    validated = _validate_entries(entries)
    if not validated:
        return AttendanceBulkUpdateResponse(updated=0, created=0)

    student_ids = [student_id for student_id, _ in validated]
    known = set(
        (
            await db.execute(
                select(Student.id).where(
                    Student.id.in_(student_ids),
                    Student.organization_id == organization_id,
                )
            )
        ).scalars().all()
    )
    for student_id in student_ids:
        if student_id not in known:
            raise NotFoundError(f"Student {student_id} not found")

    existing = {
        rec.student_id: rec
        for rec in (
            await db.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.class_session_id == session.id,
                    AttendanceRecord.student_id.in_(student_ids),
                )
            )
        ).scalars().all()
    }

    updated = created = 0
    now = datetime.utcnow()
    async with atomic(db, "Attendance update failed"):
        for student_id, entry_status in validated:
            rec = existing.get(student_id)
            if rec is not None:
                rec.status = entry_status
                rec.marked_at = now
                updated += 1
            else:
                db.add(
                    AttendanceRecord(
                        class_session_id=session.id,
                        student_id=student_id,
                        status=entry_status,
                        marked_at=now,
                    )
                )
                created += 1
    logger.info("Attendance for session %s: %d updated, %d created", session_id, updated, created)
    return AttendanceBulkUpdateResponse(updated=updated, created=created)


async def get_sessions_with_missing_attendance(
    db: AsyncSession,
    organization_id: UUID,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[MissingAttendanceSession]:
    """Held group sessions where at least one expected student has no record, newest first.

    One roster lookup per session; fine for a studio's volume of sessions.
    """
    _check_range(date_from, date_to)
    stmt = select(ClassSession).where(
        ClassSession.organization_id == organization_id,
        ClassSession.status == ClassSessionStatus.HELD,
        ClassSession.group_id.is_not(None),
    )
    if date_from is not None:
        stmt = stmt.where(ClassSession.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(ClassSession.date <= date_to)
    stmt = stmt.order_by(ClassSession.date.desc(), ClassSession.start_time.desc())
    sessions = (await db.execute(stmt)).scalars().all()

    out: List[MissingAttendanceSession] = []
    for sess in sessions:
        enrollments = await enrollments_service.get_enrollments_by_group_on_date(
            db, organization_id, sess.group_id, sess.date
        )
        expected_ids = {e.student_id for e in enrollments}
        if not expected_ids:
            continue
        recorded_ids = set(
            (
                await db.execute(
                    select(AttendanceRecord.student_id).where(AttendanceRecord.class_session_id == sess.id)
                )
            ).scalars().all()
        )
        missing = expected_ids - recorded_ids
        if missing:
            out.append(
                MissingAttendanceSession(
                    session=session_to_response(sess),
                    expected_count=len(expected_ids),
                    missing_count=len(missing),
                )
            )
    return out


async def get_attendance_by_student(
    db: AsyncSession,
    organization_id: UUID,
    student_id: UUID,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[StudentAttendanceHistoryItem]:
    """A student's attendance history, newest session first."""
    await get_student(db, organization_id, student_id)
    _check_range(date_from, date_to)
    stmt = (
        select(AttendanceRecord, ClassSession)
        .join(ClassSession, AttendanceRecord.class_session_id == ClassSession.id)
        .where(
            AttendanceRecord.student_id == student_id,
            ClassSession.organization_id == organization_id,
        )
    )
    if date_from is not None:
        stmt = stmt.where(ClassSession.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(ClassSession.date <= date_to)
    stmt = stmt.order_by(ClassSession.date.desc(), AttendanceRecord.marked_at.desc())
    result = await db.execute(stmt)
    return [
        StudentAttendanceHistoryItem(
            id=rec.id,
            status=rec.status,
            marked_at=rec.marked_at,
            session=session_to_response(sess),
        )
        for rec, sess in result.all()
    ]


async def get_attendance_by_organization(
    db: AsyncSession,
    organization_id: UUID,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    group_id: Optional[UUID] = None,
    session_id: Optional[UUID] = None,
    student_id: Optional[UUID] = None,
    status: Optional[AttendanceStatus] = None,
) -> List[OrganizationAttendanceItem]:
    """Every attendance record of the organization, newest session first. Filters are optional."""
    _check_range(date_from, date_to)
    stmt = (
        select(AttendanceRecord, ClassSession, Student)
        .join(ClassSession, AttendanceRecord.class_session_id == ClassSession.id)
        .join(Student, AttendanceRecord.student_id == Student.id)
        .where(
            ClassSession.organization_id == organization_id,
            Student.organization_id == organization_id,
        )
    )
    if date_from is not None:
        stmt = stmt.where(ClassSession.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(ClassSession.date <= date_to)
    if group_id is not None:
        stmt = stmt.where(ClassSession.group_id == group_id)
    if session_id is not None:
        stmt = stmt.where(AttendanceRecord.class_session_id == session_id)
    if student_id is not None:
        stmt = stmt.where(AttendanceRecord.student_id == student_id)
    if status is not None:
        stmt = stmt.where(AttendanceRecord.status == status)
    stmt = stmt.order_by(ClassSession.date.desc(), AttendanceRecord.marked_at.desc(), Student.full_name)
    result = await db.execute(stmt)
    return [
        OrganizationAttendanceItem(
            id=rec.id,
            status=rec.status,
            marked_at=rec.marked_at,
            student=_student_summary(student),
            session=session_to_response(sess),
        )
        for rec, sess, student in result.all()
    ]
