from datetime import date, time
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.core.app_logger import get_logger
from studio_crm.core.enums import ClassSessionStatus
from studio_crm.core.exceptions import ConflictError, ValidationError
from studio_crm.core.models import AttendanceRecord, ClassSession
from studio_crm.core.recurrence import parse_hhmm
from studio_crm.core.tenant_service import get_group, get_session, get_teacher, get_venue
from studio_crm.db.transaction import atomic

from .schemas import ClassSessionResponse, SessionCreate, SessionUpdate

logger = get_logger("sessions")


def session_to_response(s: ClassSession) -> ClassSessionResponse:
    return ClassSessionResponse(
        id=s.id,
        organization_id=s.organization_id,
        group_id=s.group_id,
        venue_id=s.venue_id,
        teacher_id=s.teacher_id,
        schedule_version_id=s.schedule_version_id,
        date=s.date,
        start_time=s.start_time,
        end_time=s.end_time,
        status=s.status,
        created_at=s.created_at,
    )


async def get_session_response(
    db: AsyncSession,
    organization_id: UUID,
    session_id: UUID,
) -> ClassSessionResponse:
    return session_to_response(await get_session(db, organization_id, session_id))


async def list_group_sessions(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[ClassSessionStatus] = None,
    teacher_id: Optional[UUID] = None,
    venue_id: Optional[UUID] = None,
) -> List[ClassSessionResponse]:
    await get_group(db, organization_id, group_id)
    return await list_sessions(
        db,
        organization_id,
        group_id=group_id,
        date_from=date_from,
        date_to=date_to,
        status=status,
        teacher_id=teacher_id,
        venue_id=venue_id,
    )


async def list_sessions(
    db: AsyncSession,
    organization_id: UUID,
    group_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[ClassSessionStatus] = None,
    teacher_id: Optional[UUID] = None,
    venue_id: Optional[UUID] = None,
) -> List[ClassSessionResponse]:
    """Sessions of the whole organization, grouped and ad hoc, ordered by date and start time."""
    if date_from is not None and date_to is not None and date_from > date_to:
        raise ValidationError("date_from must be on or before date_to")
    stmt = select(ClassSession).where(ClassSession.organization_id == organization_id)
    if group_id is not None:
        stmt = stmt.where(ClassSession.group_id == group_id)
    if date_from is not None:
        stmt = stmt.where(ClassSession.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(ClassSession.date <= date_to)
    if status is not None:
        stmt = stmt.where(ClassSession.status == status)
    if teacher_id is not None:
        stmt = stmt.where(ClassSession.teacher_id == teacher_id)
    if venue_id is not None:
        stmt = stmt.where(ClassSession.venue_id == venue_id)
    stmt = stmt.order_by(ClassSession.date, ClassSession.start_time)
    result = await db.execute(stmt)
    return [session_to_response(s) for s in result.scalars().all()]


def _check_times(start: Optional[time], end: Optional[time]) -> None:
    if (start is None) != (end is None):
        raise ValidationError("start_time and end_time must be given together")
    if start is not None and end <= start:
        raise ValidationError("end_time must be after start_time")


def _parse_optional_time(value) -> Optional[time]:
    return parse_hhmm(value) if value is not None else None


async def create_session(
    db: AsyncSession,
    organization_id: UUID,
    payload: SessionCreate,
) -> ClassSessionResponse:
    """Create a session by hand: an extra meeting of a group, or a private session without one."""
    await get_teacher(db, organization_id, payload.teacher_id)
    if payload.group_id is not None:
        await get_group(db, organization_id, payload.group_id)
    if payload.venue_id is not None:
        await get_venue(db, organization_id, payload.venue_id)
    start = _parse_optional_time(payload.start_time)
    end = _parse_optional_time(payload.end_time)
    _check_times(start, end)

    obj = ClassSession(
        organization_id=organization_id,
        group_id=payload.group_id,
        venue_id=payload.venue_id,
        teacher_id=payload.teacher_id,
        date=payload.date,
        start_time=start,
        end_time=end,
        status=payload.status,
    )
    async with atomic(db, f"The group already has a session on {payload.date}"):
        db.add(obj)
    await db.refresh(obj)
    logger.info("Created session %s on %s (group %s)", obj.id, obj.date, obj.group_id)
    return session_to_response(obj)


async def update_session(
    db: AsyncSession,
    organization_id: UUID,
    session_id: UUID,
    payload: SessionUpdate,
) -> ClassSessionResponse:
    """Reschedule or reassign a session. Only fields present in the payload change."""
    obj = await get_session(db, organization_id, session_id)
    fields = payload.model_fields_set

    if "teacher_id" in fields:
        if payload.teacher_id is None:
            raise ValidationError("A session must have a teacher")
        await get_teacher(db, organization_id, payload.teacher_id)
    if "session_date" in fields and payload.session_date is None:
        raise ValidationError("A session must have a date")
    if "group_id" in fields and payload.group_id is not None:
        await get_group(db, organization_id, payload.group_id)
    if "venue_id" in fields and payload.venue_id is not None:
        await get_venue(db, organization_id, payload.venue_id)
    start = _parse_optional_time(payload.start_time) if "start_time" in fields else obj.start_time
    end = _parse_optional_time(payload.end_time) if "end_time" in fields else obj.end_time
    _check_times(start, end)

    new_date = payload.session_date if "session_date" in fields else obj.date
    async with atomic(db, f"The group already has a session on {new_date}"):
        obj.date = new_date
        obj.start_time = start
        obj.end_time = end
        if "teacher_id" in fields:
            obj.teacher_id = payload.teacher_id
        if "group_id" in fields:
            obj.group_id = payload.group_id
        if "venue_id" in fields:
            obj.venue_id = payload.venue_id
    await db.refresh(obj)
    logger.info("Updated session %s", session_id)
    return session_to_response(obj)


async def update_session_status(
    db: AsyncSession,
    organization_id: UUID,
    session_id: UUID,
    new_status: ClassSessionStatus,
) -> ClassSessionResponse:
    """Set status. There is no transition table: any status may follow any other."""
    obj = await get_session(db, organization_id, session_id)
    previous = obj.status
    async with atomic(db):
        obj.status = new_status
    await db.refresh(obj)
    logger.info("Session %s status %s -> %s", session_id, previous.value, new_status.value)
    return session_to_response(obj)


async def count_attendance_records(db: AsyncSession, session_id: UUID) -> int:
    result = await db.execute(
        select(func.count(AttendanceRecord.id)).where(AttendanceRecord.class_session_id == session_id)
    )
    return result.scalar_one()


async def delete_session(db: AsyncSession, organization_id: UUID, session_id: UUID) -> None:
    """Delete a session that has no attendance recorded."""
    obj = await get_session(db, organization_id, session_id)
    records = await count_attendance_records(db, session_id)
    if records:
        raise ConflictError(
            "Session has attendance records; remove or migrate them before deleting the session",
            {"attendance_records_count": records},
        )
    async with atomic(db):
        await db.delete(obj)
    logger.info("Deleted session %s", session_id)
