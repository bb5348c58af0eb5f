"""Enrollment index: who belongs to a group on a given date, plus the move between groups."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.core.app_logger import get_logger
from studio_crm.core.exceptions import NotFoundError, ValidationError
from studio_crm.core.intervals import day_before
from studio_crm.core.models import Enrollment, Group, Student
from studio_crm.core.tenant_service import get_group, get_student
from studio_crm.db.transaction import atomic

from .schemas import (
    EnrollmentCreate,
    EnrollmentMoveResponse,
    EnrollmentResponse,
    EnrollmentWithStudent,
    StudentSummary,
)

logger = get_logger("enrollments")


def _to_response(e: Enrollment) -> EnrollmentResponse:
    return EnrollmentResponse(
        id=e.id,
        student_id=e.student_id,
        group_id=e.group_id,
        start_date=e.start_date,
        end_date=e.end_date,
        created_at=e.created_at,
    )


def _to_response_with_student(e: Enrollment, s: Student) -> EnrollmentWithStudent:
    return EnrollmentWithStudent(
        id=e.id,
        student_id=e.student_id,
        group_id=e.group_id,
        start_date=e.start_date,
        end_date=e.end_date,
        created_at=e.created_at,
        student=StudentSummary(id=s.id, full_name=s.full_name, email=s.email, phone=s.phone),
    )


def _group_enrollments_stmt(organization_id: UUID, group_id: UUID):
    """Enrollments of a group, joined with students; group and student both tenant-scoped."""
    return (
        select(Enrollment, Student)
        .join(Student, Enrollment.student_id == Student.id)
        .join(Group, Enrollment.group_id == Group.id)
        .where(
            Enrollment.group_id == group_id,
            Group.organization_id == organization_id,
            Student.organization_id == organization_id,
        )
        .order_by(Student.full_name, Enrollment.start_date)
    )


async def get_enrollments_by_group(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
) -> List[EnrollmentWithStudent]:
    """Every enrollment of the group, current and historical."""
    result = await db.execute(_group_enrollments_stmt(organization_id, group_id))
    return [_to_response_with_student(e, s) for e, s in result.all()]


async def get_enrollments_by_group_on_date(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    on_date: date,
) -> List[EnrollmentWithStudent]:
    """Expected roster: enrollments active on `on_date`.

    Attendance reconciliation and generation previews both call this, so they
    always agree on who belongs to the group.
    """
    stmt = _group_enrollments_stmt(organization_id, group_id).where(Enrollment.is_active_on(on_date))
    result = await db.execute(stmt)
    return [_to_response_with_student(e, s) for e, s in result.all()]


async def get_active_enrollments_by_group(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
) -> List[EnrollmentWithStudent]:
    """Roster as of today. Used to block closing or deleting a group."""
    return await get_enrollments_by_group_on_date(db, organization_id, group_id, date.today())


async def get_enrollments_by_student(
    db: AsyncSession,
    organization_id: UUID,
    student_id: UUID,
) -> List[EnrollmentResponse]:
    result = await db.execute(
        select(Enrollment)
        .join(Group, Enrollment.group_id == Group.id)
        .join(Student, Enrollment.student_id == Student.id)
        .where(
            Enrollment.student_id == student_id,
            Group.organization_id == organization_id,
            Student.organization_id == organization_id,
        )
        .order_by(Enrollment.start_date)
    )
    return [_to_response(e) for e in result.scalars().all()]


async def create_enrollment(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    payload: EnrollmentCreate,
) -> EnrollmentResponse:
    await get_group(db, organization_id, group_id)
    await get_student(db, organization_id, payload.student_id)
    if payload.end_date is not None and payload.end_date < payload.start_date:
        raise ValidationError("end_date must be on or after start_date")
    obj = Enrollment(
        student_id=payload.student_id,
        group_id=group_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    async with atomic(db, "Enrollment creation failed"):
        db.add(obj)
    await db.refresh(obj)
    return _to_response(obj)


async def _get_enrollment(db: AsyncSession, organization_id: UUID, enrollment_id: UUID) -> Enrollment:
    result = await db.execute(
        select(Enrollment)
        .join(Group, Enrollment.group_id == Group.id)
        .where(
            Enrollment.id == enrollment_id,
            Group.organization_id == organization_id,
        )
    )
    obj = result.scalar_one_or_none()
    if not obj:
        raise NotFoundError("Enrollment not found")
    return obj


async def end_enrollment(
    db: AsyncSession,
    organization_id: UUID,
    enrollment_id: UUID,
    end_date: date,
) -> EnrollmentResponse:
    """Soft-remove a student from a group by closing the interval."""
    obj = await _get_enrollment(db, organization_id, enrollment_id)
    if end_date < obj.start_date:
        raise ValidationError("end_date must be on or after the enrollment start_date")
    async with atomic(db):
        obj.end_date = end_date
    await db.refresh(obj)
    return _to_response(obj)


async def move_student_between_groups(
    db: AsyncSession,
    organization_id: UUID,
    student_id: UUID,
    from_group_id: UUID,
    to_group_id: UUID,
    start_date: date,
    end_date: Optional[date] = None,
) -> EnrollmentMoveResponse:
    """End the student's open stint in `from_group_id` and start one in `to_group_id`.

    Both writes commit together. The old stint ends on `end_date`, by default the
    day before `start_date`, so the student is never expected in both groups on
    the same day.
    """
    if from_group_id == to_group_id:
        raise ValidationError("Source and target group must differ")
    end_value = end_date if end_date is not None else day_before(start_date)
    if end_value >= start_date:
        raise ValidationError("end_date must be before start_date")

    await get_student(db, organization_id, student_id)
    await get_group(db, organization_id, from_group_id)
    await get_group(db, organization_id, to_group_id)

    result = await db.execute(
        select(Enrollment)
        .where(
            Enrollment.student_id == student_id,
            Enrollment.group_id == from_group_id,
            or_(Enrollment.end_date.is_(None), Enrollment.end_date >= end_value),
        )
        .order_by(Enrollment.start_date.desc())
        .limit(1)
    )
    current = result.scalar_one_or_none()
    if not current:
        raise NotFoundError("No active enrollment found to end")
    if end_value < current.start_date:
        raise ValidationError(
            f"end_date {end_value} is before the current enrollment start ({current.start_date})"
        )

    created = Enrollment(
        student_id=student_id,
        group_id=to_group_id,
        start_date=start_date,
        end_date=None,
    )
    async with atomic(db, "Student move failed"):
        current.end_date = end_value
        db.add(created)
    await db.refresh(current)
    await db.refresh(created)
    logger.info(
        "Moved student %s from group %s to %s: old stint ends %s, new starts %s",
        student_id, from_group_id, to_group_id, end_value, start_date,
    )
    return EnrollmentMoveResponse(ended=_to_response(current), created=_to_response(created))
