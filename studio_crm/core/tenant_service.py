"""
Tenant-scoped lookups.

Every row reached by the scheduling and attendance services is first resolved
here with organization_id as a hard filter. A row owned by another organization
raises the same NotFoundError as a missing one.
"""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.core.exceptions import NotFoundError
from studio_crm.core.models import ClassSession, Group, Student, Teacher, Venue


async def get_group(db: AsyncSession, organization_id: UUID, group_id: UUID) -> Group:
    result = await db.execute(
        select(Group).where(
            Group.id == group_id,
            Group.organization_id == organization_id,
        )
    )
    group = result.scalar_one_or_none()
    if not group:
        raise NotFoundError("Group not found")
    return group


async def get_student(db: AsyncSession, organization_id: UUID, student_id: UUID) -> Student:
    result = await db.execute(
        select(Student).where(
            Student.id == student_id,
            Student.organization_id == organization_id,
        )
    )
    student = result.scalar_one_or_none()
    if not student:
        raise NotFoundError("Student not found")
    return student


async def get_session(db: AsyncSession, organization_id: UUID, session_id: UUID) -> ClassSession:
    result = await db.execute(
        select(ClassSession).where(
            ClassSession.id == session_id,
            ClassSession.organization_id == organization_id,
        )
    )
    session = result.scalar_one_or_none()
    if not session:
        raise NotFoundError("Session not found")
    return session


async def get_teacher(db: AsyncSession, organization_id: UUID, teacher_id: UUID) -> Teacher:
    result = await db.execute(
        select(Teacher).where(
            Teacher.id == teacher_id,
            Teacher.organization_id == organization_id,
        )
    )
    teacher = result.scalar_one_or_none()
    if not teacher:
        raise NotFoundError("Teacher not found")
    return teacher


async def get_venue(db: AsyncSession, organization_id: UUID, venue_id: UUID) -> Venue:
    result = await db.execute(
        select(Venue).where(
            Venue.id == venue_id,
            Venue.organization_id == organization_id,
        )
    )
    venue = result.scalar_one_or_none()
    if not venue:
        raise NotFoundError("Venue not found")
    return venue
