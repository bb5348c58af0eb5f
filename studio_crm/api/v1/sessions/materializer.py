"""Expands schedule versions into concrete class sessions."""

from datetime import date
from typing import List, Set, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.core.app_logger import get_logger
from studio_crm.core.enums import ClassSessionStatus
from studio_crm.core.exceptions import ValidationError
from studio_crm.core.intervals import DateInterval
from studio_crm.core.models import ClassSession, ScheduleVersion
from studio_crm.core.recurrence import SessionCandidate, SlotSpec, expand_version
from studio_crm.core.tenant_service import get_group
from studio_crm.db.transaction import atomic

from studio_crm.api.v1.enrollments import service as enrollments_service
from studio_crm.api.v1.schedules import service as schedules_service

from .schemas import SessionPreviewItem

logger = get_logger("sessions.materializer")


def _check_window(from_date: date, to_date: date) -> DateInterval:
    if from_date > to_date:
        raise ValidationError("from must be on or before to")
    return DateInterval(from_date, to_date)


def check_window_size(from_date: date, to_date: date, max_days: int) -> None:
    """Reject windows longer than `max_days`. Applied to requests arriving over HTTP."""
    _check_window(from_date, to_date)
    if (to_date - from_date).days + 1 > max_days:
        raise ValidationError(f"Generation window is limited to {max_days} days")


async def _plan(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    window: DateInterval,
) -> List[Tuple[ScheduleVersion, SessionCandidate]]:
    """One candidate per date across every version meeting the window, ordered by date."""
    versions = await schedules_service.load_versions(db, organization_id, group_id, window.start, window.end)
    planned = []
    for version in versions:
        slots = [SlotSpec(s.day_of_week, s.start_time, s.sort_order) for s in version.slots]
        for candidate in expand_version(
            version.recurrence, version.effective, slots, float(version.duration_hours), window
        ):
            planned.append((version, candidate))
    planned.sort(key=lambda item: item[1].date)

    seen: Set[date] = set()
    unique = []
    for version, candidate in planned:
        if candidate.date in seen:
            continue
        seen.add(candidate.date)
        unique.append((version, candidate))
    return unique


async def _existing_session_dates(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    window: DateInterval,
) -> Set[date]:
    result = await db.execute(
        select(ClassSession.date).where(
            ClassSession.organization_id == organization_id,
            ClassSession.group_id == group_id,
            ClassSession.date >= window.start,
            ClassSession.date <= window.end,
        )
    )
    return set(result.scalars().all())


async def generate_sessions_from_schedule(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    from_date: date,
    to_date: date,
) -> int:
    """Create the scheduled sessions missing from [from_date, to_date]. Returns how many were created.

    Re-running with the same arguments creates nothing. Teacher and venue are
    copied from the group now; later group changes leave these sessions alone.
    """
    window = _check_window(from_date, to_date)
    group = await get_group(db, organization_id, group_id)

    existing = await _existing_session_dates(db, organization_id, group_id, window)
    todo = [(v, c) for v, c in await _plan(db, organization_id, group_id, window) if c.date not in existing]
    if not todo:
        return 0
    if group.teacher_id is None:
        raise ValidationError("Group has no teacher assigned; cannot generate sessions")

    teacher_id, venue_id = group.teacher_id, group.venue_id
    created = 0
    async with atomic(db, "Session generation failed"):
        for version, candidate in todo:
            try:
                # The (group_id, date) unique constraint settles races with a concurrent generator.
                async with db.begin_nested():
                    db.add(
                        ClassSession(
                            organization_id=organization_id,
                            group_id=group_id,
                            venue_id=venue_id,
                            teacher_id=teacher_id,
                            schedule_version_id=version.id,
                            date=candidate.date,
                            start_time=candidate.start_time,
                            end_time=candidate.end_time,
                            status=ClassSessionStatus.SCHEDULED,
                        )
                    )
            except IntegrityError:
                logger.info("Session for group %s on %s already exists, skipped", group_id, candidate.date)
                continue
            created += 1

    logger.info("Generated %d sessions for group %s in [%s, %s]", created, group_id, from_date, to_date)
    return created


async def preview_sessions_from_schedule(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    from_date: date,
    to_date: date,
) -> List[SessionPreviewItem]:
    """Read-only view of what generation would consider, with the expected roster size per date."""
    window = _check_window(from_date, to_date)
    await get_group(db, organization_id, group_id)

    existing = await _existing_session_dates(db, organization_id, group_id, window)
    items = []
    for version, candidate in await _plan(db, organization_id, group_id, window):
        roster = await enrollments_service.get_enrollments_by_group_on_date(
            db, organization_id, group_id, candidate.date
        )
        items.append(
            SessionPreviewItem(
                date=candidate.date,
                start_time=candidate.start_time,
                end_time=candidate.end_time,
                schedule_version_id=version.id,
                exists=candidate.date in existing,
                expected_students_count=len(roster),
            )
        )
    return items
