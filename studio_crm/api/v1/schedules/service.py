"""Schedule store: effective-dated recurrence versions per group."""

from datetime import date
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from studio_crm.core.app_logger import get_logger
from studio_crm.core.exceptions import ConflictError, NotFoundError, ValidationError
from studio_crm.core.intervals import DateInterval, day_before
from studio_crm.core.models import ClassSession, ScheduleSlot, ScheduleVersion
from studio_crm.core.recurrence import SlotSpec, validate_duration, validate_slot_times, validate_slots
from studio_crm.core.tenant_service import get_group
from studio_crm.db.transaction import atomic

from .schemas import ScheduleSlotResponse, ScheduleUpsert, ScheduleVersionResponse

logger = get_logger("schedules")


def _to_response(v: ScheduleVersion) -> ScheduleVersionResponse:
    return ScheduleVersionResponse(
        id=v.id,
        group_id=v.group_id,
        organization_id=v.organization_id,
        recurrence=v.recurrence,
        duration_hours=float(v.duration_hours),
        effective_from=v.effective_from,
        effective_to=v.effective_to,
        created_at=v.created_at,
        slots=[
            ScheduleSlotResponse(
                id=s.id,
                day_of_week=s.day_of_week,
                start_time=s.start_time,
                sort_order=s.sort_order,
            )
            for s in v.slots
        ],
    )


def _versions_stmt(organization_id: UUID, group_id: UUID):
    return (
        select(ScheduleVersion)
        .options(selectinload(ScheduleVersion.slots))
        .where(
            ScheduleVersion.group_id == group_id,
            ScheduleVersion.organization_id == organization_id,
        )
        .order_by(ScheduleVersion.effective_from, ScheduleVersion.created_at)
        .execution_options(populate_existing=True)
    )


async def load_versions(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
) -> List[ScheduleVersion]:
    """ORM versions (slots loaded) whose effective range meets [from_date, to_date]."""
    stmt = _versions_stmt(organization_id, group_id)
    if to_date is not None:
        stmt = stmt.where(ScheduleVersion.effective_from <= to_date)
    if from_date is not None:
        stmt = stmt.where(
            or_(ScheduleVersion.effective_to.is_(None), ScheduleVersion.effective_to >= from_date)
        )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_materialized_sessions(db: AsyncSession, version_ids: Iterable[UUID]) -> Dict[UUID, int]:
    """Sessions generated from each version. A version with sessions is frozen."""
    version_ids = list(version_ids)
    if not version_ids:
        return {}
    result = await db.execute(
        select(ClassSession.schedule_version_id, func.count(ClassSession.id))
        .where(ClassSession.schedule_version_id.in_(version_ids))
        .group_by(ClassSession.schedule_version_id)
    )
    return {version_id: count for version_id, count in result.all()}


def _current_version(versions: List[ScheduleVersion], as_of: date) -> Optional[ScheduleVersion]:
    """Version covering `as_of`, else the latest open-ended one."""
    covering = [v for v in versions if v.covers(as_of)]
    if covering:
        return covering[-1]
    open_ended = [v for v in versions if v.effective_to is None]
    return open_ended[-1] if open_ended else None


def _build_slots(slots: List[SlotSpec]) -> List[ScheduleSlot]:
    return [
        ScheduleSlot(day_of_week=s.day_of_week, start_time=s.start_time, sort_order=s.sort_order)
        for s in slots
    ]


def _check_no_overlap(new_range: DateInterval, others: Iterable[ScheduleVersion]) -> None:
    for other in others:
        if other.effective.overlaps(new_range):
            raise ValidationError(
                f"Schedule range overlaps the version effective from {other.effective_from}; "
                "use apply_to_future_only to start a new version"
            )


async def _get_version(db: AsyncSession, organization_id: UUID, group_id: UUID, version_id: UUID) -> ScheduleVersion:
    result = await db.execute(_versions_stmt(organization_id, group_id).where(ScheduleVersion.id == version_id))
    version = result.scalar_one_or_none()
    if not version:
        raise NotFoundError("Schedule not found")
    return version


async def upsert_schedule(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    payload: ScheduleUpsert,
) -> ScheduleVersionResponse:
    """Create or replace the group's schedule.

    apply_to_future_only=False rewrites the current version in place, which is
    only allowed while no session has been generated from it.
    apply_to_future_only=True starts a new version on effective_from and closes
    earlier versions the day before; versions starting on or after the cutover
    are dropped if unused.
    """
    await get_group(db, organization_id, group_id)

    slots = validate_slots(payload.recurrence, payload.slots)
    duration = validate_duration(payload.duration_hours)
    validate_slot_times(slots, duration)
    if payload.effective_to is not None and payload.effective_to < payload.effective_from:
        raise ValidationError("effective_to must be on or after effective_from")
    new_range = DateInterval(payload.effective_from, payload.effective_to)

    versions = await load_versions(db, organization_id, group_id)

    if not payload.apply_to_future_only:
        current = _current_version(versions, date.today())
        _check_no_overlap(new_range, [v for v in versions if v is not current])
        if current is not None:
            used = (await count_materialized_sessions(db, [current.id])).get(current.id, 0)
            if used:
                raise ConflictError(
                    "Current schedule already generated sessions; apply the change to future dates only",
                    {"sessions_count": used},
                )
            async with atomic(db, "Schedule update failed"):
                current.recurrence = payload.recurrence
                current.duration_hours = duration
                current.effective_from = payload.effective_from
                current.effective_to = payload.effective_to
                current.slots = _build_slots(slots)
            logger.info("Schedule %s of group %s rewritten in place", current.id, group_id)
            return _to_response(await _get_version(db, organization_id, group_id, current.id))

        version = ScheduleVersion(
            organization_id=organization_id,
            group_id=group_id,
            recurrence=payload.recurrence,
            duration_hours=duration,
            effective_from=payload.effective_from,
            effective_to=payload.effective_to,
            slots=_build_slots(slots),
        )
        async with atomic(db, "Schedule creation failed"):
            db.add(version)
        logger.info("Schedule %s created for group %s", version.id, group_id)
        return _to_response(await _get_version(db, organization_id, group_id, version.id))

    cutover = payload.effective_from
    superseded = [v for v in versions if v.effective_from >= cutover]
    used = await count_materialized_sessions(db, [v.id for v in superseded])
    if used:
        raise ConflictError(
            f"A schedule starting on or after {cutover} already generated sessions",
            {"sessions_count": sum(used.values())},
        )
    version = ScheduleVersion(
        organization_id=organization_id,
        group_id=group_id,
        recurrence=payload.recurrence,
        duration_hours=duration,
        effective_from=cutover,
        effective_to=payload.effective_to,
        slots=_build_slots(slots),
    )
    async with atomic(db, "Schedule cutover failed"):
        for old in superseded:
            await db.delete(old)
        for old in versions:
            if old.effective_from < cutover and (old.effective_to is None or old.effective_to >= cutover):
                old.effective_to = day_before(cutover)
        db.add(version)
    logger.info(
        "Schedule cutover for group %s on %s: new version %s, %d superseded",
        group_id, cutover, version.id, len(superseded),
    )
    return _to_response(await _get_version(db, organization_id, group_id, version.id))


async def get_schedule(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
) -> List[ScheduleVersionResponse]:
    """Full history, ordered by effective_from."""
    await get_group(db, organization_id, group_id)
    return [_to_response(v) for v in await load_versions(db, organization_id, group_id)]


async def get_current_schedule(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    as_of: Optional[date] = None,
) -> List[ScheduleVersionResponse]:
    """Versions in effect on `as_of` (default today)."""
    as_of = as_of or date.today()
    await get_group(db, organization_id, group_id)
    versions = await load_versions(db, organization_id, group_id, as_of, as_of)
    return [_to_response(v) for v in versions]


async def get_schedule_slots(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
) -> List[ScheduleVersionResponse]:
    """Versions whose effective range intersects [from_date, to_date], with their slots."""
    if from_date is not None and to_date is not None and from_date > to_date:
        raise ValidationError("from must be on or before to")
    await get_group(db, organization_id, group_id)
    versions = await load_versions(db, organization_id, group_id, from_date, to_date)
    return [_to_response(v) for v in versions]
