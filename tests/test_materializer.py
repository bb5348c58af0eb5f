from datetime import date, time

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.api.v1.schedules import service as schedules_service
from studio_crm.api.v1.schedules.schemas import ScheduleSlotIn, ScheduleUpsert
from studio_crm.api.v1.sessions import materializer
from studio_crm.api.v1.sessions.materializer import (
    check_window_size,
    generate_sessions_from_schedule,
    preview_sessions_from_schedule,
)
from studio_crm.core.enums import ClassSessionStatus, ScheduleRecurrence
from studio_crm.core.exceptions import ValidationError
from studio_crm.core.models import ClassSession, Teacher


async def _twice_weekly(db: AsyncSession, organization, group):
    return await schedules_service.upsert_schedule(
        db,
        organization.id,
        group.id,
        ScheduleUpsert(
            recurrence=ScheduleRecurrence.TWICE_WEEKLY,
            duration_hours=1.5,
            effective_from=date(2024, 1, 1),
            slots=[
                ScheduleSlotIn(day_of_week=1, start_time="18:00"),
                ScheduleSlotIn(day_of_week=4, start_time="19:00"),
            ],
        ),
    )


async def _sessions(db: AsyncSession, group):
    result = await db.execute(
        select(ClassSession).where(ClassSession.group_id == group.id).order_by(ClassSession.date)
    )
    return result.scalars().all()


@pytest.mark.asyncio
async def test_twice_weekly_generation(db_session: AsyncSession, organization, group, teacher, venue) -> None:
    version = await _twice_weekly(db_session, organization, group)

    created = await generate_sessions_from_schedule(
        db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 14)
    )

    assert created == 4
    sessions = await _sessions(db_session, group)
    assert [(s.date, s.start_time, s.end_time) for s in sessions] == [
        (date(2024, 1, 1), time(18, 0), time(19, 30)),
        (date(2024, 1, 4), time(19, 0), time(20, 30)),
        (date(2024, 1, 8), time(18, 0), time(19, 30)),
        (date(2024, 1, 11), time(19, 0), time(20, 30)),
    ]
    for s in sessions:
        assert s.status == ClassSessionStatus.SCHEDULED
        assert s.teacher_id == teacher.id
        assert s.venue_id == venue.id
        assert s.schedule_version_id == version.id


@pytest.mark.asyncio
async def test_generation_is_idempotent(db_session: AsyncSession, organization, group) -> None:
    await _twice_weekly(db_session, organization, group)

    first = await generate_sessions_from_schedule(db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 31))
    second = await generate_sessions_from_schedule(db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 31))
    overlapping = await generate_sessions_from_schedule(
        db_session, organization.id, group.id, date(2024, 1, 15), date(2024, 2, 15)
    )

    assert first == 9
    assert second == 0
    # Only the February dates are new.
    assert overlapping == 5
    count = (
        await db_session.execute(select(func.count(ClassSession.id)).where(ClassSession.group_id == group.id))
    ).scalar_one()
    assert count == 14


@pytest.mark.asyncio
async def test_one_time_schedule_yields_single_session(db_session: AsyncSession, organization, group) -> None:
    await schedules_service.upsert_schedule(
        db_session,
        organization.id,
        group.id,
        ScheduleUpsert(
            recurrence=ScheduleRecurrence.ONE_TIME,
            duration_hours=2,
            effective_from=date(2024, 1, 10),
            slots=[ScheduleSlotIn(day_of_week=3, start_time="10:00")],
        ),
    )

    created = await generate_sessions_from_schedule(
        db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 31)
    )

    assert created == 1
    sessions = await _sessions(db_session, group)
    assert [(s.date, s.end_time) for s in sessions] == [(date(2024, 1, 10), time(12, 0))]


@pytest.mark.asyncio
async def test_sessions_keep_teacher_after_group_reassignment(
    db_session: AsyncSession, organization, group, teacher
) -> None:
    await _twice_weekly(db_session, organization, group)
    await generate_sessions_from_schedule(db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 7))

    substitute = Teacher(organization_id=organization.id, full_name="Tom Baker")
    db_session.add(substitute)
    await db_session.flush()
    group.teacher_id = substitute.id
    group.venue_id = None
    await db_session.commit()

    await generate_sessions_from_schedule(db_session, organization.id, group.id, date(2024, 1, 8), date(2024, 1, 14))

    sessions = await _sessions(db_session, group)
    assert [s.teacher_id for s in sessions] == [teacher.id, teacher.id, substitute.id, substitute.id]
    assert sessions[0].venue_id is not None
    assert sessions[-1].venue_id is None


@pytest.mark.asyncio
async def test_generation_requires_teacher(db_session: AsyncSession, organization, make_group) -> None:
    group = await make_group(name="No teacher yet", with_teacher=False)
    await _twice_weekly(db_session, organization, group)

    with pytest.raises(ValidationError, match="no teacher"):
        await generate_sessions_from_schedule(db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 14))
    assert await _sessions(db_session, group) == []


@pytest.mark.asyncio
async def test_generation_without_schedule_creates_nothing(db_session: AsyncSession, organization, group) -> None:
    created = await generate_sessions_from_schedule(
        db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 31)
    )
    assert created == 0


@pytest.mark.asyncio
async def test_generation_follows_version_boundaries(db_session: AsyncSession, organization, group) -> None:
    await _twice_weekly(db_session, organization, group)
    await schedules_service.upsert_schedule(
        db_session,
        organization.id,
        group.id,
        ScheduleUpsert(
            recurrence=ScheduleRecurrence.WEEKLY,
            duration_hours=1,
            effective_from=date(2024, 1, 10),
            apply_to_future_only=True,
            slots=[ScheduleSlotIn(day_of_week=6, start_time="11:00")],
        ),
    )

    await generate_sessions_from_schedule(db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 21))

    sessions = await _sessions(db_session, group)
    # Mon 1st and Thu 4th, Mon 8th from the old version; Saturdays 13th and 20th from the new one.
    assert [s.date for s in sessions] == [
        date(2024, 1, 1),
        date(2024, 1, 4),
        date(2024, 1, 8),
        date(2024, 1, 13),
        date(2024, 1, 20),
    ]


@pytest.mark.asyncio
async def test_preview(db_session: AsyncSession, organization, group, make_student, enroll) -> None:
    await _twice_weekly(db_session, organization, group)
    anna = await make_student("Anna Berg")
    ben = await make_student("Ben Cole")
    await enroll(anna, group, date(2024, 1, 1))
    await enroll(ben, group, date(2024, 1, 5))
    await generate_sessions_from_schedule(db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 1))

    items = await preview_sessions_from_schedule(db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 8))

    assert [(i.date, i.exists, i.expected_students_count) for i in items] == [
        (date(2024, 1, 1), True, 1),
        (date(2024, 1, 4), False, 1),
        (date(2024, 1, 8), False, 2),
    ]
    # Preview writes nothing.
    assert len(await _sessions(db_session, group)) == 1


@pytest.mark.asyncio
async def test_window_checks(db_session: AsyncSession, organization, group) -> None:
    with pytest.raises(ValidationError):
        await generate_sessions_from_schedule(db_session, organization.id, group.id, date(2024, 2, 1), date(2024, 1, 1))

    check_window_size(date(2024, 1, 1), date(2024, 1, 31), 31)
    with pytest.raises(ValidationError, match="limited to 30 days"):
        check_window_size(date(2024, 1, 1), date(2024, 1, 31), 30)


@pytest.mark.asyncio
async def test_unique_constraint_skips_date_stored_meanwhile(
    db_session: AsyncSession, organization, group, make_session, monkeypatch
) -> None:
    """A session stored after the existing-dates lookup is skipped, not raised."""
    await schedules_service.upsert_schedule(
        db_session,
        organization.id,
        group.id,
        ScheduleUpsert(
            recurrence=ScheduleRecurrence.WEEKLY,
            duration_hours=1.0,
            effective_from=date(2024, 1, 1),
            slots=[ScheduleSlotIn(day_of_week=1, start_time="18:00")],
        ),
    )
    concurrent = await make_session(date(2024, 1, 8), group=group)

    async def _nothing_stored(*args, **kwargs):
        return set()

    monkeypatch.setattr(materializer, "_existing_session_dates", _nothing_stored)

    created = await generate_sessions_from_schedule(
        db_session, organization.id, group.id, date(2024, 1, 1), date(2024, 1, 14)
    )

    assert created == 1
    sessions = await _sessions(db_session, group)
    assert [s.date for s in sessions] == [date(2024, 1, 1), date(2024, 1, 8)]
    assert sessions[1].id == concurrent.id
    assert sessions[1].schedule_version_id is None
