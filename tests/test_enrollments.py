from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.api.v1.enrollments import service
from studio_crm.api.v1.enrollments.schemas import EnrollmentCreate
from studio_crm.core.exceptions import NotFoundError, ValidationError
from studio_crm.core.models import Enrollment


@pytest.mark.asyncio
async def test_roster_boundaries(db_session: AsyncSession, organization, group, make_student, enroll) -> None:
    anna = await make_student("Anna Berg")
    await enroll(anna, group, date(2024, 1, 1), date(2024, 6, 30))

    async def on(d: date):
        return [e.student_id for e in await service.get_enrollments_by_group_on_date(db_session, organization.id, group.id, d)]

    assert await on(date(2023, 12, 31)) == []
    assert await on(date(2024, 1, 1)) == [anna.id]
    assert await on(date(2024, 4, 15)) == [anna.id]
    assert await on(date(2024, 6, 30)) == [anna.id]
    assert await on(date(2024, 7, 1)) == []


@pytest.mark.asyncio
async def test_roster_is_sorted_and_includes_student(
    db_session: AsyncSession, organization, group, make_student, enroll
) -> None:
    zoe = await make_student("Zoe Adams")
    anna = await make_student("Anna Berg")
    await enroll(zoe, group, date(2024, 1, 1))
    await enroll(anna, group, date(2024, 1, 1))

    roster = await service.get_enrollments_by_group_on_date(db_session, organization.id, group.id, date(2024, 2, 1))

    assert [e.student.full_name for e in roster] == ["Anna Berg", "Zoe Adams"]
    assert roster[0].student.email == "anna@example.com"


@pytest.mark.asyncio
async def test_history_includes_ended_stints(db_session: AsyncSession, organization, group, make_student, enroll) -> None:
    anna = await make_student("Anna Berg")
    await enroll(anna, group, date(2023, 1, 1), date(2023, 6, 30))
    await enroll(anna, group, date(2024, 1, 1))

    history = await service.get_enrollments_by_group(db_session, organization.id, group.id)
    by_student = await service.get_enrollments_by_student(db_session, organization.id, anna.id)

    assert len(history) == 2
    assert [e.start_date for e in by_student] == [date(2023, 1, 1), date(2024, 1, 1)]


@pytest.mark.asyncio
async def test_create_and_end_enrollment(db_session: AsyncSession, organization, group, make_student) -> None:
    anna = await make_student("Anna Berg")

    created = await service.create_enrollment(
        db_session, organization.id, group.id, EnrollmentCreate(student_id=anna.id, start_date=date(2024, 1, 1))
    )
    assert created.end_date is None

    with pytest.raises(ValidationError):
        await service.end_enrollment(db_session, organization.id, created.id, date(2023, 12, 31))

    ended = await service.end_enrollment(db_session, organization.id, created.id, date(2024, 3, 31))
    assert ended.end_date == date(2024, 3, 31)

    with pytest.raises(ValidationError):
        await service.create_enrollment(
            db_session,
            organization.id,
            group.id,
            EnrollmentCreate(student_id=anna.id, start_date=date(2024, 5, 1), end_date=date(2024, 4, 1)),
        )


@pytest.mark.asyncio
async def test_enrollment_requires_same_organization(
    db_session: AsyncSession, organization, other_organization, group, make_student
) -> None:
    outsider = await make_student("Olga Outside", organization_id=other_organization.id)

    with pytest.raises(NotFoundError):
        await service.create_enrollment(
            db_session, organization.id, group.id, EnrollmentCreate(student_id=outsider.id, start_date=date(2024, 1, 1))
        )
    assert await service.get_enrollments_by_group(db_session, other_organization.id, group.id) == []


@pytest.mark.asyncio
async def test_move_defaults_end_to_day_before(
    db_session: AsyncSession, organization, group, make_group, make_student, enroll
) -> None:
    advanced = await make_group(name="Salsa Advanced")
    anna = await make_student("Anna Berg")
    await enroll(anna, group, date(2024, 1, 1))

    result = await service.move_student_between_groups(
        db_session, organization.id, anna.id, group.id, advanced.id, date(2024, 3, 1)
    )

    assert result.ended.group_id == group.id
    assert result.ended.end_date == date(2024, 2, 29)
    assert result.created.group_id == advanced.id
    assert result.created.start_date == date(2024, 3, 1)
    assert result.created.end_date is None

    async def in_group(g, d):
        return [e.student_id for e in await service.get_enrollments_by_group_on_date(db_session, organization.id, g.id, d)]

    assert await in_group(group, date(2024, 2, 29)) == [anna.id]
    assert await in_group(advanced, date(2024, 2, 29)) == []
    assert await in_group(group, date(2024, 3, 1)) == []
    assert await in_group(advanced, date(2024, 3, 1)) == [anna.id]


@pytest.mark.asyncio
async def test_move_with_explicit_end(db_session: AsyncSession, organization, group, make_group, make_student, enroll) -> None:
    advanced = await make_group(name="Salsa Advanced")
    anna = await make_student("Anna Berg")
    await enroll(anna, group, date(2024, 1, 1))

    result = await service.move_student_between_groups(
        db_session, organization.id, anna.id, group.id, advanced.id, date(2024, 3, 4), end_date=date(2024, 2, 28)
    )

    assert result.ended.end_date == date(2024, 2, 28)
    assert result.created.start_date == date(2024, 3, 4)


@pytest.mark.asyncio
async def test_move_rejections_change_nothing(
    db_session: AsyncSession, organization, group, make_group, make_student, enroll
) -> None:
    advanced = await make_group(name="Salsa Advanced")
    anna = await make_student("Anna Berg")
    ben = await make_student("Ben Cole")
    await enroll(anna, group, date(2024, 2, 1))

    with pytest.raises(ValidationError):
        await service.move_student_between_groups(db_session, organization.id, anna.id, group.id, group.id, date(2024, 3, 1))
    with pytest.raises(ValidationError):
        await service.move_student_between_groups(
            db_session, organization.id, anna.id, group.id, advanced.id, date(2024, 3, 1), end_date=date(2024, 3, 1)
        )
    with pytest.raises(ValidationError):
        # Would end the stint before it began.
        await service.move_student_between_groups(
            db_session, organization.id, anna.id, group.id, advanced.id, date(2024, 2, 1)
        )
    with pytest.raises(NotFoundError):
        await service.move_student_between_groups(db_session, organization.id, ben.id, group.id, advanced.id, date(2024, 3, 1))

    rows = (await db_session.execute(select(Enrollment))).scalars().all()
    assert [(r.student_id, r.group_id, r.end_date) for r in rows] == [(anna.id, group.id, None)]
