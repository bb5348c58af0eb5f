import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import uuid
from datetime import date, time
from typing import AsyncGenerator, Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from studio_crm.auth.security import create_access_token
from studio_crm.core.enums import ClassSessionStatus
from studio_crm.core.models import ClassSession, Enrollment, Group, Organization, Student, Teacher, Venue
from studio_crm.db.session import Base, get_db
from studio_crm.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory schema per test. One shared connection so every session sees the same data."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT/ROLLBACK TO behave on SQLite.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ----- Data -----
@pytest.fixture()
async def organization(db_session: AsyncSession) -> Organization:
    org = Organization(name="Northside Dance Studio", slug="northside")
    db_session.add(org)
    await db_session.commit()
    return org


@pytest.fixture()
async def other_organization(db_session: AsyncSession) -> Organization:
    org = Organization(name="Riverside Music School", slug="riverside")
    db_session.add(org)
    await db_session.commit()
    return org


@pytest.fixture()
async def teacher(db_session: AsyncSession, organization: Organization) -> Teacher:
    obj = Teacher(organization_id=organization.id, full_name="Maria Lopez")
    db_session.add(obj)
    await db_session.commit()
    return obj


@pytest.fixture()
async def venue(db_session: AsyncSession, organization: Organization) -> Venue:
    obj = Venue(organization_id=organization.id, name="Studio A", address="12 High Street")
    db_session.add(obj)
    await db_session.commit()
    return obj


@pytest.fixture()
def make_group(db_session: AsyncSession, organization: Organization, teacher: Teacher, venue: Venue):
    async def _make(name: str = "Salsa Beginners", with_teacher: bool = True, organization_id=None) -> Group:
        obj = Group(
            organization_id=organization_id or organization.id,
            name=name,
            teacher_id=teacher.id if with_teacher else None,
            venue_id=venue.id,
        )
        db_session.add(obj)
        await db_session.commit()
        return obj

    return _make


@pytest.fixture()
async def group(make_group) -> Group:
    return await make_group()


@pytest.fixture()
def make_student(db_session: AsyncSession, organization: Organization):
    async def _make(full_name: str, organization_id=None) -> Student:
        obj = Student(
            organization_id=organization_id or organization.id,
            full_name=full_name,
            email=f"{full_name.split()[0].lower()}@example.com",
        )
        db_session.add(obj)
        await db_session.commit()
        return obj

    return _make


@pytest.fixture()
def enroll(db_session: AsyncSession):
    async def _enroll(student: Student, group: Group, start: date, end: Optional[date] = None) -> Enrollment:
        obj = Enrollment(student_id=student.id, group_id=group.id, start_date=start, end_date=end)
        db_session.add(obj)
        await db_session.commit()
        return obj

    return _enroll


@pytest.fixture()
def make_session(db_session: AsyncSession, organization: Organization, teacher: Teacher):
    async def _make(
        on: date,
        group: Optional[Group] = None,
        status: ClassSessionStatus = ClassSessionStatus.SCHEDULED,
        start: time = time(18, 0),
        end: time = time(19, 0),
    ) -> ClassSession:
        obj = ClassSession(
            organization_id=organization.id,
            group_id=group.id if group is not None else None,
            teacher_id=teacher.id,
            venue_id=group.venue_id if group is not None else None,
            date=on,
            start_time=start,
            end_time=end,
            status=status,
        )
        db_session.add(obj)
        await db_session.commit()
        return obj

    return _make


@pytest.fixture()
def auth_headers(organization: Organization) -> Dict[str, str]:
    token = create_access_token(
        subject={"sub": str(uuid.uuid4()), "organization_id": str(organization.id)}
    )
    return {"Authorization": f"Bearer {token}"}
