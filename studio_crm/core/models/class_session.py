import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Time, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from studio_crm.core.enums import ClassSessionStatus, enum_values
from studio_crm.db.session import Base


class ClassSession(Base):
    """A dated class meeting. group_id is null for private/ad hoc sessions."""

    __tablename__ = "class_sessions"
    __table_args__ = (
        # One session per group per day; the generator relies on this to stay idempotent
        # under concurrent calls. NULL group_ids never collide.
        UniqueConstraint("group_id", "date", name="uq_class_session_group_date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="SET NULL"), nullable=True)
    venue_id = Column(Uuid, ForeignKey("venues.id", ondelete="SET NULL"), nullable=True)
    teacher_id = Column(Uuid, ForeignKey("teachers.id", ondelete="RESTRICT"), nullable=False)
    # Version that materialized this session; null for manually created sessions
    schedule_version_id = Column(
        Uuid,
        ForeignKey("schedule_versions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    status = Column(
        Enum(ClassSessionStatus, name="class_session_status", values_callable=enum_values),
        nullable=False,
        default=ClassSessionStatus.SCHEDULED,
    )
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    group = relationship("Group")
    teacher = relationship("Teacher")
    venue = relationship("Venue")
    attendance_records = relationship("AttendanceRecord", back_populates="class_session")
