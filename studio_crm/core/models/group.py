import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from studio_crm.core.enums import GroupStatus, enum_values
from studio_crm.db.session import Base


class Group(Base):
    """
    A class that meets regularly. teacher_id and venue_id are the current assignment;
    generated sessions copy them at generation time and keep their own values afterwards.
    """

    __tablename__ = "groups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Uuid, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    venue_id = Column(Uuid, ForeignKey("venues.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    status = Column(
        Enum(GroupStatus, name="group_status", values_callable=enum_values),
        nullable=False,
        default=GroupStatus.ACTIVE,
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    teacher = relationship("Teacher")
    venue = relationship("Venue")
    enrollments = relationship("Enrollment", back_populates="group", cascade="all, delete-orphan")
    schedule_versions = relationship(
        "ScheduleVersion",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="ScheduleVersion.effective_from",
    )
