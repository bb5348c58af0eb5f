"""Effective-dated schedule versions per group and their weekday/time slots."""

import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    Time,
    Uuid,
)
from sqlalchemy.orm import relationship

from studio_crm.core.enums import ScheduleRecurrence, enum_values
from studio_crm.core.intervals import DateInterval
from studio_crm.db.session import Base


class ScheduleVersion(Base):
    """
    One recurrence definition valid over [effective_from, effective_to].
    Superseded versions are closed (effective_to set), never rewritten.
    """

    __tablename__ = "schedule_versions"
    __table_args__ = (
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="ck_schedule_version_range",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    recurrence = Column(
        Enum(ScheduleRecurrence, name="schedule_recurrence", values_callable=enum_values),
        nullable=False,
    )
    duration_hours = Column(Numeric(5, 2, asdecimal=False), nullable=False)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    group = relationship("Group", back_populates="schedule_versions")
    slots = relationship(
        "ScheduleSlot",
        back_populates="schedule_version",
        cascade="all, delete-orphan",
        order_by="ScheduleSlot.sort_order",
    )

    @property
    def effective(self) -> DateInterval:
        return DateInterval(self.effective_from, self.effective_to)

    def covers(self, on_date: date) -> bool:
        return self.effective.is_active_on(on_date)


class ScheduleSlot(Base):
    __tablename__ = "schedule_slots"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_schedule_slot_day"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    schedule_version_id = Column(
        Uuid,
        ForeignKey("schedule_versions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week = Column(Integer, nullable=False)  # 1=Monday .. 7=Sunday
    start_time = Column(Time, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    schedule_version = relationship("ScheduleVersion", back_populates="slots")
