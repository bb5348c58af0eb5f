"""Student <-> group membership with a date range."""

import uuid
from datetime import date, datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Uuid, and_, or_
from sqlalchemy.ext.hybrid import hybrid_method
from sqlalchemy.orm import relationship

from studio_crm.core.intervals import DateInterval
from studio_crm.db.session import Base


class Enrollment(Base):
    """
    One membership stint. Active on D <=> start_date <= D and (end_date is null or end_date >= D).
    is_active_on works on instances and inside queries, so rosters computed in SQL
    and in Python share one definition.
    """

    __tablename__ = "enrollments"
    __table_args__ = (
        CheckConstraint("end_date IS NULL OR end_date >= start_date", name="ck_enrollment_dates"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
    group = relationship("Group", back_populates="enrollments")

    @property
    def interval(self) -> DateInterval:
        return DateInterval(self.start_date, self.end_date)

    @hybrid_method
    def is_active_on(self, on_date: date) -> bool:
        return self.interval.is_active_on(on_date)

    @is_active_on.inplace.expression
    @classmethod
    def _is_active_on_expression(cls, on_date: date):
        return and_(
            cls.start_date <= on_date,
            or_(cls.end_date.is_(None), cls.end_date >= on_date),
        )
