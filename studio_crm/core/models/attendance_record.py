import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from studio_crm.core.enums import AttendanceStatus, enum_values
from studio_crm.db.session import Base


class AttendanceRecord(Base):
    """One row per student per class session."""

    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("class_session_id", "student_id", name="uq_attendance_session_student"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    class_session_id = Column(
        Uuid,
        ForeignKey("class_sessions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        Enum(AttendanceStatus, name="attendance_status", values_callable=enum_values),
        nullable=False,
    )
    marked_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    class_session = relationship("ClassSession", back_populates="attendance_records")
    student = relationship("Student")
