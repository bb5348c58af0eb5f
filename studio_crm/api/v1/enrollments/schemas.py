from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StudentSummary(BaseModel):
    id: UUID
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class EnrollmentResponse(BaseModel):
    id: UUID
    student_id: UUID
    group_id: UUID
    start_date: date
    end_date: Optional[date] = None
    created_at: datetime

    class Config:
        from_attributes = True


class EnrollmentWithStudent(EnrollmentResponse):
    """Enrollment joined with its student (expected-roster row)."""

    student: StudentSummary


class EnrollmentCreate(BaseModel):
    student_id: UUID
    start_date: date
    end_date: Optional[date] = None


class EnrollmentEnd(BaseModel):
    end_date: date


class EnrollmentMoveRequest(BaseModel):
    from_group_id: UUID
    to_group_id: UUID
    start_date: date = Field(..., description="First day in the target group")
    end_date: Optional[date] = Field(
        None, description="Last day in the source group; defaults to the day before start_date"
    )


class EnrollmentMoveResponse(BaseModel):
    ended: EnrollmentResponse
    created: EnrollmentResponse
    message: str = "Student moved successfully"
