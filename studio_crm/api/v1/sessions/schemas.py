from datetime import date, datetime, time
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer

from studio_crm.core.enums import ClassSessionStatus


class ClassSessionResponse(BaseModel):
    id: UUID
    organization_id: UUID
    group_id: Optional[UUID] = None
    venue_id: Optional[UUID] = None
    teacher_id: UUID
    schedule_version_id: Optional[UUID] = None
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    status: ClassSessionStatus
    created_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: Optional[time]) -> Optional[str]:
        return t.strftime("%H:%M") if t is not None else None


class SessionListResponse(BaseModel):
    sessions: List[ClassSessionResponse]


class SessionGenerateRequest(BaseModel):
    date_from: date
    date_to: date


class SessionGenerateResponse(BaseModel):
    created: int


class SessionPreviewItem(BaseModel):
    """A session the generator would consider for the window."""

    date: date
    start_time: time
    end_time: time
    schedule_version_id: UUID
    exists: bool = Field(..., description="A session for this group and date is already stored")
    expected_students_count: int

    @field_serializer("start_time", "end_time")
    def serialize_time_24(self, t: time) -> str:
        return t.strftime("%H:%M")


class SessionPreviewResponse(BaseModel):
    items: List[SessionPreviewItem]


class SessionStatusUpdate(BaseModel):
    status: ClassSessionStatus


class SessionCreate(BaseModel):
    """Manually created session. Without group_id it is a private/ad hoc session."""

    teacher_id: UUID
    date: date
    group_id: Optional[UUID] = None
    venue_id: Optional[UUID] = None
    start_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 18:00")
    end_time: Optional[Union[str, time]] = Field(None, description="24-hour format, e.g. 19:30")
    status: ClassSessionStatus = ClassSessionStatus.SCHEDULED


class SessionUpdate(BaseModel):
    """Partial update. Fields left out keep their value; an explicit null clears group, venue or times."""

    session_date: Optional[date] = Field(None, alias="date")
    teacher_id: Optional[UUID] = None
    group_id: Optional[UUID] = None
    venue_id: Optional[UUID] = None
    start_time: Optional[Union[str, time]] = None
    end_time: Optional[Union[str, time]] = None

    class Config:
        populate_by_name = True
