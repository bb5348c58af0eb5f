from datetime import date, datetime, time
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer

from studio_crm.core.enums import ScheduleRecurrence


class ScheduleSlotIn(BaseModel):
    # Range and format are checked by the schedule service so direct callers get the same errors.
    day_of_week: int = Field(..., description="1=Monday .. 7=Sunday")
    start_time: Union[str, time] = Field(..., description="24-hour format, e.g. 18:00")
    sort_order: Optional[int] = None


class ScheduleUpsert(BaseModel):
    recurrence: ScheduleRecurrence
    duration_hours: float = Field(..., description="Length of each session in hours")
    effective_from: date
    effective_to: Optional[date] = None
    apply_to_future_only: bool = False
    slots: List[ScheduleSlotIn] = Field(default_factory=list)


class ScheduleUpsertRequest(ScheduleUpsert):
    """PATCH body: upsert plus optional immediate generation."""

    generate_sessions: bool = False
    generate_from: Optional[date] = None
    generate_to: Optional[date] = None


class ScheduleSlotResponse(BaseModel):
    id: UUID
    day_of_week: int
    start_time: time
    sort_order: int

    class Config:
        from_attributes = True

    @field_serializer("start_time")
    def serialize_time_24(self, t: time) -> str:
        """Output as 24-hour string HH:MM (e.g. 09:00, 18:30)."""
        return t.strftime("%H:%M")


class ScheduleVersionResponse(BaseModel):
    id: UUID
    group_id: UUID
    organization_id: UUID
    recurrence: ScheduleRecurrence
    duration_hours: float
    effective_from: date
    effective_to: Optional[date] = None
    created_at: datetime
    slots: List[ScheduleSlotResponse]


class ScheduleUpsertResponse(BaseModel):
    schedule: ScheduleVersionResponse
    generated_sessions: int = 0


class ScheduleListResponse(BaseModel):
    schedules: List[ScheduleVersionResponse]
