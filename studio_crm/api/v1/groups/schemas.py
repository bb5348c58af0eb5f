from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from studio_crm.core.enums import GroupStatus


class GroupResponse(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    status: GroupStatus
    teacher_id: Optional[UUID] = None
    venue_id: Optional[UUID] = None
    started_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class GroupStatusUpdate(BaseModel):
    status: GroupStatus


class GroupStatusUpdateResponse(BaseModel):
    group: GroupResponse
    active_enrollments_count: int
