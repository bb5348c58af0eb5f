from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.auth.dependencies import require_organization_access
from studio_crm.auth.schemas import CurrentUser
from studio_crm.core.config import settings
from studio_crm.core.exceptions import ServiceError, ValidationError
from studio_crm.db.session import get_db

from studio_crm.api.v1.sessions import materializer

from . import service
from .schemas import ScheduleListResponse, ScheduleUpsertRequest, ScheduleUpsertResponse

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/groups", tags=["schedules"])


@router.get("/{group_id}/schedule", response_model=ScheduleListResponse)
async def get_group_schedule(
    organization_id: UUID,
    group_id: UUID,
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    """Schedule versions of the group. With from/to, only those in effect somewhere in the range."""
    try:
        if from_date is None and to_date is None:
            schedules = await service.get_schedule(db, organization_id, group_id)
        else:
            schedules = await service.get_schedule_slots(db, organization_id, group_id, from_date, to_date)
        return ScheduleListResponse(schedules=schedules)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/{group_id}/schedule/current", response_model=ScheduleListResponse)
async def get_group_current_schedule(
    organization_id: UUID,
    group_id: UUID,
    as_of: Optional[date] = Query(None, description="Defaults to today"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        schedules = await service.get_current_schedule(db, organization_id, group_id, as_of)
        return ScheduleListResponse(schedules=schedules)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch("/{group_id}/schedule", response_model=ScheduleUpsertResponse)
async def upsert_group_schedule(
    organization_id: UUID,
    group_id: UUID,
    payload: ScheduleUpsertRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    """Create or replace the schedule, optionally generating sessions right after.

    The two steps commit separately; generation can be retried on its own.
    """
    try:
        if payload.generate_sessions:
            if payload.generate_from is None or payload.generate_to is None:
                raise ValidationError("generate_from and generate_to are required to generate sessions")
            materializer.check_window_size(
                payload.generate_from, payload.generate_to, settings.max_generation_window_days
            )
        schedule = await service.upsert_schedule(db, organization_id, group_id, payload)
        generated = 0
        if payload.generate_sessions:
            generated = await materializer.generate_sessions_from_schedule(
                db, organization_id, group_id, payload.generate_from, payload.generate_to
            )
        return ScheduleUpsertResponse(schedule=schedule, generated_sessions=generated)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
