from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.auth.dependencies import require_organization_access
from studio_crm.auth.schemas import CurrentUser
from studio_crm.core.config import settings
from studio_crm.core.enums import ClassSessionStatus
from studio_crm.core.exceptions import ServiceError
from studio_crm.db.session import get_db

from . import materializer, service
from .schemas import (
    ClassSessionResponse,
    SessionCreate,
    SessionGenerateRequest,
    SessionGenerateResponse,
    SessionListResponse,
    SessionPreviewResponse,
    SessionStatusUpdate,
    SessionUpdate,
)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}", tags=["sessions"])


# ----- Group sessions -----
@router.get("/groups/{group_id}/sessions", response_model=SessionListResponse)
async def list_group_sessions(
    organization_id: UUID,
    group_id: UUID,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    session_status: Optional[ClassSessionStatus] = Query(None, alias="status"),
    teacher_id: Optional[UUID] = Query(None),
    venue_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        sessions = await service.list_group_sessions(
            db,
            organization_id,
            group_id,
            date_from=date_from,
            date_to=date_to,
            status=session_status,
            teacher_id=teacher_id,
            venue_id=venue_id,
        )
        return SessionListResponse(sessions=sessions)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post(
    "/groups/{group_id}/sessions/generate",
    response_model=SessionGenerateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_group_sessions(
    organization_id: UUID,
    group_id: UUID,
    payload: SessionGenerateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    """Create missing sessions for the window. Safe to repeat."""
    try:
        materializer.check_window_size(payload.date_from, payload.date_to, settings.max_generation_window_days)
        created = await materializer.generate_sessions_from_schedule(
            db, organization_id, group_id, payload.date_from, payload.date_to
        )
        return SessionGenerateResponse(created=created)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/groups/{group_id}/sessions/preview", response_model=SessionPreviewResponse)
async def preview_group_sessions(
    organization_id: UUID,
    group_id: UUID,
    date_from: date = Query(...),
    date_to: date = Query(...),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        materializer.check_window_size(date_from, date_to, settings.max_generation_window_days)
        items = await materializer.preview_sessions_from_schedule(db, organization_id, group_id, date_from, date_to)
        return SessionPreviewResponse(items=items)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


# ----- Organization sessions -----
@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    organization_id: UUID,
    group_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    session_status: Optional[ClassSessionStatus] = Query(None, alias="status"),
    teacher_id: Optional[UUID] = Query(None),
    venue_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        sessions = await service.list_sessions(
            db,
            organization_id,
            group_id=group_id,
            date_from=date_from,
            date_to=date_to,
            status=session_status,
            teacher_id=teacher_id,
            venue_id=venue_id,
        )
        return SessionListResponse(sessions=sessions)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/sessions", response_model=ClassSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    organization_id: UUID,
    payload: SessionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    """Create a session by hand, with or without a group."""
    try:
        return await service.create_session(db, organization_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


# ----- Single session -----
@router.patch("/sessions/{session_id}", response_model=ClassSessionResponse)
async def update_session(
    organization_id: UUID,
    session_id: UUID,
    payload: SessionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        return await service.update_session(db, organization_id, session_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/sessions/{session_id}", response_model=ClassSessionResponse)
async def get_session(
    organization_id: UUID,
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        return await service.get_session_response(db, organization_id, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch("/sessions/{session_id}/status", response_model=ClassSessionResponse)
async def update_session_status(
    organization_id: UUID,
    session_id: UUID,
    payload: SessionStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        return await service.update_session_status(db, organization_id, session_id, payload.status)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    organization_id: UUID,
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        await service.delete_session(db, organization_id, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
