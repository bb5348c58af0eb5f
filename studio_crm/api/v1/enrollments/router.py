from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.auth.dependencies import require_organization_access
from studio_crm.auth.schemas import CurrentUser
from studio_crm.core.exceptions import ServiceError
from studio_crm.core.tenant_service import get_group, get_student
from studio_crm.db.session import get_db

from . import service
from .schemas import (
    EnrollmentCreate,
    EnrollmentEnd,
    EnrollmentMoveRequest,
    EnrollmentMoveResponse,
    EnrollmentResponse,
    EnrollmentWithStudent,
)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}", tags=["enrollments"])


@router.get("/groups/{group_id}/enrollments", response_model=List[EnrollmentWithStudent])
async def list_group_enrollments(
    organization_id: UUID,
    group_id: UUID,
    on: Optional[date] = Query(None, description="Only enrollments active on this date"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    """All enrollments of the group, or the roster on a given date."""
    try:
        await get_group(db, organization_id, group_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    if on is not None:
        return await service.get_enrollments_by_group_on_date(db, organization_id, group_id, on)
    return await service.get_enrollments_by_group(db, organization_id, group_id)


@router.post(
    "/groups/{group_id}/enrollments",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_enrollment(
    organization_id: UUID,
    group_id: UUID,
    payload: EnrollmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        return await service.create_enrollment(db, organization_id, group_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch("/enrollments/{enrollment_id}/end", response_model=EnrollmentResponse)
async def end_enrollment(
    organization_id: UUID,
    enrollment_id: UUID,
    payload: EnrollmentEnd,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        return await service.end_enrollment(db, organization_id, enrollment_id, payload.end_date)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/students/{student_id}/enrollments", response_model=List[EnrollmentResponse])
async def list_student_enrollments(
    organization_id: UUID,
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        await get_student(db, organization_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return await service.get_enrollments_by_student(db, organization_id, student_id)


@router.post("/students/{student_id}/enrollments/move", response_model=EnrollmentMoveResponse)
async def move_student(
    organization_id: UUID,
    student_id: UUID,
    payload: EnrollmentMoveRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    """Move a student from one group to another. Both enrollment changes commit together."""
    try:
        return await service.move_student_between_groups(
            db,
            organization_id,
            student_id,
            payload.from_group_id,
            payload.to_group_id,
            payload.start_date,
            payload.end_date,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
