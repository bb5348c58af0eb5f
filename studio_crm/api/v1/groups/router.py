from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.auth.dependencies import require_organization_access
from studio_crm.auth.schemas import CurrentUser
from studio_crm.core.exceptions import ServiceError
from studio_crm.db.session import get_db

from . import service
from .schemas import GroupResponse, GroupStatusUpdate, GroupStatusUpdateResponse

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/groups", tags=["groups"])


@router.patch("/{group_id}/status", response_model=GroupStatusUpdateResponse)
async def update_group_status(
    organization_id: UUID,
    group_id: UUID,
    payload: GroupStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        group, active_count = await service.update_group_status(db, organization_id, group_id, payload.status)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return GroupStatusUpdateResponse(
        group=GroupResponse.model_validate(group),
        active_enrollments_count=active_count,
    )


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(
    organization_id: UUID,
    group_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        await service.delete_group(db, organization_id, group_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
