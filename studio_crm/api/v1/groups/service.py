from typing import Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.core.app_logger import get_logger
from studio_crm.core.enums import GroupStatus
from studio_crm.core.exceptions import ConflictError
from studio_crm.core.models import ClassSession, Group
from studio_crm.core.tenant_service import get_group
from studio_crm.db.transaction import atomic

from studio_crm.api.v1.enrollments import service as enrollments_service

logger = get_logger("groups")


async def update_group_status(
    db: AsyncSession,
    organization_id: UUID,
    group_id: UUID,
    new_status: GroupStatus,
) -> Tuple[Group, int]:
    """Set group status. Closing is refused while students are enrolled today.

    Returns the group and the number of currently active enrollments (impact preview).
    """
    group = await get_group(db, organization_id, group_id)
    active = await enrollments_service.get_active_enrollments_by_group(db, organization_id, group_id)
    if new_status == GroupStatus.CLOSED and active:
        logger.warning("Refused to close group %s with %d active enrollments", group_id, len(active))
        raise ConflictError(
            "Cannot close group with active enrollments",
            {"active_enrollments_count": len(active)},
        )
    async with atomic(db):
        group.status = new_status
    await db.refresh(group)
    return group, len(active)


async def delete_group(db: AsyncSession, organization_id: UUID, group_id: UUID) -> None:
    """Delete a group with no active members and no sessions. Past enrollments and schedules go with it."""
    group = await get_group(db, organization_id, group_id)
    active = await enrollments_service.get_active_enrollments_by_group(db, organization_id, group_id)
    if active:
        logger.warning("Refused to delete group %s with %d active enrollments", group_id, len(active))
        raise ConflictError(
            "Cannot delete group with active enrollments",
            {"active_enrollments_count": len(active)},
        )
    sessions_count = (
        await db.execute(
            select(func.count(ClassSession.id)).where(
                ClassSession.organization_id == organization_id,
                ClassSession.group_id == group_id,
            )
        )
    ).scalar_one()
    if sessions_count:
        raise ConflictError(
            "Cannot delete group with class sessions; close it instead",
            {"sessions_count": sessions_count},
        )
    async with atomic(db):
        await db.delete(group)
    logger.info("Deleted group %s", group_id)
