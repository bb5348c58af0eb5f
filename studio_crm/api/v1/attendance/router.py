"""Attendance API router."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.auth.dependencies import require_organization_access
from studio_crm.auth.schemas import CurrentUser
from studio_crm.core.enums import AttendanceStatus
from studio_crm.core.exceptions import ServiceError
from studio_crm.db.session import get_db

from . import service
from .schemas import (
    AttendanceBulkUpdate,
    AttendanceBulkUpdateResponse,
    AttendanceRecordResponse,
    MissingAttendanceResponse,
    OrganizationAttendanceResponse,
    SessionAttendanceResponse,
    StudentAttendanceHistoryResponse,
)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}", tags=["attendance"])


# ----- Session attendance -----
@router.get("/sessions/{session_id}/attendance", response_model=SessionAttendanceResponse)
async def get_session_attendance(
    organization_id: UUID,
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    """Expected roster merged with what has been marked so far."""
    try:
        return await service.get_attendance_for_session_with_expected(db, organization_id, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/sessions/{session_id}/attendance/records", response_model=List[AttendanceRecordResponse])
async def get_session_attendance_records(
    organization_id: UUID,
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        return await service.get_attendance_by_session(db, organization_id, session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch("/sessions/{session_id}/attendance", response_model=AttendanceBulkUpdateResponse)
async def update_session_attendance(
    organization_id: UUID,
    session_id: UUID,
    payload: AttendanceBulkUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    """Mark several students at once. Either every entry is applied or none is."""
    try:
        return await service.bulk_upsert_attendance_for_session(db, organization_id, session_id, payload.entries)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


# ----- Reports -----
@router.get("/attendance", response_model=OrganizationAttendanceResponse)
async def list_attendance(
    organization_id: UUID,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    group_id: Optional[UUID] = Query(None),
    session_id: Optional[UUID] = Query(None),
    student_id: Optional[UUID] = Query(None),
    attendance_status: Optional[AttendanceStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    """Attendance across the organization, newest session first."""
    try:
        records = await service.get_attendance_by_organization(
            db,
            organization_id,
            date_from=date_from,
            date_to=date_to,
            group_id=group_id,
            session_id=session_id,
            student_id=student_id,
            status=attendance_status,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return OrganizationAttendanceResponse(records=records)


@router.get("/attendance/missing", response_model=MissingAttendanceResponse)
async def get_missing_attendance(
    organization_id: UUID,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        sessions = await service.get_sessions_with_missing_attendance(db, organization_id, date_from, date_to)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return MissingAttendanceResponse(sessions=sessions)


@router.get("/students/{student_id}/attendance", response_model=StudentAttendanceHistoryResponse)
async def get_student_attendance(
    organization_id: UUID,
    student_id: UUID,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_organization_access),
):
    try:
        records = await service.get_attendance_by_student(db, organization_id, student_id, date_from, date_to)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return StudentAttendanceHistoryResponse(
        student_id=student_id,
        date_from=date_from,
        date_to=date_to,
        records=records,
    )
