"""Reconciled enrollment views for students and batch rosters."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import ensure_self_or_admin, require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import EnrollmentStatus
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import EnrollmentView, RosterEntry
from . import service

router = APIRouter(prefix="/api/v1", tags=["reconciliation"])


@router.get(
    "/students/{student_id}/enrollments/view",
    response_model=List[EnrollmentView],
)
async def get_student_enrollment_view(
    student_id: str,
    status: Optional[EnrollmentStatus] = Query(None, description="Only views in this status"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[EnrollmentView]:
    ensure_self_or_admin(current_user, student_id)
    try:
        return await service.student_view(db, student_id, status_filter=status)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get(
    "/batches/{batch_id}/roster",
    response_model=List[RosterEntry],
    dependencies=[Depends(require_roles("mentor"))],
)
async def get_batch_roster(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
) -> List[RosterEntry]:
    try:
        return await service.batch_roster(db, batch_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
