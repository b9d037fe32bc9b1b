"""Admin repair router: purge a student's dependent data, or remove the student entirely."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import DeletionReport, PurgeRequest
from . import service

router = APIRouter(prefix="/api/v1/admin", tags=["admin-cleanup"])


@router.post(
    "/cleanup/student",
    response_model=DeletionReport,
)
async def cleanup_student_data(
    payload: PurgeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles()),
) -> DeletionReport:
    """
    Remove enrollments, invoices, payments and attendance for the student with this email.
    If no user has the email, rows with a missing or dangling student reference are removed instead.
    """
    try:
        return await service.purge_student(db, payload.email, actor_id=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete(
    "/students/{student_id}",
    response_model=DeletionReport,
)
async def delete_student(
    student_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles()),
) -> DeletionReport:
    try:
        return await service.delete_student(db, student_id, actor_id=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
