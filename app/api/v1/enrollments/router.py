"""Enrollments router: create, lifecycle transitions, progress, unenroll."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import ensure_self_or_admin, require_roles
from app.auth.schemas import CurrentUser
from app.core.enums import EnrollmentMode
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    EnrollmentCreate,
    EnrollmentProgressUpdate,
    EnrollmentResponse,
    EnrollmentTransition,
    UnenrollResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_enrollment(
    payload: EnrollmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> EnrollmentResponse:
    if payload.mode == EnrollmentMode.direct_add:
        if current_user.role not in ("admin", "mentor"):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only mentors and admins can add students directly",
            )
    else:
        ensure_self_or_admin(current_user, payload.student_id)
    try:
        return await service.create_enrollment(db, payload, actor_id=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/{enrollment_id}/transition",
    response_model=EnrollmentResponse,
)
async def transition_enrollment(
    enrollment_id: str,
    payload: EnrollmentTransition,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles()),
) -> EnrollmentResponse:
    try:
        return await service.transition_enrollment(
            db,
            enrollment_id,
            payload.action,
            actor_id=current_user.id,
            reason=payload.reason,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.patch(
    "/{enrollment_id}/progress",
    response_model=EnrollmentResponse,
    dependencies=[Depends(require_roles("mentor"))],
)
async def record_progress(
    enrollment_id: str,
    payload: EnrollmentProgressUpdate,
    db: AsyncSession = Depends(get_db),
) -> EnrollmentResponse:
    try:
        return await service.record_progress(db, enrollment_id, payload.progress)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.delete(
    "/{enrollment_id}",
    response_model=UnenrollResponse,
)
async def unenroll(
    enrollment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles()),
) -> UnenrollResponse:
    try:
        return await service.unenroll(db, enrollment_id, actor_id=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
