"""Admin queue for student account approvals."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import StudentApprovalDecision, StudentApprovalResponse
from . import service

router = APIRouter(prefix="/api/v1/admin/student-approvals", tags=["student-approvals"])


@router.get(
    "",
    response_model=List[StudentApprovalResponse],
    dependencies=[Depends(require_roles())],
)
async def list_pending_students(
    db: AsyncSession = Depends(get_db),
) -> List[StudentApprovalResponse]:
    return await service.list_pending_students(db)


@router.post(
    "/{student_id}",
    response_model=StudentApprovalResponse,
)
async def decide_student_approval(
    student_id: str,
    payload: StudentApprovalDecision,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles()),
) -> StudentApprovalResponse:
    try:
        return await service.decide_approval(
            db,
            student_id,
            payload.action,
            actor_id=current_user.id,
            reason=payload.reason,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
