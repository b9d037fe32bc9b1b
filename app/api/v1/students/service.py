"""
Student account approval: the first half of the dual gate.

Deciding on the account never touches enrollments. A pending enrollment stays pending until an
admin approves it explicitly, which is only possible once the account is approved.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.enums import ApprovalStatus, UserRole
from app.core.exceptions import InvalidTransition, NotFound, ServiceError
from app.core.services import log_audit
from app.db.store import RecordStore, equals, run_with_retry

from .schemas import ApprovalAction, StudentApprovalResponse

logger = logging.getLogger(__name__)


async def list_pending_students(db: AsyncSession) -> List[StudentApprovalResponse]:
    users = await RecordStore(db).find(
        User,
        equals(User.role, UserRole.STUDENT.value),
        equals(User.approval_status, ApprovalStatus.pending.value),
        order_by=User.created_at,
    )
    return [StudentApprovalResponse.model_validate(u) for u in users]


async def decide_approval(
    db: AsyncSession,
    student_id: str,
    action: ApprovalAction,
    actor_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> StudentApprovalResponse:
    store = RecordStore(db)
    user = await store.get(User, student_id)
    if not user:
        raise NotFound("Student not found")
    if user.role != UserRole.STUDENT.value:
        raise ServiceError("User is not a student", status.HTTP_400_BAD_REQUEST)
    if user.approval_status != ApprovalStatus.pending.value:
        raise InvalidTransition(f"Student account is already {user.approval_status}")

    action_value = ApprovalAction(action).value
    approve = action_value == ApprovalAction.approve.value
    target = ApprovalStatus.approved.value if approve else ApprovalStatus.rejected.value
    reason = (reason or "").strip() or None
    now = datetime.utcnow()

    async def _work() -> User:
        current = await store.get(User, student_id)
        await store.update(
            current,
            approval_status=target,
            approval_date=now,
            approved_by=actor_id,
            rejection_reason=None if approve else reason,
        )
        await log_audit(
            store,
            "student",
            student_id,
            f"student_{action_value}",
            from_status=ApprovalStatus.pending.value,
            to_status=target,
            performed_by=actor_id,
            remarks=reason,
        )
        return current

    updated = await run_with_retry(db, _work, label="decide_student_approval")
    logger.info("student_approval student_id=%s status=%s by=%s", student_id, target, actor_id)
    return StudentApprovalResponse.model_validate(updated)
