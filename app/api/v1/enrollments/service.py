"""
Enrollment state machine: pending -> approved | rejected, approved -> completed.

Creation runs in one of two modes. `purchase` starts pending and must pass the dual gate
(student account approved) before approval. `direct_add` is a mentor/admin seat grant: it starts
approved and paid, and is itself the authorization. Every seat-changing step recomputes capacity.
"""

import logging
from datetime import datetime
from typing import Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.capacity import service as capacity_service
from app.auth.models import User
from app.core.enums import (
    SEAT_HOLDING_STATUSES,
    ApprovalStatus,
    BatchStatus,
    EnrollmentAction,
    EnrollmentMode,
    EnrollmentPaymentStatus,
    EnrollmentStatus,
    InvoiceStatus,
    UserRole,
)
from app.core.exceptions import (
    CapacityExceeded,
    DuplicateEnrollment,
    InvalidAmount,
    InvalidTransition,
    NotFound,
    StudentNotApproved,
)
from app.core.models import Batch, Enrollment, Invoice
from app.core.services import log_audit, to_decimal
from app.db.store import RecordStore, any_of, equals, in_set, missing, run_with_retry

from .schemas import EnrollmentCreate, EnrollmentResponse, UnenrollResponse

logger = logging.getLogger(__name__)

# (current status, action) -> next status. rejected and completed are terminal.
TRANSITIONS: Dict[Tuple[str, str], str] = {
    (EnrollmentStatus.pending.value, EnrollmentAction.approve.value): EnrollmentStatus.approved.value,
    (EnrollmentStatus.pending.value, EnrollmentAction.reject.value): EnrollmentStatus.rejected.value,
    (EnrollmentStatus.approved.value, EnrollmentAction.complete.value): EnrollmentStatus.completed.value,
}

_CLOSED_BATCH_STATUSES = (BatchStatus.completed.value, BatchStatus.cancelled.value)

_PAYMENT_STATUS_BY_INVOICE = {
    InvoiceStatus.paid.value: EnrollmentPaymentStatus.paid.value,
    InvoiceStatus.partial.value: EnrollmentPaymentStatus.partial.value,
    InvoiceStatus.unpaid.value: EnrollmentPaymentStatus.pending.value,
}


def _enrollment_to_response(e: Enrollment) -> EnrollmentResponse:
    return EnrollmentResponse(
        id=e.id,
        student_id=e.student_id,
        batch_id=e.batch_id,
        course_id=e.course_id,
        status=e.status,
        payment_status=e.payment_status,
        amount=to_decimal(e.amount),
        enrollment_date=e.enrollment_date,
        approved_by=e.approved_by,
        approved_at=e.approved_at,
        rejection_reason=e.rejection_reason,
        completed_at=e.completed_at,
        progress=e.progress or 0,
    )


async def _latest_invoice(store: RecordStore, student_id: str, batch_id: str) -> Optional[Invoice]:
    invoices = await store.find(
        Invoice,
        equals(Invoice.student_id, student_id),
        equals(Invoice.batch_id, batch_id),
        Invoice.status != InvoiceStatus.cancelled.value,
        order_by=Invoice.created_at.desc(),
    )
    return invoices[0] if invoices else None


async def _ensure_seat_available(
    db: AsyncSession,
    store: RecordStore,
    batch: Batch,
    student_id: str,
) -> None:
    """Seat ceiling check.

    A student holding an invoice for the batch is already counted on the invoice side, but that
    only reserves a seat while the other students' enrollments leave one free.
    """
    occupied = await capacity_service.measure(db, batch.id)
    if occupied < batch.max_seats:
        return
    if await _latest_invoice(store, student_id, batch.id) is not None:
        enrolled_others = await store.count(
            Enrollment,
            equals(Enrollment.batch_id, batch.id),
            in_set(Enrollment.status, SEAT_HOLDING_STATUSES),
            any_of(missing(Enrollment.student_id), Enrollment.student_id != student_id),
        )
        if enrolled_others < batch.max_seats:
            return
    raise CapacityExceeded(
        f"Batch '{batch.name}' is full ({occupied}/{batch.max_seats} seats taken)"
    )


async def get_enrollment(db: AsyncSession, enrollment_id: str) -> Enrollment:
    enrollment = await RecordStore(db).get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFound("Enrollment not found")
    return enrollment


async def create_enrollment(
    db: AsyncSession,
    payload: EnrollmentCreate,
    actor_id: Optional[str] = None,
) -> EnrollmentResponse:
    if payload.amount < 0:
        raise InvalidAmount("Enrollment amount cannot be negative")
    store = RecordStore(db)
    student = await store.get(User, payload.student_id)
    if not student or student.role != UserRole.STUDENT.value:
        raise NotFound("Student not found")
    batch = await store.get(Batch, payload.batch_id)
    if not batch:
        raise NotFound("Batch not found")
    if batch.status in _CLOSED_BATCH_STATUSES:
        raise InvalidTransition(f"Batch is {batch.status} and no longer accepts enrollments")

    duplicate = await store.find_one(
        Enrollment,
        equals(Enrollment.student_id, student.id),
        equals(Enrollment.batch_id, batch.id),
        Enrollment.status != EnrollmentStatus.rejected.value,
    )
    if duplicate:
        raise DuplicateEnrollment()

    await _ensure_seat_available(db, store, batch, student.id)

    direct = payload.mode == EnrollmentMode.direct_add
    if direct:
        initial_status = EnrollmentStatus.approved.value
        payment_status = EnrollmentPaymentStatus.paid.value
    else:
        initial_status = EnrollmentStatus.pending.value
        invoice = await _latest_invoice(store, student.id, batch.id)
        payment_status = _PAYMENT_STATUS_BY_INVOICE.get(
            invoice.status if invoice else None, EnrollmentPaymentStatus.pending.value
        )

    student_id, batch_id, course_id = student.id, batch.id, batch.course_id
    now = datetime.utcnow()

    async def _work() -> Enrollment:
        enrollment = Enrollment(
            student_id=student_id,
            batch_id=batch_id,
            course_id=course_id,
            status=initial_status,
            payment_status=payment_status,
            amount=payload.amount,
            enrollment_date=now,
            approved_by=actor_id if direct else None,
            approved_at=now if direct else None,
            progress=0,
        )
        await store.insert(enrollment)
        await log_audit(
            store,
            "enrollment",
            enrollment.id,
            "enrollment_created",
            to_status=initial_status,
            performed_by=actor_id,
            payload={"mode": payload.mode.value, "batch_id": batch_id, "amount": str(payload.amount)},
        )
        if direct:
            await capacity_service.recompute(db, batch_id)
        return enrollment

    enrollment = await run_with_retry(db, _work, label="create_enrollment")
    logger.info(
        "enrollment_created id=%s student_id=%s batch_id=%s mode=%s status=%s",
        enrollment.id, student_id, batch_id, payload.mode.value, initial_status,
    )
    return _enrollment_to_response(enrollment)


async def transition_enrollment(
    db: AsyncSession,
    enrollment_id: str,
    action: EnrollmentAction,
    actor_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> EnrollmentResponse:
    store = RecordStore(db)
    enrollment = await get_enrollment(db, enrollment_id)
    action_value = EnrollmentAction(action).value

    # Dual gate first: it fails regardless of the enrollment's own status.
    if action_value == EnrollmentAction.approve.value:
        student = await store.get(User, enrollment.student_id)
        if not student:
            raise NotFound("Student not found")
        if student.approval_status != ApprovalStatus.approved.value:
            raise StudentNotApproved(
                f"Student account is {student.approval_status}; approve the student before the enrollment"
            )

    from_status = enrollment.status
    target = TRANSITIONS.get((from_status, action_value))
    if target is None:
        raise InvalidTransition(f"Cannot {action_value} an enrollment that is {from_status}")

    batch_id = enrollment.batch_id
    if action_value == EnrollmentAction.approve.value:
        batch = await store.get(Batch, batch_id)
        if not batch:
            raise NotFound("Batch not found")
        await _ensure_seat_available(db, store, batch, enrollment.student_id)

    now = datetime.utcnow()
    reason = (reason or "").strip() or None

    async def _work() -> Enrollment:
        current = await store.get(Enrollment, enrollment_id)
        if current is None:
            raise NotFound("Enrollment not found")
        # The row may have moved on since it was read above
        if TRANSITIONS.get((current.status, action_value)) != target:
            raise InvalidTransition(f"Cannot {action_value} an enrollment that is {current.status}")
        fields = {"status": target}
        if action_value == EnrollmentAction.approve.value:
            fields.update(approved_by=actor_id, approved_at=now)
        elif action_value == EnrollmentAction.reject.value:
            fields.update(rejection_reason=reason)
        else:
            fields.update(completed_at=now, progress=100)
        await store.update(current, **fields)
        await log_audit(
            store,
            "enrollment",
            enrollment_id,
            f"enrollment_{action_value}",
            from_status=from_status,
            to_status=target,
            performed_by=actor_id,
            remarks=reason,
        )
        # Pending enrollments never held a seat, so a reject leaves capacity alone.
        if action_value != EnrollmentAction.reject.value:
            await capacity_service.recompute(db, batch_id)
        return current

    updated = await run_with_retry(db, _work, label="transition_enrollment")
    logger.info("enrollment_transition id=%s action=%s from=%s to=%s", enrollment_id, action_value, from_status, target)
    return _enrollment_to_response(updated)


async def unenroll(
    db: AsyncSession,
    enrollment_id: str,
    actor_id: Optional[str] = None,
) -> UnenrollResponse:
    """Routine removal: one enrollment delete and one capacity recompute."""
    store = RecordStore(db)
    enrollment = await get_enrollment(db, enrollment_id)
    batch_id, from_status = enrollment.batch_id, enrollment.status

    async def _work() -> Optional[int]:
        await store.delete(Enrollment, equals(Enrollment.id, enrollment_id))
        await log_audit(
            store,
            "enrollment",
            enrollment_id,
            "enrollment_removed",
            from_status=from_status,
            performed_by=actor_id,
        )
        if await store.get(Batch, batch_id) is None:
            return None
        return (await capacity_service.recompute(db, batch_id)).occupied_seats

    occupied = await run_with_retry(db, _work, label="unenroll")
    logger.info("enrollment_removed id=%s batch_id=%s", enrollment_id, batch_id)
    return UnenrollResponse(enrollment_id=enrollment_id, batch_id=batch_id, occupied_seats=occupied)


async def record_progress(
    db: AsyncSession,
    enrollment_id: str,
    progress: int,
) -> EnrollmentResponse:
    store = RecordStore(db)
    enrollment = await get_enrollment(db, enrollment_id)
    if enrollment.status != EnrollmentStatus.approved.value:
        raise InvalidTransition(f"Progress can only be recorded on approved enrollments (current: {enrollment.status})")

    async def _work() -> Enrollment:
        current = await store.get(Enrollment, enrollment_id)
        return await store.update(current, progress=progress)

    return _enrollment_to_response(await run_with_retry(db, _work, label="record_progress"))


async def sync_payment_status(
    db: AsyncSession,
    student_id: Optional[str],
    batch_id: Optional[str],
    invoice_status: str,
) -> int:
    """
    Align a real enrollment's payment_status with its invoice. Runs inside the caller's unit
    of work. Never downgrades a paid enrollment (direct-add seats are paid by definition).
    """
    mapped = _PAYMENT_STATUS_BY_INVOICE.get(invoice_status)
    if not student_id or not batch_id or mapped is None:
        return 0
    store = RecordStore(db)
    enrollments = await store.find(
        Enrollment,
        equals(Enrollment.student_id, student_id),
        equals(Enrollment.batch_id, batch_id),
        Enrollment.status != EnrollmentStatus.rejected.value,
    )
    updated = 0
    for e in enrollments:
        if e.payment_status == mapped or e.payment_status == EnrollmentPaymentStatus.paid.value:
            continue
        await store.update(e, payment_status=mapped)
        updated += 1
    return updated
