"""
Cleanup/repair: remove every record that depends on a student and recompute the batches they touched.

Intended for administrative repair, not routine unenrollment. Deletes run in dependency order
(payments, invoices, enrollments, attendance), each step committed on its own, so an interrupted
purge leaves inspectable state and re-running it is always safe.

When no user matches the email the purge runs in orphan mode and targets rows whose student
reference is null or points at a user that no longer exists.
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.capacity import service as capacity_service
from app.auth.models import User
from app.core.exceptions import NotFound, PurgeIncomplete, StoreFailure
from app.core.models import Attendance, Batch, Enrollment, Invoice, Payment
from app.core.services import log_audit
from app.db.store import (
    Predicate,
    RecordStore,
    any_of,
    dangling,
    equals,
    in_set,
    missing,
    run_with_retry,
)

from .schemas import DeletionReport, PurgeCounts, StudentSummary

logger = logging.getLogger(__name__)

STEP_DELETE_PAYMENTS = "delete_payments"
STEP_DELETE_INVOICES = "delete_invoices"
STEP_DELETE_ENROLLMENTS = "delete_enrollments"
STEP_DELETE_ATTENDANCE = "delete_attendance"
STEP_RECOMPUTE_CAPACITY = "recompute_capacity"
STEP_DELETE_STUDENT = "delete_student"


def _student_matcher(user: Optional[User]) -> Callable[[object], Predicate]:
    if user is not None:
        return lambda column: equals(column, user.id)
    return lambda column: any_of(missing(column), dangling(column, User.id))


def _add_batch(batch_ids: List[str], batch_id: Optional[str]) -> None:
    if batch_id and batch_id not in batch_ids:
        batch_ids.append(batch_id)


async def _run_step(
    db: AsyncSession,
    report: DeletionReport,
    step: str,
    work,
):
    try:
        result = await run_with_retry(db, work, label=f"purge.{step}")
    except StoreFailure as exc:
        logger.error("purge_step_failed email=%s step=%s completed=%s", report.email, step, report.completed_steps)
        raise PurgeIncomplete(
            f"Purge stopped at step '{step}'; re-run to finish",
            report,
            list(report.completed_steps),
        ) from exc
    report.completed_steps.append(step)
    logger.info("purge_step_done email=%s step=%s", report.email, step)
    return result


async def purge_student(
    db: AsyncSession,
    email: str,
    actor_id: Optional[str] = None,
) -> DeletionReport:
    store = RecordStore(db)
    email = email.strip().lower()
    user = await store.find_one(User, equals(User.email, email))
    matches = _student_matcher(user)
    user_id = user.id if user is not None else None

    report = DeletionReport(email=email, orphan_mode=user is None)
    if user is not None:
        report.student = StudentSummary(id=user.id, full_name=user.full_name, email=user.email, role=user.role)
        logger.info("purge_started email=%s student_id=%s", email, user.id)
    else:
        logger.warning("purge_started email=%s orphan_mode=true", email)

    # Collect
    batch_ids: List[str] = []
    enrollments = await store.find(Enrollment, matches(Enrollment.student_id))
    for e in enrollments:
        _add_batch(batch_ids, e.batch_id)
    invoices = await store.find(Invoice, matches(Invoice.student_id))
    for inv in invoices:
        _add_batch(batch_ids, inv.batch_id)
    invoice_ids = [inv.id for inv in invoices]
    payments = await store.find(Payment, in_set(Payment.invoice_id, invoice_ids))
    attendance = await store.find(Attendance, matches(Attendance.student_id))

    enrollment_ids = [e.id for e in enrollments]
    attendance_ids = [a.id for a in attendance]
    report.found = PurgeCounts(
        enrollments=len(enrollments),
        invoices=len(invoices),
        payments=len(payments),
        attendance=len(attendance),
    )
    report.affected_batch_ids = list(batch_ids)

    # Delete, dependency order first
    report.deleted.payments = await _run_step(
        db, report, STEP_DELETE_PAYMENTS,
        lambda: store.delete(Payment, in_set(Payment.invoice_id, invoice_ids)),
    )
    report.deleted.invoices = await _run_step(
        db, report, STEP_DELETE_INVOICES,
        lambda: store.delete(Invoice, in_set(Invoice.id, invoice_ids)),
    )
    report.deleted.enrollments = await _run_step(
        db, report, STEP_DELETE_ENROLLMENTS,
        lambda: store.delete(Enrollment, in_set(Enrollment.id, enrollment_ids)),
    )
    report.deleted.attendance = await _run_step(
        db, report, STEP_DELETE_ATTENDANCE,
        lambda: store.delete(Attendance, in_set(Attendance.id, attendance_ids)),
    )

    async def _recompute():
        results = []
        for batch_id in batch_ids:
            if await store.get(Batch, batch_id) is None:
                logger.warning("purge_batch_missing batch_id=%s", batch_id)
                continue
            results.append(await capacity_service.recompute(db, batch_id))
        await log_audit(
            store,
            "student",
            user_id,
            "student_data_purged",
            performed_by=actor_id,
            remarks=email,
            payload={
                "orphan_mode": report.orphan_mode,
                "deleted": report.deleted.model_dump(),
                "batch_ids": batch_ids,
            },
        )
        return results

    report.batches_recomputed = await _run_step(db, report, STEP_RECOMPUTE_CAPACITY, _recompute)
    logger.info(
        "purge_completed email=%s enrollments=%d invoices=%d payments=%d attendance=%d batches=%d",
        email,
        report.deleted.enrollments,
        report.deleted.invoices,
        report.deleted.payments,
        report.deleted.attendance,
        len(report.batches_recomputed),
    )
    return report


async def delete_student(
    db: AsyncSession,
    student_id: str,
    actor_id: Optional[str] = None,
) -> DeletionReport:
    """Purge every dependent record, then remove the user itself."""
    store = RecordStore(db)
    user = await store.get(User, student_id)
    if not user:
        raise NotFound("Student not found")
    report = await purge_student(db, user.email, actor_id=actor_id)

    async def _work() -> int:
        return await store.delete(User, equals(User.id, student_id))

    await _run_step(db, report, STEP_DELETE_STUDENT, _work)
    report.student_deleted = True
    logger.info("student_deleted student_id=%s", student_id)
    return report
