"""
Reconciliation engine: one consistent enrollment view per student from Enrollment and Invoice rows.

An invoice can exist without an enrollment row (purchase flow, deferred creation, historical bad
writes). Such invoices are shown as virtual enrollments so a student never loses sight of a payment.
Views are keyed by batch: a real enrollment always replaces the virtual one, and no batch appears twice.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.enums import EnrollmentPaymentStatus, EnrollmentStatus, InvoiceStatus
from app.core.exceptions import NotFound
from app.core.models import Batch, Course, Enrollment, Invoice, Mentor
from app.core.services import as_utc, to_decimal
from app.db.store import RecordStore, equals, exists, in_set

from .schemas import BatchInfo, CourseInfo, EnrollmentView, MentorInfo, RosterEntry

logger = logging.getLogger(__name__)

UNAVAILABLE_MENTOR_NAME = "Mentor information unavailable"
UNAVAILABLE_MENTOR_DESIGNATION = "Contact admin"


def _virtual_payment_status(invoice: Invoice) -> str:
    if invoice.status == InvoiceStatus.paid.value:
        return EnrollmentPaymentStatus.paid.value
    return EnrollmentPaymentStatus.pending.value


def _pick_enrollment(candidates: Iterable[Enrollment]) -> Enrollment:
    """Among several rows for one batch, the live one wins over a rejected one, then the newest."""
    return max(
        candidates,
        key=lambda e: (e.status != EnrollmentStatus.rejected.value, as_utc(e.enrollment_date)),
    )


def _real_view(e: Enrollment) -> EnrollmentView:
    return EnrollmentView(
        batch_id=e.batch_id,
        enrollment_id=e.id,
        is_virtual=False,
        course_id=e.course_id,
        status=e.status,
        payment_status=e.payment_status,
        amount=to_decimal(e.amount),
        enrollment_date=e.enrollment_date,
        progress=e.progress or 0,
        approved_at=e.approved_at,
    )


def _virtual_view(inv: Invoice) -> EnrollmentView:
    return EnrollmentView(
        batch_id=inv.batch_id,
        invoice_id=inv.id,
        is_virtual=True,
        status=EnrollmentStatus.pending.value,
        payment_status=_virtual_payment_status(inv),
        amount=to_decimal(inv.final_amount),
        enrollment_date=inv.created_at,
    )


def merge_views(enrollments: List[Enrollment], invoices: List[Invoice]) -> List[EnrollmentView]:
    """
    One view per batch, newest first. Real enrollments win; an invoice only contributes when
    its batch has no enrollment row, and only the newest invoice of a batch is used.
    """
    by_batch: Dict[str, List[Enrollment]] = {}
    for e in enrollments:
        if e.batch_id:
            by_batch.setdefault(e.batch_id, []).append(e)
    views: Dict[str, EnrollmentView] = {
        batch_id: _real_view(_pick_enrollment(rows)) for batch_id, rows in by_batch.items()
    }

    for inv in sorted(invoices, key=lambda i: as_utc(i.created_at), reverse=True):
        if not inv.batch_id or inv.batch_id in views:
            continue
        views[inv.batch_id] = _virtual_view(inv)

    return sorted(views.values(), key=lambda v: as_utc(v.enrollment_date), reverse=True)


async def _enrich(store: RecordStore, views: List[EnrollmentView]) -> None:
    """Attach batch, course and mentor display data. Missing lookups degrade, never fail."""
    batches: Dict[str, Optional[Batch]] = {}
    courses: Dict[str, Optional[Course]] = {}
    mentors: Dict[str, Optional[Mentor]] = {}

    for view in views:
        if view.batch_id not in batches:
            batches[view.batch_id] = await store.get(Batch, view.batch_id)
        batch = batches[view.batch_id]
        if batch is None:
            logger.warning("view_batch_missing batch_id=%s", view.batch_id)
            continue
        view.batch = BatchInfo(
            id=batch.id,
            name=batch.name,
            status=batch.status,
            start_date=batch.start_date,
            end_date=batch.end_date,
            max_seats=batch.max_seats,
            occupied_seats=batch.occupied_seats or 0,
        )

        course_id = view.course_id or batch.course_id
        if course_id:
            if course_id not in courses:
                courses[course_id] = await store.get(Course, course_id)
            course = courses[course_id]
            view.course_id = course_id
            if course is not None:
                view.course = CourseInfo(
                    id=course.id,
                    title=course.title,
                    duration=course.duration or 0,
                    duration_unit=course.duration_unit or "months",
                )

        if batch.mentor_id:
            if batch.mentor_id not in mentors:
                mentors[batch.mentor_id] = await store.get(Mentor, batch.mentor_id)
            mentor = mentors[batch.mentor_id]
            if mentor is not None:
                view.mentor = MentorInfo(
                    id=mentor.id,
                    name=mentor.name,
                    designation=mentor.designation,
                    avatar=mentor.avatar,
                )
            else:
                logger.warning("view_mentor_missing batch_id=%s mentor_id=%s", batch.id, batch.mentor_id)
                view.mentor = MentorInfo(
                    id=batch.mentor_id,
                    name=UNAVAILABLE_MENTOR_NAME,
                    designation=UNAVAILABLE_MENTOR_DESIGNATION,
                    available=False,
                )


async def student_view(
    db: AsyncSession,
    student_id: str,
    status_filter: Optional[EnrollmentStatus] = None,
) -> List[EnrollmentView]:
    store = RecordStore(db)
    student = await store.get(User, student_id)
    if not student:
        raise NotFound("Student not found")

    enrollments = await store.find(Enrollment, equals(Enrollment.student_id, student_id))
    invoices = await store.find(
        Invoice,
        equals(Invoice.student_id, student_id),
        exists(Invoice.batch_id),
    )
    views = merge_views(enrollments, invoices)
    if status_filter is not None:
        wanted = EnrollmentStatus(status_filter).value
        views = [v for v in views if v.status == wanted]
    await _enrich(store, views)
    logger.info(
        "student_view student_id=%s real=%d virtual=%d",
        student_id,
        sum(1 for v in views if not v.is_virtual),
        sum(1 for v in views if v.is_virtual),
    )
    return views


async def batch_roster(db: AsyncSession, batch_id: str) -> List[RosterEntry]:
    """The batch-side mirror of student_view: one entry per student, real or from an invoice."""
    store = RecordStore(db)
    batch = await store.get(Batch, batch_id)
    if not batch:
        raise NotFound("Batch not found")

    enrollments = await store.find(
        Enrollment,
        equals(Enrollment.batch_id, batch_id),
        exists(Enrollment.student_id),
    )
    invoices = await store.find(
        Invoice,
        equals(Invoice.batch_id, batch_id),
        exists(Invoice.student_id),
    )

    by_student: Dict[str, List[Enrollment]] = {}
    for e in enrollments:
        by_student.setdefault(e.student_id, []).append(e)
    entries: Dict[str, RosterEntry] = {}
    for student_id, rows in by_student.items():
        e = _pick_enrollment(rows)
        entries[student_id] = RosterEntry(
            student_id=student_id,
            enrollment_id=e.id,
            status=e.status,
            payment_status=e.payment_status,
            amount=to_decimal(e.amount),
            enrollment_date=e.enrollment_date,
        )
    for inv in sorted(invoices, key=lambda i: as_utc(i.created_at), reverse=True):
        if inv.student_id in entries:
            continue
        entries[inv.student_id] = RosterEntry(
            student_id=inv.student_id,
            invoice_id=inv.id,
            is_virtual=True,
            status=EnrollmentStatus.pending.value,
            payment_status=_virtual_payment_status(inv),
            amount=to_decimal(inv.final_amount),
            enrollment_date=inv.created_at,
        )

    users = await store.find(User, in_set(User.id, entries.keys()))
    for u in users:
        entries[u.id].student_name = u.full_name
        entries[u.id].student_email = u.email
    return sorted(entries.values(), key=lambda r: as_utc(r.enrollment_date), reverse=True)
