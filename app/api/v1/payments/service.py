"""
Payment ledger: invoices and the payments submitted against them.

Payments are never auto-verified. Invoice status is always re-derived from the full set of verified
payments (never a running balance), so re-running the derivation is safe at any time.
"""

import logging
import secrets
import string
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.capacity import service as capacity_service
from app.api.v1.enrollments import service as enrollment_service
from app.auth.models import User
from app.core.config import settings
from app.core.enums import (
    InvoiceStatus,
    PaymentStatus,
    SEAT_HOLDING_STATUSES,
    UserRole,
)
from app.core.exceptions import (
    CapacityExceeded,
    DuplicateInvoice,
    InvalidAmount,
    InvalidTransition,
    InvoiceNotFound,
    NotFound,
    ServiceError,
)
from app.core.models import Batch, Enrollment, Invoice, Payment
from app.core.services import log_audit, to_decimal
from app.db.store import RecordStore, equals, in_set, run_with_retry

from .schemas import (
    InvoiceCreate,
    InvoiceResponse,
    InvoiceSummary,
    PaymentResponse,
    PaymentSubmit,
)

logger = logging.getLogger(__name__)

DEFAULT_DUE_DAYS = 30


def _invoice_to_response(inv: Invoice) -> InvoiceResponse:
    return InvoiceResponse(
        id=inv.id,
        invoice_number=inv.invoice_number,
        student_id=inv.student_id,
        batch_id=inv.batch_id,
        batch_name=inv.batch_name,
        amount=to_decimal(inv.amount),
        discount_amount=to_decimal(inv.discount_amount),
        final_amount=to_decimal(inv.final_amount),
        currency=inv.currency,
        status=inv.status,
        due_date=inv.due_date,
        notes=inv.notes,
        created_by=inv.created_by,
        created_at=inv.created_at,
    )


def _payment_to_response(p: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=p.id,
        invoice_id=p.invoice_id,
        amount=to_decimal(p.amount),
        method=p.method,
        sender_reference=p.sender_reference,
        transaction_reference=p.transaction_reference,
        status=p.status,
        submitted_at=p.submitted_at,
        verified_by=p.verified_by,
        verified_at=p.verified_at,
        rejection_reason=p.rejection_reason,
    )


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(4))
    return f"INV-{now:%Y%m%d%H%M%S}-{suffix}"


def derive_invoice_status(final_amount: Decimal, verified_total: Decimal) -> str:
    if verified_total >= final_amount:
        return InvoiceStatus.paid.value
    if verified_total > 0:
        return InvoiceStatus.partial.value
    return InvoiceStatus.unpaid.value


async def _payment_total(db: AsyncSession, invoice_id: str, payment_status: str) -> Decimal:
    total = (
        await db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.invoice_id == invoice_id,
                Payment.status == payment_status,
            )
        )
    ).scalar() or Decimal("0")
    return to_decimal(total)


async def get_invoice(db: AsyncSession, invoice_id: str) -> Invoice:
    invoice = await RecordStore(db).get(Invoice, invoice_id)
    if not invoice:
        raise InvoiceNotFound()
    return invoice


async def recompute_invoice_status(db: AsyncSession, invoice_id: str) -> Invoice:
    """Re-derive status from verified payments. Idempotent. Caller commits."""
    store = RecordStore(db)
    invoice = await get_invoice(db, invoice_id)
    if invoice.status == InvoiceStatus.cancelled.value:
        return invoice
    verified = await _payment_total(db, invoice.id, PaymentStatus.verified.value)
    new_status = derive_invoice_status(to_decimal(invoice.final_amount), verified)
    if new_status != invoice.status:
        logger.info("invoice_status invoice_id=%s from=%s to=%s verified=%s", invoice.id, invoice.status, new_status, verified)
        await store.update(invoice, status=new_status)
    await enrollment_service.sync_payment_status(db, invoice.student_id, invoice.batch_id, new_status)
    return invoice


# --- Invoices ---
async def create_invoice(
    db: AsyncSession,
    payload: InvoiceCreate,
    created_by: Optional[str] = None,
) -> InvoiceResponse:
    store = RecordStore(db)
    student = await store.get(User, payload.student_id)
    if not student or student.role != UserRole.STUDENT.value:
        raise NotFound("Student not found")

    batch = None
    if payload.batch_id:
        batch = await store.get(Batch, payload.batch_id)
        if not batch:
            raise NotFound("Batch not found")
        existing = await store.find_one(
            Invoice,
            equals(Invoice.student_id, student.id),
            equals(Invoice.batch_id, batch.id),
            Invoice.status != InvoiceStatus.cancelled.value,
        )
        if existing:
            raise DuplicateInvoice(
                f"Student already has invoice {existing.invoice_number} for this batch"
            )
        holds_seat = await store.find_one(
            Enrollment,
            equals(Enrollment.student_id, student.id),
            equals(Enrollment.batch_id, batch.id),
            in_set(Enrollment.status, SEAT_HOLDING_STATUSES),
        )
        occupied = await capacity_service.measure(db, batch.id)
        if occupied >= batch.max_seats and not holds_seat:
            raise CapacityExceeded(
                f"Batch '{batch.name}' is full ({occupied}/{batch.max_seats} seats taken)"
            )

    amount = to_decimal(payload.amount if payload.amount is not None else (batch.price if batch else None))
    discount = to_decimal(payload.discount_amount)
    if discount > amount:
        raise InvalidAmount("Discount cannot exceed the invoice amount")

    now = datetime.utcnow()
    student_id = student.id
    batch_id = batch.id if batch else None
    batch_name = batch.name if batch else None

    async def _work() -> Invoice:
        invoice = Invoice(
            invoice_number=generate_invoice_number(now),
            student_id=student_id,
            batch_id=batch_id,
            batch_name=batch_name,
            amount=amount,
            discount_amount=discount,
            final_amount=max(Decimal("0"), amount - discount),
            currency=settings.default_currency,
            status=InvoiceStatus.unpaid.value,
            due_date=payload.due_date or (now + timedelta(days=DEFAULT_DUE_DAYS)).date(),
            notes=(payload.notes or "").strip() or None,
            created_by=created_by,
            created_at=now,
        )
        await store.insert(invoice)
        await log_audit(
            store,
            "invoice",
            invoice.id,
            "invoice_created",
            to_status=invoice.status,
            performed_by=created_by,
            payload={"student_id": student_id, "batch_id": batch_id, "final_amount": str(invoice.final_amount)},
        )
        if batch_id:
            await capacity_service.recompute(db, batch_id)
        return invoice

    invoice = await run_with_retry(db, _work, label="create_invoice")
    logger.info("invoice_created id=%s number=%s student_id=%s batch_id=%s", invoice.id, invoice.invoice_number, student_id, batch_id)
    return _invoice_to_response(invoice)


async def cancel_invoice(
    db: AsyncSession,
    invoice_id: str,
    actor_id: Optional[str] = None,
) -> InvoiceResponse:
    """Only unpaid invoices can be cancelled. Pending submissions are rejected with it."""
    store = RecordStore(db)
    invoice = await get_invoice(db, invoice_id)
    if invoice.status != InvoiceStatus.unpaid.value:
        raise InvalidTransition(f"Only unpaid invoices can be cancelled (current: {invoice.status})")
    batch_id, from_status = invoice.batch_id, invoice.status

    async def _work() -> Invoice:
        current = await get_invoice(db, invoice_id)
        pending = await store.find(
            Payment,
            equals(Payment.invoice_id, invoice_id),
            equals(Payment.status, PaymentStatus.submitted.value),
        )
        for p in pending:
            await store.update(p, status=PaymentStatus.rejected.value, rejection_reason="Invoice cancelled")
        await store.update(current, status=InvoiceStatus.cancelled.value)
        await log_audit(
            store,
            "invoice",
            invoice_id,
            "invoice_cancelled",
            from_status=from_status,
            to_status=InvoiceStatus.cancelled.value,
            performed_by=actor_id,
        )
        if batch_id and await store.get(Batch, batch_id) is not None:
            await capacity_service.recompute(db, batch_id)
        return current

    return _invoice_to_response(await run_with_retry(db, _work, label="cancel_invoice"))


async def invoice_summary(db: AsyncSession, invoice_id: str) -> InvoiceSummary:
    invoice = await get_invoice(db, invoice_id)
    payments = await RecordStore(db).find(
        Payment,
        equals(Payment.invoice_id, invoice.id),
        order_by=Payment.submitted_at,
    )
    verified = sum(
        (to_decimal(p.amount) for p in payments if p.status == PaymentStatus.verified.value),
        Decimal("0"),
    )
    pending = sum(
        (to_decimal(p.amount) for p in payments if p.status == PaymentStatus.submitted.value),
        Decimal("0"),
    )
    final = to_decimal(invoice.final_amount)
    return InvoiceSummary(
        invoice=_invoice_to_response(invoice),
        payments=[_payment_to_response(p) for p in payments],
        verified_total=verified,
        pending_total=pending,
        outstanding=max(Decimal("0"), final - verified),
    )


# --- Payments ---
async def submit_payment(
    db: AsyncSession,
    invoice_id: str,
    payload: PaymentSubmit,
    payer_id: Optional[str] = None,
) -> PaymentResponse:
    """Record a submission. `payer_id`, when given, must own the invoice."""
    store = RecordStore(db)
    invoice = await get_invoice(db, invoice_id)
    amount = to_decimal(payload.amount)
    if amount <= 0:
        raise InvalidAmount()
    if payer_id is not None and invoice.student_id != payer_id:
        raise ServiceError("You can only pay your own invoices", status.HTTP_403_FORBIDDEN)
    if invoice.status == InvoiceStatus.cancelled.value:
        raise InvalidTransition("Invoice is cancelled and no longer accepts payments")
    verified = await _payment_total(db, invoice.id, PaymentStatus.verified.value)
    outstanding = to_decimal(invoice.final_amount) - verified
    if amount > outstanding:
        raise InvalidAmount(f"Payment amount cannot exceed remaining balance ({outstanding})")

    async def _work() -> Payment:
        payment = Payment(
            invoice_id=invoice_id,
            amount=amount,
            method=payload.method.value,
            sender_reference=payload.sender_reference.strip(),
            transaction_reference=(payload.transaction_reference or "").strip() or None,
            status=PaymentStatus.submitted.value,
            submitted_at=datetime.utcnow(),
        )
        await store.insert(payment)
        await log_audit(
            store,
            "payment",
            payment.id,
            "payment_submitted",
            to_status=PaymentStatus.submitted.value,
            performed_by=payer_id,
            payload={"invoice_id": invoice_id, "amount": str(amount), "method": payment.method},
        )
        return payment

    payment = await run_with_retry(db, _work, label="submit_payment")
    logger.info("payment_submitted id=%s invoice_id=%s amount=%s", payment.id, invoice_id, amount)
    return _payment_to_response(payment)


async def _get_payment(db: AsyncSession, payment_id: str) -> Payment:
    payment = await RecordStore(db).get(Payment, payment_id)
    if not payment:
        raise NotFound("Payment not found")
    return payment


async def verify_payment(
    db: AsyncSession,
    payment_id: str,
    verified_by: Optional[str] = None,
) -> InvoiceResponse:
    """Mark verified, then re-derive the invoice. Verifying twice only re-derives."""
    store = RecordStore(db)
    payment = await _get_payment(db, payment_id)
    if payment.status == PaymentStatus.rejected.value:
        raise InvalidTransition("Rejected payments cannot be verified")
    invoice_id = payment.invoice_id
    await get_invoice(db, invoice_id)

    async def _work() -> Invoice:
        current = await _get_payment(db, payment_id)
        if current.status != PaymentStatus.verified.value:
            await store.update(
                current,
                status=PaymentStatus.verified.value,
                verified_by=verified_by,
                verified_at=datetime.utcnow(),
            )
            await log_audit(
                store,
                "payment",
                payment_id,
                "payment_verified",
                from_status=PaymentStatus.submitted.value,
                to_status=PaymentStatus.verified.value,
                performed_by=verified_by,
            )
        return await recompute_invoice_status(db, invoice_id)

    invoice = await run_with_retry(db, _work, label="verify_payment")
    logger.info("payment_verified id=%s invoice_id=%s invoice_status=%s", payment_id, invoice_id, invoice.status)
    return _invoice_to_response(invoice)


async def reject_payment(
    db: AsyncSession,
    payment_id: str,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
) -> InvoiceResponse:
    store = RecordStore(db)
    payment = await _get_payment(db, payment_id)
    if payment.status == PaymentStatus.verified.value:
        raise InvalidTransition("Verified payments cannot be rejected")
    invoice_id = payment.invoice_id
    await get_invoice(db, invoice_id)
    reason = (reason or "").strip() or None

    async def _work() -> Invoice:
        current = await _get_payment(db, payment_id)
        if current.status != PaymentStatus.rejected.value:
            await store.update(current, status=PaymentStatus.rejected.value, rejection_reason=reason)
            await log_audit(
                store,
                "payment",
                payment_id,
                "payment_rejected",
                from_status=PaymentStatus.submitted.value,
                to_status=PaymentStatus.rejected.value,
                performed_by=actor_id,
                remarks=reason,
            )
        return await recompute_invoice_status(db, invoice_id)

    invoice = await run_with_retry(db, _work, label="reject_payment")
    logger.info("payment_rejected id=%s invoice_id=%s", payment_id, invoice_id)
    return _invoice_to_response(invoice)

