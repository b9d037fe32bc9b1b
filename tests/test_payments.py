from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.payments import service as payment_service
from app.api.v1.payments.schemas import InvoiceCreate, PaymentSubmit
from app.core.enums import PaymentMethod
from app.core.exceptions import (
    CapacityExceeded,
    DuplicateInvoice,
    InvalidAmount,
    InvalidTransition,
    InvoiceNotFound,
    ServiceError,
)
from app.core.models import Batch, Enrollment, Payment

from tests.factories import make_batch, make_enrollment, make_invoice, make_payment, make_user


def _submit(amount: str) -> PaymentSubmit:
    return PaymentSubmit(amount=Decimal(amount), method=PaymentMethod.bkash, sender_reference="01711111111")


def test_derive_invoice_status() -> None:
    assert payment_service.derive_invoice_status(Decimal("5000"), Decimal("0")) == "unpaid"
    assert payment_service.derive_invoice_status(Decimal("5000"), Decimal("2000")) == "partial"
    assert payment_service.derive_invoice_status(Decimal("5000"), Decimal("5000")) == "paid"
    assert payment_service.derive_invoice_status(Decimal("0"), Decimal("0")) == "paid"


def test_invoice_number_format() -> None:
    number = payment_service.generate_invoice_number()
    assert number.startswith("INV-")
    assert len(number.split("-")) == 3


@pytest.mark.asyncio
async def test_create_invoice_defaults_to_batch_price(db_session: AsyncSession) -> None:
    batch = await make_batch(db_session, price=Decimal("5000"), max_seats=3)
    student = await make_user(db_session, "a@example.com")

    invoice = await payment_service.create_invoice(
        db_session,
        InvoiceCreate(student_id=student.id, batch_id=batch.id, discount_amount=Decimal("500")),
    )

    assert invoice.amount == Decimal("5000")
    assert invoice.final_amount == Decimal("4500")
    assert invoice.status == "unpaid"
    assert invoice.currency == "BDT"
    assert invoice.batch_name == batch.name
    assert invoice.due_date is not None
    # An invoiced student holds a seat until an enrollment row catches up
    assert (await db_session.get(Batch, batch.id)).occupied_seats == 1


@pytest.mark.asyncio
async def test_create_invoice_guards(db_session: AsyncSession) -> None:
    batch = await make_batch(db_session, max_seats=1)
    student = await make_user(db_session, "a@example.com")
    other = await make_user(db_session, "b@example.com")
    await payment_service.create_invoice(db_session, InvoiceCreate(student_id=student.id, batch_id=batch.id))

    with pytest.raises(DuplicateInvoice):
        await payment_service.create_invoice(db_session, InvoiceCreate(student_id=student.id, batch_id=batch.id))
    with pytest.raises(CapacityExceeded):
        await payment_service.create_invoice(db_session, InvoiceCreate(student_id=other.id, batch_id=batch.id))
    with pytest.raises(InvalidAmount):
        await payment_service.create_invoice(
            db_session,
            InvoiceCreate(student_id=other.id, amount=Decimal("100"), discount_amount=Decimal("200")),
        )


@pytest.mark.asyncio
async def test_submit_payment_validation(db_session: AsyncSession) -> None:
    batch = await make_batch(db_session)
    student = await make_user(db_session, "a@example.com")
    other = await make_user(db_session, "b@example.com")
    invoice = await make_invoice(db_session, student.id, batch.id, final_amount=Decimal("5000"))

    with pytest.raises(InvalidAmount):
        await payment_service.submit_payment(db_session, invoice.id, _submit("0"))
    with pytest.raises(InvalidAmount):
        await payment_service.submit_payment(db_session, invoice.id, _submit("-10"))
    with pytest.raises(InvalidAmount):
        await payment_service.submit_payment(db_session, invoice.id, _submit("5000.01"))
    with pytest.raises(InvoiceNotFound):
        await payment_service.submit_payment(db_session, "missing", _submit("100"))
    with pytest.raises(ServiceError) as exc:
        await payment_service.submit_payment(db_session, invoice.id, _submit("100"), payer_id=other.id)
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_submission_does_not_change_invoice(db_session: AsyncSession) -> None:
    batch = await make_batch(db_session)
    student = await make_user(db_session, "a@example.com")
    invoice = await make_invoice(db_session, student.id, batch.id)

    payment = await payment_service.submit_payment(db_session, invoice.id, _submit("2000"), payer_id=student.id)

    assert payment.status == "submitted"
    summary = await payment_service.invoice_summary(db_session, invoice.id)
    assert summary.invoice.status == "unpaid"
    assert summary.pending_total == Decimal("2000")
    assert summary.verified_total == Decimal("0")
    assert summary.outstanding == Decimal("5000")


@pytest.mark.asyncio
async def test_verification_moves_invoice_to_partial_then_paid(db_session: AsyncSession) -> None:
    batch = await make_batch(db_session)
    student = await make_user(db_session, "a@example.com")
    invoice = await make_invoice(db_session, student.id, batch.id, final_amount=Decimal("5000"))
    enrollment = await make_enrollment(db_session, student.id, batch.id, status="approved")

    first = await payment_service.submit_payment(db_session, invoice.id, _submit("2000"))
    result = await payment_service.verify_payment(db_session, first.id, verified_by="admin-1")
    assert result.status == "partial"
    assert (await db_session.get(Enrollment, enrollment.id)).payment_status == "partial"

    second = await payment_service.submit_payment(db_session, invoice.id, _submit("3000"))
    result = await payment_service.verify_payment(db_session, second.id)
    assert result.status == "paid"
    assert (await db_session.get(Enrollment, enrollment.id)).payment_status == "paid"

    # Nothing left to pay
    with pytest.raises(InvalidAmount):
        await payment_service.submit_payment(db_session, invoice.id, _submit("1"))


@pytest.mark.asyncio
async def test_verify_is_idempotent(db_session: AsyncSession) -> None:
    batch = await make_batch(db_session)
    student = await make_user(db_session, "a@example.com")
    invoice = await make_invoice(db_session, student.id, batch.id, final_amount=Decimal("5000"))
    payment = await make_payment(db_session, invoice.id, amount=Decimal("2000"))

    await payment_service.verify_payment(db_session, payment.id, verified_by="admin-1")
    again = await payment_service.verify_payment(db_session, payment.id, verified_by="admin-2")

    assert again.status == "partial"
    stored = await db_session.get(Payment, payment.id)
    assert stored.verified_by == "admin-1"


@pytest.mark.asyncio
async def test_reject_payment(db_session: AsyncSession) -> None:
    batch = await make_batch(db_session)
    student = await make_user(db_session, "a@example.com")
    invoice = await make_invoice(db_session, student.id, batch.id)
    payment = await make_payment(db_session, invoice.id)
    verified = await make_payment(db_session, invoice.id, status="verified")

    result = await payment_service.reject_payment(db_session, payment.id, reason="Reference not found")

    assert result.status == "partial"
    stored = await db_session.get(Payment, payment.id)
    assert stored.status == "rejected"
    assert stored.rejection_reason == "Reference not found"
    with pytest.raises(InvalidTransition):
        await payment_service.verify_payment(db_session, payment.id)
    with pytest.raises(InvalidTransition):
        await payment_service.reject_payment(db_session, verified.id)


@pytest.mark.asyncio
async def test_cancel_invoice_frees_seat_and_blocks_payments(db_session: AsyncSession) -> None:
    batch = await make_batch(db_session)
    student = await make_user(db_session, "a@example.com")
    created = await payment_service.create_invoice(db_session, InvoiceCreate(student_id=student.id, batch_id=batch.id))
    pending = await payment_service.submit_payment(db_session, created.id, _submit("1000"))

    cancelled = await payment_service.cancel_invoice(db_session, created.id)

    assert cancelled.status == "cancelled"
    assert (await db_session.get(Batch, batch.id)).occupied_seats == 0
    assert (await db_session.get(Payment, pending.id)).status == "rejected"
    with pytest.raises(InvalidTransition):
        await payment_service.submit_payment(db_session, created.id, _submit("100"))
    with pytest.raises(InvalidTransition):
        await payment_service.cancel_invoice(db_session, created.id)


@pytest.mark.asyncio
async def test_paid_enrollment_is_never_downgraded(db_session: AsyncSession) -> None:
    batch = await make_batch(db_session)
    student = await make_user(db_session, "a@example.com")
    enrollment = await make_enrollment(db_session, student.id, batch.id, status="approved", payment_status="paid")
    invoice = await make_invoice(db_session, student.id, batch.id, final_amount=Decimal("5000"))
    payment = await make_payment(db_session, invoice.id, amount=Decimal("1000"))

    await payment_service.verify_payment(db_session, payment.id)

    assert (await db_session.get(Enrollment, enrollment.id)).payment_status == "paid"
