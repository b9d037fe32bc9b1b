"""Invoices router: create, inspect, cancel, and submit payments against an invoice."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import ensure_self_or_admin, require_roles
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import InvoiceCreate, InvoiceResponse, InvoiceSummary, PaymentResponse, PaymentSubmit
from . import service

router = APIRouter(prefix="/api/v1/invoices", tags=["invoices"])


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    payload: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceResponse:
    ensure_self_or_admin(current_user, payload.student_id)
    try:
        return await service.create_invoice(db, payload, created_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get(
    "/{invoice_id}",
    response_model=InvoiceSummary,
)
async def get_invoice_summary(
    invoice_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceSummary:
    try:
        summary = await service.invoice_summary(db, invoice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    ensure_self_or_admin(current_user, summary.invoice.student_id)
    return summary


@router.post(
    "/{invoice_id}/cancel",
    response_model=InvoiceResponse,
)
async def cancel_invoice(
    invoice_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles()),
) -> InvoiceResponse:
    try:
        return await service.cancel_invoice(db, invoice_id, actor_id=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/{invoice_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_payment(
    invoice_id: str,
    payload: PaymentSubmit,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    payer_id = None if current_user.is_admin else current_user.id
    try:
        return await service.submit_payment(db, invoice_id, payload, payer_id=payer_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
