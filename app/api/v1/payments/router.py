"""Payments router: admin verification and rejection of submitted payments."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_roles
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import InvoiceResponse, PaymentReject
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post(
    "/{payment_id}/verify",
    response_model=InvoiceResponse,
)
async def verify_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles()),
) -> InvoiceResponse:
    try:
        return await service.verify_payment(db, payment_id, verified_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/{payment_id}/reject",
    response_model=InvoiceResponse,
)
async def reject_payment(
    payment_id: str,
    payload: PaymentReject,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles()),
) -> InvoiceResponse:
    try:
        return await service.reject_payment(db, payment_id, payload.reason, actor_id=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
