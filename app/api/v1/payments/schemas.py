"""Invoice and payment schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.enums import InvoiceStatus, PaymentMethod, PaymentStatus


# --- Invoice ---
class InvoiceCreate(BaseModel):
    student_id: str
    batch_id: Optional[str] = None
    amount: Optional[Decimal] = Field(None, ge=0, description="Defaults to the batch price")
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    student_id: Optional[str] = None
    batch_id: Optional[str] = None
    batch_name: Optional[str] = None
    amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    currency: str
    status: InvoiceStatus
    due_date: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# --- Payment ---
class PaymentSubmit(BaseModel):
    # Validated in the ledger so a non-positive amount surfaces as InvalidAmount
    amount: Decimal
    method: PaymentMethod
    sender_reference: str = Field(..., min_length=1, max_length=100)
    transaction_reference: Optional[str] = Field(None, max_length=100)


class PaymentReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PaymentResponse(BaseModel):
    id: str
    invoice_id: str
    amount: Decimal
    method: PaymentMethod
    sender_reference: str
    transaction_reference: Optional[str] = None
    status: PaymentStatus
    submitted_at: datetime
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    class Config:
        from_attributes = True


class InvoiceSummary(BaseModel):
    invoice: InvoiceResponse
    payments: List[PaymentResponse]
    verified_total: Decimal
    pending_total: Decimal
    outstanding: Decimal
