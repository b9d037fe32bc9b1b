"""Enrollment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.core.enums import EnrollmentAction, EnrollmentMode, EnrollmentPaymentStatus, EnrollmentStatus


class EnrollmentCreate(BaseModel):
    student_id: str
    batch_id: str
    # Checked by the service so a negative amount surfaces as InvalidAmount
    amount: Decimal
    mode: EnrollmentMode = EnrollmentMode.purchase


class EnrollmentTransition(BaseModel):
    action: EnrollmentAction
    reason: Optional[str] = Field(None, max_length=500, description="Stored on reject")


class EnrollmentProgressUpdate(BaseModel):
    progress: int = Field(..., ge=0, le=100)


class EnrollmentResponse(BaseModel):
    id: str
    student_id: Optional[str] = None
    batch_id: str
    course_id: Optional[str] = None
    status: EnrollmentStatus
    payment_status: EnrollmentPaymentStatus
    amount: Decimal
    enrollment_date: datetime
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    progress: int

    class Config:
        from_attributes = True


class UnenrollResponse(BaseModel):
    enrollment_id: str
    batch_id: str
    occupied_seats: Optional[int] = None
