"""Reconciliation read models. Nothing here is persisted."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from app.core.enums import EnrollmentPaymentStatus, EnrollmentStatus


class MentorInfo(BaseModel):
    id: Optional[str] = None
    name: str
    designation: Optional[str] = None
    avatar: Optional[str] = None
    # False when the batch points at a mentor profile that no longer exists
    available: bool = True


class CourseInfo(BaseModel):
    id: str
    title: str
    duration: int = 0
    duration_unit: str = "months"


class BatchInfo(BaseModel):
    id: str
    name: str
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_seats: int
    occupied_seats: int


class EnrollmentView(BaseModel):
    """One row of a student's enrollment list: a real enrollment or one synthesized from an invoice."""

    batch_id: str
    enrollment_id: Optional[str] = None
    invoice_id: Optional[str] = None
    is_virtual: bool = False
    course_id: Optional[str] = None
    status: EnrollmentStatus
    payment_status: EnrollmentPaymentStatus
    amount: Decimal
    enrollment_date: datetime
    progress: int = 0
    approved_at: Optional[datetime] = None
    batch: Optional[BatchInfo] = None
    course: Optional[CourseInfo] = None
    mentor: Optional[MentorInfo] = None


class RosterEntry(BaseModel):
    """One student seat in a batch, real or synthesized from an invoice."""

    student_id: str
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    enrollment_id: Optional[str] = None
    invoice_id: Optional[str] = None
    is_virtual: bool = False
    status: EnrollmentStatus
    payment_status: EnrollmentPaymentStatus
    amount: Decimal
    enrollment_date: datetime
