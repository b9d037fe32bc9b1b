from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    MENTOR = "mentor"
    STUDENT = "student"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class BatchStatus(str, Enum):
    draft = "draft"
    published = "published"
    upcoming = "upcoming"
    ongoing = "ongoing"
    completed = "completed"
    cancelled = "cancelled"


class EnrollmentStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"


class EnrollmentPaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    partial = "partial"
    failed = "failed"


class EnrollmentMode(str, Enum):
    purchase = "purchase"
    direct_add = "direct_add"


class EnrollmentAction(str, Enum):
    approve = "approve"
    reject = "reject"
    complete = "complete"


class InvoiceStatus(str, Enum):
    unpaid = "unpaid"
    partial = "partial"
    paid = "paid"
    cancelled = "cancelled"


class PaymentStatus(str, Enum):
    submitted = "submitted"
    verified = "verified"
    rejected = "rejected"


class PaymentMethod(str, Enum):
    bkash = "bkash"
    nagad = "nagad"
    rocket = "rocket"
    bank_transfer = "bank_transfer"
    cash = "cash"


class AttendanceStatus(str, Enum):
    present = "present"
    absent = "absent"
    late = "late"
    excused = "excused"


# Enrollment statuses that hold a seat.
SEAT_HOLDING_STATUSES = (EnrollmentStatus.approved.value, EnrollmentStatus.completed.value)
