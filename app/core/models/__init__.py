from app.auth.models import User
from app.core.models.attendance import Attendance
from app.core.models.audit_log import AuditLog
from app.core.models.batch import Batch
from app.core.models.course import Course
from app.core.models.enrollment import Enrollment
from app.core.models.invoice import Invoice
from app.core.models.mentor import Mentor
from app.core.models.payment import Payment

__all__ = [
    "Attendance",
    "AuditLog",
    "Batch",
    "Course",
    "Enrollment",
    "Invoice",
    "Mentor",
    "Payment",
    "User",
]
