from typing import Any, Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "service_error"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFound(ServiceError):
    code = "not_found"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class InvoiceNotFound(NotFound):
    code = "invoice_not_found"

    def __init__(self, message: str = "Invoice not found") -> None:
        super().__init__(message)


class CapacityExceeded(ServiceError):
    """Batch is full: occupied seats already reached max seats."""

    code = "capacity_exceeded"

    def __init__(self, message: str = "Batch is full. No seats are available.") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class DuplicateEnrollment(ServiceError):
    code = "duplicate_enrollment"

    def __init__(self, message: str = "Student is already enrolled in this batch") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class DuplicateInvoice(ServiceError):
    code = "duplicate_invoice"

    def __init__(self, message: str = "Student already has an open invoice for this batch") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class StudentNotApproved(ServiceError):
    """Business-state gate, not an authorization failure."""

    code = "student_not_approved"

    def __init__(self, message: str = "Student account is not approved yet") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class InvalidAmount(ServiceError):
    code = "invalid_amount"

    def __init__(self, message: str = "Amount must be greater than 0") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InvalidTransition(ServiceError):
    code = "invalid_transition"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class StoreFailure(ServiceError):
    """Transient record store failure that survived the internal retry."""

    code = "store_failure"

    def __init__(self, message: str = "Record store is unavailable, try again") -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)


class PurgeIncomplete(StoreFailure):
    """Purge stopped part-way. `report` lists the steps that did complete."""

    code = "purge_incomplete"

    def __init__(self, message: str, report: Any, completed_steps: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.report = report
        self.completed_steps = completed_steps or []

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["completed_steps"] = self.completed_steps
        if hasattr(self.report, "model_dump"):
            detail["report"] = self.report.model_dump(mode="json")
        return detail
