from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ApprovalAction(str, Enum):
    approve = "approve"
    reject = "reject"


class StudentApprovalDecision(BaseModel):
    action: ApprovalAction
    reason: Optional[str] = None


class StudentApprovalResponse(BaseModel):
    id: str
    full_name: str
    email: str
    phone: Optional[str] = None
    approval_status: str
    approval_date: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
