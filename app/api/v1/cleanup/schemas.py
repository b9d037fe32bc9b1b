"""Cleanup/repair schemas."""

from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from app.api.v1.capacity.schemas import BatchCapacity


class PurgeRequest(BaseModel):
    email: EmailStr


class StudentSummary(BaseModel):
    id: str
    full_name: str
    email: str
    role: str


class PurgeCounts(BaseModel):
    enrollments: int = 0
    invoices: int = 0
    payments: int = 0
    attendance: int = 0


class DeletionReport(BaseModel):
    email: str
    # True when no user matched: only rows with a null or dangling student reference were targeted
    orphan_mode: bool
    student: Optional[StudentSummary] = None
    found: PurgeCounts = Field(default_factory=PurgeCounts)
    deleted: PurgeCounts = Field(default_factory=PurgeCounts)
    affected_batch_ids: List[str] = Field(default_factory=list)
    batches_recomputed: List[BatchCapacity] = Field(default_factory=list)
    completed_steps: List[str] = Field(default_factory=list)
    student_deleted: bool = False
