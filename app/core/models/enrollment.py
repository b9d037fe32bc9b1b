"""Enrollment: one student's seat request in one batch. Mutated only through the enrollment state machine."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text

from app.core.enums import EnrollmentPaymentStatus, EnrollmentStatus
from app.db.session import Base, generate_id


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','approved','rejected','completed')",
            name="chk_enrollment_status",
        ),
        CheckConstraint("progress >= 0 AND progress <= 100", name="chk_enrollment_progress"),
        Index("ix_enrollments_student_batch", "student_id", "batch_id"),
        Index("ix_enrollments_batch_status", "batch_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    # Nullable: historical writes left rows without a student
    student_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    batch_id = Column(String(36), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False)
    # Denormalised from the batch at creation
    course_id = Column(String(36), nullable=True)
    status = Column(String(20), nullable=False, default=EnrollmentStatus.pending.value)
    payment_status = Column(String(20), nullable=False, default=EnrollmentPaymentStatus.pending.value)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    enrollment_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    approved_by = Column(String(36), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
