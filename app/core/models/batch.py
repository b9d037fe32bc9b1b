"""Batch: a scheduled cohort with a seat ceiling. occupied_seats is a cache over enrollments."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String

from app.core.enums import BatchStatus
from app.db.session import Base, generate_id


class Batch(Base):
    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("max_seats > 0", name="chk_batch_max_seats_positive"),
        CheckConstraint("occupied_seats >= 0", name="chk_batch_occupied_seats_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    # No FK: mentor profiles are removed independently and views must survive that
    mentor_id = Column(String(36), nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    max_seats = Column(Integer, nullable=False)
    # Derived; written only by the capacity tracker
    occupied_seats = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=BatchStatus.draft.value)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
