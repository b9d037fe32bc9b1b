"""Attendance: per-class presence of a student in a batch. Read and purged here, written elsewhere."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text

from app.core.enums import AttendanceStatus
from app.db.session import Base, generate_id


class Attendance(Base):
    __tablename__ = "attendance"

    id = Column(String(36), primary_key=True, default=generate_id)
    student_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    batch_id = Column(String(36), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False)
    class_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=AttendanceStatus.present.value)
    notes = Column(Text, nullable=True)
    marked_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
