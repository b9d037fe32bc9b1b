"""Course: read-only display metadata for batch views."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db.session import Base, generate_id


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=generate_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False, default=0)
    duration_unit = Column(String(20), nullable=False, default="months")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
