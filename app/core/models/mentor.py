"""Mentor profile: name and designation shown on a student's batch cards."""

from datetime import datetime

from sqlalchemy import Column, DateTime, String

from app.db.session import Base, generate_id


class Mentor(Base):
    __tablename__ = "mentors"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    designation = Column(String(255), nullable=True)
    avatar = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
