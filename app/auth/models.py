from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from app.core.enums import ApprovalStatus
from app.db.session import Base, generate_id


class User(Base):
    """Platform user. Students carry an account-level approval status (the first half of the dual gate)."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    full_name = Column(String(255), nullable=False)
    # Stored lower-case; unique across the platform
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(50), nullable=True)
    # admin | mentor | student
    role = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    approval_status = Column(String(20), nullable=False, default=ApprovalStatus.pending.value)
    approval_date = Column(DateTime(timezone=True), nullable=True)
    # Plain reference: the approving admin may later be removed
    approved_by = Column(String(36), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
