"""
Audit log for enrollment, payment and repair state changes. Append-only.
"""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String, Text

from app.db.session import Base, generate_id


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=generate_id)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=True)
    action = Column(String(100), nullable=False)
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=True)
    performed_by = Column(String(36), nullable=True)
    remarks = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
