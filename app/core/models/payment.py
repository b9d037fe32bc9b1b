"""Payment: a submission against an invoice. Only verified payments count toward the invoice."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text

from app.core.enums import PaymentStatus
from app.db.session import Base, generate_id


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_id)
    invoice_id = Column(
        String(36),
        ForeignKey("invoices.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String(20), nullable=False)  # bkash, nagad, rocket, bank_transfer, cash
    sender_reference = Column(String(100), nullable=False)
    transaction_reference = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.submitted.value, index=True)
    submitted_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    verified_by = Column(String(36), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
