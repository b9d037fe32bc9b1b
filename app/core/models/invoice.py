"""Invoice: what a student owes for a batch. Status is derived from verified payments."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Numeric, String, Text

from app.core.enums import InvoiceStatus
from app.db.session import Base, generate_id


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint(
            "status IN ('unpaid','partial','paid','cancelled')",
            name="chk_invoice_status",
        ),
        CheckConstraint("amount >= 0 AND discount_amount >= 0 AND final_amount >= 0", name="chk_invoice_amounts"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    invoice_number = Column(String(40), nullable=False, unique=True)
    student_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    # May point at a batch the student has no enrollment row for yet
    batch_id = Column(String(36), ForeignKey("batches.id", ondelete="SET NULL"), nullable=True, index=True)
    batch_name = Column(String(255), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    final_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="BDT")
    status = Column(String(20), nullable=False, default=InvoiceStatus.unpaid.value)
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
