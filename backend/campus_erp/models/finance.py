from sqlalchemy import Column, String, Boolean, DateTime, Date, Enum as SQLEnum, Text, ForeignKey
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, Money, generate_uuid


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    MOBILE_MONEY = "mobile_money"
    EVC_PLUS = "evc_plus"


class Invoice(Base):
    """Tuition invoice for a student and semester"""
    __tablename__ = "invoices"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    invoice_no = Column(String(20), unique=True, nullable=False, index=True)  # INV-2026-000001
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    semester_id = Column(GUID, ForeignKey("semesters.id"), nullable=False, index=True)

    amount = Column(Money, nullable=False)
    due_date = Column(Date, nullable=False)
    description = Column(Text, nullable=True)

    status = Column(SQLEnum(InvoiceStatus), default=InvoiceStatus.PENDING, nullable=False, index=True)
    void_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Invoice {self.invoice_no} {self.status.value}>"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    receipt_no = Column(String(20), unique=True, nullable=False, index=True)  # RCP-2026-000001
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    invoice_id = Column(GUID, ForeignKey("invoices.id"), nullable=True, index=True)

    amount = Column(Money, nullable=False)
    method = Column(SQLEnum(PaymentMethod), nullable=False)
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    received_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)

    is_voided = Column(Boolean, default=False, nullable=False)
    void_reason = Column(Text, nullable=True)
    voided_at = Column(DateTime, nullable=True)
    voided_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<Payment {self.receipt_no} {self.amount}>"
