"""
Finance Schemas - invoices, payments and collection reports
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime, date
from decimal import Decimal

from campus_erp.models.finance import InvoiceStatus, PaymentMethod


# ============== Invoice Schemas ==============

class InvoiceCreate(BaseModel):
    """Schema for invoicing one student for a semester"""
    student_id: str
    semester_id: str
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: date
    description: Optional[str] = Field(None, max_length=2000)


class BulkInvoiceRequest(BaseModel):
    """Invoice every active student (optionally of one program) for a semester"""
    semester_id: str
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: date
    program_id: Optional[str] = None
    description: Optional[str] = Field(None, max_length=2000)


class BulkInvoiceResult(BaseModel):
    generated: int
    skipped: int


class VoidRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class InvoiceResponse(BaseModel):
    id: str
    invoice_no: str
    student_id: str
    semester_id: str
    amount: float
    amount_paid: float
    balance: float
    due_date: date
    description: Optional[str] = None
    status: InvoiceStatus
    void_reason: Optional[str] = None
    created_at: datetime


# ============== Payment Schemas ==============

class PaymentCreate(BaseModel):
    student_id: str
    invoice_id: Optional[str] = None
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    method: PaymentMethod
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)


class PaymentResponse(BaseModel):
    id: str
    receipt_no: str
    student_id: str
    invoice_id: Optional[str] = None
    amount: float
    method: PaymentMethod
    reference: Optional[str] = None
    notes: Optional[str] = None
    received_by_id: Optional[str] = None
    is_voided: bool
    void_reason: Optional[str] = None
    voided_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DailyCollection(BaseModel):
    date: date
    total: float
    count: int
    by_method: Dict[str, Dict[str, float]]


class CollectionReport(BaseModel):
    date_from: date
    date_to: date
    total: float
    count: int
    by_method: Dict[str, float]
    by_day: List[Dict[str, object]]


class Receipt(BaseModel):
    receipt_no: str
    payment: PaymentResponse
    student_id: str
    student_name: str
    invoice_no: Optional[str] = None
    outstanding_balance: float
