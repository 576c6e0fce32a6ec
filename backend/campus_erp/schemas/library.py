"""
Library Schemas - catalogue, copies, borrowings and reservations
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
import re

from campus_erp.models.library import (
    BookStatus,
    CopyStatus,
    CopyCondition,
    AcquisitionType,
    BorrowingStatus,
    LateFeeStatus,
    ReservationStatus,
)


def _normalize_isbn(v: str) -> str:
    cleaned = re.sub(r"[\s-]", "", v).upper()
    if not re.fullmatch(r"\d{9}[\dX]|\d{13}", cleaned):
        raise ValueError("ISBN must have 10 or 13 digits")
    return cleaned


# ============== Category Schemas ==============

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None


class CategoryResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


# ============== Book Schemas ==============

class BookBase(BaseModel):
    isbn: str = Field(..., min_length=10, max_length=20, description="ISBN-10 or ISBN-13")
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=255)
    publisher: Optional[str] = Field(None, max_length=255)
    publication_year: Optional[int] = Field(None, ge=1000, le=2100)
    description: Optional[str] = None
    category_id: str
    location: Optional[str] = Field(None, max_length=100, description="Shelf / section")

    @field_validator('isbn')
    @classmethod
    def normalize_isbn(cls, v):
        return _normalize_isbn(v)


class BookCreate(BookBase):
    """Schema for creating a book together with its first copies"""
    total_copies: int = Field(1, ge=0, le=500, description="Copies to create")


class BookUpdate(BaseModel):
    isbn: Optional[str] = Field(None, min_length=10, max_length=20)
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    publisher: Optional[str] = Field(None, max_length=255)
    publication_year: Optional[int] = Field(None, ge=1000, le=2100)
    description: Optional[str] = None
    category_id: Optional[str] = None
    location: Optional[str] = Field(None, max_length=100)

    @field_validator('isbn')
    @classmethod
    def normalize_isbn(cls, v):
        if v is None:
            return v
        return _normalize_isbn(v)


class BookResponse(BaseModel):
    id: str
    isbn: str
    title: str
    author: str
    publisher: Optional[str] = None
    publication_year: Optional[int] = None
    description: Optional[str] = None
    category_id: str
    location: Optional[str] = None
    total_copies: int
    available_copies: int
    status: BookStatus
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Copy Schemas ==============

class CopyResponse(BaseModel):
    id: str
    book_id: str
    copy_number: str
    barcode: str
    status: CopyStatus
    condition: CopyCondition
    acquisition_type: AcquisitionType
    acquisition_date: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class BookDetailResponse(BookResponse):
    copies: List[CopyResponse] = []


class AddCopiesRequest(BaseModel):
    quantity: int = Field(..., ge=1, le=500)
    condition: CopyCondition = CopyCondition.NEW
    acquisition_type: AcquisitionType = AcquisitionType.PURCHASE
    notes: Optional[str] = None


class RemoveCopiesRequest(BaseModel):
    quantity: int = Field(..., ge=1, le=500)
    reason: str = Field(..., min_length=1, max_length=500)


class CopyUpdate(BaseModel):
    status: Optional[CopyStatus] = None
    condition: Optional[CopyCondition] = None
    notes: Optional[str] = None


class InventoryReport(BaseModel):
    total_titles: int
    total_copies: int
    available_copies: int
    by_status: dict
    by_category: List[dict]


# ============== Borrowing Schemas ==============

class IssueBookRequest(BaseModel):
    copy_id: Optional[str] = None
    barcode: Optional[str] = None
    borrower_id: str = Field(..., description="User borrowing the copy")
    due_date: Optional[datetime] = None

    @model_validator(mode='after')
    def check_copy_reference(self):
        if not self.copy_id and not self.barcode:
            raise ValueError("copy_id or barcode is required")
        return self


class ReturnBookRequest(BaseModel):
    condition: Optional[CopyCondition] = None
    waive_fee: bool = False
    waive_reason: Optional[str] = None

    @model_validator(mode='after')
    def check_waive_reason(self):
        if self.waive_fee and not self.waive_reason:
            raise ValueError("waive_reason is required when waiving the fee")
        return self


class ReturnByBarcodeRequest(ReturnBookRequest):
    barcode: str = Field(..., min_length=1)


class BorrowingResponse(BaseModel):
    id: str
    copy_id: str
    book_id: str
    borrower_id: str
    borrowed_at: datetime
    due_date: datetime
    returned_at: Optional[datetime] = None
    status: BorrowingStatus
    renew_count: int
    late_fee: float
    late_fee_status: Optional[LateFeeStatus] = None
    waive_reason: Optional[str] = None

    class Config:
        from_attributes = True


class CanBorrowResponse(BaseModel):
    can_borrow: bool
    reason: Optional[str] = None
    active_count: int
    max_books: int


class MemberStats(BaseModel):
    user_id: str
    active: int
    overdue: int
    total_borrowed: int
    unpaid_fees: float
    max_books: int


# ============== Reservation Schemas ==============

class ReservationCreate(BaseModel):
    book_id: str
    user_id: Optional[str] = Field(None, description="Defaults to the caller")


class ReservationResponse(BaseModel):
    id: str
    book_id: str
    user_id: str
    status: ReservationStatus
    reserved_at: datetime
    expires_at: datetime
    ready_at: Optional[datetime] = None
    fulfilled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QueuePosition(BaseModel):
    reservation_id: str
    position: int
