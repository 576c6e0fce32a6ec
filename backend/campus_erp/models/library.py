"""
Library Models
- Catalogue: categories, books and their physical copies
- Circulation: borrowings (with late fees) and reservations
"""

from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Integer, Text, ForeignKey
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, Money, generate_uuid


class BookStatus(str, enum.Enum):
    AVAILABLE = "available"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class CopyStatus(str, enum.Enum):
    AVAILABLE = "available"
    BORROWED = "borrowed"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"
    LOST = "lost"
    RETIRED = "retired"


class CopyCondition(str, enum.Enum):
    NEW = "new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DAMAGED = "damaged"


class AcquisitionType(str, enum.Enum):
    PURCHASE = "purchase"
    DONATION = "donation"
    TRANSFER = "transfer"


class BorrowingStatus(str, enum.Enum):
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"


class LateFeeStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    WAIVED = "waived"


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    READY = "ready"
    FULFILLED = "fulfilled"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class BookCategory(Base):
    __tablename__ = "book_categories"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Book(Base):
    """Catalogue title; copy counts are kept in step with its BookCopy rows"""
    __tablename__ = "books"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    isbn = Column(String(20), unique=True, nullable=False, index=True)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(255), nullable=False)
    publisher = Column(String(255), nullable=True)
    publication_year = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)

    category_id = Column(GUID, ForeignKey("book_categories.id"), nullable=False, index=True)
    location = Column(String(100), nullable=True)  # shelf / section

    total_copies = Column(Integer, default=0, nullable=False)
    available_copies = Column(Integer, default=0, nullable=False)
    status = Column(SQLEnum(BookStatus), default=BookStatus.AVAILABLE, nullable=False)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Book {self.isbn} {self.available_copies}/{self.total_copies}>"


class BookCopy(Base):
    """Physical copy of a book"""
    __tablename__ = "book_copies"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    book_id = Column(GUID, ForeignKey("books.id"), nullable=False, index=True)
    copy_number = Column(String(10), nullable=False)  # "001", "002", ...
    barcode = Column(String(20), unique=True, nullable=False, index=True)

    status = Column(SQLEnum(CopyStatus), default=CopyStatus.AVAILABLE, nullable=False, index=True)
    condition = Column(SQLEnum(CopyCondition), default=CopyCondition.NEW, nullable=False)
    acquisition_type = Column(SQLEnum(AcquisitionType), default=AcquisitionType.PURCHASE, nullable=False)
    acquisition_date = Column(DateTime, default=datetime.utcnow)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Borrowing(Base):
    """Loan of one copy to one user"""
    __tablename__ = "borrowings"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    copy_id = Column(GUID, ForeignKey("book_copies.id"), nullable=False, index=True)
    book_id = Column(GUID, ForeignKey("books.id"), nullable=False, index=True)
    borrower_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)

    borrowed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    due_date = Column(DateTime, nullable=False)
    returned_at = Column(DateTime, nullable=True)
    status = Column(SQLEnum(BorrowingStatus), default=BorrowingStatus.ACTIVE, nullable=False, index=True)
    renew_count = Column(Integer, default=0, nullable=False)

    late_fee = Column(Money, default=0, nullable=False)
    late_fee_status = Column(SQLEnum(LateFeeStatus), nullable=True)
    waive_reason = Column(Text, nullable=True)

    issued_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    returned_to_id = Column(GUID, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Reservation(Base):
    """Queue entry for a book with no copies on the shelf"""
    __tablename__ = "reservations"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    book_id = Column(GUID, ForeignKey("books.id"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)

    status = Column(SQLEnum(ReservationStatus), default=ReservationStatus.PENDING, nullable=False, index=True)
    reserved_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    ready_at = Column(DateTime, nullable=True)
    fulfilled_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
