"""
Book Service - Library catalogue and physical copies

Handles:
- Categories and book CRUD (ISBN uniqueness, category checks)
- Adding, retiring and losing copies while keeping the book's
  total/available counters and stock status in step
- Inventory reports
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError
from campus_erp.core.types import generate_uuid
from campus_erp.models.library import (
    Book,
    BookCategory,
    BookCopy,
    BookStatus,
    CopyStatus,
    CopyCondition,
    AcquisitionType,
    Borrowing,
    BorrowingStatus,
)
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.library import BookCreate, BookUpdate, CategoryCreate, CopyUpdate
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 2
AUDIT_FIELDS = ("isbn", "title", "author", "category_id", "total_copies", "available_copies", "status")


def calculate_status(available: int, total: int) -> BookStatus:
    """Derive a book's stock status from its copy counters"""
    if total == 0:
        return BookStatus.DISCONTINUED
    if available == 0:
        return BookStatus.OUT_OF_STOCK
    if available < LOW_STOCK_THRESHOLD:
        return BookStatus.LOW_STOCK
    return BookStatus.AVAILABLE


def generate_barcode() -> str:
    return f"LIB-{generate_uuid().replace('-', '')[:8].upper()}"


def set_copy_counts(book: Book, total: int, available: int) -> None:
    """Write counters clamped to 0 <= available <= total and refresh the status"""
    book.total_copies = max(0, total)
    book.available_copies = max(0, min(available, book.total_copies))
    book.status = calculate_status(book.available_copies, book.total_copies)


class BookService:
    """Service for the library catalogue"""

    # ==================== CATEGORIES ====================

    async def create_category(self, db: AsyncSession, data: CategoryCreate) -> BookCategory:
        existing = await db.execute(select(BookCategory.id).where(BookCategory.name == data.name))
        if existing.scalar_one_or_none():
            raise ConflictError(f"Category '{data.name}' already exists")

        category = BookCategory(**data.model_dump())
        async with atomic(db):
            db.add(category)
        return category

    async def list_categories(self, db: AsyncSession) -> List[BookCategory]:
        result = await db.execute(select(BookCategory).order_by(BookCategory.name))
        return list(result.scalars().all())

    # ==================== BOOK CRUD ====================

    async def _ensure_isbn_free(self, db: AsyncSession, isbn: str, exclude_id: Optional[str] = None):
        query = select(Book.id).where(Book.isbn == isbn)
        if exclude_id:
            query = query.where(Book.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none():
            raise ConflictError(f"Book with ISBN '{isbn}' already exists")

    async def _ensure_category(self, db: AsyncSession, category_id: str):
        if not await db.get(BookCategory, category_id):
            raise BadRequestError("Invalid category ID")

    async def _next_copy_number(self, db: AsyncSession, book_id: str) -> int:
        count = await db.scalar(select(func.count(BookCopy.id)).where(BookCopy.book_id == book_id))
        return (count or 0) + 1

    def _new_copies(
        self,
        book_id: str,
        start: int,
        quantity: int,
        condition: CopyCondition = CopyCondition.NEW,
        acquisition_type: AcquisitionType = AcquisitionType.PURCHASE,
        notes: Optional[str] = None,
    ) -> List[BookCopy]:
        return [
            BookCopy(
                book_id=book_id,
                copy_number=f"{number:03d}",
                barcode=generate_barcode(),
                status=CopyStatus.AVAILABLE,
                condition=condition,
                acquisition_type=acquisition_type,
                notes=notes,
            )
            for number in range(start, start + quantity)
        ]

    async def create(self, db: AsyncSession, data: BookCreate, user_id: Optional[str] = None) -> Book:
        """
        Create a book and its initial copies in one transaction

        Args:
            db: Database session
            data: Book data; total_copies copies are created
            user_id: Acting user for the audit log

        Returns:
            Created Book
        """
        await self._ensure_isbn_free(db, data.isbn)
        await self._ensure_category(db, data.category_id)

        book = Book(id=generate_uuid(), **data.model_dump(exclude={"total_copies"}))
        set_copy_counts(book, data.total_copies, data.total_copies)

        async with atomic(db):
            db.add(book)
            db.add_all(self._new_copies(book.id, 1, data.total_copies))
            await audit_service.log(
                db, AuditAction.CREATE, "book", book.id, user_id,
                new_values=model_snapshot(book, AUDIT_FIELDS),
            )

        logger.info(f"Created book {book.isbn} with {book.total_copies} copies")
        return book

    async def list(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        category_id: Optional[str] = None,
        status: Optional[BookStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Book).where(Book.deleted_at.is_(None))
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(Book.title).like(pattern),
                func.lower(Book.author).like(pattern),
                func.lower(Book.isbn).like(pattern),
            ))
        if category_id:
            query = query.where(Book.category_id == category_id)
        if status:
            query = query.where(Book.status == status)
        return await paginate(db, query.order_by(Book.title), page, limit)

    async def get(self, db: AsyncSession, book_id: str) -> Book:
        book = await db.get(Book, book_id)
        if not book or book.deleted_at is not None:
            raise NotFoundError("Book not found")
        return book

    async def get_copies(self, db: AsyncSession, book_id: str) -> List[BookCopy]:
        result = await db.execute(
            select(BookCopy).where(BookCopy.book_id == book_id).order_by(BookCopy.copy_number)
        )
        return list(result.scalars().all())

    async def update(
        self, db: AsyncSession, book_id: str, data: BookUpdate, user_id: Optional[str] = None
    ) -> Book:
        book = await self.get(db, book_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("isbn") and changes["isbn"] != book.isbn:
            await self._ensure_isbn_free(db, changes["isbn"], exclude_id=book.id)
        if changes.get("category_id") and changes["category_id"] != book.category_id:
            await self._ensure_category(db, changes["category_id"])

        old_values = model_snapshot(book, AUDIT_FIELDS)
        async with atomic(db):
            for field, value in changes.items():
                setattr(book, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "book", book.id, user_id,
                old_values=old_values, new_values=model_snapshot(book, AUDIT_FIELDS),
            )
        return book

    async def delete(self, db: AsyncSession, book_id: str, user_id: Optional[str] = None) -> None:
        book = await self.get(db, book_id)
        on_loan = await db.scalar(
            select(func.count(Borrowing.id)).where(
                Borrowing.book_id == book.id,
                Borrowing.status.in_([BorrowingStatus.ACTIVE, BorrowingStatus.OVERDUE]),
            )
        )
        if on_loan:
            raise BadRequestError("Cannot delete a book with copies on loan")

        async with atomic(db):
            book.deleted_at = datetime.utcnow()
            await audit_service.log(
                db, AuditAction.DELETE, "book", book.id, user_id,
                old_values=model_snapshot(book, AUDIT_FIELDS),
            )

    # ==================== COPY MANAGEMENT ====================

    async def add_copies(
        self,
        db: AsyncSession,
        book_id: str,
        quantity: int,
        condition: CopyCondition = CopyCondition.NEW,
        acquisition_type: AcquisitionType = AcquisitionType.PURCHASE,
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Book:
        if quantity < 1:
            raise BadRequestError("Quantity must be at least 1")
        book = await self.get(db, book_id)
        start = await self._next_copy_number(db, book.id)
        old_values = model_snapshot(book, ("total_copies", "available_copies", "status"))

        async with atomic(db):
            db.add_all(self._new_copies(book.id, start, quantity, condition, acquisition_type, notes))
            set_copy_counts(book, book.total_copies + quantity, book.available_copies + quantity)
            await audit_service.log(
                db, AuditAction.UPDATE, "book", book.id, user_id,
                old_values=old_values,
                new_values={**model_snapshot(book, ("total_copies", "available_copies", "status")), "added": quantity},
            )
        return book

    async def remove_copies(
        self,
        db: AsyncSession,
        book_id: str,
        quantity: int,
        reason: str,
        user_id: Optional[str] = None,
    ) -> Book:
        """Retire `quantity` copies that are currently on the shelf"""
        book = await self.get(db, book_id)
        result = await db.execute(
            select(BookCopy)
            .where(BookCopy.book_id == book.id, BookCopy.status == CopyStatus.AVAILABLE)
            .order_by(BookCopy.copy_number.desc())
            .limit(quantity)
        )
        copies = list(result.scalars().all())
        if len(copies) < quantity:
            raise BadRequestError(
                f"Only {len(copies)} available copies can be removed",
                details={"requested": quantity, "available": len(copies)},
            )

        old_values = model_snapshot(book, ("total_copies", "available_copies", "status"))
        async with atomic(db):
            for copy in copies:
                copy.status = CopyStatus.RETIRED
                copy.notes = reason
            set_copy_counts(book, book.total_copies - quantity, book.available_copies - quantity)
            await audit_service.log(
                db, AuditAction.UPDATE, "book", book.id, user_id,
                old_values=old_values,
                new_values={
                    **model_snapshot(book, ("total_copies", "available_copies", "status")),
                    "removed": quantity,
                    "reason": reason,
                },
            )
        return book

    async def update_available_copies(self, db: AsyncSession, book_id: str, delta: int) -> Book:
        book = await self.get(db, book_id)
        async with atomic(db):
            set_copy_counts(book, book.total_copies, book.available_copies + delta)
        return book

    async def get_copy(self, db: AsyncSession, copy_id: str) -> BookCopy:
        copy = await db.get(BookCopy, copy_id)
        if not copy:
            raise NotFoundError("Copy not found")
        return copy

    async def get_by_barcode(self, db: AsyncSession, barcode: str) -> BookCopy:
        result = await db.execute(select(BookCopy).where(BookCopy.barcode == barcode))
        copy = result.scalar_one_or_none()
        if not copy:
            raise NotFoundError(f"No copy with barcode '{barcode}'")
        return copy

    async def update_copy(
        self, db: AsyncSession, copy_id: str, data: CopyUpdate, user_id: Optional[str] = None
    ) -> BookCopy:
        """Change a copy's status, condition or notes; loans go through circulation"""
        copy = await self.get_copy(db, copy_id)
        changes = data.model_dump(exclude_unset=True)
        new_status = changes.get("status")

        if new_status == CopyStatus.BORROWED:
            raise BadRequestError("Use the issue endpoint to lend a copy")
        if new_status == CopyStatus.LOST:
            return await self.mark_as_lost(db, copy_id, user_id)
        if new_status and copy.status == CopyStatus.BORROWED:
            raise BadRequestError("Copy is on loan; return it first")
        if new_status and copy.status in (CopyStatus.LOST, CopyStatus.RETIRED):
            raise BadRequestError(f"Copy is {copy.status.value} and cannot change status")

        book = await db.get(Book, copy.book_id)
        old_values = model_snapshot(copy, ("status", "condition", "notes"))

        async with atomic(db):
            if new_status and new_status != copy.status:
                total, available = book.total_copies, book.available_copies
                if copy.status == CopyStatus.AVAILABLE:
                    available -= 1
                if new_status == CopyStatus.AVAILABLE:
                    available += 1
                if new_status == CopyStatus.RETIRED:
                    total -= 1
                set_copy_counts(book, total, available)
            for field, value in changes.items():
                setattr(copy, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "book_copy", copy.id, user_id,
                old_values=old_values, new_values=model_snapshot(copy, ("status", "condition", "notes")),
            )
        return copy

    async def mark_as_lost(self, db: AsyncSession, copy_id: str, user_id: Optional[str] = None) -> BookCopy:
        copy = await self.get_copy(db, copy_id)
        if copy.status == CopyStatus.LOST:
            raise BadRequestError("Copy is already marked as lost")
        if copy.status == CopyStatus.RETIRED:
            raise BadRequestError("Copy is retired")

        book = await db.get(Book, copy.book_id)
        result = await db.execute(
            select(Borrowing).where(
                Borrowing.copy_id == copy.id,
                Borrowing.status.in_([BorrowingStatus.ACTIVE, BorrowingStatus.OVERDUE]),
            )
        )
        borrowing = result.scalar_one_or_none()
        was_available = copy.status == CopyStatus.AVAILABLE

        async with atomic(db):
            copy.status = CopyStatus.LOST
            if borrowing:
                borrowing.status = BorrowingStatus.LOST
            set_copy_counts(
                book,
                book.total_copies - 1,
                book.available_copies - 1 if was_available else book.available_copies,
            )
            await audit_service.log(
                db, AuditAction.UPDATE, "book_copy", copy.id, user_id,
                new_values={"status": CopyStatus.LOST, "borrowing_id": borrowing.id if borrowing else None},
            )

        logger.warning(f"Copy {copy.barcode} of book {book.isbn} marked as lost")
        return copy

    # ==================== REPORTS ====================

    async def get_inventory_report(self, db: AsyncSession) -> Dict[str, Any]:
        active = Book.deleted_at.is_(None)
        totals = (await db.execute(
            select(
                func.count(Book.id),
                func.coalesce(func.sum(Book.total_copies), 0),
                func.coalesce(func.sum(Book.available_copies), 0),
            ).where(active)
        )).one()

        by_status_rows = await db.execute(
            select(Book.status, func.count(Book.id)).where(active).group_by(Book.status)
        )
        by_category_rows = await db.execute(
            select(
                BookCategory.id,
                BookCategory.name,
                func.count(Book.id),
                func.coalesce(func.sum(Book.total_copies), 0),
            )
            .join(Book, Book.category_id == BookCategory.id)
            .where(active)
            .group_by(BookCategory.id, BookCategory.name)
            .order_by(BookCategory.name)
        )

        return {
            "total_titles": totals[0],
            "total_copies": int(totals[1]),
            "available_copies": int(totals[2]),
            "by_status": {row[0].value: row[1] for row in by_status_rows.all()},
            "by_category": [
                {"category_id": row[0], "name": row[1], "titles": row[2], "copies": int(row[3])}
                for row in by_category_rows.all()
            ],
        }

    async def get_new_arrivals(self, db: AsyncSession, days: int = 30, limit: int = 10) -> List[Book]:
        since = datetime.utcnow() - timedelta(days=days)
        result = await db.execute(
            select(Book)
            .where(Book.deleted_at.is_(None), Book.created_at >= since)
            .order_by(Book.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_popular_books(self, db: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
        borrow_count = func.count(Borrowing.id).label("borrow_count")
        result = await db.execute(
            select(Book, borrow_count)
            .join(Borrowing, Borrowing.book_id == Book.id)
            .where(Book.deleted_at.is_(None))
            .group_by(Book.id)
            .order_by(borrow_count.desc())
            .limit(limit)
        )
        return [{"book": row[0], "borrow_count": row[1]} for row in result.all()]

    async def get_low_stock_books(self, db: AsyncSession) -> List[Book]:
        result = await db.execute(
            select(Book)
            .where(
                Book.deleted_at.is_(None),
                Book.status.in_([BookStatus.LOW_STOCK, BookStatus.OUT_OF_STOCK]),
            )
            .order_by(Book.available_copies, Book.title)
        )
        return list(result.scalars().all())


book_service = BookService()
