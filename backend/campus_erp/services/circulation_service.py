"""
Circulation Service - borrowing, returning and reserving books

Handles:
- Borrowing eligibility (loan limits, overdue items, unpaid fines)
- Issue / return / renew with late-fee calculation
- Reservation queue for titles with no copies on the shelf
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Dict, Any, List
import math
import logging

from campus_erp.core.config import settings
from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError, ForbiddenError
from campus_erp.core.types import to_money
from campus_erp.models.library import (
    Book,
    CopyStatus,
    CopyCondition,
    Borrowing,
    BorrowingStatus,
    LateFeeStatus,
    Reservation,
    ReservationStatus,
)
from campus_erp.models.user import User, UserRole
from campus_erp.models.audit_log import AuditAction
from campus_erp.services.audit_service import audit_service
from campus_erp.services.book_service import book_service, set_copy_counts
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

OPEN_LOAN_STATUSES = (BorrowingStatus.ACTIVE, BorrowingStatus.OVERDUE)
QUEUED_RESERVATION_STATUSES = (ReservationStatus.PENDING, ReservationStatus.READY)


async def next_pending_reservation(db: AsyncSession, book_id: str) -> Optional[Reservation]:
    """Oldest PENDING reservation for a book"""
    result = await db.execute(
        select(Reservation)
        .where(Reservation.book_id == book_id, Reservation.status == ReservationStatus.PENDING)
        .order_by(Reservation.reserved_at)
    )
    return result.scalars().first()


def mark_ready(reservation: Reservation, now: datetime) -> None:
    reservation.status = ReservationStatus.READY
    reservation.ready_at = now
    reservation.expires_at = now + timedelta(days=settings.LIBRARY_RESERVATION_HOLD_DAYS)


def max_books_for(user: User) -> int:
    if user.role == UserRole.STUDENT:
        return settings.LIBRARY_STUDENT_MAX_BOOKS
    return settings.LIBRARY_STAFF_MAX_BOOKS


def calculate_late_fee(due_date: datetime, returned_at: datetime) -> Decimal:
    """
    Fee for a late return: every started day past the due date counts,
    minus the grace period, at LIBRARY_LATE_FEE_PER_DAY.
    """
    if returned_at <= due_date:
        return to_money(0)
    days_late = math.ceil((returned_at - due_date).total_seconds() / 86400)
    chargeable = max(0, days_late - settings.LIBRARY_GRACE_PERIOD_DAYS)
    return to_money(Decimal(chargeable) * settings.LIBRARY_LATE_FEE_PER_DAY)


class BorrowingService:
    """Service for loans and late fees"""

    async def get(self, db: AsyncSession, borrowing_id: str) -> Borrowing:
        borrowing = await db.get(Borrowing, borrowing_id)
        if not borrowing:
            raise NotFoundError("Borrowing not found")
        return borrowing

    async def _get_user(self, db: AsyncSession, user_id: str) -> User:
        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError("Borrower not found")
        return user

    # ==================== ELIGIBILITY ====================

    async def can_borrow(self, db: AsyncSession, user: User) -> Dict[str, Any]:
        max_books = max_books_for(user)
        active_count = await db.scalar(
            select(func.count(Borrowing.id)).where(
                Borrowing.borrower_id == user.id, Borrowing.status.in_(OPEN_LOAN_STATUSES)
            )
        ) or 0
        overdue_count = await db.scalar(
            select(func.count(Borrowing.id)).where(
                Borrowing.borrower_id == user.id,
                Borrowing.status.in_(OPEN_LOAN_STATUSES),
                Borrowing.due_date < datetime.utcnow(),
            )
        ) or 0
        unpaid = to_money(await db.scalar(
            select(func.coalesce(func.sum(Borrowing.late_fee), 0)).where(
                Borrowing.borrower_id == user.id, Borrowing.late_fee_status == LateFeeStatus.PENDING
            )
        ))

        reason = None
        if not user.is_active:
            reason = "Account is inactive"
        elif active_count >= max_books:
            reason = f"Borrowing limit reached ({max_books} books)"
        elif overdue_count:
            reason = "Return overdue books before borrowing"
        elif unpaid > settings.LIBRARY_UNPAID_FINES_LIMIT:
            reason = f"Unpaid late fees of {unpaid} exceed the limit"

        return {
            "can_borrow": reason is None,
            "reason": reason,
            "active_count": active_count,
            "max_books": max_books,
        }

    # ==================== ISSUE / RETURN ====================

    async def issue_book(
        self,
        db: AsyncSession,
        borrower_id: str,
        copy_id: Optional[str] = None,
        barcode: Optional[str] = None,
        due_date: Optional[datetime] = None,
        issued_by_id: Optional[str] = None,
    ) -> Borrowing:
        """
        Lend a copy to a user

        Args:
            db: Database session
            borrower_id: User taking the copy
            copy_id: Copy to lend (or barcode)
            barcode: Barcode of the copy to lend
            due_date: Override of the default loan period
            issued_by_id: Staff member issuing the copy

        Returns:
            The new ACTIVE Borrowing
        """
        if copy_id:
            copy = await book_service.get_copy(db, copy_id)
        elif barcode:
            copy = await book_service.get_by_barcode(db, barcode)
        else:
            raise BadRequestError("copy_id or barcode is required")

        if copy.status != CopyStatus.AVAILABLE:
            raise BadRequestError(f"Copy is not available (status: {copy.status.value})")

        borrower = await self._get_user(db, borrower_id)
        eligibility = await self.can_borrow(db, borrower)
        if not eligibility["can_borrow"]:
            raise BadRequestError(eligibility["reason"], details=eligibility)

        book = await book_service.get(db, copy.book_id)
        ready = (await db.execute(
            select(Reservation).where(
                Reservation.book_id == book.id,
                Reservation.user_id == borrower.id,
                Reservation.status == ReservationStatus.READY,
            )
        )).scalars().first()

        now = datetime.utcnow()
        if due_date is None:
            due_date = now + timedelta(days=settings.LIBRARY_LOAN_PERIOD_DAYS)
        elif due_date.tzinfo is not None:
            due_date = due_date.astimezone(timezone.utc).replace(tzinfo=None)
        if due_date <= now:
            raise BadRequestError("Due date must be in the future")

        borrowing = Borrowing(
            copy_id=copy.id,
            book_id=book.id,
            borrower_id=borrower.id,
            borrowed_at=now,
            due_date=due_date,
            status=BorrowingStatus.ACTIVE,
            renew_count=0,
            late_fee=to_money(0),
            issued_by_id=issued_by_id,
        )

        async with atomic(db):
            db.add(borrowing)
            copy.status = CopyStatus.BORROWED
            set_copy_counts(book, book.total_copies, book.available_copies - 1)
            if ready:
                ready.status = ReservationStatus.FULFILLED
                ready.fulfilled_at = now
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "borrowing", borrowing.id, issued_by_id,
                new_values={"copy_id": copy.id, "borrower_id": borrower.id, "due_date": due_date},
            )

        logger.info(f"Issued copy {copy.barcode} to {borrower.email}, due {due_date:%Y-%m-%d}")
        return borrowing

    async def return_book(
        self,
        db: AsyncSession,
        borrowing_id: str,
        condition: Optional[CopyCondition] = None,
        waive_fee: bool = False,
        waive_reason: Optional[str] = None,
        returned_to_id: Optional[str] = None,
    ) -> Borrowing:
        borrowing = await self.get(db, borrowing_id)
        if borrowing.status == BorrowingStatus.RETURNED:
            raise BadRequestError("Book has already been returned")
        if borrowing.status == BorrowingStatus.LOST:
            raise BadRequestError("Copy was reported lost")

        copy = await book_service.get_copy(db, borrowing.copy_id)
        book = await db.get(Book, borrowing.book_id)
        next_in_line = await next_pending_reservation(db, book.id)

        now = datetime.utcnow()
        fee = calculate_late_fee(borrowing.due_date, now)

        async with atomic(db):
            borrowing.returned_at = now
            borrowing.status = BorrowingStatus.RETURNED
            borrowing.returned_to_id = returned_to_id
            borrowing.late_fee = fee
            if fee > 0:
                if waive_fee:
                    borrowing.late_fee_status = LateFeeStatus.WAIVED
                    borrowing.waive_reason = waive_reason
                else:
                    borrowing.late_fee_status = LateFeeStatus.PENDING

            copy.status = CopyStatus.AVAILABLE
            if condition:
                copy.condition = condition
            set_copy_counts(book, book.total_copies, book.available_copies + 1)

            if next_in_line:
                mark_ready(next_in_line, now)

            await audit_service.log(
                db, AuditAction.UPDATE, "borrowing", borrowing.id, returned_to_id,
                new_values={"status": BorrowingStatus.RETURNED, "late_fee": fee},
            )

        if next_in_line:
            logger.info(f"Reservation {next_in_line.id} for book {book.isbn} is ready for pickup")
        return borrowing

    async def return_by_barcode(self, db: AsyncSession, barcode: str, **kwargs) -> Borrowing:
        copy = await book_service.get_by_barcode(db, barcode)
        result = await db.execute(
            select(Borrowing).where(Borrowing.copy_id == copy.id, Borrowing.status.in_(OPEN_LOAN_STATUSES))
        )
        borrowing = result.scalars().first()
        if not borrowing:
            raise NotFoundError(f"No open borrowing for copy '{barcode}'")
        return await self.return_book(db, borrowing.id, **kwargs)

    async def renew(self, db: AsyncSession, borrowing_id: str, user_id: Optional[str] = None) -> Borrowing:
        borrowing = await self.get(db, borrowing_id)
        if borrowing.status in (BorrowingStatus.RETURNED, BorrowingStatus.LOST):
            raise BadRequestError(f"Cannot renew a {borrowing.status.value} borrowing")
        if borrowing.renew_count >= settings.LIBRARY_MAX_RENEWALS:
            raise BadRequestError(f"Maximum renewals ({settings.LIBRARY_MAX_RENEWALS}) reached")
        if borrowing.due_date < datetime.utcnow():
            raise BadRequestError("Overdue borrowings cannot be renewed")

        queued = await db.scalar(
            select(func.count(Reservation.id)).where(
                Reservation.book_id == borrowing.book_id,
                Reservation.status.in_(QUEUED_RESERVATION_STATUSES),
            )
        )
        if queued:
            raise BadRequestError("Book has pending reservations and cannot be renewed")

        async with atomic(db):
            borrowing.due_date = borrowing.due_date + timedelta(days=settings.LIBRARY_LOAN_PERIOD_DAYS)
            borrowing.renew_count += 1
            await audit_service.log(
                db, AuditAction.UPDATE, "borrowing", borrowing.id, user_id,
                new_values={"due_date": borrowing.due_date, "renew_count": borrowing.renew_count},
            )
        return borrowing

    # ==================== LATE FEES ====================

    async def _pending_fee(self, db: AsyncSession, borrowing_id: str) -> Borrowing:
        borrowing = await self.get(db, borrowing_id)
        if borrowing.late_fee_status != LateFeeStatus.PENDING:
            raise BadRequestError("No pending late fee on this borrowing")
        return borrowing

    async def waive_late_fee(
        self, db: AsyncSession, borrowing_id: str, reason: str, user_id: Optional[str] = None
    ) -> Borrowing:
        borrowing = await self._pending_fee(db, borrowing_id)
        async with atomic(db):
            borrowing.late_fee_status = LateFeeStatus.WAIVED
            borrowing.waive_reason = reason
            await audit_service.log(
                db, AuditAction.UPDATE, "borrowing", borrowing.id, user_id,
                new_values={"late_fee_status": LateFeeStatus.WAIVED, "reason": reason},
            )
        return borrowing

    async def pay_late_fee(self, db: AsyncSession, borrowing_id: str, user_id: Optional[str] = None) -> Borrowing:
        borrowing = await self._pending_fee(db, borrowing_id)
        async with atomic(db):
            borrowing.late_fee_status = LateFeeStatus.PAID
            await audit_service.log(
                db, AuditAction.UPDATE, "borrowing", borrowing.id, user_id,
                new_values={"late_fee_status": LateFeeStatus.PAID, "late_fee": borrowing.late_fee},
            )
        return borrowing

    # ==================== QUERIES ====================

    async def mark_overdue(self, db: AsyncSession) -> int:
        async with atomic(db):
            result = await db.execute(
                update(Borrowing)
                .where(Borrowing.status == BorrowingStatus.ACTIVE, Borrowing.due_date < datetime.utcnow())
                .values(status=BorrowingStatus.OVERDUE)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount:
            logger.info(f"Marked {result.rowcount} borrowings as overdue")
        return result.rowcount or 0

    async def get_overdue(self, db: AsyncSession) -> List[Borrowing]:
        result = await db.execute(
            select(Borrowing)
            .where(Borrowing.status.in_(OPEN_LOAN_STATUSES), Borrowing.due_date < datetime.utcnow())
            .order_by(Borrowing.due_date)
        )
        return list(result.scalars().all())

    async def get_member_stats(self, db: AsyncSession, user_id: str) -> Dict[str, Any]:
        user = await self._get_user(db, user_id)
        rows = (await db.execute(
            select(Borrowing.status, func.count(Borrowing.id))
            .where(Borrowing.borrower_id == user.id)
            .group_by(Borrowing.status)
        )).all()
        by_status = {row[0]: row[1] for row in rows}
        overdue = await db.scalar(
            select(func.count(Borrowing.id)).where(
                Borrowing.borrower_id == user.id,
                Borrowing.status.in_(OPEN_LOAN_STATUSES),
                Borrowing.due_date < datetime.utcnow(),
            )
        ) or 0
        unpaid = await db.scalar(
            select(func.coalesce(func.sum(Borrowing.late_fee), 0)).where(
                Borrowing.borrower_id == user.id, Borrowing.late_fee_status == LateFeeStatus.PENDING
            )
        )
        return {
            "user_id": user.id,
            "active": by_status.get(BorrowingStatus.ACTIVE, 0) + by_status.get(BorrowingStatus.OVERDUE, 0),
            "overdue": overdue,
            "total_borrowed": sum(by_status.values()),
            "unpaid_fees": float(to_money(unpaid)),
            "max_books": max_books_for(user),
        }

    async def get_history(
        self,
        db: AsyncSession,
        borrower_id: Optional[str] = None,
        book_id: Optional[str] = None,
        status: Optional[BorrowingStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Borrowing)
        if borrower_id:
            query = query.where(Borrowing.borrower_id == borrower_id)
        if book_id:
            query = query.where(Borrowing.book_id == book_id)
        if status:
            query = query.where(Borrowing.status == status)
        return await paginate(db, query.order_by(Borrowing.borrowed_at.desc()), page, limit)


class ReservationService:
    """Service for the reservation queue"""

    async def get(self, db: AsyncSession, reservation_id: str) -> Reservation:
        reservation = await db.get(Reservation, reservation_id)
        if not reservation:
            raise NotFoundError("Reservation not found")
        return reservation

    async def create(self, db: AsyncSession, book_id: str, user_id: str) -> Reservation:
        book = await book_service.get(db, book_id)
        if not await db.get(User, user_id):
            raise NotFoundError("User not found")
        if book.available_copies > 0:
            raise BadRequestError("Book is currently available")

        duplicate = await db.scalar(
            select(func.count(Reservation.id)).where(
                Reservation.book_id == book.id,
                Reservation.user_id == user_id,
                Reservation.status.in_(QUEUED_RESERVATION_STATUSES),
            )
        )
        if duplicate:
            raise ConflictError("You already have a reservation for this book")

        active = await db.scalar(
            select(func.count(Reservation.id)).where(
                Reservation.user_id == user_id,
                Reservation.status.in_(QUEUED_RESERVATION_STATUSES),
            )
        )
        if active >= settings.LIBRARY_MAX_ACTIVE_RESERVATIONS:
            raise BadRequestError(
                f"Maximum active reservations ({settings.LIBRARY_MAX_ACTIVE_RESERVATIONS}) reached"
            )

        now = datetime.utcnow()
        reservation = Reservation(
            book_id=book.id,
            user_id=user_id,
            status=ReservationStatus.PENDING,
            reserved_at=now,
            expires_at=now + timedelta(days=settings.LIBRARY_RESERVATION_EXPIRY_DAYS),
        )
        async with atomic(db):
            db.add(reservation)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "reservation", reservation.id, user_id,
                new_values={"book_id": book.id},
            )
        return reservation

    async def cancel(self, db: AsyncSession, reservation_id: str, user: User, is_admin: bool = False) -> Reservation:
        reservation = await self.get(db, reservation_id)
        if reservation.user_id != user.id and not is_admin:
            raise ForbiddenError("You can only cancel your own reservations")
        if reservation.status not in QUEUED_RESERVATION_STATUSES:
            raise BadRequestError(f"Cannot cancel a {reservation.status.value} reservation")

        async with atomic(db):
            reservation.status = ReservationStatus.CANCELLED
            reservation.cancelled_at = datetime.utcnow()
            await audit_service.log(
                db, AuditAction.UPDATE, "reservation", reservation.id, user.id,
                new_values={"status": ReservationStatus.CANCELLED},
            )
        return reservation

    async def fulfill(self, db: AsyncSession, reservation_id: str) -> Reservation:
        reservation = await self.get(db, reservation_id)
        if reservation.status != ReservationStatus.READY:
            raise BadRequestError("Only ready reservations can be fulfilled")

        async with atomic(db):
            reservation.status = ReservationStatus.FULFILLED
            reservation.fulfilled_at = datetime.utcnow()
        return reservation

    async def get_queue_position(self, db: AsyncSession, reservation_id: str) -> int:
        """1-based position among the book's pending reservations"""
        reservation = await self.get(db, reservation_id)
        if reservation.status != ReservationStatus.PENDING:
            raise BadRequestError("Reservation is not waiting in the queue")
        ahead = await db.scalar(
            select(func.count(Reservation.id)).where(
                Reservation.book_id == reservation.book_id,
                Reservation.status == ReservationStatus.PENDING,
                Reservation.reserved_at < reservation.reserved_at,
            )
        )
        return (ahead or 0) + 1

    async def expire_old_reservations(self, db: AsyncSession) -> int:
        """
        Expire queued reservations past their deadline.

        A READY hold that lapses releases its copy to the next PENDING
        reservation for the same book.
        """
        now = datetime.utcnow()
        result = await db.execute(
            select(Reservation).where(
                Reservation.status.in_(QUEUED_RESERVATION_STATUSES),
                Reservation.expires_at < now,
            )
        )
        expired = list(result.scalars().all())
        if not expired:
            return 0

        released_books = []
        async with atomic(db):
            for reservation in expired:
                if reservation.status == ReservationStatus.READY and reservation.book_id not in released_books:
                    released_books.append(reservation.book_id)
                reservation.status = ReservationStatus.EXPIRED
            await db.flush()

            for book_id in released_books:
                next_in_line = await next_pending_reservation(db, book_id)
                if next_in_line:
                    mark_ready(next_in_line, now)
                    logger.info(f"Reservation {next_in_line.id} promoted after an expired hold")

        logger.info(f"Expired {len(expired)} reservations")
        return len(expired)

    async def list(
        self,
        db: AsyncSession,
        user_id: Optional[str] = None,
        book_id: Optional[str] = None,
        status: Optional[ReservationStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Reservation)
        if user_id:
            query = query.where(Reservation.user_id == user_id)
        if book_id:
            query = query.where(Reservation.book_id == book_id)
        if status:
            query = query.where(Reservation.status == status)
        return await paginate(db, query.order_by(Reservation.reserved_at), page, limit)


borrowing_service = BorrowingService()
reservation_service = ReservationService()
