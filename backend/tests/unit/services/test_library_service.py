"""
Unit Tests for the library services

Covers catalogue copy counters, circulation (issue/return/renew),
late fee arithmetic and the reservation queue.
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import select

from campus_erp.core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from campus_erp.models import (
    UserRole, BookCategory, BookCopy, BookStatus, CopyStatus, BorrowingStatus,
    LateFeeStatus, ReservationStatus,
)
from campus_erp.schemas.library import BookCreate, CopyUpdate
from campus_erp.services.book_service import book_service, calculate_status
from campus_erp.services.circulation_service import (
    borrowing_service,
    reservation_service,
    calculate_late_fee,
)


@pytest.fixture
async def category(db_session):
    category = BookCategory(name='Computing')
    db_session.add(category)
    await db_session.commit()
    return category


@pytest.fixture
def make_book(db_session, category):
    async def _make(isbn='9780131103627', copies=3):
        return await book_service.create(
            db_session,
            BookCreate(isbn=isbn, title='The C Programming Language', author='Kernighan',
                       category_id=category.id, total_copies=copies),
        )
    return _make


async def _copies(db_session, book_id):
    result = await db_session.execute(select(BookCopy).where(BookCopy.book_id == book_id))
    return list(result.scalars().all())


def _assert_counters(book):
    assert 0 <= book.available_copies <= book.total_copies


class TestBookStatus:
    """Stock status derived from counters"""

    def test_no_copies_is_discontinued(self):
        assert calculate_status(0, 0) == BookStatus.DISCONTINUED

    def test_none_available_is_out_of_stock(self):
        assert calculate_status(0, 4) == BookStatus.OUT_OF_STOCK

    def test_single_available_is_low_stock(self):
        assert calculate_status(1, 4) == BookStatus.LOW_STOCK

    def test_enough_available(self):
        assert calculate_status(3, 4) == BookStatus.AVAILABLE


class TestLateFee:
    """Late fee = (days late - grace) * daily rate"""

    def test_on_time_return_is_free(self):
        due = datetime(2026, 3, 10, 12, 0)
        assert calculate_late_fee(due, due - timedelta(hours=1)) == Decimal('0.00')

    def test_within_grace_period_is_free(self):
        due = datetime(2026, 3, 10, 12, 0)
        assert calculate_late_fee(due, due + timedelta(days=1)) == Decimal('0.00')

    def test_three_days_late(self):
        due = datetime(2026, 3, 10, 12, 0)
        assert calculate_late_fee(due, due + timedelta(days=3)) == Decimal('1.00')

    def test_partial_day_counts_as_a_day(self):
        due = datetime(2026, 3, 10, 12, 0)
        assert calculate_late_fee(due, due + timedelta(days=1, hours=2)) == Decimal('0.50')


class TestCatalogue:
    """Book creation and copy management"""

    @pytest.mark.asyncio
    async def test_create_book_creates_copies(self, db_session, make_book):
        book = await make_book(copies=3)

        copies = await _copies(db_session, book.id)
        assert book.total_copies == 3
        assert book.available_copies == 3
        assert len(copies) == 3
        assert {c.copy_number for c in copies} == {'001', '002', '003'}
        assert all(c.barcode.startswith('LIB-') and len(c.barcode) == 12 for c in copies)

    @pytest.mark.asyncio
    async def test_duplicate_isbn_conflicts(self, make_book):
        await make_book(isbn='978-0-13-110362-7')

        with pytest.raises(ConflictError):
            await make_book(isbn='9780131103627')

    @pytest.mark.asyncio
    async def test_add_and_remove_copies_keep_counters_consistent(self, db_session, make_book):
        book = await make_book(copies=2)

        book = await book_service.add_copies(db_session, book.id, 3)
        assert (book.total_copies, book.available_copies) == (5, 5)
        assert book.status == BookStatus.AVAILABLE

        book = await book_service.remove_copies(db_session, book.id, 4, reason='Damaged by flood')
        assert (book.total_copies, book.available_copies) == (1, 1)
        assert book.status == BookStatus.LOW_STOCK
        _assert_counters(book)

    @pytest.mark.asyncio
    async def test_available_adjustment_is_clamped(self, db_session, make_book):
        book = await make_book(copies=2)

        book = await book_service.update_available_copies(db_session, book.id, -5)
        assert book.available_copies == 0
        assert book.status == BookStatus.OUT_OF_STOCK

        book = await book_service.update_available_copies(db_session, book.id, 10)
        assert book.available_copies == 2
        _assert_counters(book)

    @pytest.mark.asyncio
    async def test_cannot_remove_more_than_available(self, db_session, make_book):
        book = await make_book(copies=1)

        with pytest.raises(BadRequestError):
            await book_service.remove_copies(db_session, book.id, 2, reason='Weeding')

    @pytest.mark.asyncio
    async def test_mark_available_copy_lost(self, db_session, make_book):
        book = await make_book(copies=2)
        copy = (await _copies(db_session, book.id))[0]

        await book_service.mark_as_lost(db_session, copy.id)

        book = await book_service.get(db_session, book.id)
        assert (book.total_copies, book.available_copies) == (1, 1)
        with pytest.raises(BadRequestError):
            await book_service.mark_as_lost(db_session, copy.id)

    @pytest.mark.asyncio
    async def test_copy_to_maintenance_and_back(self, db_session, make_book):
        book = await make_book(copies=2)
        copy = (await _copies(db_session, book.id))[0]

        await book_service.update_copy(db_session, copy.id, CopyUpdate(status=CopyStatus.MAINTENANCE))
        book = await book_service.get(db_session, book.id)
        assert book.available_copies == 1

        await book_service.update_copy(db_session, copy.id, CopyUpdate(status=CopyStatus.AVAILABLE))
        book = await book_service.get(db_session, book.id)
        assert book.available_copies == 2


class TestCirculation:
    """Issue, return and renew"""

    @pytest.mark.asyncio
    async def test_issue_and_return(self, db_session, make_book, student_user, librarian_user):
        book = await make_book(copies=2)
        copy = (await _copies(db_session, book.id))[0]

        borrowing = await borrowing_service.issue_book(
            db_session, student_user.id, copy_id=copy.id, issued_by_id=librarian_user.id
        )
        book = await book_service.get(db_session, book.id)
        assert borrowing.status == BorrowingStatus.ACTIVE
        assert (await book_service.get_copy(db_session, copy.id)).status == CopyStatus.BORROWED
        assert book.available_copies == 1

        returned = await borrowing_service.return_book(db_session, borrowing.id, returned_to_id=librarian_user.id)
        book = await book_service.get(db_session, book.id)
        assert returned.status == BorrowingStatus.RETURNED
        assert returned.late_fee == Decimal('0.00')
        assert book.available_copies == 2
        _assert_counters(book)

    @pytest.mark.asyncio
    async def test_cannot_issue_borrowed_copy(self, db_session, make_book, student_user, make_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        await borrowing_service.issue_book(db_session, student_user.id, copy_id=copy.id)
        other = await make_user(UserRole.STUDENT)

        with pytest.raises(BadRequestError):
            await borrowing_service.issue_book(db_session, other.id, copy_id=copy.id)

    @pytest.mark.asyncio
    async def test_borrowing_limit(self, db_session, make_book, student_user):
        book = await make_book(copies=6)
        copies = await _copies(db_session, book.id)
        for copy in copies[:5]:
            await borrowing_service.issue_book(db_session, student_user.id, copy_id=copy.id)

        eligibility = await borrowing_service.can_borrow(db_session, student_user)
        assert eligibility['can_borrow'] is False
        with pytest.raises(BadRequestError):
            await borrowing_service.issue_book(db_session, student_user.id, copy_id=copies[5].id)

    @pytest.mark.asyncio
    async def test_late_return_charges_fee(self, db_session, make_book, student_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        borrowing = await borrowing_service.issue_book(db_session, student_user.id, copy_id=copy.id)
        borrowing.due_date = datetime.utcnow() - timedelta(days=4, hours=1)
        await db_session.commit()

        returned = await borrowing_service.return_book(db_session, borrowing.id)

        # 5 started days late, 1 grace day
        assert returned.late_fee == Decimal('2.00')
        assert returned.late_fee_status == LateFeeStatus.PENDING

        paid = await borrowing_service.pay_late_fee(db_session, borrowing.id)
        assert paid.late_fee_status == LateFeeStatus.PAID

    @pytest.mark.asyncio
    async def test_renew_limit(self, db_session, make_book, student_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        borrowing = await borrowing_service.issue_book(db_session, student_user.id, copy_id=copy.id)
        first_due = borrowing.due_date

        await borrowing_service.renew(db_session, borrowing.id)
        renewed = await borrowing_service.renew(db_session, borrowing.id)

        assert renewed.renew_count == 2
        assert renewed.due_date == first_due + timedelta(days=28)
        with pytest.raises(BadRequestError):
            await borrowing_service.renew(db_session, borrowing.id)

    @pytest.mark.asyncio
    async def test_overdue_loan_cannot_be_renewed(self, db_session, make_book, student_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        borrowing = await borrowing_service.issue_book(db_session, student_user.id, copy_id=copy.id)
        borrowing.due_date = datetime.utcnow() - timedelta(days=1)
        await db_session.commit()

        with pytest.raises(BadRequestError):
            await borrowing_service.renew(db_session, borrowing.id)
        assert await borrowing_service.mark_overdue(db_session) == 1


class TestReservations:
    """Reservation queue"""

    @pytest.mark.asyncio
    async def test_cannot_reserve_available_book(self, db_session, make_book, student_user):
        book = await make_book(copies=1)

        with pytest.raises(BadRequestError):
            await reservation_service.create(db_session, book.id, student_user.id)

    @pytest.mark.asyncio
    async def test_return_promotes_oldest_reservation(self, db_session, make_book, make_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        borrower, first, second = [await make_user(UserRole.STUDENT) for _ in range(3)]
        borrowing = await borrowing_service.issue_book(db_session, borrower.id, copy_id=copy.id)

        r1 = await reservation_service.create(db_session, book.id, first.id)
        r1.reserved_at = datetime.utcnow() - timedelta(hours=2)
        await db_session.commit()
        r2 = await reservation_service.create(db_session, book.id, second.id)
        assert await reservation_service.get_queue_position(db_session, r2.id) == 2

        await borrowing_service.return_book(db_session, borrowing.id)

        assert (await reservation_service.get(db_session, r1.id)).status == ReservationStatus.READY
        assert (await reservation_service.get(db_session, r2.id)).status == ReservationStatus.PENDING

        # Picking up the held copy fulfils the reservation
        await borrowing_service.issue_book(db_session, first.id, copy_id=copy.id)
        assert (await reservation_service.get(db_session, r1.id)).status == ReservationStatus.FULFILLED

    @pytest.mark.asyncio
    async def test_duplicate_reservation_conflicts(self, db_session, make_book, make_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        borrower, waiting = await make_user(UserRole.STUDENT), await make_user(UserRole.STUDENT)
        await borrowing_service.issue_book(db_session, borrower.id, copy_id=copy.id)
        await reservation_service.create(db_session, book.id, waiting.id)

        with pytest.raises(ConflictError):
            await reservation_service.create(db_session, book.id, waiting.id)

    @pytest.mark.asyncio
    async def test_only_owner_can_cancel(self, db_session, make_book, make_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        borrower, waiting, stranger = [await make_user(UserRole.STUDENT) for _ in range(3)]
        await borrowing_service.issue_book(db_session, borrower.id, copy_id=copy.id)
        reservation = await reservation_service.create(db_session, book.id, waiting.id)

        with pytest.raises(ForbiddenError):
            await reservation_service.cancel(db_session, reservation.id, stranger)

        cancelled = await reservation_service.cancel(db_session, reservation.id, waiting)
        assert cancelled.status == ReservationStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_unknown_user_cannot_reserve(self, db_session, make_book, student_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        await borrowing_service.issue_book(db_session, student_user.id, copy_id=copy.id)

        with pytest.raises(NotFoundError):
            await reservation_service.create(db_session, book.id, 'no-such-user')


class TestReservationExpiry:
    """Lapsed reservations and the queue behind them"""

    @pytest.mark.asyncio
    async def test_expired_hold_promotes_next_in_line(self, db_session, make_book, make_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        borrower, first, second = [await make_user(UserRole.STUDENT) for _ in range(3)]
        borrowing = await borrowing_service.issue_book(db_session, borrower.id, copy_id=copy.id)

        r1 = await reservation_service.create(db_session, book.id, first.id)
        r1.reserved_at = datetime.utcnow() - timedelta(hours=2)
        await db_session.commit()
        r2 = await reservation_service.create(db_session, book.id, second.id)
        await borrowing_service.return_book(db_session, borrowing.id)

        r1 = await reservation_service.get(db_session, r1.id)
        assert r1.status == ReservationStatus.READY
        r1.expires_at = datetime.utcnow() - timedelta(minutes=5)
        await db_session.commit()

        assert await reservation_service.expire_old_reservations(db_session) == 1

        assert (await reservation_service.get(db_session, r1.id)).status == ReservationStatus.EXPIRED
        promoted = await reservation_service.get(db_session, r2.id)
        assert promoted.status == ReservationStatus.READY
        assert promoted.ready_at is not None
        assert promoted.expires_at > datetime.utcnow()

    @pytest.mark.asyncio
    async def test_expired_pending_reservation_promotes_nothing(self, db_session, make_book, make_user):
        book = await make_book(copies=1)
        copy = (await _copies(db_session, book.id))[0]
        borrower, first, second = [await make_user(UserRole.STUDENT) for _ in range(3)]
        await borrowing_service.issue_book(db_session, borrower.id, copy_id=copy.id)

        stale = await reservation_service.create(db_session, book.id, first.id)
        waiting = await reservation_service.create(db_session, book.id, second.id)
        stale.expires_at = datetime.utcnow() - timedelta(days=1)
        await db_session.commit()

        assert await reservation_service.expire_old_reservations(db_session) == 1

        assert (await reservation_service.get(db_session, stale.id)).status == ReservationStatus.EXPIRED
        assert (await reservation_service.get(db_session, waiting.id)).status == ReservationStatus.PENDING

    @pytest.mark.asyncio
    async def test_nothing_to_expire(self, db_session):
        assert await reservation_service.expire_old_reservations(db_session) == 0


class TestLostCopies:

    @pytest.mark.asyncio
    async def test_borrowed_copy_lost(self, db_session, make_book, student_user):
        book = await make_book(copies=2)
        copy = (await _copies(db_session, book.id))[0]
        borrowing = await borrowing_service.issue_book(db_session, student_user.id, copy_id=copy.id)

        await book_service.mark_as_lost(db_session, copy.id)

        book = await book_service.get(db_session, book.id)
        assert (await borrowing_service.get(db_session, borrowing.id)).status == BorrowingStatus.LOST
        assert (await book_service.get_copy(db_session, copy.id)).status == CopyStatus.LOST
        # The borrowed copy was already off the shelf
        assert (book.total_copies, book.available_copies) == (1, 1)
        _assert_counters(book)
