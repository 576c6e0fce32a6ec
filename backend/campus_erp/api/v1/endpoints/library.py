"""
Library API

Catalogue (categories, books, physical copies), circulation (issue,
return, renew, late fees) and the reservation queue.

Catalogue and circulation writes need LIBRARIAN. Any signed-in user may
browse, reserve books and see their own borrowings.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.core.exceptions import NotFoundError
from campus_erp.models.library import BookStatus, BorrowingStatus, ReservationStatus
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, MessageResponse, ReasonRequest
from campus_erp.schemas.library import (
    CategoryCreate, CategoryResponse,
    BookCreate, BookUpdate, BookResponse, BookDetailResponse,
    CopyResponse, AddCopiesRequest, RemoveCopiesRequest, CopyUpdate, InventoryReport,
    IssueBookRequest, ReturnBookRequest, ReturnByBarcodeRequest,
    BorrowingResponse, CanBorrowResponse, MemberStats,
    ReservationCreate, ReservationResponse, QueuePosition,
)
from campus_erp.services.book_service import book_service
from campus_erp.services.circulation_service import borrowing_service, reservation_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

library_staff = require_roles(UserRole.LIBRARIAN)

STAFF_ROLES = (UserRole.ADMIN, UserRole.LIBRARIAN)


def _ensure_self_or_staff(current_user: User, user_id: str) -> None:
    if current_user.role not in STAFF_ROLES and current_user.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own library records"
        )


async def _book_detail(db: AsyncSession, book) -> BookDetailResponse:
    copies = await book_service.get_copies(db, book.id)
    return BookDetailResponse(
        **BookResponse.model_validate(book).model_dump(),
        copies=[CopyResponse.model_validate(c) for c in copies],
    )


# ==================== Categories ====================

@router.post("/categories", response_model=ApiResponse[CategoryResponse], status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.create_category(db, data), "Category created successfully")


@router.get("/categories", response_model=ApiResponse[List[CategoryResponse]])
async def list_categories(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.list_categories(db))


# ==================== Reports ====================

@router.get("/reports/inventory", response_model=ApiResponse[InventoryReport])
async def inventory_report(
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.get_inventory_report(db))


@router.get("/reports/new-arrivals", response_model=ApiResponse[List[BookResponse]])
async def new_arrivals(
    days: int = Query(30, ge=1, le=365),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.get_new_arrivals(db, days, limit))


@router.get("/reports/popular")
async def popular_books(
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    rows = await book_service.get_popular_books(db, limit)
    return success([
        {"book": BookResponse.model_validate(row["book"]), "borrow_count": row["borrow_count"]}
        for row in rows
    ])


@router.get("/reports/low-stock", response_model=ApiResponse[List[BookResponse]])
async def low_stock_books(
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.get_low_stock_books(db))


# ==================== Books ====================

@router.post("/books", response_model=ApiResponse[BookDetailResponse], status_code=status.HTTP_201_CREATED)
async def create_book(
    data: BookCreate,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    book = await book_service.create(db, data, current_user.id)
    return success(await _book_detail(db, book), "Book created successfully")


@router.get("/books", response_model=PaginatedResponse[BookResponse])
async def list_books(
    search: Optional[str] = Query(None, description="Match on title, author or ISBN"),
    category_id: Optional[str] = None,
    status: Optional[BookStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await book_service.list(
        db, search=search, category_id=category_id, status=status, page=page, limit=limit
    )
    return paginated(result, BookResponse)


@router.get("/books/{book_id}", response_model=ApiResponse[BookDetailResponse])
async def get_book(
    book_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await _book_detail(db, await book_service.get(db, book_id)))


@router.patch("/books/{book_id}", response_model=ApiResponse[BookResponse])
async def update_book(
    book_id: str,
    data: BookUpdate,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.update(db, book_id, data, current_user.id), "Book updated successfully")


@router.delete("/books/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: str,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    await book_service.delete(db, book_id, current_user.id)
    return {"success": True, "message": "Book deleted successfully"}


@router.post("/books/{book_id}/copies", response_model=ApiResponse[BookDetailResponse], status_code=status.HTTP_201_CREATED)
async def add_copies(
    book_id: str,
    data: AddCopiesRequest,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    book = await book_service.add_copies(
        db, book_id, data.quantity, data.condition, data.acquisition_type, data.notes, current_user.id
    )
    return success(await _book_detail(db, book), f"Added {data.quantity} copies")


@router.post("/books/{book_id}/copies/remove", response_model=ApiResponse[BookDetailResponse])
async def remove_copies(
    book_id: str,
    data: RemoveCopiesRequest,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    book = await book_service.remove_copies(db, book_id, data.quantity, data.reason, current_user.id)
    return success(await _book_detail(db, book), f"Removed {data.quantity} copies")


# ==================== Copies ====================

@router.get("/copies/barcode/{barcode}", response_model=ApiResponse[CopyResponse])
async def get_copy_by_barcode(
    barcode: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.get_by_barcode(db, barcode))


@router.get("/copies/{copy_id}", response_model=ApiResponse[CopyResponse])
async def get_copy(
    copy_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.get_copy(db, copy_id))


@router.patch("/copies/{copy_id}", response_model=ApiResponse[CopyResponse])
async def update_copy(
    copy_id: str,
    data: CopyUpdate,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.update_copy(db, copy_id, data, current_user.id), "Copy updated")


@router.post("/copies/{copy_id}/lost", response_model=ApiResponse[CopyResponse])
async def mark_copy_lost(
    copy_id: str,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await book_service.mark_as_lost(db, copy_id, current_user.id), "Copy marked as lost")


# ==================== Borrowings ====================

@router.post("/borrowings/issue", response_model=ApiResponse[BorrowingResponse], status_code=status.HTTP_201_CREATED)
async def issue_book(
    data: IssueBookRequest,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    borrowing = await borrowing_service.issue_book(
        db,
        borrower_id=data.borrower_id,
        copy_id=data.copy_id,
        barcode=data.barcode,
        due_date=data.due_date,
        issued_by_id=current_user.id,
    )
    return success(borrowing, "Book issued successfully")


@router.post("/borrowings/return-by-barcode", response_model=ApiResponse[BorrowingResponse])
async def return_by_barcode(
    data: ReturnByBarcodeRequest,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    borrowing = await borrowing_service.return_by_barcode(
        db,
        data.barcode,
        condition=data.condition,
        waive_fee=data.waive_fee,
        waive_reason=data.waive_reason,
        returned_to_id=current_user.id,
    )
    return success(borrowing, "Book returned successfully")


@router.post("/borrowings/mark-overdue")
async def mark_overdue(
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    count = await borrowing_service.mark_overdue(db)
    return success({"updated": count}, f"{count} borrowings marked overdue")


@router.get("/borrowings/overdue", response_model=ApiResponse[List[BorrowingResponse]])
async def get_overdue(
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await borrowing_service.get_overdue(db))


@router.get("/borrowings", response_model=PaginatedResponse[BorrowingResponse])
async def list_borrowings(
    borrower_id: Optional[str] = None,
    book_id: Optional[str] = None,
    status: Optional[BorrowingStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Borrowing history; non-staff users only see their own"""
    if current_user.role not in STAFF_ROLES:
        borrower_id = current_user.id
    result = await borrowing_service.get_history(
        db, borrower_id=borrower_id, book_id=book_id, status=status, page=page, limit=limit
    )
    return paginated(result, BorrowingResponse)


@router.get("/borrowings/{borrowing_id}", response_model=ApiResponse[BorrowingResponse])
async def get_borrowing(
    borrowing_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    borrowing = await borrowing_service.get(db, borrowing_id)
    _ensure_self_or_staff(current_user, borrowing.borrower_id)
    return success(borrowing)


@router.post("/borrowings/{borrowing_id}/return", response_model=ApiResponse[BorrowingResponse])
async def return_book(
    borrowing_id: str,
    data: ReturnBookRequest,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    borrowing = await borrowing_service.return_book(
        db,
        borrowing_id,
        condition=data.condition,
        waive_fee=data.waive_fee,
        waive_reason=data.waive_reason,
        returned_to_id=current_user.id,
    )
    return success(borrowing, "Book returned successfully")


@router.post("/borrowings/{borrowing_id}/renew", response_model=ApiResponse[BorrowingResponse])
async def renew_borrowing(
    borrowing_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    borrowing = await borrowing_service.get(db, borrowing_id)
    _ensure_self_or_staff(current_user, borrowing.borrower_id)
    return success(await borrowing_service.renew(db, borrowing_id, current_user.id), "Borrowing renewed")


@router.post("/borrowings/{borrowing_id}/waive-fee", response_model=ApiResponse[BorrowingResponse])
async def waive_late_fee(
    borrowing_id: str,
    data: ReasonRequest,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    borrowing = await borrowing_service.waive_late_fee(db, borrowing_id, data.reason, current_user.id)
    return success(borrowing, "Late fee waived")


@router.post("/borrowings/{borrowing_id}/pay-fee", response_model=ApiResponse[BorrowingResponse])
async def pay_late_fee(
    borrowing_id: str,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await borrowing_service.pay_late_fee(db, borrowing_id, current_user.id), "Late fee paid")


# ==================== Members ====================

@router.get("/members/{user_id}/can-borrow", response_model=ApiResponse[CanBorrowResponse])
async def can_borrow(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _ensure_self_or_staff(current_user, user_id)
    member = await db.get(User, user_id)
    if not member:
        raise NotFoundError("User not found")
    return success(await borrowing_service.can_borrow(db, member))


@router.get("/members/{user_id}/stats", response_model=ApiResponse[MemberStats])
async def member_stats(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _ensure_self_or_staff(current_user, user_id)
    return success(await borrowing_service.get_member_stats(db, user_id))


# ==================== Reservations ====================

@router.post("/reservations", response_model=ApiResponse[ReservationResponse], status_code=status.HTTP_201_CREATED)
async def create_reservation(
    data: ReservationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    user_id = data.user_id or current_user.id
    _ensure_self_or_staff(current_user, user_id)
    return success(await reservation_service.create(db, data.book_id, user_id), "Book reserved")


@router.get("/reservations", response_model=PaginatedResponse[ReservationResponse])
async def list_reservations(
    user_id: Optional[str] = None,
    book_id: Optional[str] = None,
    status: Optional[ReservationStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if current_user.role not in STAFF_ROLES:
        user_id = current_user.id
    result = await reservation_service.list(
        db, user_id=user_id, book_id=book_id, status=status, page=page, limit=limit
    )
    return paginated(result, ReservationResponse)


@router.post("/reservations/expire")
async def expire_reservations(
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    count = await reservation_service.expire_old_reservations(db)
    return success({"expired": count}, f"{count} reservations expired")


@router.get("/reservations/{reservation_id}/position", response_model=ApiResponse[QueuePosition])
async def reservation_position(
    reservation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    reservation = await reservation_service.get(db, reservation_id)
    _ensure_self_or_staff(current_user, reservation.user_id)
    position = await reservation_service.get_queue_position(db, reservation_id)
    return success({"reservation_id": reservation_id, "position": position})


@router.post("/reservations/{reservation_id}/cancel", response_model=ApiResponse[ReservationResponse])
async def cancel_reservation(
    reservation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    reservation = await reservation_service.cancel(
        db, reservation_id, current_user, is_admin=current_user.role in STAFF_ROLES
    )
    return success(reservation, "Reservation cancelled")


@router.post("/reservations/{reservation_id}/fulfill", response_model=ApiResponse[ReservationResponse])
async def fulfill_reservation(
    reservation_id: str,
    current_user: User = Depends(library_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await reservation_service.fulfill(db, reservation_id), "Reservation fulfilled")
