"""
Finance API

Invoices and payments. Writes need FINANCE; students can read their own
invoices, payments and receipts.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.finance import InvoiceStatus, PaymentMethod
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.common import ApiResponse, PaginatedResponse
from campus_erp.schemas.finance import (
    InvoiceCreate,
    BulkInvoiceRequest,
    BulkInvoiceResult,
    VoidRequest,
    InvoiceResponse,
    PaymentCreate,
    PaymentResponse,
    DailyCollection,
    CollectionReport,
    Receipt,
)
from campus_erp.services.invoice_service import invoice_service
from campus_erp.services.payment_service import payment_service
from campus_erp.services.student_service import student_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

finance_staff = require_roles(UserRole.FINANCE)


async def _ensure_can_view(db: AsyncSession, current_user: User, student_id: str) -> None:
    if current_user.role in (UserRole.ADMIN, UserRole.FINANCE):
        return
    own = await student_service.get_by_user(db, current_user.id)
    if not own or own.id != student_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own finances")


# ==================== Invoices ====================

@router.post("/invoices", response_model=ApiResponse[InvoiceResponse], status_code=status.HTTP_201_CREATED)
async def generate_invoice(
    data: InvoiceCreate,
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.generate(
        db, data.student_id, data.semester_id, data.amount, data.due_date, data.description, current_user.id
    )
    return success(await invoice_service.to_response(db, invoice), f"Invoice {invoice.invoice_no} generated")


@router.post("/invoices/bulk", response_model=ApiResponse[BulkInvoiceResult])
async def generate_bulk_invoices(
    data: BulkInvoiceRequest,
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    result = await invoice_service.generate_bulk(
        db, data.semester_id, data.amount, data.due_date, data.program_id, data.description, current_user.id
    )
    return success(result, f"{result['generated']} invoices generated, {result['skipped']} skipped")


@router.get("/invoices", response_model=PaginatedResponse[InvoiceResponse])
async def list_invoices(
    student_id: Optional[str] = None,
    status: Optional[InvoiceStatus] = None,
    semester_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    result = await invoice_service.list(
        db, student_id=student_id, status=status, semester_id=semester_id, page=page, limit=limit
    )
    return {
        "success": True,
        "data": [await invoice_service.to_response(db, invoice) for invoice in result.items],
        "pagination": result.pagination,
    }


@router.get("/invoices/outstanding", response_model=ApiResponse[List[InvoiceResponse]])
async def outstanding_invoices(
    student_id: Optional[str] = None,
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    invoices = await invoice_service.get_outstanding(db, student_id)
    return success([await invoice_service.to_response(db, i) for i in invoices])


@router.get("/invoices/overdue", response_model=ApiResponse[List[InvoiceResponse]])
async def overdue_invoices(
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    invoices = await invoice_service.get_overdue(db)
    return success([await invoice_service.to_response(db, i) for i in invoices])


@router.get("/invoices/number/{invoice_no}", response_model=ApiResponse[InvoiceResponse])
async def get_invoice_by_number(
    invoice_no: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.get_by_number(db, invoice_no)
    await _ensure_can_view(db, current_user, invoice.student_id)
    return success(await invoice_service.to_response(db, invoice))


@router.get("/invoices/student/{student_id}", response_model=ApiResponse[List[InvoiceResponse]])
async def get_student_invoices(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_can_view(db, current_user, student_id)
    invoices = await invoice_service.get_by_student(db, student_id)
    return success([await invoice_service.to_response(db, i) for i in invoices])


@router.get("/invoices/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def get_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.get(db, invoice_id)
    await _ensure_can_view(db, current_user, invoice.student_id)
    return success(await invoice_service.to_response(db, invoice))


@router.post("/invoices/{invoice_id}/void", response_model=ApiResponse[InvoiceResponse])
async def void_invoice(
    invoice_id: str,
    data: VoidRequest,
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.void(db, invoice_id, data.reason, current_user.id)
    return success(await invoice_service.to_response(db, invoice), "Invoice voided")


@router.post("/invoices/{invoice_id}/refresh-status", response_model=ApiResponse[InvoiceResponse])
async def refresh_invoice_status(
    invoice_id: str,
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    invoice = await invoice_service.update_status(db, invoice_id)
    return success(await invoice_service.to_response(db, invoice))


# ==================== Payments ====================

@router.post("/payments", response_model=ApiResponse[PaymentResponse], status_code=status.HTTP_201_CREATED)
async def record_payment(
    data: PaymentCreate,
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    payment = await payment_service.record(
        db,
        data.student_id,
        data.amount,
        data.method,
        invoice_id=data.invoice_id,
        reference=data.reference,
        notes=data.notes,
        user_id=current_user.id,
    )
    return success(payment, f"Payment {payment.receipt_no} recorded")


@router.get("/payments", response_model=PaginatedResponse[PaymentResponse])
async def list_payments(
    student_id: Optional[str] = None,
    method: Optional[PaymentMethod] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if current_user.role not in (UserRole.ADMIN, UserRole.FINANCE):
        own = await student_service.get_by_user(db, current_user.id)
        if not own:
            raise HTTPException(status_code=403, detail="No student record for this account")
        student_id = own.id
    result = await payment_service.list(
        db, student_id=student_id, method=method, date_from=date_from, date_to=date_to, page=page, limit=limit
    )
    return paginated(result, PaymentResponse)


@router.get("/payments/daily", response_model=ApiResponse[DailyCollection])
async def daily_collection(
    day: Optional[date] = None,
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await payment_service.get_daily_collection(db, day))


@router.get("/payments/report", response_model=ApiResponse[CollectionReport])
async def collection_report(
    date_from: date,
    date_to: date,
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await payment_service.get_collection_report(db, date_from, date_to))


@router.get("/payments/receipt/{receipt_no}", response_model=ApiResponse[PaymentResponse])
async def get_payment_by_receipt(
    receipt_no: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    payment = await payment_service.get_by_receipt(db, receipt_no)
    await _ensure_can_view(db, current_user, payment.student_id)
    return success(payment)


@router.get("/payments/{payment_id}", response_model=ApiResponse[PaymentResponse])
async def get_payment(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    payment = await payment_service.get(db, payment_id)
    await _ensure_can_view(db, current_user, payment.student_id)
    return success(payment)


@router.get("/payments/{payment_id}/receipt", response_model=ApiResponse[Receipt])
async def get_receipt(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    payment = await payment_service.get(db, payment_id)
    await _ensure_can_view(db, current_user, payment.student_id)
    return success(await payment_service.generate_receipt(db, payment_id))


@router.post("/payments/{payment_id}/void", response_model=ApiResponse[PaymentResponse])
async def void_payment(
    payment_id: str,
    data: VoidRequest,
    current_user: User = Depends(finance_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await payment_service.void(db, payment_id, data.reason, current_user.id), "Payment voided")
