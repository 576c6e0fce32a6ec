"""
Invoice Service - tuition invoices and their derived status

An invoice's status follows its non-voided payments: PAID once they
cover the amount, PARTIAL when something was paid, OVERDUE past the
due date, PENDING otherwise. CANCELLED (voided) invoices never change.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Dict, Any
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError
from campus_erp.core.types import to_money
from campus_erp.models.finance import Invoice, InvoiceStatus, Payment
from campus_erp.models.people import Student, StudentStatus
from campus_erp.models.audit_log import AuditAction
from campus_erp.services.academic_service import academic_service
from campus_erp.services.audit_service import audit_service
from campus_erp.services.student_service import student_service
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

OPEN_INVOICE_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE)


def derive_invoice_status(amount: Decimal, paid: Decimal, due_date: date, today: Optional[date] = None) -> InvoiceStatus:
    today = today or datetime.utcnow().date()
    if paid >= amount:
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIAL
    if due_date < today:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PENDING


async def next_number(db: AsyncSession, model, column, prefix: str) -> str:
    """Sequential document number such as INV-2026-000042"""
    year = datetime.utcnow().year
    stem = f"{prefix}-{year}-"
    count = await db.scalar(select(func.count(model.id)).where(column.like(f"{stem}%")))
    return f"{stem}{count + 1:06d}"


class InvoiceService:
    """Service for student invoices"""

    async def amount_paid(self, db: AsyncSession, invoice_id: str) -> Decimal:
        total = await db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.invoice_id == invoice_id, Payment.is_voided.is_(False)
            )
        )
        return to_money(total)

    async def to_response(self, db: AsyncSession, invoice: Invoice) -> Dict[str, Any]:
        """Invoice fields plus amount_paid and balance"""
        paid = await self.amount_paid(db, invoice.id)
        return {
            "id": invoice.id,
            "invoice_no": invoice.invoice_no,
            "student_id": invoice.student_id,
            "semester_id": invoice.semester_id,
            "amount": invoice.amount,
            "amount_paid": paid,
            "balance": max(Decimal("0"), to_money(invoice.amount) - paid),
            "due_date": invoice.due_date,
            "description": invoice.description,
            "status": invoice.status,
            "void_reason": invoice.void_reason,
            "created_at": invoice.created_at,
        }

    async def _has_invoice(self, db: AsyncSession, student_id: str, semester_id: str) -> bool:
        existing = await db.scalar(
            select(func.count(Invoice.id)).where(
                Invoice.student_id == student_id,
                Invoice.semester_id == semester_id,
                Invoice.status != InvoiceStatus.CANCELLED,
            )
        )
        return bool(existing)

    async def generate(
        self,
        db: AsyncSession,
        student_id: str,
        semester_id: str,
        amount: Decimal,
        due_date: date,
        description: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Invoice:
        """
        Invoice a student for a semester

        Args:
            db: Database session
            student_id: Invoiced student (must be ACTIVE)
            semester_id: Semester being billed
            amount: Amount due
            due_date: Payment deadline
            description: Free text shown on the invoice
            user_id: Acting user

        Returns:
            The PENDING Invoice
        """
        student = await student_service.get(db, student_id)
        if student.status != StudentStatus.ACTIVE:
            raise BadRequestError(f"Student is not active (status: {student.status.value})")
        semester = await academic_service.get_semester(db, semester_id)
        if await self._has_invoice(db, student.id, semester.id):
            raise ConflictError("Invoice already exists for this student and semester")

        async with atomic(db):
            invoice = Invoice(
                invoice_no=await next_number(db, Invoice, Invoice.invoice_no, "INV"),
                student_id=student.id,
                semester_id=semester.id,
                amount=to_money(amount),
                due_date=due_date,
                description=description,
                status=InvoiceStatus.PENDING,
            )
            db.add(invoice)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "invoice", invoice.id, user_id,
                new_values={"invoice_no": invoice.invoice_no, "student_id": student.id, "amount": invoice.amount},
            )

        logger.info(f"Generated invoice {invoice.invoice_no} for {student.student_id}")
        return invoice

    async def generate_bulk(
        self,
        db: AsyncSession,
        semester_id: str,
        amount: Decimal,
        due_date: date,
        program_id: Optional[str] = None,
        description: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, int]:
        semester = await academic_service.get_semester(db, semester_id)
        query = select(Student.id).where(Student.status == StudentStatus.ACTIVE, Student.deleted_at.is_(None))
        if program_id:
            query = query.where(Student.program_id == program_id)
        student_ids = list((await db.execute(query.order_by(Student.student_id))).scalars().all())
        if not student_ids:
            raise NotFoundError("No eligible students found")

        generated = 0
        skipped = 0
        for student_id in student_ids:
            if await self._has_invoice(db, student_id, semester.id):
                skipped += 1
                continue
            await self.generate(db, student_id, semester.id, amount, due_date, description, user_id)
            generated += 1

        logger.info(f"Bulk invoicing for semester {semester.name}: {generated} generated, {skipped} skipped")
        return {"generated": generated, "skipped": skipped}

    async def get(self, db: AsyncSession, invoice_id: str) -> Invoice:
        invoice = await db.get(Invoice, invoice_id)
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    async def get_by_number(self, db: AsyncSession, invoice_no: str) -> Invoice:
        invoice = await db.scalar(select(Invoice).where(Invoice.invoice_no == invoice_no))
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    async def get_by_student(self, db: AsyncSession, student_id: str) -> List[Invoice]:
        await student_service.get(db, student_id)
        result = await db.execute(
            select(Invoice).where(Invoice.student_id == student_id).order_by(Invoice.created_at.desc())
        )
        return list(result.scalars().all())

    async def list(
        self,
        db: AsyncSession,
        student_id: Optional[str] = None,
        status: Optional[InvoiceStatus] = None,
        semester_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Invoice)
        if student_id:
            query = query.where(Invoice.student_id == student_id)
        if status:
            query = query.where(Invoice.status == status)
        if semester_id:
            query = query.where(Invoice.semester_id == semester_id)
        return await paginate(db, query.order_by(Invoice.created_at.desc()), page, limit)

    async def void(self, db: AsyncSession, invoice_id: str, reason: str, user_id: Optional[str] = None) -> Invoice:
        invoice = await self.get(db, invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED:
            raise BadRequestError("Invoice is already cancelled")
        payments = await db.scalar(
            select(func.count(Payment.id)).where(Payment.invoice_id == invoice.id, Payment.is_voided.is_(False))
        )
        if payments:
            raise BadRequestError(
                "Cannot void an invoice with payments; void the payments first", details={"payments": payments}
            )

        old_status = invoice.status
        async with atomic(db):
            invoice.status = InvoiceStatus.CANCELLED
            invoice.void_reason = reason
            await audit_service.log(
                db, AuditAction.UPDATE, "invoice", invoice.id, user_id,
                old_values={"status": old_status},
                new_values={"status": InvoiceStatus.CANCELLED, "reason": reason},
            )
        return invoice

    async def refresh_status(self, db: AsyncSession, invoice: Invoice) -> Invoice:
        """Recompute the status inside the caller's transaction (no commit)"""
        if invoice.status == InvoiceStatus.CANCELLED:
            return invoice
        await db.flush()
        paid = await self.amount_paid(db, invoice.id)
        invoice.status = derive_invoice_status(to_money(invoice.amount), paid, invoice.due_date)
        return invoice

    async def update_status(self, db: AsyncSession, invoice_id: str) -> Invoice:
        invoice = await self.get(db, invoice_id)
        async with atomic(db):
            await self.refresh_status(db, invoice)
        return invoice

    async def get_outstanding(self, db: AsyncSession, student_id: Optional[str] = None) -> List[Invoice]:
        query = select(Invoice).where(Invoice.status.in_(OPEN_INVOICE_STATUSES))
        if student_id:
            query = query.where(Invoice.student_id == student_id)
        result = await db.execute(query.order_by(Invoice.due_date))
        return list(result.scalars().all())

    async def get_overdue(self, db: AsyncSession) -> List[Invoice]:
        """Open invoices past their due date; PENDING ones are flipped to OVERDUE"""
        today = datetime.utcnow().date()
        result = await db.execute(
            select(Invoice)
            .where(Invoice.status.in_(OPEN_INVOICE_STATUSES), Invoice.due_date < today)
            .order_by(Invoice.due_date)
        )
        invoices = list(result.scalars().all())
        flipped = [i for i in invoices if i.status == InvoiceStatus.PENDING]
        if flipped:
            async with atomic(db):
                for invoice in flipped:
                    invoice.status = InvoiceStatus.OVERDUE
            logger.info(f"Marked {len(flipped)} invoices overdue")
        return invoices

    async def student_balance(self, db: AsyncSession, student_id: str) -> Decimal:
        """Unpaid amount across the student's open invoices"""
        balance = Decimal("0")
        for invoice in await self.get_outstanding(db, student_id):
            balance += to_money(invoice.amount) - await self.amount_paid(db, invoice.id)
        return to_money(max(Decimal("0"), balance))


invoice_service = InvoiceService()
