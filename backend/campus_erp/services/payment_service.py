"""
Payment Service - fee payments, voids and collection reports
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, date, timedelta
from decimal import Decimal
from typing import Optional, Dict, Any
import logging

from campus_erp.core.config import settings
from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, BadRequestError
from campus_erp.core.types import to_money
from campus_erp.models.finance import Payment, PaymentMethod, InvoiceStatus
from campus_erp.models.audit_log import AuditAction
from campus_erp.services.audit_service import audit_service
from campus_erp.services.invoice_service import invoice_service, next_number
from campus_erp.services.student_service import student_service
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)


def _day_bounds(day: date):
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


class PaymentService:
    """Service for payments"""

    async def record(
        self,
        db: AsyncSession,
        student_id: str,
        amount: Decimal,
        method: PaymentMethod,
        invoice_id: Optional[str] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Payment:
        """
        Record a payment and update the invoice it settles

        The payment row, the invoice status change and the audit entry
        commit together.
        """
        student = await student_service.get(db, student_id)
        if amount is None or amount <= 0:
            raise BadRequestError("Payment amount must be greater than zero")

        invoice = None
        if invoice_id:
            invoice = await invoice_service.get(db, invoice_id)
            if invoice.student_id != student.id:
                raise BadRequestError("Invoice does not belong to this student")
            if invoice.status in (InvoiceStatus.CANCELLED, InvoiceStatus.PAID):
                raise BadRequestError(f"Cannot pay a {invoice.status.value} invoice")

        async with atomic(db):
            payment = Payment(
                receipt_no=await next_number(db, Payment, Payment.receipt_no, "RCP"),
                student_id=student.id,
                invoice_id=invoice.id if invoice else None,
                amount=to_money(amount),
                method=method,
                reference=reference,
                notes=notes,
                received_by_id=user_id,
                created_at=datetime.utcnow(),
            )
            db.add(payment)
            if invoice:
                await invoice_service.refresh_status(db, invoice)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "payment", payment.id, user_id,
                new_values={
                    "receipt_no": payment.receipt_no,
                    "student_id": student.id,
                    "invoice_id": payment.invoice_id,
                    "amount": payment.amount,
                    "method": method,
                },
            )

        logger.info(f"Recorded payment {payment.receipt_no} of {payment.amount} from {student.student_id}")
        return payment

    async def get(self, db: AsyncSession, payment_id: str) -> Payment:
        payment = await db.get(Payment, payment_id)
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    async def get_by_receipt(self, db: AsyncSession, receipt_no: str) -> Payment:
        payment = await db.scalar(select(Payment).where(Payment.receipt_no == receipt_no))
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    async def void(self, db: AsyncSession, payment_id: str, reason: str, user_id: Optional[str] = None) -> Payment:
        payment = await self.get(db, payment_id)
        if payment.is_voided:
            raise BadRequestError("Payment is already voided")
        window = timedelta(days=settings.PAYMENT_VOID_WINDOW_DAYS)
        if datetime.utcnow() - payment.created_at > window:
            raise BadRequestError(
                f"Payments can only be voided within {settings.PAYMENT_VOID_WINDOW_DAYS} days"
            )

        async with atomic(db):
            payment.is_voided = True
            payment.void_reason = reason
            payment.voided_at = datetime.utcnow()
            payment.voided_by_id = user_id
            if payment.invoice_id:
                invoice = await invoice_service.get(db, payment.invoice_id)
                await invoice_service.refresh_status(db, invoice)
            await audit_service.log(
                db, AuditAction.UPDATE, "payment", payment.id, user_id,
                old_values={"is_voided": False}, new_values={"is_voided": True, "reason": reason},
            )

        logger.info(f"Voided payment {payment.receipt_no}: {reason}")
        return payment

    async def list(
        self,
        db: AsyncSession,
        student_id: Optional[str] = None,
        method: Optional[PaymentMethod] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Payment)
        if student_id:
            query = query.where(Payment.student_id == student_id)
        if method:
            query = query.where(Payment.method == method)
        if date_from:
            query = query.where(Payment.created_at >= _day_bounds(date_from)[0])
        if date_to:
            query = query.where(Payment.created_at < _day_bounds(date_to)[1])
        return await paginate(db, query.order_by(Payment.created_at.desc()), page, limit)

    async def _valid_payments(self, db: AsyncSession, start: datetime, end: datetime):
        result = await db.execute(
            select(Payment).where(
                Payment.is_voided.is_(False), Payment.created_at >= start, Payment.created_at < end
            )
        )
        return result.scalars().all()

    async def get_daily_collection(self, db: AsyncSession, day: Optional[date] = None) -> Dict[str, Any]:
        day = day or datetime.utcnow().date()
        payments = await self._valid_payments(db, *_day_bounds(day))

        by_method: Dict[str, Dict[str, float]] = {}
        total = Decimal("0")
        for payment in payments:
            bucket = by_method.setdefault(payment.method.value, {"count": 0, "total": 0.0})
            bucket["count"] += 1
            bucket["total"] = float(to_money(Decimal(str(bucket["total"])) + payment.amount))
            total += payment.amount
        return {"date": day, "total": float(to_money(total)), "count": len(payments), "by_method": by_method}

    async def get_collection_report(self, db: AsyncSession, date_from: date, date_to: date) -> Dict[str, Any]:
        if date_from > date_to:
            raise BadRequestError("date_from must not be after date_to")
        payments = await self._valid_payments(db, _day_bounds(date_from)[0], _day_bounds(date_to)[1])

        by_method: Dict[str, Decimal] = {}
        by_day: Dict[date, Decimal] = {}
        total = Decimal("0")
        for payment in payments:
            by_method[payment.method.value] = by_method.get(payment.method.value, Decimal("0")) + payment.amount
            day = payment.created_at.date()
            by_day[day] = by_day.get(day, Decimal("0")) + payment.amount
            total += payment.amount

        return {
            "date_from": date_from,
            "date_to": date_to,
            "total": float(to_money(total)),
            "count": len(payments),
            "by_method": {method: float(to_money(amount)) for method, amount in by_method.items()},
            "by_day": [{"date": day.isoformat(), "total": float(to_money(amount))} for day, amount in sorted(by_day.items())],
        }

    async def generate_receipt(self, db: AsyncSession, payment_id: str) -> Dict[str, Any]:
        payment = await self.get(db, payment_id)
        student = await student_service.get(db, payment.student_id)
        invoice = await invoice_service.get(db, payment.invoice_id) if payment.invoice_id else None
        return {
            "receipt_no": payment.receipt_no,
            "payment": payment,
            "student_id": student.student_id,
            "student_name": student.full_name,
            "invoice_no": invoice.invoice_no if invoice else None,
            "outstanding_balance": float(await invoice_service.student_balance(db, student.id)),
        }


payment_service = PaymentService()
