"""
Student Service - student records and their lifecycle

Handles:
- Admission with generated student numbers (STU-{year}-{seq})
- Contact updates, deactivation and program transfers
- Enrollment, grade and financial views of a student
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime, date
from typing import Optional, List, Dict, Any
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError
from campus_erp.core.types import to_money
from campus_erp.models.academic import Program
from campus_erp.models.people import Student, StudentStatus
from campus_erp.models.registration import Enrollment, EnrollmentStatus
from campus_erp.models.finance import Invoice, InvoiceStatus, Payment
from campus_erp.models.user import User
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.people import StudentCreate, StudentUpdate
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("student_id", "full_name", "email", "phone", "program_id", "status")


class StudentService:
    """Service for student records"""

    async def next_student_id(self, db: AsyncSession, year: int) -> str:
        prefix = f"STU-{year}-"
        count = await db.scalar(select(func.count(Student.id)).where(Student.student_id.like(f"{prefix}%")))
        return f"{prefix}{(count or 0) + 1:04d}"

    async def _ensure_email_free(self, db: AsyncSession, email: str, exclude_id: Optional[str] = None):
        query = select(Student.id).where(func.lower(Student.email) == email.lower())
        if exclude_id:
            query = query.where(Student.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none():
            raise ConflictError(f"A student with email '{email}' already exists")

    async def _active_program(self, db: AsyncSession, program_id: str) -> Program:
        program = await db.get(Program, program_id)
        if not program or program.deleted_at is not None:
            raise BadRequestError("Invalid program ID")
        return program

    # ==================== STUDENT CRUD ====================

    async def create(self, db: AsyncSession, data: StudentCreate, user_id: Optional[str] = None) -> Student:
        await self._ensure_email_free(db, data.email)
        await self._active_program(db, data.program_id)

        admission_date = data.admission_date or date.today()
        student = Student(
            student_id=await self.next_student_id(db, admission_date.year),
            full_name=data.full_name,
            email=data.email,
            phone=data.phone,
            program_id=data.program_id,
            user_id=data.user_id,
            status=StudentStatus.ACTIVE,
            admission_date=admission_date,
        )
        async with atomic(db):
            db.add(student)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "student", student.id, user_id,
                new_values=model_snapshot(student, AUDIT_FIELDS),
            )

        logger.info(f"Admitted student {student.student_id}")
        return student

    async def list(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        status: Optional[StudentStatus] = None,
        program_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Student).where(Student.deleted_at.is_(None))
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(Student.full_name).like(pattern),
                func.lower(Student.student_id).like(pattern),
                func.lower(Student.email).like(pattern),
            ))
        if status:
            query = query.where(Student.status == status)
        if program_id:
            query = query.where(Student.program_id == program_id)
        return await paginate(db, query.order_by(Student.student_id), page, limit)

    async def get(self, db: AsyncSession, student_id: str) -> Student:
        student = await db.get(Student, student_id)
        if not student or student.deleted_at is not None:
            raise NotFoundError("Student not found")
        return student

    async def get_by_student_id(self, db: AsyncSession, code: str) -> Student:
        result = await db.execute(
            select(Student).where(Student.student_id == code.upper(), Student.deleted_at.is_(None))
        )
        student = result.scalar_one_or_none()
        if not student:
            raise NotFoundError(f"Student '{code}' not found")
        return student

    async def get_by_user(self, db: AsyncSession, user_id: str) -> Optional[Student]:
        result = await db.execute(
            select(Student).where(Student.user_id == user_id, Student.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    async def update(
        self, db: AsyncSession, student_id: str, data: StudentUpdate, user_id: Optional[str] = None
    ) -> Student:
        student = await self.get(db, student_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email") and changes["email"].lower() != student.email.lower():
            await self._ensure_email_free(db, changes["email"], exclude_id=student.id)

        old_values = model_snapshot(student, changes.keys())
        async with atomic(db):
            for field, value in changes.items():
                setattr(student, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "student", student.id, user_id,
                old_values=old_values, new_values=model_snapshot(student, changes.keys()),
            )
        return student

    # ==================== LIFECYCLE ====================

    async def deactivate(
        self,
        db: AsyncSession,
        student_id: str,
        status: StudentStatus,
        reason: str,
        user_id: Optional[str] = None,
    ) -> Student:
        """Move an ACTIVE student to a non-active status and lock their account"""
        student = await self.get(db, student_id)
        if student.status != StudentStatus.ACTIVE:
            raise BadRequestError(f"Student is already {student.status.value}")
        if status == StudentStatus.ACTIVE:
            raise BadRequestError("Target status must not be active")

        account = await db.get(User, student.user_id) if student.user_id else None
        async with atomic(db):
            student.status = status
            if account:
                account.is_active = False
            await audit_service.log(
                db, AuditAction.UPDATE, "student", student.id, user_id,
                old_values={"status": StudentStatus.ACTIVE},
                new_values={"status": status, "reason": reason},
            )

        logger.info(f"Student {student.student_id} set to {status.value}: {reason}")
        return student

    async def transfer(
        self,
        db: AsyncSession,
        student_id: str,
        program_id: str,
        reason: str,
        user_id: Optional[str] = None,
    ) -> Student:
        student = await self.get(db, student_id)
        if student.status != StudentStatus.ACTIVE:
            raise BadRequestError("Only active students can transfer")
        if student.program_id == program_id:
            raise BadRequestError("Student is already in this program")
        await self._active_program(db, program_id)

        old_program = student.program_id
        async with atomic(db):
            student.program_id = program_id
            await audit_service.log(
                db, AuditAction.UPDATE, "student", student.id, user_id,
                old_values={"program_id": old_program},
                new_values={"program_id": program_id, "reason": reason},
            )
        return student

    async def delete(self, db: AsyncSession, student_id: str, user_id: Optional[str] = None) -> None:
        student = await self.get(db, student_id)
        registered = await db.scalar(
            select(func.count(Enrollment.id)).where(
                Enrollment.student_id == student.id,
                Enrollment.status == EnrollmentStatus.REGISTERED,
            )
        )
        if registered:
            raise BadRequestError("Cannot delete a student with registered enrollments")

        async with atomic(db):
            student.deleted_at = datetime.utcnow()
            await audit_service.log(
                db, AuditAction.DELETE, "student", student.id, user_id,
                old_values=model_snapshot(student, AUDIT_FIELDS),
            )

    # ==================== RELATED RECORDS ====================

    async def get_enrollments(
        self, db: AsyncSession, student_id: str, semester_id: Optional[str] = None
    ) -> List[Enrollment]:
        await self.get(db, student_id)
        query = select(Enrollment).where(Enrollment.student_id == student_id)
        if semester_id:
            query = query.where(Enrollment.semester_id == semester_id)
        result = await db.execute(query.order_by(Enrollment.enrolled_at.desc()))
        return list(result.scalars().all())

    async def get_grades(self, db: AsyncSession, student_id: str) -> List[Enrollment]:
        """Finalized enrollments carrying a final grade"""
        await self.get(db, student_id)
        result = await db.execute(
            select(Enrollment)
            .where(Enrollment.student_id == student_id, Enrollment.is_finalized.is_(True))
            .order_by(Enrollment.finalized_at)
        )
        return list(result.scalars().all())

    async def get_financial_summary(self, db: AsyncSession, student_id: str) -> Dict[str, Any]:
        await self.get(db, student_id)
        invoiced = await db.execute(
            select(func.count(Invoice.id), func.coalesce(func.sum(Invoice.amount), 0)).where(
                Invoice.student_id == student_id, Invoice.status != InvoiceStatus.CANCELLED
            )
        )
        invoice_count, total_invoiced = invoiced.one()
        paid = await db.execute(
            select(func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.student_id == student_id, Payment.is_voided.is_(False)
            )
        )
        payment_count, total_paid = paid.one()

        total_invoiced = to_money(total_invoiced)
        total_paid = to_money(total_paid)
        return {
            "student_id": student_id,
            "total_invoiced": float(total_invoiced),
            "total_paid": float(total_paid),
            "balance": float(total_invoiced - total_paid),
            "invoices": invoice_count,
            "payments": payment_count,
        }


student_service = StudentService()
