"""
Admission Service - applications from prospective students

Handles:
- Submission with generated application numbers (APP-{year}-{seq})
- Review workflow: pending -> under review -> approved / rejected
- Enrollment of approved applicants as students with a login account
- Intake statistics
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime
from typing import Optional, Dict, Any
import secrets
import string
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError
from campus_erp.core.security import get_password_hash
from campus_erp.models.academic import Program
from campus_erp.models.admission import AdmissionApplication, ApplicationStatus
from campus_erp.models.people import Student, StudentStatus
from campus_erp.models.user import User, UserRole
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.admission import ApplicationCreate, ApplicationUpdate
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.services.student_service import student_service, AUDIT_FIELDS as STUDENT_AUDIT_FIELDS
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("application_no", "email", "program_id", "status")

EDITABLE_STATUSES = (ApplicationStatus.PENDING, ApplicationStatus.UNDER_REVIEW)

REVIEW_TRANSITIONS = {
    ApplicationStatus.PENDING: (
        ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED,
    ),
    ApplicationStatus.UNDER_REVIEW: (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED),
}

TEMP_PASSWORD_LENGTH = 10


def generate_temp_password() -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(TEMP_PASSWORD_LENGTH)) + "!"


class AdmissionService:
    """Service for admission applications"""

    async def _next_application_no(self, db: AsyncSession) -> str:
        prefix = f"APP-{datetime.utcnow().year}-"
        count = await db.scalar(
            select(func.count(AdmissionApplication.id)).where(AdmissionApplication.application_no.like(f"{prefix}%"))
        )
        return f"{prefix}{(count or 0) + 1:04d}"

    async def _ensure_email_free(self, db: AsyncSession, email: str):
        """An email may only have one open application and must not belong to an account"""
        open_application = await db.scalar(
            select(AdmissionApplication.id).where(
                func.lower(AdmissionApplication.email) == email.lower(),
                AdmissionApplication.status.notin_([ApplicationStatus.REJECTED, ApplicationStatus.ENROLLED]),
            )
        )
        if open_application:
            raise ConflictError(f"An application for '{email}' is already in progress")
        if await db.scalar(select(User.id).where(func.lower(User.email) == email.lower())):
            raise ConflictError(f"An account with email '{email}' already exists")

    async def _valid_program(self, db: AsyncSession, program_id: str) -> Program:
        program = await db.get(Program, program_id)
        if not program or program.deleted_at is not None:
            raise BadRequestError("Invalid program ID")
        return program

    # ==================== APPLICATIONS ====================

    async def create(
        self, db: AsyncSession, data: ApplicationCreate, user_id: Optional[str] = None
    ) -> AdmissionApplication:
        await self._ensure_email_free(db, data.email)
        await self._valid_program(db, data.program_id)

        application = AdmissionApplication(
            **data.model_dump(),
            application_no=await self._next_application_no(db),
            status=ApplicationStatus.PENDING,
        )
        async with atomic(db):
            db.add(application)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "admission_application", application.id, user_id,
                new_values=model_snapshot(application, AUDIT_FIELDS),
            )

        logger.info(f"Received application {application.application_no}")
        return application

    async def list(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        status: Optional[ApplicationStatus] = None,
        program_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(AdmissionApplication)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(AdmissionApplication.first_name).like(pattern),
                func.lower(AdmissionApplication.last_name).like(pattern),
                func.lower(AdmissionApplication.email).like(pattern),
                func.lower(AdmissionApplication.application_no).like(pattern),
            ))
        if status:
            query = query.where(AdmissionApplication.status == status)
        if program_id:
            query = query.where(AdmissionApplication.program_id == program_id)
        return await paginate(db, query.order_by(AdmissionApplication.created_at.desc()), page, limit)

    async def get(self, db: AsyncSession, application_id: str) -> AdmissionApplication:
        application = await db.get(AdmissionApplication, application_id)
        if not application:
            raise NotFoundError("Application not found")
        return application

    async def get_by_number(self, db: AsyncSession, application_no: str) -> AdmissionApplication:
        result = await db.execute(
            select(AdmissionApplication).where(AdmissionApplication.application_no == application_no.upper())
        )
        application = result.scalar_one_or_none()
        if not application:
            raise NotFoundError(f"Application '{application_no}' not found")
        return application

    async def update(
        self, db: AsyncSession, application_id: str, data: ApplicationUpdate, user_id: Optional[str] = None
    ) -> AdmissionApplication:
        application = await self.get(db, application_id)
        if application.status not in EDITABLE_STATUSES:
            raise BadRequestError(f"Cannot update an application that is {application.status.value}")

        changes = data.model_dump(exclude_unset=True)
        if changes.get("program_id"):
            await self._valid_program(db, changes["program_id"])

        old_values = model_snapshot(application, changes.keys())
        async with atomic(db):
            for field, value in changes.items():
                setattr(application, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "admission_application", application.id, user_id,
                old_values=old_values, new_values=model_snapshot(application, changes.keys()),
            )
        return application

    # ==================== REVIEW ====================

    async def review(
        self,
        db: AsyncSession,
        application_id: str,
        status: ApplicationStatus,
        remarks: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> AdmissionApplication:
        application = await self.get(db, application_id)
        allowed = REVIEW_TRANSITIONS.get(application.status, ())
        if status not in allowed:
            raise BadRequestError(
                f"Cannot move application from {application.status.value} to {status.value}",
                details={"allowed": [s.value for s in allowed]},
            )
        if status == ApplicationStatus.REJECTED and not (remarks or "").strip():
            raise BadRequestError("A reason is required to reject an application")

        old_status = application.status
        async with atomic(db):
            application.status = status
            application.reviewed_by_id = user_id
            application.reviewed_at = datetime.utcnow()
            application.review_remarks = remarks
            if status == ApplicationStatus.REJECTED:
                application.rejection_reason = remarks.strip()
            await audit_service.log(
                db, AuditAction.UPDATE, "admission_application", application.id, user_id,
                old_values={"status": old_status}, new_values={"status": status, "remarks": remarks},
            )

        logger.info(f"Application {application.application_no}: {old_status.value} -> {status.value}")
        return application

    async def reject(
        self, db: AsyncSession, application_id: str, reason: str, user_id: Optional[str] = None
    ) -> AdmissionApplication:
        return await self.review(db, application_id, ApplicationStatus.REJECTED, reason, user_id)

    async def enroll(self, db: AsyncSession, application_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Turn an approved application into a student.

        Creates the login account and the student record in one unit of
        work. The temporary password is returned once and only its hash
        is stored.
        """
        application = await self.get(db, application_id)
        if application.status != ApplicationStatus.APPROVED:
            raise BadRequestError("Only approved applications can be enrolled")
        if application.student_id:
            raise ConflictError("Application has already been enrolled")
        if await db.scalar(select(User.id).where(func.lower(User.email) == application.email.lower())):
            raise ConflictError(f"An account with email '{application.email}' already exists")
        await self._valid_program(db, application.program_id)

        now = datetime.utcnow()
        password = generate_temp_password()
        account = User(
            email=application.email,
            full_name=application.full_name,
            hashed_password=get_password_hash(password),
            role=UserRole.STUDENT,
        )
        async with atomic(db):
            db.add(account)
            await db.flush()
            student = Student(
                student_id=await student_service.next_student_id(db, now.year),
                full_name=application.full_name,
                email=application.email,
                phone=application.phone,
                program_id=application.program_id,
                user_id=account.id,
                status=StudentStatus.ACTIVE,
                admission_date=now.date(),
            )
            db.add(student)
            await db.flush()

            application.status = ApplicationStatus.ENROLLED
            application.enrolled_at = now
            application.student_id = student.id

            await audit_service.log(
                db, AuditAction.CREATE, "student", student.id, user_id,
                new_values=model_snapshot(student, STUDENT_AUDIT_FIELDS),
            )
            await audit_service.log(
                db, AuditAction.UPDATE, "admission_application", application.id, user_id,
                old_values={"status": ApplicationStatus.APPROVED},
                new_values={"status": ApplicationStatus.ENROLLED, "student_id": student.id},
            )

        logger.info(f"Enrolled application {application.application_no} as {student.student_id}")
        return {
            "application_no": application.application_no,
            "student_id": student.id,
            "student_number": student.student_id,
            "user_id": account.id,
            "email": account.email,
            "temporary_password": password,
        }

    # ==================== STATISTICS ====================

    async def get_statistics(self, db: AsyncSession, year: Optional[int] = None) -> Dict[str, Any]:
        year = year or datetime.utcnow().year

        by_status = dict((await db.execute(
            select(AdmissionApplication.status, func.count(AdmissionApplication.id))
            .group_by(AdmissionApplication.status)
        )).all())

        top_programs = (await db.execute(
            select(Program.code, func.count(AdmissionApplication.id).label("applications"))
            .select_from(AdmissionApplication)
            .join(Program, Program.id == AdmissionApplication.program_id)
            .group_by(Program.code)
            .order_by(func.count(AdmissionApplication.id).desc(), Program.code)
            .limit(5)
        )).all()

        start, end = datetime(year, 1, 1), datetime(year + 1, 1, 1)
        created = (await db.execute(
            select(AdmissionApplication.created_at).where(
                AdmissionApplication.created_at >= start, AdmissionApplication.created_at < end
            )
        )).scalars().all()
        monthly = {}
        for created_at in created:
            monthly[created_at.month] = monthly.get(created_at.month, 0) + 1

        return {
            "total": sum(by_status.values()),
            "by_status": {status.value: count for status, count in by_status.items()},
            "by_program": {code: count for code, count in top_programs},
            "monthly_trend": [{"month": month, "count": monthly[month]} for month in sorted(monthly)],
        }


admission_service = AdmissionService()
