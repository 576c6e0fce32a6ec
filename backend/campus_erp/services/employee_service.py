"""
Employee Service - staff records
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime
from typing import Optional
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError
from campus_erp.models.academic import Department
from campus_erp.models.people import Employee, EmployeeStatus
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.people import EmployeeCreate, EmployeeUpdate
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("employee_no", "full_name", "email", "department_id", "position", "base_salary", "status")


class EmployeeService:
    """Service for employee records"""

    async def _ensure_unique(self, db: AsyncSession, employee_no: Optional[str], email: Optional[str],
                             exclude_id: Optional[str] = None):
        if employee_no:
            query = select(Employee.id).where(Employee.employee_no == employee_no)
            if exclude_id:
                query = query.where(Employee.id != exclude_id)
            if (await db.execute(query)).scalar_one_or_none():
                raise ConflictError(f"Employee number '{employee_no}' already exists")
        if email:
            query = select(Employee.id).where(func.lower(Employee.email) == email.lower())
            if exclude_id:
                query = query.where(Employee.id != exclude_id)
            if (await db.execute(query)).scalar_one_or_none():
                raise ConflictError(f"An employee with email '{email}' already exists")

    async def _ensure_department(self, db: AsyncSession, department_id: str):
        department = await db.get(Department, department_id)
        if not department or department.deleted_at is not None:
            raise BadRequestError("Invalid department ID")

    async def create(self, db: AsyncSession, data: EmployeeCreate, user_id: Optional[str] = None) -> Employee:
        await self._ensure_unique(db, data.employee_no, data.email)
        if data.department_id:
            await self._ensure_department(db, data.department_id)

        employee = Employee(**data.model_dump(), status=EmployeeStatus.ACTIVE)
        async with atomic(db):
            db.add(employee)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "employee", employee.id, user_id,
                new_values=model_snapshot(employee, AUDIT_FIELDS),
            )

        logger.info(f"Created employee {employee.employee_no}")
        return employee

    async def list(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        department_id: Optional[str] = None,
        status: Optional[EmployeeStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Employee).where(Employee.deleted_at.is_(None))
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(Employee.full_name).like(pattern),
                func.lower(Employee.employee_no).like(pattern),
                func.lower(Employee.email).like(pattern),
            ))
        if department_id:
            query = query.where(Employee.department_id == department_id)
        if status:
            query = query.where(Employee.status == status)
        return await paginate(db, query.order_by(Employee.full_name), page, limit)

    async def get(self, db: AsyncSession, employee_id: str) -> Employee:
        employee = await db.get(Employee, employee_id)
        if not employee or employee.deleted_at is not None:
            raise NotFoundError("Employee not found")
        return employee

    async def get_by_user(self, db: AsyncSession, user_id: str) -> Optional[Employee]:
        result = await db.execute(
            select(Employee).where(Employee.user_id == user_id, Employee.deleted_at.is_(None))
        )
        return result.scalar_one_or_none()

    async def update(
        self, db: AsyncSession, employee_id: str, data: EmployeeUpdate, user_id: Optional[str] = None
    ) -> Employee:
        employee = await self.get(db, employee_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email") and changes["email"].lower() != employee.email.lower():
            await self._ensure_unique(db, None, changes["email"], exclude_id=employee.id)
        if changes.get("department_id"):
            await self._ensure_department(db, changes["department_id"])

        old_values = model_snapshot(employee, AUDIT_FIELDS)
        async with atomic(db):
            for field, value in changes.items():
                setattr(employee, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "employee", employee.id, user_id,
                old_values=old_values, new_values=model_snapshot(employee, AUDIT_FIELDS),
            )
        return employee

    async def delete(self, db: AsyncSession, employee_id: str, user_id: Optional[str] = None) -> None:
        """Soft delete; the record is kept as TERMINATED"""
        employee = await self.get(db, employee_id)
        async with atomic(db):
            employee.status = EmployeeStatus.TERMINATED
            employee.deleted_at = datetime.utcnow()
            await audit_service.log(
                db, AuditAction.DELETE, "employee", employee.id, user_id,
                old_values=model_snapshot(employee, AUDIT_FIELDS),
            )
        logger.info(f"Terminated employee {employee.employee_no}")


employee_service = EmployeeService()
