"""
Department Service - Business logic for academic departments

Handles:
- Department CRUD with faculty / head-of-department validation
- Soft delete guarded by active programs and courses
- Read helpers and per-department statistics
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from datetime import datetime
from typing import Optional, List, Dict
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError
from campus_erp.models.academic import Department, Faculty, Program, Course
from campus_erp.models.people import Employee, Student
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.academic import DepartmentCreate, DepartmentUpdate
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("name", "name_local", "code", "description", "faculty_id", "hod_id")


class DepartmentService:
    """Service for managing departments"""

    # ==================== VALIDATION ====================

    async def _ensure_code_free(self, db: AsyncSession, code: str, exclude_id: Optional[str] = None):
        query = select(Department.id).where(Department.code == code)
        if exclude_id:
            query = query.where(Department.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none():
            raise ConflictError(f"Department with code '{code}' already exists")

    async def _ensure_faculty(self, db: AsyncSession, faculty_id: str):
        faculty = await db.get(Faculty, faculty_id)
        if not faculty or faculty.deleted_at is not None:
            raise BadRequestError("Invalid faculty ID")

    async def _ensure_hod(self, db: AsyncSession, hod_id: str):
        employee = await db.get(Employee, hod_id)
        if not employee or employee.deleted_at is not None:
            raise BadRequestError("Invalid head of department ID")

    # ==================== DEPARTMENT CRUD ====================

    async def create(
        self,
        db: AsyncSession,
        data: DepartmentCreate,
        user_id: Optional[str] = None
    ) -> Department:
        """
        Create a department

        Args:
            db: Database session
            data: Department creation data
            user_id: Acting user, recorded in the audit log

        Returns:
            Created Department
        """
        await self._ensure_code_free(db, data.code)
        await self._ensure_faculty(db, data.faculty_id)
        if data.hod_id:
            await self._ensure_hod(db, data.hod_id)

        department = Department(**data.model_dump())
        async with atomic(db):
            db.add(department)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "department", department.id, user_id,
                new_values=model_snapshot(department, AUDIT_FIELDS),
            )

        logger.info(f"Created department {department.code}")
        return department

    async def list(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        faculty_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Department).where(Department.deleted_at.is_(None))
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(Department.name).like(pattern),
                func.lower(Department.code).like(pattern),
            ))
        if faculty_id:
            query = query.where(Department.faculty_id == faculty_id)
        return await paginate(db, query.order_by(Department.name), page, limit)

    async def get(self, db: AsyncSession, department_id: str) -> Department:
        department = await db.get(Department, department_id)
        if not department or department.deleted_at is not None:
            raise NotFoundError("Department not found")
        return department

    async def update(
        self,
        db: AsyncSession,
        department_id: str,
        data: DepartmentUpdate,
        user_id: Optional[str] = None
    ) -> Department:
        department = await self.get(db, department_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("code") and changes["code"] != department.code:
            await self._ensure_code_free(db, changes["code"], exclude_id=department.id)
        if changes.get("faculty_id") and changes["faculty_id"] != department.faculty_id:
            await self._ensure_faculty(db, changes["faculty_id"])
        if changes.get("hod_id") and changes["hod_id"] != department.hod_id:
            await self._ensure_hod(db, changes["hod_id"])

        old_values = model_snapshot(department, AUDIT_FIELDS)
        async with atomic(db):
            for field, value in changes.items():
                setattr(department, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "department", department.id, user_id,
                old_values=old_values, new_values=model_snapshot(department, AUDIT_FIELDS),
            )
        return department

    async def delete(self, db: AsyncSession, department_id: str, user_id: Optional[str] = None) -> None:
        """Soft delete; refused while the department still owns programs or courses"""
        department = await self.get(db, department_id)

        programs = await db.scalar(
            select(func.count(Program.id)).where(
                Program.department_id == department.id, Program.deleted_at.is_(None)
            )
        )
        courses = await db.scalar(
            select(func.count(Course.id)).where(
                Course.department_id == department.id, Course.deleted_at.is_(None)
            )
        )
        if programs or courses:
            raise BadRequestError(
                "Cannot delete department with active programs or courses",
                details={"programs": programs, "courses": courses},
            )

        async with atomic(db):
            department.deleted_at = datetime.utcnow()
            await audit_service.log(
                db, AuditAction.DELETE, "department", department.id, user_id,
                old_values=model_snapshot(department, AUDIT_FIELDS),
            )
        logger.info(f"Deleted department {department.code}")

    # ==================== READ HELPERS ====================

    async def get_programs(self, db: AsyncSession, department_id: str) -> List[Program]:
        await self.get(db, department_id)
        result = await db.execute(
            select(Program)
            .where(Program.department_id == department_id, Program.deleted_at.is_(None))
            .order_by(Program.name)
        )
        return list(result.scalars().all())

    async def get_courses(self, db: AsyncSession, department_id: str) -> List[Course]:
        await self.get(db, department_id)
        result = await db.execute(
            select(Course)
            .where(Course.department_id == department_id, Course.deleted_at.is_(None))
            .order_by(Course.code)
        )
        return list(result.scalars().all())

    async def get_employees(self, db: AsyncSession, department_id: str) -> List[Employee]:
        await self.get(db, department_id)
        result = await db.execute(
            select(Employee)
            .where(Employee.department_id == department_id, Employee.deleted_at.is_(None))
            .order_by(Employee.full_name)
        )
        return list(result.scalars().all())

    async def get_statistics(self, db: AsyncSession, department_id: str) -> Dict[str, int]:
        await self.get(db, department_id)

        programs = await db.scalar(
            select(func.count(Program.id)).where(
                Program.department_id == department_id, Program.deleted_at.is_(None)
            )
        )
        courses = await db.scalar(
            select(func.count(Course.id)).where(
                Course.department_id == department_id, Course.deleted_at.is_(None)
            )
        )
        employees = await db.scalar(
            select(func.count(Employee.id)).where(
                Employee.department_id == department_id, Employee.deleted_at.is_(None)
            )
        )
        students = await db.scalar(
            select(func.count(Student.id))
            .join(Program, Program.id == Student.program_id)
            .where(Program.department_id == department_id, Student.deleted_at.is_(None))
        )

        return {
            "department_id": department_id,
            "programs": programs or 0,
            "courses": courses or 0,
            "employees": employees or 0,
            "students": students or 0,
        }


department_service = DepartmentService()
