"""
Academic Service - faculties, programs, courses, semesters and classes

Handles:
- Plain CRUD with code uniqueness and parent existence checks
- Course prerequisite graph (no self links, duplicates or cycles)
- Class offerings with weekly schedule slots
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, update, delete, insert
from datetime import datetime
from typing import Optional, List, Set
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError
from campus_erp.models.academic import (
    Faculty,
    Department,
    Program,
    Course,
    Semester,
    CourseClass,
    ClassSchedule,
    ClassStatus,
    course_prerequisites,
)
from campus_erp.models.people import Student, Employee, StudentStatus
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.academic import (
    FacultyCreate,
    FacultyUpdate,
    ProgramCreate,
    ProgramUpdate,
    CourseCreate,
    CourseUpdate,
    SemesterCreate,
    SemesterUpdate,
    ClassCreate,
    ClassUpdate,
)
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)


async def _code_taken(db: AsyncSession, model, code: str, exclude_id: Optional[str] = None) -> bool:
    query = select(model.id).where(model.code == code)
    if exclude_id:
        query = query.where(model.id != exclude_id)
    return (await db.execute(query)).scalar_one_or_none() is not None


async def _active_department(db: AsyncSession, department_id: str) -> Department:
    department = await db.get(Department, department_id)
    if not department or department.deleted_at is not None:
        raise BadRequestError("Invalid department ID")
    return department


def _search(query, model, search: Optional[str]):
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(or_(
            func.lower(model.name).like(pattern),
            func.lower(model.code).like(pattern),
        ))
    return query


class AcademicService:
    """Service for the academic structure below departments"""

    # ==================== FACULTIES ====================

    async def create_faculty(self, db: AsyncSession, data: FacultyCreate, user_id: Optional[str] = None) -> Faculty:
        if await _code_taken(db, Faculty, data.code):
            raise ConflictError(f"Faculty with code '{data.code}' already exists")
        if data.dean_id and not await db.get(Employee, data.dean_id):
            raise BadRequestError("Invalid dean ID")

        faculty = Faculty(**data.model_dump())
        async with atomic(db):
            db.add(faculty)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "faculty", faculty.id, user_id,
                new_values=model_snapshot(faculty, ("name", "code", "dean_id")),
            )
        return faculty

    async def list_faculties(
        self, db: AsyncSession, search: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> Page:
        query = _search(select(Faculty).where(Faculty.deleted_at.is_(None)), Faculty, search)
        return await paginate(db, query.order_by(Faculty.name), page, limit)

    async def get_faculty(self, db: AsyncSession, faculty_id: str) -> Faculty:
        faculty = await db.get(Faculty, faculty_id)
        if not faculty or faculty.deleted_at is not None:
            raise NotFoundError("Faculty not found")
        return faculty

    async def update_faculty(
        self, db: AsyncSession, faculty_id: str, data: FacultyUpdate, user_id: Optional[str] = None
    ) -> Faculty:
        faculty = await self.get_faculty(db, faculty_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("code") and await _code_taken(db, Faculty, changes["code"], faculty.id):
            raise ConflictError(f"Faculty with code '{changes['code']}' already exists")
        if changes.get("dean_id") and not await db.get(Employee, changes["dean_id"]):
            raise BadRequestError("Invalid dean ID")

        old_values = model_snapshot(faculty, changes.keys())
        async with atomic(db):
            for field, value in changes.items():
                setattr(faculty, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "faculty", faculty.id, user_id,
                old_values=old_values, new_values=model_snapshot(faculty, changes.keys()),
            )
        return faculty

    async def delete_faculty(self, db: AsyncSession, faculty_id: str, user_id: Optional[str] = None) -> None:
        faculty = await self.get_faculty(db, faculty_id)
        departments = await db.scalar(
            select(func.count(Department.id)).where(
                Department.faculty_id == faculty.id, Department.deleted_at.is_(None)
            )
        )
        if departments:
            raise BadRequestError("Cannot delete faculty with active departments")

        async with atomic(db):
            faculty.deleted_at = datetime.utcnow()
            await audit_service.log(db, AuditAction.DELETE, "faculty", faculty.id, user_id)

    # ==================== PROGRAMS ====================

    async def create_program(self, db: AsyncSession, data: ProgramCreate, user_id: Optional[str] = None) -> Program:
        if await _code_taken(db, Program, data.code):
            raise ConflictError(f"Program with code '{data.code}' already exists")
        await _active_department(db, data.department_id)

        program = Program(**data.model_dump())
        async with atomic(db):
            db.add(program)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "program", program.id, user_id,
                new_values=model_snapshot(program, ("name", "code", "type", "department_id")),
            )
        return program

    async def list_programs(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        department_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = _search(select(Program).where(Program.deleted_at.is_(None)), Program, search)
        if department_id:
            query = query.where(Program.department_id == department_id)
        return await paginate(db, query.order_by(Program.name), page, limit)

    async def get_program(self, db: AsyncSession, program_id: str) -> Program:
        program = await db.get(Program, program_id)
        if not program or program.deleted_at is not None:
            raise NotFoundError("Program not found")
        return program

    async def update_program(
        self, db: AsyncSession, program_id: str, data: ProgramUpdate, user_id: Optional[str] = None
    ) -> Program:
        program = await self.get_program(db, program_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("code") and await _code_taken(db, Program, changes["code"], program.id):
            raise ConflictError(f"Program with code '{changes['code']}' already exists")
        if changes.get("department_id"):
            await _active_department(db, changes["department_id"])

        old_values = model_snapshot(program, changes.keys())
        async with atomic(db):
            for field, value in changes.items():
                setattr(program, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "program", program.id, user_id,
                old_values=old_values, new_values=model_snapshot(program, changes.keys()),
            )
        return program

    async def delete_program(self, db: AsyncSession, program_id: str, user_id: Optional[str] = None) -> None:
        program = await self.get_program(db, program_id)
        students = await db.scalar(
            select(func.count(Student.id)).where(
                Student.program_id == program.id,
                Student.status == StudentStatus.ACTIVE,
                Student.deleted_at.is_(None),
            )
        )
        if students:
            raise BadRequestError("Cannot delete program with active students")

        async with atomic(db):
            program.deleted_at = datetime.utcnow()
            await audit_service.log(db, AuditAction.DELETE, "program", program.id, user_id)

    # ==================== COURSES ====================

    async def create_course(self, db: AsyncSession, data: CourseCreate, user_id: Optional[str] = None) -> Course:
        if await _code_taken(db, Course, data.code):
            raise ConflictError(f"Course with code '{data.code}' already exists")
        await _active_department(db, data.department_id)

        prerequisite_ids = list(dict.fromkeys(data.prerequisite_ids))
        for prerequisite_id in prerequisite_ids:
            await self.get_course(db, prerequisite_id)

        course = Course(**data.model_dump(exclude={"prerequisite_ids"}))
        async with atomic(db):
            db.add(course)
            await db.flush()
            for prerequisite_id in prerequisite_ids:
                await db.execute(
                    insert(course_prerequisites).values(course_id=course.id, prerequisite_id=prerequisite_id)
                )
            await audit_service.log(
                db, AuditAction.CREATE, "course", course.id, user_id,
                new_values={**model_snapshot(course, ("name", "code", "credits")), "prerequisites": prerequisite_ids},
            )
        return course

    async def list_courses(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        department_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = _search(select(Course).where(Course.deleted_at.is_(None)), Course, search)
        if department_id:
            query = query.where(Course.department_id == department_id)
        return await paginate(db, query.order_by(Course.code), page, limit)

    async def get_course(self, db: AsyncSession, course_id: str) -> Course:
        course = await db.get(Course, course_id)
        if not course or course.deleted_at is not None:
            raise NotFoundError("Course not found")
        return course

    async def update_course(
        self, db: AsyncSession, course_id: str, data: CourseUpdate, user_id: Optional[str] = None
    ) -> Course:
        course = await self.get_course(db, course_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("code") and await _code_taken(db, Course, changes["code"], course.id):
            raise ConflictError(f"Course with code '{changes['code']}' already exists")
        if changes.get("department_id"):
            await _active_department(db, changes["department_id"])

        old_values = model_snapshot(course, changes.keys())
        async with atomic(db):
            for field, value in changes.items():
                setattr(course, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "course", course.id, user_id,
                old_values=old_values, new_values=model_snapshot(course, changes.keys()),
            )
        return course

    async def delete_course(self, db: AsyncSession, course_id: str, user_id: Optional[str] = None) -> None:
        course = await self.get_course(db, course_id)
        classes = await db.scalar(select(func.count(CourseClass.id)).where(CourseClass.course_id == course.id))
        if classes:
            raise BadRequestError("Cannot delete course that has classes")

        async with atomic(db):
            course.deleted_at = datetime.utcnow()
            await audit_service.log(db, AuditAction.DELETE, "course", course.id, user_id)

    async def get_prerequisite_ids(self, db: AsyncSession, course_id: str) -> List[str]:
        result = await db.execute(
            select(course_prerequisites.c.prerequisite_id).where(course_prerequisites.c.course_id == course_id)
        )
        return [row[0] for row in result.all()]

    async def get_prerequisites(self, db: AsyncSession, course_id: str) -> List[Course]:
        await self.get_course(db, course_id)
        result = await db.execute(
            select(Course)
            .join(course_prerequisites, course_prerequisites.c.prerequisite_id == Course.id)
            .where(course_prerequisites.c.course_id == course_id)
            .order_by(Course.code)
        )
        return list(result.scalars().all())

    async def _reaches(self, db: AsyncSession, start_id: str, target_id: str) -> bool:
        """True when target is reachable from start through prerequisite links"""
        seen: Set[str] = set()
        frontier = [start_id]
        while frontier:
            current = frontier.pop()
            if current == target_id:
                return True
            if current in seen:
                continue
            seen.add(current)
            frontier.extend(await self.get_prerequisite_ids(db, current))
        return False

    async def add_prerequisite(
        self, db: AsyncSession, course_id: str, prerequisite_id: str, user_id: Optional[str] = None
    ) -> List[Course]:
        if course_id == prerequisite_id:
            raise BadRequestError("A course cannot be its own prerequisite")
        await self.get_course(db, course_id)
        await self.get_course(db, prerequisite_id)

        if prerequisite_id in await self.get_prerequisite_ids(db, course_id):
            raise ConflictError("Prerequisite already exists")
        if await self._reaches(db, prerequisite_id, course_id):
            raise BadRequestError("Prerequisite would create a circular dependency")

        async with atomic(db):
            await db.execute(
                insert(course_prerequisites).values(course_id=course_id, prerequisite_id=prerequisite_id)
            )
            await audit_service.log(
                db, AuditAction.UPDATE, "course", course_id, user_id,
                new_values={"added_prerequisite": prerequisite_id},
            )
        return await self.get_prerequisites(db, course_id)

    async def remove_prerequisite(
        self, db: AsyncSession, course_id: str, prerequisite_id: str, user_id: Optional[str] = None
    ) -> None:
        if prerequisite_id not in await self.get_prerequisite_ids(db, course_id):
            raise NotFoundError("Prerequisite link not found")

        async with atomic(db):
            await db.execute(
                delete(course_prerequisites).where(
                    course_prerequisites.c.course_id == course_id,
                    course_prerequisites.c.prerequisite_id == prerequisite_id,
                )
            )
            await audit_service.log(
                db, AuditAction.UPDATE, "course", course_id, user_id,
                old_values={"removed_prerequisite": prerequisite_id},
            )

    # ==================== SEMESTERS ====================

    async def create_semester(self, db: AsyncSession, data: SemesterCreate, user_id: Optional[str] = None) -> Semester:
        existing = await db.execute(select(Semester.id).where(Semester.name == data.name))
        if existing.scalar_one_or_none():
            raise ConflictError(f"Semester '{data.name}' already exists")

        semester = Semester(**data.model_dump())
        async with atomic(db):
            if semester.is_current:
                await db.execute(update(Semester).values(is_current=False))
            db.add(semester)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "semester", semester.id, user_id,
                new_values=model_snapshot(semester, ("name", "start_date", "end_date", "is_current")),
            )
        return semester

    async def list_semesters(self, db: AsyncSession, page: int = 1, limit: int = 20) -> Page:
        return await paginate(db, select(Semester).order_by(Semester.start_date.desc()), page, limit)

    async def get_semester(self, db: AsyncSession, semester_id: str) -> Semester:
        semester = await db.get(Semester, semester_id)
        if not semester:
            raise NotFoundError("Semester not found")
        return semester

    async def get_current_semester(self, db: AsyncSession) -> Semester:
        result = await db.execute(select(Semester).where(Semester.is_current.is_(True)))
        semester = result.scalars().first()
        if not semester:
            raise NotFoundError("No current semester")
        return semester

    async def update_semester(
        self, db: AsyncSession, semester_id: str, data: SemesterUpdate, user_id: Optional[str] = None
    ) -> Semester:
        semester = await self.get_semester(db, semester_id)
        changes = data.model_dump(exclude_unset=True)

        start = changes.get("start_date", semester.start_date)
        end = changes.get("end_date", semester.end_date)
        if start >= end:
            raise BadRequestError("start_date must be before end_date")
        if changes.get("name") and changes["name"] != semester.name:
            existing = await db.execute(select(Semester.id).where(Semester.name == changes["name"]))
            if existing.scalar_one_or_none():
                raise ConflictError(f"Semester '{changes['name']}' already exists")

        old_values = model_snapshot(semester, changes.keys())
        async with atomic(db):
            if changes.get("is_current"):
                await db.execute(
                    update(Semester).where(Semester.id != semester.id).values(is_current=False)
                )
            for field, value in changes.items():
                setattr(semester, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "semester", semester.id, user_id,
                old_values=old_values, new_values=model_snapshot(semester, changes.keys()),
            )
        return semester

    async def delete_semester(self, db: AsyncSession, semester_id: str, user_id: Optional[str] = None) -> None:
        semester = await self.get_semester(db, semester_id)
        classes = await db.scalar(select(func.count(CourseClass.id)).where(CourseClass.semester_id == semester.id))
        if classes:
            raise BadRequestError("Cannot delete semester that has classes")

        async with atomic(db):
            await db.delete(semester)
            await audit_service.log(db, AuditAction.DELETE, "semester", semester_id, user_id)

    # ==================== CLASSES ====================

    async def create_class(self, db: AsyncSession, data: ClassCreate, user_id: Optional[str] = None) -> CourseClass:
        await self.get_course(db, data.course_id)
        await self.get_semester(db, data.semester_id)
        if data.lecturer_id and not await db.get(Employee, data.lecturer_id):
            raise BadRequestError("Invalid lecturer ID")

        existing = await db.execute(
            select(CourseClass.id).where(
                CourseClass.course_id == data.course_id,
                CourseClass.semester_id == data.semester_id,
                CourseClass.section == data.section,
            )
        )
        if existing.scalar_one_or_none():
            raise ConflictError(f"Section '{data.section}' already exists for this course and semester")

        course_class = CourseClass(
            course_id=data.course_id,
            semester_id=data.semester_id,
            lecturer_id=data.lecturer_id,
            section=data.section,
            capacity=data.capacity,
            enrolled_count=0,
            status=ClassStatus.OPEN,
            schedules=[ClassSchedule(**slot.model_dump()) for slot in data.schedules],
        )
        async with atomic(db):
            db.add(course_class)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "class", course_class.id, user_id,
                new_values=model_snapshot(course_class, ("course_id", "semester_id", "section", "capacity")),
            )
        return course_class

    async def list_classes(
        self,
        db: AsyncSession,
        semester_id: Optional[str] = None,
        course_id: Optional[str] = None,
        lecturer_id: Optional[str] = None,
        status: Optional[ClassStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(CourseClass)
        if semester_id:
            query = query.where(CourseClass.semester_id == semester_id)
        if course_id:
            query = query.where(CourseClass.course_id == course_id)
        if lecturer_id:
            query = query.where(CourseClass.lecturer_id == lecturer_id)
        if status:
            query = query.where(CourseClass.status == status)
        return await paginate(db, query.order_by(CourseClass.created_at), page, limit)

    async def get_class(self, db: AsyncSession, class_id: str) -> CourseClass:
        course_class = await db.get(CourseClass, class_id)
        if not course_class:
            raise NotFoundError("Class not found")
        return course_class

    async def update_class(
        self, db: AsyncSession, class_id: str, data: ClassUpdate, user_id: Optional[str] = None
    ) -> CourseClass:
        course_class = await self.get_class(db, class_id)
        changes = data.model_dump(exclude_unset=True, exclude={"schedules"})

        if changes.get("capacity") is not None and changes["capacity"] < course_class.enrolled_count:
            raise BadRequestError("Capacity cannot be lower than the current enrollment")
        if changes.get("lecturer_id") and not await db.get(Employee, changes["lecturer_id"]):
            raise BadRequestError("Invalid lecturer ID")

        old_values = model_snapshot(course_class, changes.keys())
        async with atomic(db):
            for field, value in changes.items():
                setattr(course_class, field, value)
            if data.schedules is not None:
                course_class.schedules = [ClassSchedule(**slot.model_dump()) for slot in data.schedules]
            await audit_service.log(
                db, AuditAction.UPDATE, "class", course_class.id, user_id,
                old_values=old_values, new_values=model_snapshot(course_class, changes.keys()),
            )
        await db.refresh(course_class, attribute_names=["schedules"])
        return course_class

    async def delete_class(self, db: AsyncSession, class_id: str, user_id: Optional[str] = None) -> None:
        course_class = await self.get_class(db, class_id)
        if course_class.enrolled_count > 0:
            raise BadRequestError("Cannot delete a class with enrolled students")

        async with atomic(db):
            await db.delete(course_class)
            await audit_service.log(db, AuditAction.DELETE, "class", class_id, user_id)


academic_service = AcademicService()
