"""
Academic Structure API

Faculties, programs, courses (with prerequisites), semesters and class
sections. Reads are open to any signed-in user; writes need HOD.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.academic import ClassStatus
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.academic import (
    FacultyCreate, FacultyUpdate, FacultyResponse,
    ProgramCreate, ProgramUpdate, ProgramResponse,
    CourseCreate, CourseUpdate, CourseResponse, PrerequisiteRequest,
    SemesterCreate, SemesterUpdate, SemesterResponse,
    ClassCreate, ClassUpdate, ClassResponse,
)
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, MessageResponse
from campus_erp.services.academic_service import academic_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

manage_academics = require_roles(UserRole.HOD)


# ==================== Faculties ====================

@router.post("/faculties", response_model=ApiResponse[FacultyResponse], status_code=status.HTTP_201_CREATED)
async def create_faculty(
    data: FacultyCreate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.create_faculty(db, data, current_user.id), "Faculty created successfully")


@router.get("/faculties", response_model=PaginatedResponse[FacultyResponse])
async def list_faculties(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return paginated(await academic_service.list_faculties(db, search, page, limit), FacultyResponse)


@router.get("/faculties/{faculty_id}", response_model=ApiResponse[FacultyResponse])
async def get_faculty(
    faculty_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.get_faculty(db, faculty_id))


@router.patch("/faculties/{faculty_id}", response_model=ApiResponse[FacultyResponse])
async def update_faculty(
    faculty_id: str,
    data: FacultyUpdate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    faculty = await academic_service.update_faculty(db, faculty_id, data, current_user.id)
    return success(faculty, "Faculty updated successfully")


@router.delete("/faculties/{faculty_id}", response_model=MessageResponse)
async def delete_faculty(
    faculty_id: str,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    await academic_service.delete_faculty(db, faculty_id, current_user.id)
    return {"success": True, "message": "Faculty deleted successfully"}


# ==================== Programs ====================

@router.post("/programs", response_model=ApiResponse[ProgramResponse], status_code=status.HTTP_201_CREATED)
async def create_program(
    data: ProgramCreate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.create_program(db, data, current_user.id), "Program created successfully")


@router.get("/programs", response_model=PaginatedResponse[ProgramResponse])
async def list_programs(
    search: Optional[str] = None,
    department_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await academic_service.list_programs(db, search, department_id, page, limit)
    return paginated(result, ProgramResponse)


@router.get("/programs/{program_id}", response_model=ApiResponse[ProgramResponse])
async def get_program(
    program_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.get_program(db, program_id))


@router.patch("/programs/{program_id}", response_model=ApiResponse[ProgramResponse])
async def update_program(
    program_id: str,
    data: ProgramUpdate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    program = await academic_service.update_program(db, program_id, data, current_user.id)
    return success(program, "Program updated successfully")


@router.delete("/programs/{program_id}", response_model=MessageResponse)
async def delete_program(
    program_id: str,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    await academic_service.delete_program(db, program_id, current_user.id)
    return {"success": True, "message": "Program deleted successfully"}


# ==================== Courses ====================

@router.post("/courses", response_model=ApiResponse[CourseResponse], status_code=status.HTTP_201_CREATED)
async def create_course(
    data: CourseCreate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.create_course(db, data, current_user.id), "Course created successfully")


@router.get("/courses", response_model=PaginatedResponse[CourseResponse])
async def list_courses(
    search: Optional[str] = None,
    department_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await academic_service.list_courses(db, search, department_id, page, limit)
    return paginated(result, CourseResponse)


@router.get("/courses/{course_id}", response_model=ApiResponse[CourseResponse])
async def get_course(
    course_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.get_course(db, course_id))


@router.patch("/courses/{course_id}", response_model=ApiResponse[CourseResponse])
async def update_course(
    course_id: str,
    data: CourseUpdate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.update_course(db, course_id, data, current_user.id), "Course updated successfully")


@router.delete("/courses/{course_id}", response_model=MessageResponse)
async def delete_course(
    course_id: str,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    await academic_service.delete_course(db, course_id, current_user.id)
    return {"success": True, "message": "Course deleted successfully"}


@router.get("/courses/{course_id}/prerequisites", response_model=ApiResponse[List[CourseResponse]])
async def get_prerequisites(
    course_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.get_prerequisites(db, course_id))


@router.post(
    "/courses/{course_id}/prerequisites",
    response_model=ApiResponse[List[CourseResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def add_prerequisite(
    course_id: str,
    data: PrerequisiteRequest,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    prerequisites = await academic_service.add_prerequisite(db, course_id, data.prerequisite_id, current_user.id)
    return success(prerequisites, "Prerequisite added")


@router.delete("/courses/{course_id}/prerequisites/{prerequisite_id}", response_model=MessageResponse)
async def remove_prerequisite(
    course_id: str,
    prerequisite_id: str,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    await academic_service.remove_prerequisite(db, course_id, prerequisite_id, current_user.id)
    return {"success": True, "message": "Prerequisite removed"}


# ==================== Semesters ====================

@router.post("/semesters", response_model=ApiResponse[SemesterResponse], status_code=status.HTTP_201_CREATED)
async def create_semester(
    data: SemesterCreate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.create_semester(db, data, current_user.id), "Semester created successfully")


@router.get("/semesters", response_model=PaginatedResponse[SemesterResponse])
async def list_semesters(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return paginated(await academic_service.list_semesters(db, page, limit), SemesterResponse)


@router.get("/semesters/current", response_model=ApiResponse[SemesterResponse])
async def get_current_semester(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.get_current_semester(db))


@router.get("/semesters/{semester_id}", response_model=ApiResponse[SemesterResponse])
async def get_semester(
    semester_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.get_semester(db, semester_id))


@router.patch("/semesters/{semester_id}", response_model=ApiResponse[SemesterResponse])
async def update_semester(
    semester_id: str,
    data: SemesterUpdate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    semester = await academic_service.update_semester(db, semester_id, data, current_user.id)
    return success(semester, "Semester updated successfully")


@router.delete("/semesters/{semester_id}", response_model=MessageResponse)
async def delete_semester(
    semester_id: str,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    await academic_service.delete_semester(db, semester_id, current_user.id)
    return {"success": True, "message": "Semester deleted successfully"}


# ==================== Classes ====================

@router.post("/classes", response_model=ApiResponse[ClassResponse], status_code=status.HTTP_201_CREATED)
async def create_class(
    data: ClassCreate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.create_class(db, data, current_user.id), "Class created successfully")


@router.get("/classes", response_model=PaginatedResponse[ClassResponse])
async def list_classes(
    semester_id: Optional[str] = None,
    course_id: Optional[str] = None,
    lecturer_id: Optional[str] = None,
    status: Optional[ClassStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await academic_service.list_classes(
        db, semester_id=semester_id, course_id=course_id, lecturer_id=lecturer_id,
        status=status, page=page, limit=limit,
    )
    return paginated(result, ClassResponse)


@router.get("/classes/{class_id}", response_model=ApiResponse[ClassResponse])
async def get_class(
    class_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.get_class(db, class_id))


@router.patch("/classes/{class_id}", response_model=ApiResponse[ClassResponse])
async def update_class(
    class_id: str,
    data: ClassUpdate,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    return success(await academic_service.update_class(db, class_id, data, current_user.id), "Class updated successfully")


@router.delete("/classes/{class_id}", response_model=MessageResponse)
async def delete_class(
    class_id: str,
    current_user: User = Depends(manage_academics),
    db: AsyncSession = Depends(get_db)
):
    await academic_service.delete_class(db, class_id, current_user.id)
    return {"success": True, "message": "Class deleted successfully"}
