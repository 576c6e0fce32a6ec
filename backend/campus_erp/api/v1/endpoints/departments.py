"""
Departments API

CRUD for departments plus their programs, courses, staff and headcount
statistics. Writes need the HOD role.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.academic import (
    DepartmentCreate,
    DepartmentUpdate,
    DepartmentResponse,
    DepartmentStatistics,
    ProgramResponse,
    CourseResponse,
)
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, MessageResponse
from campus_erp.schemas.people import EmployeeResponse
from campus_erp.services.department_service import department_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

manage_departments = require_roles(UserRole.HOD)


@router.post("", response_model=ApiResponse[DepartmentResponse], status_code=status.HTTP_201_CREATED)
async def create_department(
    data: DepartmentCreate,
    current_user: User = Depends(manage_departments),
    db: AsyncSession = Depends(get_db)
):
    department = await department_service.create(db, data, current_user.id)
    return success(department, "Department created successfully")


@router.get("", response_model=PaginatedResponse[DepartmentResponse])
async def list_departments(
    search: Optional[str] = Query(None, description="Match on name or code"),
    faculty_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await department_service.list(db, search=search, faculty_id=faculty_id, page=page, limit=limit)
    return paginated(result, DepartmentResponse)


@router.get("/{department_id}", response_model=ApiResponse[DepartmentResponse])
async def get_department(
    department_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await department_service.get(db, department_id))


@router.patch("/{department_id}", response_model=ApiResponse[DepartmentResponse])
async def update_department(
    department_id: str,
    data: DepartmentUpdate,
    current_user: User = Depends(manage_departments),
    db: AsyncSession = Depends(get_db)
):
    department = await department_service.update(db, department_id, data, current_user.id)
    return success(department, "Department updated successfully")


@router.delete("/{department_id}", response_model=MessageResponse)
async def delete_department(
    department_id: str,
    current_user: User = Depends(manage_departments),
    db: AsyncSession = Depends(get_db)
):
    await department_service.delete(db, department_id, current_user.id)
    return {"success": True, "message": "Department deleted successfully"}


@router.get("/{department_id}/programs", response_model=ApiResponse[List[ProgramResponse]])
async def get_department_programs(
    department_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await department_service.get_programs(db, department_id))


@router.get("/{department_id}/courses", response_model=ApiResponse[List[CourseResponse]])
async def get_department_courses(
    department_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await department_service.get_courses(db, department_id))


@router.get("/{department_id}/employees", response_model=ApiResponse[List[EmployeeResponse]])
async def get_department_employees(
    department_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await department_service.get_employees(db, department_id))


@router.get("/{department_id}/statistics", response_model=ApiResponse[DepartmentStatistics])
async def get_department_statistics(
    department_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await department_service.get_statistics(db, department_id))
