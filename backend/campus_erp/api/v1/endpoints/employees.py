from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.people import EmployeeStatus
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, MessageResponse
from campus_erp.schemas.hr import ComponentAssignmentResponse
from campus_erp.schemas.people import EmployeeCreate, EmployeeUpdate, EmployeeResponse
from campus_erp.services.employee_service import employee_service
from campus_erp.services.payroll_service import salary_component_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

hr_staff = require_roles(UserRole.HR)


@router.post("", response_model=ApiResponse[EmployeeResponse], status_code=status.HTTP_201_CREATED)
async def create_employee(
    data: EmployeeCreate,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await employee_service.create(db, data, current_user.id), "Employee created successfully")


@router.get("", response_model=PaginatedResponse[EmployeeResponse])
async def list_employees(
    search: Optional[str] = None,
    department_id: Optional[str] = None,
    status: Optional[EmployeeStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_roles(UserRole.HR, UserRole.HOD)),
    db: AsyncSession = Depends(get_db)
):
    result = await employee_service.list(
        db, search=search, department_id=department_id, status=status, page=page, limit=limit
    )
    return paginated(result, EmployeeResponse)


@router.get("/me", response_model=ApiResponse[EmployeeResponse])
async def get_my_employee_record(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    employee = await employee_service.get_by_user(db, current_user.id)
    if not employee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No employee record for this account")
    return success(employee)


@router.get("/{employee_id}", response_model=ApiResponse[EmployeeResponse])
async def get_employee(
    employee_id: str,
    current_user: User = Depends(require_roles(UserRole.HR, UserRole.HOD)),
    db: AsyncSession = Depends(get_db)
):
    return success(await employee_service.get(db, employee_id))


@router.patch("/{employee_id}", response_model=ApiResponse[EmployeeResponse])
async def update_employee(
    employee_id: str,
    data: EmployeeUpdate,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await employee_service.update(db, employee_id, data, current_user.id), "Employee updated successfully")


@router.delete("/{employee_id}", response_model=MessageResponse)
async def delete_employee(
    employee_id: str,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    await employee_service.delete(db, employee_id, current_user.id)
    return {"success": True, "message": "Employee terminated"}


@router.get("/{employee_id}/salary-components", response_model=ApiResponse[List[ComponentAssignmentResponse]])
async def get_employee_components(
    employee_id: str,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await salary_component_service.get_employee_components(db, employee_id))
