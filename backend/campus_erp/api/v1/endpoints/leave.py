"""
Leave API

Leave types and yearly balances are managed by HR. Employees submit and
cancel their own requests; HR approves or rejects them.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.hr import LeaveStatus
from campus_erp.models.people import Employee
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, MessageResponse
from campus_erp.schemas.hr import (
    LeaveTypeCreate,
    LeaveTypeUpdate,
    LeaveTypeResponse,
    LeaveAllocation,
    CarryForwardRequest,
    LeaveBalanceResponse,
    LeaveRequestCreate,
    LeaveApproveRequest,
    LeaveRejectRequest,
    LeaveRequestResponse,
)
from campus_erp.services.employee_service import employee_service
from campus_erp.services.leave_service import leave_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

hr_staff = require_roles(UserRole.HR)

HR_ROLES = (UserRole.ADMIN, UserRole.HR)


async def _own_employee(db: AsyncSession, user: User) -> Employee:
    employee = await employee_service.get_by_user(db, user.id)
    if not employee:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No employee record for this account")
    return employee


# ==================== Leave Types ====================

@router.post("/types", response_model=ApiResponse[LeaveTypeResponse], status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    data: LeaveTypeCreate,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await leave_service.create_type(db, data, current_user.id), "Leave type created")


@router.get("/types", response_model=ApiResponse[List[LeaveTypeResponse]])
async def list_leave_types(
    active_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await leave_service.list_types(db, active_only))


@router.get("/types/{leave_type_id}", response_model=ApiResponse[LeaveTypeResponse])
async def get_leave_type(
    leave_type_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await leave_service.get_type(db, leave_type_id))


@router.patch("/types/{leave_type_id}", response_model=ApiResponse[LeaveTypeResponse])
async def update_leave_type(
    leave_type_id: str,
    data: LeaveTypeUpdate,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await leave_service.update_type(db, leave_type_id, data, current_user.id), "Leave type updated")


@router.delete("/types/{leave_type_id}", response_model=MessageResponse)
async def delete_leave_type(
    leave_type_id: str,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    await leave_service.delete_type(db, leave_type_id, current_user.id)
    return {"success": True, "message": "Leave type deleted"}


# ==================== Balances ====================

@router.post("/balances/allocate", response_model=ApiResponse[LeaveBalanceResponse], status_code=status.HTTP_201_CREATED)
async def allocate_leave(
    data: LeaveAllocation,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    balance = await leave_service.allocate(
        db, data.employee_id, data.leave_type_id, data.year, data.days, current_user.id
    )
    return success(balance, "Leave allocated")


@router.post("/balances/carry-forward", response_model=ApiResponse[List[LeaveBalanceResponse]])
async def carry_forward_leave(
    data: CarryForwardRequest,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    balances = await leave_service.carry_forward(db, data.employee_id, data.from_year)
    return success(balances, f"Carried forward into {data.from_year + 1}")


@router.get("/balances/{employee_id}", response_model=ApiResponse[List[LeaveBalanceResponse]])
async def get_balances(
    employee_id: str,
    year: Optional[int] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if current_user.role not in HR_ROLES:
        own = await _own_employee(db, current_user)
        if own.id != employee_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own balances")
    year = year or datetime.utcnow().year
    return success(await leave_service.get_employee_balances(db, employee_id, year))


# ==================== Requests ====================

@router.post("/requests", response_model=ApiResponse[LeaveRequestResponse], status_code=status.HTTP_201_CREATED)
async def submit_leave_request(
    data: LeaveRequestCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Submit a leave request; HR may file one for another employee"""
    if data.employee_id and current_user.role in HR_ROLES:
        employee_id = data.employee_id
    else:
        employee_id = (await _own_employee(db, current_user)).id
    return success(await leave_service.submit(db, employee_id, data), "Leave request submitted")


@router.get("/requests", response_model=PaginatedResponse[LeaveRequestResponse])
async def list_leave_requests(
    employee_id: Optional[str] = None,
    status: Optional[LeaveStatus] = None,
    leave_type_id: Optional[str] = None,
    department_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if current_user.role not in HR_ROLES:
        employee_id = (await _own_employee(db, current_user)).id
    result = await leave_service.list(
        db, employee_id=employee_id, status=status, leave_type_id=leave_type_id,
        department_id=department_id, page=page, limit=limit,
    )
    return paginated(result, LeaveRequestResponse)


@router.get("/calendar")
async def leave_calendar(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    department_id: Optional[str] = None,
    current_user: User = Depends(require_roles(UserRole.HR, UserRole.HOD)),
    db: AsyncSession = Depends(get_db)
):
    return success(await leave_service.get_calendar(db, month, year, department_id))


@router.get("/requests/{request_id}", response_model=ApiResponse[LeaveRequestResponse])
async def get_leave_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    request = await leave_service.get(db, request_id)
    if current_user.role not in HR_ROLES and request.employee_id != (await _own_employee(db, current_user)).id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own requests")
    return success(request)


@router.post("/requests/{request_id}/approve", response_model=ApiResponse[LeaveRequestResponse])
async def approve_leave_request(
    request_id: str,
    data: LeaveApproveRequest,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await leave_service.approve(db, request_id, current_user.id, data.remarks), "Leave approved")


@router.post("/requests/{request_id}/reject", response_model=ApiResponse[LeaveRequestResponse])
async def reject_leave_request(
    request_id: str,
    data: LeaveRejectRequest,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await leave_service.reject(db, request_id, data.remarks, current_user.id), "Leave rejected")


@router.post("/requests/{request_id}/cancel", response_model=ApiResponse[LeaveRequestResponse])
async def cancel_leave_request(
    request_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    employee = await _own_employee(db, current_user)
    return success(await leave_service.cancel(db, request_id, employee.id), "Leave request cancelled")
