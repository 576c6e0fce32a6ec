"""
Payroll API

Salary components (allowances and deductions), monthly payroll runs and
their approval/payment lifecycle. HR only.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.hr import PayrollStatus
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import require_roles
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, MessageResponse
from campus_erp.schemas.hr import (
    SalaryComponentCreate,
    SalaryComponentUpdate,
    SalaryComponentResponse,
    ComponentAssignment,
    ComponentAssignmentResponse,
    PayrollCalculation,
    PayrollProcessRequest,
    PayrollProcessResult,
    MarkPaidRequest,
    BulkMarkPaidRequest,
    PayrollResponse,
    PayrollReport,
)
from campus_erp.services.payroll_service import salary_component_service, payroll_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

hr_staff = require_roles(UserRole.HR)


# ==================== Salary Components ====================

@router.post("/components", response_model=ApiResponse[SalaryComponentResponse], status_code=status.HTTP_201_CREATED)
async def create_component(
    data: SalaryComponentCreate,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await salary_component_service.create(db, data, current_user.id), "Salary component created")


@router.get("/components", response_model=ApiResponse[List[SalaryComponentResponse]])
async def list_components(
    active_only: bool = False,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await salary_component_service.list(db, active_only))


@router.get("/components/{component_id}", response_model=ApiResponse[SalaryComponentResponse])
async def get_component(
    component_id: str,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await salary_component_service.get(db, component_id))


@router.patch("/components/{component_id}", response_model=ApiResponse[SalaryComponentResponse])
async def update_component(
    component_id: str,
    data: SalaryComponentUpdate,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    component = await salary_component_service.update(db, component_id, data, current_user.id)
    return success(component, "Salary component updated")


@router.delete("/components/{component_id}", response_model=MessageResponse)
async def delete_component(
    component_id: str,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    await salary_component_service.delete(db, component_id, current_user.id)
    return {"success": True, "message": "Salary component deactivated"}


@router.post(
    "/components/{component_id}/assign",
    response_model=ApiResponse[ComponentAssignmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def assign_component(
    component_id: str,
    data: ComponentAssignment,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    assignment = await salary_component_service.assign_to_employee(
        db, component_id, data.employee_id, data.value, current_user.id
    )
    return success(assignment, "Component assigned")


@router.delete("/components/{component_id}/employees/{employee_id}", response_model=MessageResponse)
async def unassign_component(
    component_id: str,
    employee_id: str,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    await salary_component_service.remove_from_employee(db, component_id, employee_id, current_user.id)
    return {"success": True, "message": "Component removed from employee"}


# ==================== Payroll ====================

@router.get("/calculate/{employee_id}", response_model=ApiResponse[PayrollCalculation])
async def calculate_payroll(
    employee_id: str,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    """Preview an employee's pay without saving it"""
    return success(await payroll_service.calculate_payroll(db, employee_id))


@router.post("/process", response_model=ApiResponse[PayrollProcessResult])
async def process_payroll(
    data: PayrollProcessRequest,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    if data.employee_id:
        await payroll_service.process_employee_payroll(db, data.employee_id, data.month, data.year, current_user.id)
        result = {"processed": 1, "failed": 0, "errors": []}
    else:
        result = await payroll_service.process_payroll(
            db, data.month, data.year, department_id=data.department_id, user_id=current_user.id
        )
    return success(result, f"Processed {result['processed']} payrolls, {result['failed']} failed")


@router.get("/report", response_model=ApiResponse[PayrollReport])
async def payroll_report(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await payroll_service.get_report(db, month, year))


@router.post("/bulk-pay")
async def bulk_mark_paid(
    data: BulkMarkPaidRequest,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    count = await payroll_service.bulk_mark_as_paid(db, data.payroll_ids, data.payment_reference, current_user.id)
    return success({"paid": count}, f"{count} payrolls marked as paid")


@router.get("", response_model=PaginatedResponse[PayrollResponse])
async def list_payrolls(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = None,
    status: Optional[PayrollStatus] = None,
    employee_id: Optional[str] = None,
    department_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    result = await payroll_service.list(
        db, month=month, year=year, status=status, employee_id=employee_id,
        department_id=department_id, page=page, limit=limit,
    )
    return paginated(result, PayrollResponse)


@router.get("/{payroll_id}", response_model=ApiResponse[PayrollResponse])
async def get_payroll(
    payroll_id: str,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await payroll_service.get(db, payroll_id))


@router.post("/{payroll_id}/approve", response_model=ApiResponse[PayrollResponse])
async def approve_payroll(
    payroll_id: str,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await payroll_service.approve(db, payroll_id, current_user.id), "Payroll approved")


@router.post("/{payroll_id}/pay", response_model=ApiResponse[PayrollResponse])
async def mark_payroll_paid(
    payroll_id: str,
    data: MarkPaidRequest,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    payroll = await payroll_service.mark_as_paid(db, payroll_id, data.payment_reference, current_user.id)
    return success(payroll, "Payroll marked as paid")
