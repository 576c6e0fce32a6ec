"""
HR Schemas - salary components, payroll and leave
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal

from campus_erp.models.hr import ComponentType, CalculationType, PayrollStatus, LeaveStatus


# ============== Salary Component Schemas ==============

class SalaryComponentCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    type: ComponentType
    calculation_type: CalculationType
    default_value: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Amount or percent")
    applies_to_all: bool = False
    is_active: bool = True
    description: Optional[str] = None

    @model_validator(mode='after')
    def check_percentage(self):
        if self.calculation_type == CalculationType.PERCENTAGE and self.default_value > 100:
            raise ValueError("percentage cannot exceed 100")
        return self


class SalaryComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    default_value: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    applies_to_all: Optional[bool] = None
    is_active: Optional[bool] = None
    description: Optional[str] = None


class SalaryComponentResponse(BaseModel):
    id: str
    name: str
    type: ComponentType
    calculation_type: CalculationType
    default_value: float
    applies_to_all: bool
    is_active: bool
    description: Optional[str] = None

    class Config:
        from_attributes = True


class ComponentAssignment(BaseModel):
    employee_id: str
    value: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2, description="Overrides the default value")


class ComponentAssignmentResponse(BaseModel):
    id: str
    employee_id: str
    component_id: str
    value: Optional[float] = None

    class Config:
        from_attributes = True


# ============== Payroll Schemas ==============

class PayrollItemResponse(BaseModel):
    component_id: Optional[str] = None
    name: str
    type: ComponentType
    amount: float

    class Config:
        from_attributes = True


class PayrollCalculation(BaseModel):
    employee_id: str
    base_salary: float
    total_allowances: float
    total_deductions: float
    gross_salary: float
    net_salary: float
    items: List[PayrollItemResponse]


class PayrollProcessRequest(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    department_id: Optional[str] = None
    employee_id: Optional[str] = Field(None, description="Process a single employee")


class PayrollProcessResult(BaseModel):
    processed: int
    failed: int
    errors: List[dict] = []


class MarkPaidRequest(BaseModel):
    payment_reference: str = Field(..., min_length=1, max_length=100)


class BulkMarkPaidRequest(MarkPaidRequest):
    payroll_ids: List[str] = Field(..., min_length=1)


class PayrollResponse(BaseModel):
    id: str
    employee_id: str
    month: int
    year: int
    base_salary: float
    total_allowances: float
    total_deductions: float
    gross_salary: float
    net_salary: float
    status: PayrollStatus
    processed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    items: List[PayrollItemResponse] = []

    class Config:
        from_attributes = True


class PayrollReport(BaseModel):
    month: int
    year: int
    employees: int
    total_gross: float
    total_deductions: float
    total_net: float
    by_status: dict


# ============== Leave Type Schemas ==============

class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    days_per_year: int = Field(..., ge=0, le=365)
    is_paid: bool = True
    requires_document: bool = False
    carry_forward: bool = False
    max_carry_days: int = Field(0, ge=0, le=365)
    is_active: bool = True


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    days_per_year: Optional[int] = Field(None, ge=0, le=365)
    is_paid: Optional[bool] = None
    requires_document: Optional[bool] = None
    carry_forward: Optional[bool] = None
    max_carry_days: Optional[int] = Field(None, ge=0, le=365)
    is_active: Optional[bool] = None


class LeaveTypeResponse(BaseModel):
    id: str
    name: str
    days_per_year: int
    is_paid: bool
    requires_document: bool
    carry_forward: bool
    max_carry_days: int
    is_active: bool

    class Config:
        from_attributes = True


# ============== Leave Balance Schemas ==============

class LeaveAllocation(BaseModel):
    employee_id: str
    leave_type_id: str
    year: int = Field(..., ge=2000, le=2100)
    days: Optional[int] = Field(None, ge=0, le=365, description="Defaults to the type's days_per_year")


class CarryForwardRequest(BaseModel):
    employee_id: str
    from_year: int = Field(..., ge=2000, le=2100)


class LeaveBalanceResponse(BaseModel):
    id: str
    employee_id: str
    leave_type_id: str
    year: int
    allocated: int
    used: int
    pending: int
    carried: int
    available: int

    class Config:
        from_attributes = True


# ============== Leave Request Schemas ==============

class LeaveRequestCreate(BaseModel):
    leave_type_id: str
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1, max_length=2000)
    document_url: Optional[str] = Field(None, max_length=500)
    employee_id: Optional[str] = Field(None, description="HR may submit on behalf of an employee")


class LeaveRejectRequest(BaseModel):
    remarks: str = Field(..., min_length=1, max_length=2000)


class LeaveApproveRequest(BaseModel):
    remarks: Optional[str] = Field(None, max_length=2000)


class LeaveRequestResponse(BaseModel):
    id: str
    employee_id: str
    leave_type_id: str
    start_date: date
    end_date: date
    total_days: int
    reason: str
    document_url: Optional[str] = None
    status: LeaveStatus
    approved_by_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    remarks: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
