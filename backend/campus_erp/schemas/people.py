"""
People Schemas - students and employees
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime, date
from decimal import Decimal

from campus_erp.models.people import StudentStatus, EmployeeStatus


# ============== Student Schemas ==============

class StudentCreate(BaseModel):
    """Schema for admitting a student"""
    full_name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    program_id: str
    admission_date: Optional[date] = Field(None, description="Defaults to today")
    user_id: Optional[str] = Field(None, description="Linked login account")


class StudentUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)


class StudentStatusChange(BaseModel):
    status: StudentStatus
    reason: str = Field(..., min_length=1, max_length=1000)


class StudentTransfer(BaseModel):
    program_id: str
    reason: str = Field(..., min_length=1, max_length=1000)


class StudentResponse(BaseModel):
    id: str
    student_id: str
    full_name: str
    email: str
    phone: Optional[str] = None
    program_id: str
    user_id: Optional[str] = None
    status: StudentStatus
    admission_date: date
    created_at: datetime

    class Config:
        from_attributes = True


class FinancialSummary(BaseModel):
    student_id: str
    total_invoiced: float
    total_paid: float
    balance: float
    invoices: int
    payments: int


# ============== Employee Schemas ==============

class EmployeeCreate(BaseModel):
    employee_no: str = Field(..., min_length=2, max_length=20)
    full_name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    department_id: Optional[str] = None
    position: str = Field(..., min_length=2, max_length=100)
    base_salary: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    hire_date: date
    user_id: Optional[str] = None


class EmployeeUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    department_id: Optional[str] = None
    position: Optional[str] = Field(None, min_length=2, max_length=100)
    base_salary: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    status: Optional[EmployeeStatus] = None


class EmployeeResponse(BaseModel):
    id: str
    employee_no: str
    full_name: str
    email: str
    phone: Optional[str] = None
    department_id: Optional[str] = None
    user_id: Optional[str] = None
    position: str
    base_salary: float
    hire_date: date
    status: EmployeeStatus
    created_at: datetime

    class Config:
        from_attributes = True
