"""
Human Resources Models
- Salary components and their per-employee assignments
- Monthly payroll runs with itemised lines
- Leave types, yearly balances and leave requests
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Enum as SQLEnum, Integer, Text,
    ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, Money, generate_uuid


class ComponentType(str, enum.Enum):
    ALLOWANCE = "allowance"
    DEDUCTION = "deduction"


class CalculationType(str, enum.Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class PayrollStatus(str, enum.Enum):
    DRAFT = "draft"
    PROCESSED = "processed"
    APPROVED = "approved"
    PAID = "paid"


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class SalaryComponent(Base):
    """Allowance or deduction applied on top of base salary"""
    __tablename__ = "salary_components"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, nullable=False)
    type = Column(SQLEnum(ComponentType), nullable=False)
    calculation_type = Column(SQLEnum(CalculationType), nullable=False)
    default_value = Column(Money, nullable=False, default=0)  # amount or percent
    is_active = Column(Boolean, default=True, nullable=False)
    applies_to_all = Column(Boolean, default=False, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EmployeeSalaryComponent(Base):
    """Component assigned to a single employee; value overrides the default"""
    __tablename__ = "employee_salary_components"
    __table_args__ = (
        UniqueConstraint("employee_id", "component_id", name="uq_employee_component"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_id = Column(GUID, ForeignKey("employees.id"), nullable=False, index=True)
    component_id = Column(GUID, ForeignKey("salary_components.id"), nullable=False)
    value = Column(Money, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class Payroll(Base):
    """One employee's pay for one month"""
    __tablename__ = "payrolls"
    __table_args__ = (
        UniqueConstraint("employee_id", "month", "year", name="uq_payroll_employee_period"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_id = Column(GUID, ForeignKey("employees.id"), nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    base_salary = Column(Money, nullable=False, default=0)
    total_allowances = Column(Money, nullable=False, default=0)
    total_deductions = Column(Money, nullable=False, default=0)
    gross_salary = Column(Money, nullable=False, default=0)
    net_salary = Column(Money, nullable=False, default=0)

    status = Column(SQLEnum(PayrollStatus), default=PayrollStatus.DRAFT, nullable=False, index=True)
    processed_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    payment_reference = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    items = relationship("PayrollItem", cascade="all, delete-orphan", lazy="selectin")


class PayrollItem(Base):
    """Allowance/deduction line on a payroll"""
    __tablename__ = "payroll_items"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    payroll_id = Column(GUID, ForeignKey("payrolls.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id = Column(GUID, ForeignKey("salary_components.id"), nullable=True)
    name = Column(String(100), nullable=False)
    type = Column(SQLEnum(ComponentType), nullable=False)
    amount = Column(Money, nullable=False, default=0)


class LeaveType(Base):
    __tablename__ = "leave_types"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, nullable=False)
    days_per_year = Column(Integer, nullable=False, default=0)
    is_paid = Column(Boolean, default=True, nullable=False)
    requires_document = Column(Boolean, default=False, nullable=False)
    carry_forward = Column(Boolean, default=False, nullable=False)
    max_carry_days = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)


class LeaveBalance(Base):
    """Yearly entitlement of one leave type for one employee"""
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_leave_balance"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_id = Column(GUID, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(GUID, ForeignKey("leave_types.id"), nullable=False)
    year = Column(Integer, nullable=False)

    allocated = Column(Integer, default=0, nullable=False)
    used = Column(Integer, default=0, nullable=False)
    pending = Column(Integer, default=0, nullable=False)
    carried = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def available(self) -> int:
        return self.allocated + self.carried - self.used - self.pending


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_id = Column(GUID, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_id = Column(GUID, ForeignKey("leave_types.id"), nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    document_url = Column(String(500), nullable=True)

    status = Column(SQLEnum(LeaveStatus), default=LeaveStatus.PENDING, nullable=False, index=True)
    approved_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    remarks = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
