"""
People Models
- Student records (academic identity, program, status)
- Employee records (department, position, base salary)
"""

from sqlalchemy import Column, String, DateTime, Date, Enum as SQLEnum, ForeignKey
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, Money, generate_uuid


class StudentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    GRADUATED = "graduated"
    WITHDRAWN = "withdrawn"


class EmployeeStatus(str, enum.Enum):
    ACTIVE = "active"
    ON_LEAVE = "on_leave"
    TERMINATED = "terminated"


class Student(Base):
    """Student record"""
    __tablename__ = "students"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(String(20), unique=True, nullable=False, index=True)  # e.g. STU-2026-0001
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=True)

    program_id = Column(GUID, ForeignKey("programs.id"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=True, unique=True)

    status = Column(SQLEnum(StudentStatus), default=StudentStatus.ACTIVE, nullable=False, index=True)
    admission_date = Column(Date, nullable=False)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Student {self.student_id}>"


class Employee(Base):
    """Staff member (academic or administrative)"""
    __tablename__ = "employees"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_no = Column(String(20), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=True)

    department_id = Column(GUID, ForeignKey("departments.id"), nullable=True, index=True)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=True, unique=True)

    position = Column(String(100), nullable=False)
    base_salary = Column(Money, nullable=False, default=0)
    hire_date = Column(Date, nullable=False)
    status = Column(SQLEnum(EmployeeStatus), default=EmployeeStatus.ACTIVE, nullable=False, index=True)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Employee {self.employee_no}>"
