"""
Attendance Models
- Student attendance per class session and excuses for absences
- Employee daily check-in / check-out records
"""

from sqlalchemy import (
    Column, String, DateTime, Date, Numeric, Text, Enum as SQLEnum, ForeignKey, UniqueConstraint,
)
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, generate_uuid


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class ExcuseStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EmployeeAttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    HALF_DAY = "half_day"
    ON_LEAVE = "on_leave"
    HOLIDAY = "holiday"


class AttendanceExcuse(Base):
    """Request to excuse a student's absence from one session"""
    __tablename__ = "attendance_excuses"
    __table_args__ = (
        UniqueConstraint("student_id", "class_id", "date", name="uq_attendance_excuse"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(GUID, ForeignKey("classes.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)

    reason = Column(Text, nullable=False)
    document_url = Column(String(500), nullable=True)

    status = Column(SQLEnum(ExcuseStatus), default=ExcuseStatus.PENDING, nullable=False, index=True)
    reviewed_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_remarks = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class StudentAttendance(Base):
    """One student's attendance for one class session"""
    __tablename__ = "student_attendance"
    __table_args__ = (
        UniqueConstraint("student_id", "class_id", "date", name="uq_student_attendance"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(GUID, ForeignKey("classes.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    status = Column(SQLEnum(AttendanceStatus), nullable=False)
    remarks = Column(String(500), nullable=True)
    excuse_id = Column(GUID, ForeignKey("attendance_excuses.id"), nullable=True)

    marked_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    marked_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class EmployeeAttendance(Base):
    """An employee's working day"""
    __tablename__ = "employee_attendance"
    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_employee_attendance"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    employee_id = Column(GUID, ForeignKey("employees.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    check_in = Column(DateTime, nullable=True)
    check_out = Column(DateTime, nullable=True)
    work_hours = Column(Numeric(5, 2), nullable=True)
    status = Column(SQLEnum(EmployeeAttendanceStatus), nullable=False)
    remarks = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
