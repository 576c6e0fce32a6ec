"""
Attendance Schemas - class attendance, excuses and staff time records
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime, date

from campus_erp.models.attendance import AttendanceStatus, ExcuseStatus, EmployeeAttendanceStatus


# ============== Student Attendance Schemas ==============

class AttendanceMark(BaseModel):
    student_id: str
    status: AttendanceStatus
    remarks: Optional[str] = Field(None, max_length=500)


class AttendanceBatch(BaseModel):
    """Marks for one class session"""
    class_id: str
    date: date
    records: List[AttendanceMark] = Field(..., min_length=1)


class SingleAttendance(AttendanceMark):
    class_id: str
    date: date


class StudentAttendanceResponse(BaseModel):
    id: str
    student_id: str
    class_id: str
    date: date
    status: AttendanceStatus
    remarks: Optional[str] = None
    excuse_id: Optional[str] = None
    marked_by_id: Optional[str] = None
    marked_at: datetime

    class Config:
        from_attributes = True


class BatchResult(BaseModel):
    marked: int
    skipped: List[str]


class AttendanceSummary(BaseModel):
    total: int
    present: int
    absent: int
    late: int
    excused: int
    percentage: int


class StudentBelowThreshold(BaseModel):
    student_id: str
    student_number: str
    full_name: str
    percentage: int


class SessionSummary(BaseModel):
    date: date
    present: int
    absent: int
    late: int
    excused: int


class ClassReport(BaseModel):
    class_id: str
    sessions: List[SessionSummary]
    students: int
    average_percentage: int
    at_risk: List[StudentBelowThreshold]


# ============== Excuse Schemas ==============

class ExcuseCreate(BaseModel):
    student_id: str
    class_id: str
    date: date
    reason: str = Field(..., min_length=5, max_length=2000)
    document_url: Optional[str] = Field(None, max_length=500)


class ExcuseReview(BaseModel):
    remarks: Optional[str] = Field(None, max_length=2000)


class ExcuseResponse(BaseModel):
    id: str
    student_id: str
    class_id: str
    date: date
    reason: str
    document_url: Optional[str] = None
    status: ExcuseStatus
    reviewed_by_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_remarks: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Employee Attendance Schemas ==============

class ManualEntry(BaseModel):
    employee_id: str
    date: date
    check_in: datetime
    check_out: Optional[datetime] = None
    status: EmployeeAttendanceStatus = EmployeeAttendanceStatus.PRESENT
    remarks: Optional[str] = Field(None, max_length=500)

    @model_validator(mode='after')
    def check_times(self):
        if self.check_out and self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


class DayMarking(BaseModel):
    date: date
    employee_ids: Optional[List[str]] = Field(None, description="Defaults to all active employees")
    remarks: Optional[str] = Field(None, max_length=500)


class EmployeeAttendanceResponse(BaseModel):
    id: str
    employee_id: str
    date: date
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    work_hours: Optional[float] = None
    status: EmployeeAttendanceStatus
    remarks: Optional[str] = None

    class Config:
        from_attributes = True


class DailyEntry(BaseModel):
    employee_id: str
    employee_no: str
    full_name: str
    status: EmployeeAttendanceStatus
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    work_hours: Optional[float] = None


class EmployeeAttendanceSummary(BaseModel):
    employee_id: str
    month: int
    year: int
    working_days: int
    present: int
    absent: int
    half_day: int
    on_leave: int
    holiday: int
    late_arrivals: int
    total_hours: float
    average_hours: float
    percentage: int


class LateArrival(BaseModel):
    employee_id: str
    date: date
    check_in: datetime
    late_by_minutes: int


class DayMarkingResult(BaseModel):
    date: date
    employees_marked: int
    status: EmployeeAttendanceStatus
