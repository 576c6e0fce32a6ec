"""
Attendance API

Lecturers record class attendance; students can read their own record
and submit excuses. Staff check themselves in and out; HR corrects
records and marks leave days and holidays.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.people import Employee
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.attendance import (
    AttendanceBatch,
    SingleAttendance,
    StudentAttendanceResponse,
    BatchResult,
    AttendanceSummary,
    StudentBelowThreshold,
    ClassReport,
    ExcuseCreate,
    ExcuseReview,
    ExcuseResponse,
    ManualEntry,
    DayMarking,
    EmployeeAttendanceResponse,
    DailyEntry,
    EmployeeAttendanceSummary,
    LateArrival,
    DayMarkingResult,
)
from campus_erp.schemas.common import ApiResponse
from campus_erp.schemas.people import EmployeeResponse
from campus_erp.services.attendance_service import student_attendance_service, employee_attendance_service
from campus_erp.services.employee_service import employee_service
from campus_erp.services.student_service import student_service
from campus_erp.utils.responses import success

router = APIRouter()

teaching_staff = require_roles(UserRole.HOD, UserRole.LECTURER)
hr_staff = require_roles(UserRole.HR)


async def _ensure_can_view_student(db: AsyncSession, current_user: User, student_id: str) -> None:
    if current_user.role != UserRole.STUDENT:
        return
    own = await student_service.get_by_user(db, current_user.id)
    if not own or own.id != student_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own attendance"
        )


async def _own_employee(db: AsyncSession, user: User) -> Employee:
    employee = await employee_service.get_by_user(db, user.id)
    if not employee:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No employee record for this account")
    return employee


# ==================== Class Attendance ====================

@router.post("/students", response_model=ApiResponse[BatchResult])
async def mark_attendance(
    data: AttendanceBatch,
    current_user: User = Depends(teaching_staff),
    db: AsyncSession = Depends(get_db)
):
    result = await student_attendance_service.mark(db, data, current_user.id)
    return success(result, f"Marked {result['marked']} students")


@router.post("/students/single", response_model=ApiResponse[StudentAttendanceResponse])
async def mark_single_attendance(
    data: SingleAttendance,
    current_user: User = Depends(teaching_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await student_attendance_service.mark_single(db, data, current_user.id))


@router.get("/classes/{class_id}", response_model=ApiResponse[List[StudentAttendanceResponse]])
async def get_class_attendance(
    class_id: str,
    day: Optional[date] = Query(None, alias="date"),
    current_user: User = Depends(teaching_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await student_attendance_service.list_for_class(db, class_id, day))


@router.get("/classes/{class_id}/report", response_model=ApiResponse[ClassReport])
async def get_class_report(
    class_id: str,
    current_user: User = Depends(teaching_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await student_attendance_service.get_class_report(db, class_id))


@router.get("/classes/{class_id}/below-threshold", response_model=ApiResponse[List[StudentBelowThreshold]])
async def get_students_below_threshold(
    class_id: str,
    threshold: Optional[int] = Query(None, ge=0, le=100),
    current_user: User = Depends(teaching_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await student_attendance_service.get_below_threshold(db, class_id, threshold))


@router.get("/students/{student_id}", response_model=ApiResponse[List[StudentAttendanceResponse]])
async def get_student_attendance(
    student_id: str,
    class_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_can_view_student(db, current_user, student_id)
    return success(await student_attendance_service.list_for_student(db, student_id, class_id))


@router.get("/students/{student_id}/summary", response_model=ApiResponse[AttendanceSummary])
async def get_student_attendance_summary(
    student_id: str,
    class_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_can_view_student(db, current_user, student_id)
    return success(await student_attendance_service.get_summary(db, student_id, class_id))


# ==================== Excuses ====================

@router.post("/excuses", response_model=ApiResponse[ExcuseResponse], status_code=status.HTTP_201_CREATED)
async def submit_excuse(
    data: ExcuseCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_can_view_student(db, current_user, data.student_id)
    return success(await student_attendance_service.submit_excuse(db, data, current_user.id), "Excuse submitted")


@router.get("/excuses/pending", response_model=ApiResponse[List[ExcuseResponse]])
async def list_pending_excuses(
    class_id: Optional[str] = None,
    current_user: User = Depends(teaching_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await student_attendance_service.list_pending_excuses(db, class_id))


@router.get("/students/{student_id}/excuses", response_model=ApiResponse[List[ExcuseResponse]])
async def list_student_excuses(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_can_view_student(db, current_user, student_id)
    return success(await student_attendance_service.list_student_excuses(db, student_id))


@router.post("/excuses/{excuse_id}/approve", response_model=ApiResponse[ExcuseResponse])
async def approve_excuse(
    excuse_id: str,
    data: ExcuseReview,
    current_user: User = Depends(teaching_staff),
    db: AsyncSession = Depends(get_db)
):
    excuse = await student_attendance_service.approve_excuse(db, excuse_id, data.remarks, current_user.id)
    return success(excuse, "Excuse approved")


@router.post("/excuses/{excuse_id}/reject", response_model=ApiResponse[ExcuseResponse])
async def reject_excuse(
    excuse_id: str,
    data: ExcuseReview,
    current_user: User = Depends(teaching_staff),
    db: AsyncSession = Depends(get_db)
):
    excuse = await student_attendance_service.reject_excuse(db, excuse_id, data.remarks, current_user.id)
    return success(excuse, "Excuse rejected")


# ==================== Staff Attendance ====================

@router.post("/employees/check-in", response_model=ApiResponse[EmployeeAttendanceResponse])
async def check_in(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    employee = await _own_employee(db, current_user)
    return success(await employee_attendance_service.check_in(db, employee.id), "Checked in")


@router.post("/employees/check-out", response_model=ApiResponse[EmployeeAttendanceResponse])
async def check_out(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    employee = await _own_employee(db, current_user)
    return success(await employee_attendance_service.check_out(db, employee.id), "Checked out")


@router.get("/employees/me", response_model=ApiResponse[List[EmployeeAttendanceResponse]])
async def get_my_attendance(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    employee = await _own_employee(db, current_user)
    return success(await employee_attendance_service.get_records(db, employee.id, month, year))


@router.post("/employees/manual", response_model=ApiResponse[EmployeeAttendanceResponse])
async def manual_entry(
    data: ManualEntry,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await employee_attendance_service.manual_entry(db, data, current_user.id), "Attendance recorded")


@router.get("/employees/daily", response_model=ApiResponse[List[DailyEntry]])
async def get_daily_attendance(
    day: date = Query(..., alias="date"),
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await employee_attendance_service.get_daily(db, day))


@router.get("/employees/absentees", response_model=ApiResponse[List[EmployeeResponse]])
async def get_absentees(
    day: date = Query(..., alias="date"),
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await employee_attendance_service.get_absentees(db, day))


@router.get("/employees/late-arrivals", response_model=ApiResponse[List[LateArrival]])
async def get_late_arrivals(
    start_date: date,
    end_date: date,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await employee_attendance_service.get_late_arrivals(db, start_date, end_date))


@router.get("/employees/report", response_model=ApiResponse[List[EmployeeAttendanceSummary]])
async def get_monthly_report(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await employee_attendance_service.get_monthly_report(db, month, year))


@router.post("/employees/holiday", response_model=ApiResponse[DayMarkingResult])
async def mark_holiday(
    data: DayMarking,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    result = await employee_attendance_service.mark_holiday(
        db, data.date, data.employee_ids, data.remarks, current_user.id
    )
    return success(result, f"Marked {result['employees_marked']} employees")


@router.post("/employees/{employee_id}/on-leave", response_model=ApiResponse[EmployeeAttendanceResponse])
async def mark_on_leave(
    employee_id: str,
    data: DayMarking,
    current_user: User = Depends(hr_staff),
    db: AsyncSession = Depends(get_db)
):
    record = await employee_attendance_service.mark_on_leave(db, employee_id, data.date, data.remarks, current_user.id)
    return success(record)


@router.get("/employees/{employee_id}/summary", response_model=ApiResponse[EmployeeAttendanceSummary])
async def get_employee_summary(
    employee_id: str,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if current_user.role not in (UserRole.ADMIN, UserRole.HR):
        own = await _own_employee(db, current_user)
        if own.id != employee_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own attendance")
    return success(await employee_attendance_service.get_summary(db, employee_id, month, year))
