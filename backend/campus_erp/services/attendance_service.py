"""
Attendance Service - class attendance and staff time records

Student attendance is recorded per class session for registered
students only. Late counts as attended.

Employee attendance is one row per employee per day. Work starts at
ATTENDANCE_WORK_START_HOUR; check-ins after the grace period are late,
and days shorter than ATTENDANCE_HALF_DAY_HOURS become half days.
Check-in times are local wall-clock time.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any
import calendar
import logging

from campus_erp.core.config import settings
from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError
from campus_erp.models.attendance import (
    StudentAttendance, AttendanceStatus, AttendanceExcuse, ExcuseStatus,
    EmployeeAttendance, EmployeeAttendanceStatus,
)
from campus_erp.models.people import Employee, EmployeeStatus, Student
from campus_erp.models.registration import Enrollment, EnrollmentStatus
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.attendance import AttendanceBatch, SingleAttendance, ExcuseCreate, ManualEntry
from campus_erp.services.academic_service import academic_service
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.services.employee_service import employee_service
from campus_erp.services.leave_service import WEEKEND_DAYS
from campus_erp.services.student_service import student_service

logger = logging.getLogger(__name__)

ATTENDED_DAY_STATUSES = (
    EmployeeAttendanceStatus.PRESENT,
    EmployeeAttendanceStatus.HALF_DAY,
    EmployeeAttendanceStatus.ON_LEAVE,
    EmployeeAttendanceStatus.HOLIDAY,
)


def attendance_percentage(attended: int, total: int) -> int:
    """Whole-number percentage, half rounded up; 0 when nothing was recorded"""
    if not total:
        return 0
    value = Decimal(attended) * 100 / Decimal(total)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def work_hours_between(check_in: datetime, check_out: datetime) -> Decimal:
    seconds = Decimal((check_out - check_in).total_seconds())
    return (seconds / 3600).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def work_start(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, settings.ATTENDANCE_WORK_START_HOUR)


def late_by_minutes(check_in: datetime) -> int:
    """Minutes past the start of work, or 0 within the grace period"""
    minutes = int((check_in - work_start(check_in.date())).total_seconds() // 60)
    return minutes if minutes > settings.ATTENDANCE_GRACE_MINUTES else 0


def count_working_days(year: int, month: int) -> int:
    days_in_month = calendar.monthrange(year, month)[1]
    return sum(1 for day in range(1, days_in_month + 1) if date(year, month, day).weekday() not in WEEKEND_DAYS)


def _month_range(month: int, year: int):
    if not 1 <= month <= 12:
        raise BadRequestError("Month must be between 1 and 12")
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def _student_summary(records: List[StudentAttendance]) -> Dict[str, int]:
    counts = {status: 0 for status in AttendanceStatus}
    for record in records:
        counts[record.status] += 1
    total = len(records)
    return {
        "total": total,
        "present": counts[AttendanceStatus.PRESENT],
        "absent": counts[AttendanceStatus.ABSENT],
        "late": counts[AttendanceStatus.LATE],
        "excused": counts[AttendanceStatus.EXCUSED],
        "percentage": attendance_percentage(
            counts[AttendanceStatus.PRESENT] + counts[AttendanceStatus.LATE], total
        ),
    }


class StudentAttendanceService:
    """Service for class attendance and absence excuses"""

    async def _registered_student_ids(self, db: AsyncSession, class_id: str) -> set:
        result = await db.execute(
            select(Enrollment.student_id).where(
                Enrollment.class_id == class_id, Enrollment.status == EnrollmentStatus.REGISTERED
            )
        )
        return set(result.scalars().all())

    async def _existing(self, db: AsyncSession, student_id: str, class_id: str, day: date) -> Optional[StudentAttendance]:
        result = await db.execute(
            select(StudentAttendance).where(
                StudentAttendance.student_id == student_id,
                StudentAttendance.class_id == class_id,
                StudentAttendance.date == day,
            )
        )
        return result.scalar_one_or_none()

    async def _upsert(
        self, db: AsyncSession, student_id: str, class_id: str, day: date,
        status: AttendanceStatus, remarks: Optional[str], user_id: Optional[str],
    ) -> StudentAttendance:
        record = await self._existing(db, student_id, class_id, day)
        if record is None:
            record = StudentAttendance(student_id=student_id, class_id=class_id, date=day)
            db.add(record)
        record.status = status
        record.remarks = remarks
        record.marked_by_id = user_id
        record.marked_at = datetime.utcnow()
        return record

    # ==================== MARKING ====================

    async def mark(self, db: AsyncSession, data: AttendanceBatch, user_id: Optional[str] = None) -> Dict[str, Any]:
        """Record a session; students not registered in the class are skipped"""
        await academic_service.get_class(db, data.class_id)
        if data.date > date.today():
            raise BadRequestError("Cannot mark attendance for a future date")
        student_ids = [entry.student_id for entry in data.records]
        if len(set(student_ids)) != len(student_ids):
            raise BadRequestError("Each student may appear only once per session")

        registered = await self._registered_student_ids(db, data.class_id)
        marked, skipped = 0, []
        async with atomic(db):
            for entry in data.records:
                if entry.student_id not in registered:
                    skipped.append(entry.student_id)
                    continue
                await self._upsert(
                    db, entry.student_id, data.class_id, data.date, entry.status, entry.remarks, user_id
                )
                marked += 1

        if skipped:
            logger.warning(f"Skipped {len(skipped)} unregistered students for class {data.class_id}")
        return {"marked": marked, "skipped": skipped}

    async def mark_single(
        self, db: AsyncSession, data: SingleAttendance, user_id: Optional[str] = None
    ) -> StudentAttendance:
        await academic_service.get_class(db, data.class_id)
        await student_service.get(db, data.student_id)
        if data.student_id not in await self._registered_student_ids(db, data.class_id):
            raise BadRequestError("Student is not registered in this class")

        async with atomic(db):
            record = await self._upsert(
                db, data.student_id, data.class_id, data.date, data.status, data.remarks, user_id
            )
        return record

    # ==================== QUERIES ====================

    async def list_for_class(self, db: AsyncSession, class_id: str, day: Optional[date] = None) -> List[StudentAttendance]:
        await academic_service.get_class(db, class_id)
        query = select(StudentAttendance).where(StudentAttendance.class_id == class_id)
        if day:
            query = query.where(StudentAttendance.date == day)
        result = await db.execute(query.order_by(StudentAttendance.date, StudentAttendance.student_id))
        return list(result.scalars().all())

    async def list_for_student(
        self, db: AsyncSession, student_id: str, class_id: Optional[str] = None
    ) -> List[StudentAttendance]:
        await student_service.get(db, student_id)
        query = select(StudentAttendance).where(StudentAttendance.student_id == student_id)
        if class_id:
            query = query.where(StudentAttendance.class_id == class_id)
        result = await db.execute(query.order_by(StudentAttendance.date))
        return list(result.scalars().all())

    async def get_summary(self, db: AsyncSession, student_id: str, class_id: Optional[str] = None) -> Dict[str, int]:
        """Counts per status and the attended percentage, for one class or overall"""
        return _student_summary(await self.list_for_student(db, student_id, class_id))

    async def get_below_threshold(
        self, db: AsyncSession, class_id: str, threshold: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        threshold = settings.ATTENDANCE_THRESHOLD_PERCENT if threshold is None else threshold
        records = await self.list_for_class(db, class_id)

        by_student: Dict[str, List[StudentAttendance]] = {}
        for record in records:
            by_student.setdefault(record.student_id, []).append(record)

        at_risk = []
        for student_id, student_records in by_student.items():
            percentage = _student_summary(student_records)["percentage"]
            if percentage < threshold:
                student = await db.get(Student, student_id)
                at_risk.append({
                    "student_id": student_id,
                    "student_number": student.student_id,
                    "full_name": student.full_name,
                    "percentage": percentage,
                })
        return sorted(at_risk, key=lambda row: (row["percentage"], row["student_number"]))

    async def get_class_report(self, db: AsyncSession, class_id: str) -> Dict[str, Any]:
        records = await self.list_for_class(db, class_id)

        sessions: Dict[date, Dict[str, Any]] = {}
        by_student: Dict[str, List[StudentAttendance]] = {}
        for record in records:
            session = sessions.setdefault(record.date, {
                "date": record.date, "present": 0, "absent": 0, "late": 0, "excused": 0,
            })
            session[record.status.value] += 1
            by_student.setdefault(record.student_id, []).append(record)

        percentages = [_student_summary(rows)["percentage"] for rows in by_student.values()]
        return {
            "class_id": class_id,
            "sessions": [sessions[day] for day in sorted(sessions)],
            "students": len(by_student),
            "average_percentage": attendance_percentage(sum(percentages), len(percentages) * 100),
            "at_risk": await self.get_below_threshold(db, class_id),
        }

    # ==================== EXCUSES ====================

    async def submit_excuse(
        self, db: AsyncSession, data: ExcuseCreate, user_id: Optional[str] = None
    ) -> AttendanceExcuse:
        await student_service.get(db, data.student_id)
        await academic_service.get_class(db, data.class_id)
        existing = await db.scalar(
            select(AttendanceExcuse.id).where(
                AttendanceExcuse.student_id == data.student_id,
                AttendanceExcuse.class_id == data.class_id,
                AttendanceExcuse.date == data.date,
            )
        )
        if existing:
            raise ConflictError("An excuse for this session has already been submitted")

        excuse = AttendanceExcuse(**data.model_dump())
        async with atomic(db):
            db.add(excuse)
        return excuse

    async def get_excuse(self, db: AsyncSession, excuse_id: str) -> AttendanceExcuse:
        excuse = await db.get(AttendanceExcuse, excuse_id)
        if not excuse:
            raise NotFoundError("Excuse not found")
        return excuse

    async def _pending_excuse(self, db: AsyncSession, excuse_id: str) -> AttendanceExcuse:
        excuse = await self.get_excuse(db, excuse_id)
        if excuse.status != ExcuseStatus.PENDING:
            raise BadRequestError(f"Excuse has already been {excuse.status.value}")
        return excuse

    async def approve_excuse(
        self, db: AsyncSession, excuse_id: str, remarks: Optional[str] = None, user_id: Optional[str] = None
    ) -> AttendanceExcuse:
        """Approve and turn the session's attendance into EXCUSED"""
        excuse = await self._pending_excuse(db, excuse_id)
        async with atomic(db):
            excuse.status = ExcuseStatus.APPROVED
            excuse.reviewed_by_id = user_id
            excuse.reviewed_at = datetime.utcnow()
            excuse.review_remarks = remarks
            record = await self._upsert(
                db, excuse.student_id, excuse.class_id, excuse.date, AttendanceStatus.EXCUSED, remarks, user_id
            )
            record.excuse_id = excuse.id
            await audit_service.log(
                db, AuditAction.UPDATE, "attendance_excuse", excuse.id, user_id,
                old_values={"status": ExcuseStatus.PENDING}, new_values={"status": ExcuseStatus.APPROVED},
            )
        return excuse

    async def reject_excuse(
        self, db: AsyncSession, excuse_id: str, remarks: Optional[str], user_id: Optional[str] = None
    ) -> AttendanceExcuse:
        if not (remarks or "").strip():
            raise BadRequestError("Remarks are required to reject an excuse")
        excuse = await self._pending_excuse(db, excuse_id)
        async with atomic(db):
            excuse.status = ExcuseStatus.REJECTED
            excuse.reviewed_by_id = user_id
            excuse.reviewed_at = datetime.utcnow()
            excuse.review_remarks = remarks.strip()
            await audit_service.log(
                db, AuditAction.UPDATE, "attendance_excuse", excuse.id, user_id,
                old_values={"status": ExcuseStatus.PENDING},
                new_values={"status": ExcuseStatus.REJECTED, "remarks": excuse.review_remarks},
            )
        return excuse

    async def list_pending_excuses(self, db: AsyncSession, class_id: Optional[str] = None) -> List[AttendanceExcuse]:
        query = select(AttendanceExcuse).where(AttendanceExcuse.status == ExcuseStatus.PENDING)
        if class_id:
            query = query.where(AttendanceExcuse.class_id == class_id)
        result = await db.execute(query.order_by(AttendanceExcuse.created_at))
        return list(result.scalars().all())

    async def list_student_excuses(self, db: AsyncSession, student_id: str) -> List[AttendanceExcuse]:
        result = await db.execute(
            select(AttendanceExcuse)
            .where(AttendanceExcuse.student_id == student_id)
            .order_by(AttendanceExcuse.date.desc())
        )
        return list(result.scalars().all())


class EmployeeAttendanceService:
    """Service for staff check-in / check-out"""

    async def _record(self, db: AsyncSession, employee_id: str, day: date) -> Optional[EmployeeAttendance]:
        result = await db.execute(
            select(EmployeeAttendance).where(EmployeeAttendance.employee_id == employee_id, EmployeeAttendance.date == day)
        )
        return result.scalar_one_or_none()

    async def _active_employees(self, db: AsyncSession) -> List[Employee]:
        result = await db.execute(
            select(Employee)
            .where(Employee.deleted_at.is_(None), Employee.status != EmployeeStatus.TERMINATED)
            .order_by(Employee.employee_no)
        )
        return list(result.scalars().all())

    # ==================== TIME RECORDING ====================

    async def check_in(self, db: AsyncSession, employee_id: str, now: Optional[datetime] = None) -> EmployeeAttendance:
        await employee_service.get(db, employee_id)
        now = now or datetime.now()
        record = await self._record(db, employee_id, now.date())
        if record and record.check_in:
            raise ConflictError("Already checked in today")

        async with atomic(db):
            if record is None:
                record = EmployeeAttendance(employee_id=employee_id, date=now.date())
                db.add(record)
            record.check_in = now
            record.status = EmployeeAttendanceStatus.PRESENT

        late = late_by_minutes(now)
        if late:
            logger.info(f"Employee {employee_id} checked in {late} minutes late")
        return record

    async def check_out(self, db: AsyncSession, employee_id: str, now: Optional[datetime] = None) -> EmployeeAttendance:
        await employee_service.get(db, employee_id)
        now = now or datetime.now()
        record = await self._record(db, employee_id, now.date())
        if record is None or record.check_in is None:
            raise BadRequestError("No check-in recorded today")
        if record.check_out:
            raise ConflictError("Already checked out today")

        async with atomic(db):
            record.check_out = now
            record.work_hours = work_hours_between(record.check_in, now)
            if (record.status == EmployeeAttendanceStatus.PRESENT
                    and record.work_hours < settings.ATTENDANCE_HALF_DAY_HOURS):
                record.status = EmployeeAttendanceStatus.HALF_DAY
        return record

    async def manual_entry(
        self, db: AsyncSession, data: ManualEntry, user_id: Optional[str] = None
    ) -> EmployeeAttendance:
        """HR correction for a missed or wrong time record"""
        await employee_service.get(db, data.employee_id)
        if data.check_in.date() != data.date:
            raise BadRequestError("check_in must fall on the attendance date")

        record = await self._record(db, data.employee_id, data.date)
        old_values = model_snapshot(record, ("check_in", "check_out", "status")) if record else None
        async with atomic(db):
            if record is None:
                record = EmployeeAttendance(employee_id=data.employee_id, date=data.date)
                db.add(record)
            record.check_in = data.check_in
            record.check_out = data.check_out
            record.remarks = data.remarks
            record.status = data.status
            record.work_hours = work_hours_between(data.check_in, data.check_out) if data.check_out else None
            if (record.work_hours is not None and record.status == EmployeeAttendanceStatus.PRESENT
                    and record.work_hours < settings.ATTENDANCE_HALF_DAY_HOURS):
                record.status = EmployeeAttendanceStatus.HALF_DAY
            await db.flush()
            await audit_service.log(
                db, AuditAction.UPDATE if old_values else AuditAction.CREATE, "employee_attendance", record.id,
                user_id, old_values=old_values,
                new_values=model_snapshot(record, ("check_in", "check_out", "status")),
            )
        return record

    async def _mark_day(
        self, db: AsyncSession, employee_id: str, day: date, status: EmployeeAttendanceStatus, remarks: Optional[str]
    ) -> EmployeeAttendance:
        record = await self._record(db, employee_id, day)
        if record is None:
            record = EmployeeAttendance(employee_id=employee_id, date=day)
            db.add(record)
        record.status = status
        record.remarks = remarks
        return record

    async def mark_on_leave(
        self, db: AsyncSession, employee_id: str, day: date,
        remarks: Optional[str] = None, user_id: Optional[str] = None,
    ) -> EmployeeAttendance:
        await employee_service.get(db, employee_id)
        async with atomic(db):
            record = await self._mark_day(db, employee_id, day, EmployeeAttendanceStatus.ON_LEAVE, remarks)
            await db.flush()
            await audit_service.log(
                db, AuditAction.UPDATE, "employee_attendance", record.id, user_id,
                new_values={"date": day.isoformat(), "status": "on_leave"},
            )
        return record

    async def mark_holiday(
        self, db: AsyncSession, day: date, employee_ids: Optional[List[str]] = None,
        remarks: Optional[str] = None, user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        if employee_ids is None:
            employee_ids = [employee.id for employee in await self._active_employees(db)]
        else:
            employee_ids = list(dict.fromkeys(employee_ids))
            for employee_id in employee_ids:
                await employee_service.get(db, employee_id)

        async with atomic(db):
            for employee_id in employee_ids:
                await self._mark_day(db, employee_id, day, EmployeeAttendanceStatus.HOLIDAY, remarks)
            await audit_service.log(
                db, AuditAction.UPDATE, "employee_attendance", None, user_id,
                new_values={"date": day.isoformat(), "status": "holiday", "employees": len(employee_ids)},
            )

        logger.info(f"Marked {day} as holiday for {len(employee_ids)} employees")
        return {"date": day, "employees_marked": len(employee_ids), "status": EmployeeAttendanceStatus.HOLIDAY}

    # ==================== QUERIES ====================

    async def get_records(self, db: AsyncSession, employee_id: str, month: int, year: int) -> List[EmployeeAttendance]:
        await employee_service.get(db, employee_id)
        start, end = _month_range(month, year)
        result = await db.execute(
            select(EmployeeAttendance)
            .where(
                EmployeeAttendance.employee_id == employee_id,
                EmployeeAttendance.date >= start,
                EmployeeAttendance.date <= end,
            )
            .order_by(EmployeeAttendance.date)
        )
        return list(result.scalars().all())

    async def get_daily(self, db: AsyncSession, day: date) -> List[Dict[str, Any]]:
        """Every active employee's status for a day; no record counts as absent"""
        result = await db.execute(select(EmployeeAttendance).where(EmployeeAttendance.date == day))
        records = {record.employee_id: record for record in result.scalars().all()}

        rows = []
        for employee in await self._active_employees(db):
            record = records.get(employee.id)
            rows.append({
                "employee_id": employee.id,
                "employee_no": employee.employee_no,
                "full_name": employee.full_name,
                "status": record.status if record else EmployeeAttendanceStatus.ABSENT,
                "check_in": record.check_in if record else None,
                "check_out": record.check_out if record else None,
                "work_hours": record.work_hours if record else None,
            })
        return rows

    async def get_summary(self, db: AsyncSession, employee_id: str, month: int, year: int) -> Dict[str, Any]:
        records = await self.get_records(db, employee_id, month, year)

        counts = {status: 0 for status in EmployeeAttendanceStatus}
        for record in records:
            counts[record.status] += 1
        hours = [record.work_hours for record in records if record.work_hours is not None]
        total_hours = sum(hours, Decimal("0"))
        average = (total_hours / len(hours)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) if hours else Decimal("0")
        working_days = count_working_days(year, month)

        return {
            "employee_id": employee_id,
            "month": month,
            "year": year,
            "working_days": working_days,
            "present": counts[EmployeeAttendanceStatus.PRESENT],
            "absent": counts[EmployeeAttendanceStatus.ABSENT],
            "half_day": counts[EmployeeAttendanceStatus.HALF_DAY],
            "on_leave": counts[EmployeeAttendanceStatus.ON_LEAVE],
            "holiday": counts[EmployeeAttendanceStatus.HOLIDAY],
            "late_arrivals": sum(1 for record in records if record.check_in and late_by_minutes(record.check_in)),
            "total_hours": float(total_hours),
            "average_hours": float(average),
            "percentage": attendance_percentage(
                counts[EmployeeAttendanceStatus.PRESENT] + counts[EmployeeAttendanceStatus.HALF_DAY], working_days
            ),
        }

    async def get_monthly_report(self, db: AsyncSession, month: int, year: int) -> List[Dict[str, Any]]:
        return [
            await self.get_summary(db, employee.id, month, year)
            for employee in await self._active_employees(db)
        ]

    async def get_late_arrivals(self, db: AsyncSession, start: date, end: date) -> List[Dict[str, Any]]:
        if end < start:
            raise BadRequestError("End date must be on or after start date")
        result = await db.execute(
            select(EmployeeAttendance)
            .where(
                EmployeeAttendance.date >= start,
                EmployeeAttendance.date <= end,
                EmployeeAttendance.check_in.isnot(None),
            )
            .order_by(EmployeeAttendance.date, EmployeeAttendance.check_in)
        )
        late = []
        for record in result.scalars().all():
            minutes = late_by_minutes(record.check_in)
            if minutes:
                late.append({
                    "employee_id": record.employee_id,
                    "date": record.date,
                    "check_in": record.check_in,
                    "late_by_minutes": minutes,
                })
        return late

    async def get_absentees(self, db: AsyncSession, day: date) -> List[Employee]:
        result = await db.execute(
            select(EmployeeAttendance.employee_id).where(
                EmployeeAttendance.date == day, EmployeeAttendance.status.in_(ATTENDED_DAY_STATUSES)
            )
        )
        attended = set(result.scalars().all())
        return [employee for employee in await self._active_employees(db) if employee.id not in attended]


student_attendance_service = StudentAttendanceService()
employee_attendance_service = EmployeeAttendanceService()
