"""
Unit Tests for class attendance, excuses and staff time records
"""
import pytest
from datetime import date, datetime
from decimal import Decimal

from campus_erp.core.exceptions import BadRequestError, ConflictError
from campus_erp.models import (
    AttendanceStatus, EmployeeAttendanceStatus, Enrollment, EnrollmentStatus, ExcuseStatus,
)
from campus_erp.schemas.attendance import (
    AttendanceBatch, AttendanceMark, DayMarking, ExcuseCreate, ManualEntry, SingleAttendance,
)
from campus_erp.services.attendance_service import (
    attendance_percentage,
    count_working_days,
    employee_attendance_service,
    late_by_minutes,
    student_attendance_service,
    work_hours_between,
)

# Monday 2 March 2026; the week runs Sunday to Thursday
MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)


def _at(day, hour, minute=0):
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture
async def roster(db_session, make_student, course_class, semester):
    """Two students registered in the class and one who dropped it"""
    registered = [await make_student(), await make_student()]
    dropped = await make_student()
    for student, status in ((registered[0], EnrollmentStatus.REGISTERED),
                            (registered[1], EnrollmentStatus.REGISTERED),
                            (dropped, EnrollmentStatus.DROPPED)):
        db_session.add(Enrollment(
            student_id=student.id, class_id=course_class.id, semester_id=semester.id,
            status=status, enrolled_at=datetime.utcnow(),
        ))
    await db_session.commit()
    return registered, dropped


def _batch(course_class, day, *marks):
    return AttendanceBatch(
        class_id=course_class.id, date=day,
        records=[AttendanceMark(student_id=student.id, status=status) for student, status in marks],
    )


class TestHelpers:

    def test_percentage_rounds_half_up(self):
        assert attendance_percentage(1, 8) == 13
        assert attendance_percentage(2, 3) == 67
        assert attendance_percentage(0, 0) == 0

    def test_work_hours(self):
        assert work_hours_between(_at(MONDAY, 8), _at(MONDAY, 16, 20)) == Decimal('8.33')

    def test_grace_period(self):
        assert late_by_minutes(_at(MONDAY, 8, 15)) == 0
        assert late_by_minutes(_at(MONDAY, 8, 40)) == 40

    def test_working_days_skip_friday_and_saturday(self):
        assert count_working_days(2026, 3) == 23


class TestMarking:

    @pytest.mark.asyncio
    async def test_unregistered_students_are_skipped(self, db_session, course_class, roster, lecturer_user):
        (first, second), dropped = roster

        result = await student_attendance_service.mark(
            db_session,
            _batch(course_class, MONDAY,
                   (first, AttendanceStatus.PRESENT), (second, AttendanceStatus.LATE),
                   (dropped, AttendanceStatus.PRESENT)),
            user_id=lecturer_user.id,
        )

        assert result == {'marked': 2, 'skipped': [dropped.id]}
        records = await student_attendance_service.list_for_class(db_session, course_class.id, MONDAY)
        assert {record.student_id for record in records} == {first.id, second.id}
        assert all(record.marked_by_id == lecturer_user.id for record in records)

    @pytest.mark.asyncio
    async def test_remarking_updates_the_session(self, db_session, course_class, roster):
        (first, _), _ = roster
        await student_attendance_service.mark(db_session, _batch(course_class, MONDAY, (first, AttendanceStatus.ABSENT)))
        await student_attendance_service.mark(db_session, _batch(course_class, MONDAY, (first, AttendanceStatus.LATE)))

        records = await student_attendance_service.list_for_student(db_session, first.id)

        assert [record.status for record in records] == [AttendanceStatus.LATE]

    @pytest.mark.asyncio
    async def test_single_mark_requires_registration(self, db_session, course_class, roster):
        _, dropped = roster

        with pytest.raises(BadRequestError):
            await student_attendance_service.mark_single(
                db_session,
                SingleAttendance(student_id=dropped.id, class_id=course_class.id, date=MONDAY,
                                 status=AttendanceStatus.PRESENT),
            )

    @pytest.mark.asyncio
    async def test_repeated_student_in_session_rejected(self, db_session, course_class, roster):
        (first, _), _ = roster

        with pytest.raises(BadRequestError):
            await student_attendance_service.mark(
                db_session,
                _batch(course_class, MONDAY, (first, AttendanceStatus.PRESENT), (first, AttendanceStatus.ABSENT)),
            )

    @pytest.mark.asyncio
    async def test_future_date_rejected(self, db_session, course_class, roster):
        (first, _), _ = roster

        with pytest.raises(BadRequestError):
            await student_attendance_service.mark(
                db_session, _batch(course_class, date(2999, 1, 1), (first, AttendanceStatus.PRESENT))
            )


class TestReports:

    @pytest.fixture
    async def two_sessions(self, db_session, course_class, roster):
        (first, second), _ = roster
        await student_attendance_service.mark(
            db_session,
            _batch(course_class, MONDAY, (first, AttendanceStatus.PRESENT), (second, AttendanceStatus.ABSENT)),
        )
        await student_attendance_service.mark(
            db_session,
            _batch(course_class, TUESDAY, (first, AttendanceStatus.LATE), (second, AttendanceStatus.ABSENT)),
        )
        return first, second

    @pytest.mark.asyncio
    async def test_late_counts_as_attended(self, db_session, course_class, two_sessions):
        first, _ = two_sessions

        summary = await student_attendance_service.get_summary(db_session, first.id, course_class.id)

        assert summary == {'total': 2, 'present': 1, 'absent': 0, 'late': 1, 'excused': 0, 'percentage': 100}

    @pytest.mark.asyncio
    async def test_class_report(self, db_session, course_class, two_sessions):
        _, second = two_sessions

        report = await student_attendance_service.get_class_report(db_session, course_class.id)

        assert [session['date'] for session in report['sessions']] == [MONDAY, TUESDAY]
        assert report['sessions'][0] == {'date': MONDAY, 'present': 1, 'absent': 1, 'late': 0, 'excused': 0}
        assert report['students'] == 2
        assert report['average_percentage'] == 50
        assert [row['student_id'] for row in report['at_risk']] == [second.id]

    @pytest.mark.asyncio
    async def test_custom_threshold(self, db_session, course_class, two_sessions):
        assert await student_attendance_service.get_below_threshold(db_session, course_class.id, threshold=0) == []


class TestExcuses:

    @pytest.fixture
    async def absence(self, db_session, course_class, roster):
        (first, _), _ = roster
        await student_attendance_service.mark(db_session, _batch(course_class, MONDAY, (first, AttendanceStatus.ABSENT)))
        return first

    def _excuse(self, student, course_class):
        return ExcuseCreate(student_id=student.id, class_id=course_class.id, date=MONDAY, reason='Hospital visit')

    @pytest.mark.asyncio
    async def test_approval_excuses_the_absence(self, db_session, course_class, absence, lecturer_user):
        excuse = await student_attendance_service.submit_excuse(db_session, self._excuse(absence, course_class))

        approved = await student_attendance_service.approve_excuse(db_session, excuse.id, user_id=lecturer_user.id)

        assert approved.status == ExcuseStatus.APPROVED
        [record] = await student_attendance_service.list_for_student(db_session, absence.id)
        assert record.status == AttendanceStatus.EXCUSED
        assert record.excuse_id == excuse.id
        assert await student_attendance_service.list_pending_excuses(db_session) == []

    @pytest.mark.asyncio
    async def test_one_excuse_per_session(self, db_session, course_class, absence):
        await student_attendance_service.submit_excuse(db_session, self._excuse(absence, course_class))

        with pytest.raises(ConflictError):
            await student_attendance_service.submit_excuse(db_session, self._excuse(absence, course_class))

    @pytest.mark.asyncio
    async def test_rejection_needs_remarks(self, db_session, course_class, absence):
        excuse = await student_attendance_service.submit_excuse(db_session, self._excuse(absence, course_class))

        with pytest.raises(BadRequestError):
            await student_attendance_service.reject_excuse(db_session, excuse.id, '')

        rejected = await student_attendance_service.reject_excuse(db_session, excuse.id, 'No evidence')
        assert rejected.status == ExcuseStatus.REJECTED
        with pytest.raises(BadRequestError):
            await student_attendance_service.approve_excuse(db_session, excuse.id)

        [record] = await student_attendance_service.list_for_student(db_session, absence.id)
        assert record.status == AttendanceStatus.ABSENT


class TestCheckInOut:
    """One record per employee per day"""

    @pytest.mark.asyncio
    async def test_full_day(self, db_session, employee):
        await employee_attendance_service.check_in(db_session, employee.id, now=_at(MONDAY, 7, 55))
        record = await employee_attendance_service.check_out(db_session, employee.id, now=_at(MONDAY, 16, 25))

        assert record.status == EmployeeAttendanceStatus.PRESENT
        assert record.work_hours == Decimal('8.50')

    @pytest.mark.asyncio
    async def test_short_day_is_half_day(self, db_session, employee):
        await employee_attendance_service.check_in(db_session, employee.id, now=_at(MONDAY, 9))
        record = await employee_attendance_service.check_out(db_session, employee.id, now=_at(MONDAY, 12, 30))

        assert record.status == EmployeeAttendanceStatus.HALF_DAY
        assert record.work_hours == Decimal('3.50')

    @pytest.mark.asyncio
    async def test_double_check_in_and_out(self, db_session, employee):
        await employee_attendance_service.check_in(db_session, employee.id, now=_at(MONDAY, 8))
        with pytest.raises(ConflictError):
            await employee_attendance_service.check_in(db_session, employee.id, now=_at(MONDAY, 9))

        await employee_attendance_service.check_out(db_session, employee.id, now=_at(MONDAY, 17))
        with pytest.raises(ConflictError):
            await employee_attendance_service.check_out(db_session, employee.id, now=_at(MONDAY, 18))

    @pytest.mark.asyncio
    async def test_check_out_without_check_in(self, db_session, employee):
        with pytest.raises(BadRequestError):
            await employee_attendance_service.check_out(db_session, employee.id, now=_at(MONDAY, 17))

    @pytest.mark.asyncio
    async def test_manual_entry_corrects_record(self, db_session, employee, hr_user):
        await employee_attendance_service.check_in(db_session, employee.id, now=_at(MONDAY, 10))

        record = await employee_attendance_service.manual_entry(
            db_session,
            ManualEntry(employee_id=employee.id, date=MONDAY, check_in=_at(MONDAY, 8),
                        check_out=_at(MONDAY, 16), remarks='Badge reader fault'),
            user_id=hr_user.id,
        )

        assert record.check_in == _at(MONDAY, 8)
        assert record.work_hours == Decimal('8.00')

    def test_manual_entry_times_must_be_ordered(self):
        with pytest.raises(ValueError):
            ManualEntry(employee_id='x', date=MONDAY, check_in=_at(MONDAY, 16), check_out=_at(MONDAY, 8))


class TestStaffReports:

    @pytest.mark.asyncio
    async def test_monthly_summary(self, db_session, employee):
        await employee_attendance_service.check_in(db_session, employee.id, now=_at(MONDAY, 8, 45))
        await employee_attendance_service.check_out(db_session, employee.id, now=_at(MONDAY, 16, 45))
        await employee_attendance_service.check_in(db_session, employee.id, now=_at(TUESDAY, 8))
        await employee_attendance_service.check_out(db_session, employee.id, now=_at(TUESDAY, 11))
        await employee_attendance_service.mark_on_leave(db_session, employee.id, date(2026, 3, 4))

        summary = await employee_attendance_service.get_summary(db_session, employee.id, 3, 2026)

        assert (summary['present'], summary['half_day'], summary['on_leave']) == (1, 1, 1)
        assert summary['late_arrivals'] == 1
        assert summary['total_hours'] == 11.0
        assert summary['average_hours'] == 5.5
        assert summary['working_days'] == 23
        assert summary['percentage'] == 9

    @pytest.mark.asyncio
    async def test_daily_view_and_absentees(self, db_session, employee, make_employee):
        absent = await make_employee()
        await employee_attendance_service.check_in(db_session, employee.id, now=_at(MONDAY, 8))

        daily = {row['employee_id']: row['status'] for row in await employee_attendance_service.get_daily(db_session, MONDAY)}
        absentees = await employee_attendance_service.get_absentees(db_session, MONDAY)

        assert daily == {employee.id: EmployeeAttendanceStatus.PRESENT, absent.id: EmployeeAttendanceStatus.ABSENT}
        assert [row.id for row in absentees] == [absent.id]

    @pytest.mark.asyncio
    async def test_late_arrivals(self, db_session, employee):
        await employee_attendance_service.check_in(db_session, employee.id, now=_at(MONDAY, 8, 10))
        await employee_attendance_service.check_in(db_session, employee.id, now=_at(TUESDAY, 9, 30))

        late = await employee_attendance_service.get_late_arrivals(db_session, MONDAY, TUESDAY)

        assert [(row['date'], row['late_by_minutes']) for row in late] == [(TUESDAY, 90)]

    @pytest.mark.asyncio
    async def test_holiday_for_everyone(self, db_session, employee, make_employee, hr_user):
        await make_employee()
        day = date(2026, 3, 8)

        result = await employee_attendance_service.mark_holiday(db_session, day, user_id=hr_user.id)

        assert result == {'date': day, 'employees_marked': 2, 'status': EmployeeAttendanceStatus.HOLIDAY}
        assert await employee_attendance_service.get_absentees(db_session, day) == []
