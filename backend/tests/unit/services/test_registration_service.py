"""
Unit Tests for holds and enrollment
"""
import pytest
from datetime import datetime
from sqlalchemy import select

from campus_erp.core.exceptions import BadRequestError, ConflictError, ForbiddenError
from campus_erp.models import (
    ClassStatus, Enrollment, EnrollmentStatus, HoldType, PrerequisiteOverride, StudentStatus,
)
from campus_erp.schemas.registration import HoldCreate
from campus_erp.services.academic_service import academic_service
from campus_erp.services.registration_service import (
    enrollment_service,
    hold_service,
    registration_period_service,
)


class TestHolds:
    """Hold placement and release"""

    @pytest.mark.asyncio
    async def test_registration_hold_blocks_enrollment(
        self, db_session, student, course_class, registration_open, admin_user
    ):
        await hold_service.create(
            db_session,
            HoldCreate(student_id=student.id, type=HoldType.FINANCIAL, reason='Unpaid tuition'),
            user_id=admin_user.id,
        )

        with pytest.raises(ForbiddenError):
            await enrollment_service.enroll(db_session, student.id, course_class.id)

    @pytest.mark.asyncio
    async def test_released_hold_no_longer_blocks(
        self, db_session, student, course_class, registration_open, admin_user
    ):
        hold = await hold_service.create(
            db_session,
            HoldCreate(student_id=student.id, type=HoldType.LIBRARY, reason='Overdue books'),
        )
        await hold_service.release(db_session, hold.id, 'Books returned', user_id=admin_user.id)

        assert await hold_service.has_registration_hold(db_session, student.id) is False
        enrollment = await enrollment_service.enroll(db_session, student.id, course_class.id)
        assert enrollment.status == EnrollmentStatus.REGISTERED

    @pytest.mark.asyncio
    async def test_non_blocking_hold_allows_enrollment(self, db_session, student, course_class, registration_open):
        await hold_service.create(
            db_session,
            HoldCreate(
                student_id=student.id, type=HoldType.ACADEMIC, reason='Advisor meeting',
                blocks_registration=False, blocks_transcript=True,
            ),
        )

        assert await hold_service.has_transcript_hold(db_session, student.id) is True
        await enrollment_service.enroll(db_session, student.id, course_class.id)

    @pytest.mark.asyncio
    async def test_duplicate_active_hold_conflicts(self, db_session, student):
        data = HoldCreate(student_id=student.id, type=HoldType.DISCIPLINARY, reason='Conduct review')
        await hold_service.create(db_session, data)

        with pytest.raises(ConflictError):
            await hold_service.create(db_session, data)

    @pytest.mark.asyncio
    async def test_release_twice_fails(self, db_session, student):
        hold = await hold_service.create(
            db_session, HoldCreate(student_id=student.id, type=HoldType.ADMINISTRATIVE, reason='Missing ID')
        )
        await hold_service.release(db_session, hold.id, 'Provided')

        with pytest.raises(BadRequestError):
            await hold_service.release(db_session, hold.id, 'Again')


class TestEnrollment:
    """Enrollment checks and seat counting"""

    @pytest.mark.asyncio
    async def test_enroll_and_drop_track_seats(self, db_session, student, course_class, registration_open):
        enrollment = await enrollment_service.enroll(db_session, student.id, course_class.id)
        assert course_class.enrolled_count == 1

        dropped = await enrollment_service.drop(db_session, enrollment.id, reason='Changed major')
        assert dropped.status == EnrollmentStatus.DROPPED
        assert course_class.enrolled_count == 0

        with pytest.raises(BadRequestError):
            await enrollment_service.drop(db_session, enrollment.id)

    @pytest.mark.asyncio
    async def test_registration_closed(self, db_session, student, course_class):
        with pytest.raises(BadRequestError, match='closed'):
            await enrollment_service.enroll(db_session, student.id, course_class.id)

    @pytest.mark.asyncio
    async def test_registration_window_reported_open(self, db_session, semester, registration_open):
        status = await registration_period_service.is_registration_open(db_session, semester.id)
        assert status['is_open'] is True
        assert status['period'].id == registration_open.id

    @pytest.mark.asyncio
    async def test_inactive_student_cannot_enroll(self, db_session, make_student, course_class, registration_open):
        suspended = await make_student(status=StudentStatus.SUSPENDED)

        with pytest.raises(BadRequestError):
            await enrollment_service.enroll(db_session, suspended.id, course_class.id)

    @pytest.mark.asyncio
    async def test_closed_class_rejected(self, db_session, student, course_class, registration_open):
        course_class.status = ClassStatus.CLOSED
        await db_session.commit()

        with pytest.raises(BadRequestError):
            await enrollment_service.enroll(db_session, student.id, course_class.id)

    @pytest.mark.asyncio
    async def test_double_enrollment_conflicts(self, db_session, student, course_class, registration_open):
        await enrollment_service.enroll(db_session, student.id, course_class.id)

        with pytest.raises(ConflictError):
            await enrollment_service.enroll(db_session, student.id, course_class.id)

    @pytest.mark.asyncio
    async def test_full_class_rejected(self, db_session, make_student, make_class, course, registration_open):
        small = await make_class(course, capacity=1, section='B')
        first, second = await make_student(), await make_student()
        await enrollment_service.enroll(db_session, first.id, small.id)

        with pytest.raises(BadRequestError, match='Class is full'):
            await enrollment_service.enroll(db_session, second.id, small.id)

    @pytest.mark.asyncio
    async def test_schedule_clash_conflicts(self, db_session, student, make_course, make_class, registration_open):
        maths = await make_class(await make_course('MA101'), slots=[(2, '10:00', '11:30')])
        physics = await make_class(await make_course('PH101'), slots=[(2, '11:00', '12:00')])
        await enrollment_service.enroll(db_session, student.id, maths.id)

        with pytest.raises(ConflictError) as exc_info:
            await enrollment_service.enroll(db_session, student.id, physics.id)
        assert exc_info.value.details['class_id'] == maths.id

    @pytest.mark.asyncio
    async def test_back_to_back_slots_do_not_clash(self, db_session, student, make_course, make_class, registration_open):
        maths = await make_class(await make_course('MA101'), slots=[(2, '10:00', '11:00')])
        physics = await make_class(await make_course('PH101'), slots=[(2, '11:00', '12:00')])

        await enrollment_service.enroll(db_session, student.id, maths.id)
        await enrollment_service.enroll(db_session, student.id, physics.id)

    @pytest.mark.asyncio
    async def test_missing_prerequisite(self, db_session, student, make_course, make_class, registration_open):
        intro = await make_course('CS100')
        advanced = await make_course('CS200')
        await academic_service.add_prerequisite(db_session, advanced.id, intro.id)
        advanced_class = await make_class(advanced)

        with pytest.raises(BadRequestError) as exc_info:
            await enrollment_service.enroll(db_session, student.id, advanced_class.id)
        assert exc_info.value.details == {'missing': ['CS100']}

    @pytest.mark.asyncio
    async def test_prerequisite_override_needs_reason(
        self, db_session, student, make_course, make_class, registration_open, hod_user
    ):
        intro = await make_course('CS100')
        advanced = await make_course('CS200')
        await academic_service.add_prerequisite(db_session, advanced.id, intro.id)
        advanced_class = await make_class(advanced)

        with pytest.raises(BadRequestError):
            await enrollment_service.enroll(
                db_session, student.id, advanced_class.id, override_prerequisites=True
            )

        enrollment = await enrollment_service.enroll(
            db_session, student.id, advanced_class.id,
            override_prerequisites=True, override_reason='Equivalent transfer credit', user_id=hod_user.id,
        )
        assert enrollment.status == EnrollmentStatus.REGISTERED
        override = (await db_session.execute(select(PrerequisiteOverride))).scalar_one()
        assert override.course_id == advanced.id
        assert override.approved_by_id == hod_user.id

    @pytest.mark.asyncio
    async def test_completed_prerequisite_satisfies(
        self, db_session, student, make_course, make_class, semester, registration_open
    ):
        intro = await make_course('CS100')
        advanced = await make_course('CS200')
        await academic_service.add_prerequisite(db_session, advanced.id, intro.id)
        intro_class = await make_class(intro)
        db_session.add(Enrollment(
            student_id=student.id, class_id=intro_class.id, semester_id=semester.id,
            status=EnrollmentStatus.COMPLETED, enrolled_at=datetime.utcnow(),
        ))
        await db_session.commit()

        advanced_class = await make_class(advanced)
        await enrollment_service.enroll(db_session, student.id, advanced_class.id)

    @pytest.mark.asyncio
    async def test_bulk_enroll_reports_failures(
        self, db_session, make_student, make_class, course, registration_open
    ):
        small = await make_class(course, capacity=2, section='C')
        students = [await make_student() for _ in range(3)]

        result = await enrollment_service.bulk_enroll(db_session, [s.id for s in students], small.id)

        assert result['successful'] == [students[0].id, students[1].id]
        assert result['failed'] == [{'student_id': students[2].id, 'error': 'Class is full'}]


class TestPrerequisiteGraph:
    """Prerequisite edges"""

    @pytest.mark.asyncio
    async def test_self_prerequisite_rejected(self, db_session, course):
        with pytest.raises(BadRequestError):
            await academic_service.add_prerequisite(db_session, course.id, course.id)

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, db_session, make_course):
        a, b, c = await make_course('A100'), await make_course('B100'), await make_course('C100')
        await academic_service.add_prerequisite(db_session, b.id, a.id)
        await academic_service.add_prerequisite(db_session, c.id, b.id)

        with pytest.raises(BadRequestError, match='circular'):
            await academic_service.add_prerequisite(db_session, a.id, c.id)
