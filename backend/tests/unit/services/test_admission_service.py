"""
Unit Tests for admission applications
"""
import pytest
from datetime import date, datetime

from campus_erp.core.exceptions import BadRequestError, ConflictError
from campus_erp.core.security import verify_password
from campus_erp.models import ApplicationStatus, EducationLevel, Gender, Student, User, UserRole
from campus_erp.schemas.admission import ApplicationCreate, ApplicationUpdate
from campus_erp.services.admission_service import admission_service, generate_temp_password


def _application(program, email='layla@applicant.test', **overrides):
    data = dict(
        first_name='Layla', last_name='Hassan', date_of_birth=date(2007, 4, 12), gender=Gender.FEMALE,
        email=email, phone='+252610000001', previous_education_level=EducationLevel.SECONDARY,
        previous_school_name='Central Secondary', graduation_year=2025, program_id=program.id,
    )
    data.update(overrides)
    return ApplicationCreate(**data)


@pytest.fixture
async def application(db_session, program):
    return await admission_service.create(db_session, _application(program))


@pytest.fixture
async def approved(db_session, application, hod_user):
    return await admission_service.review(db_session, application.id, ApplicationStatus.APPROVED, user_id=hod_user.id)


class TestApplications:

    @pytest.mark.asyncio
    async def test_numbers_are_sequential(self, db_session, program, application):
        second = await admission_service.create(db_session, _application(program, email='yusuf@applicant.test'))

        year = datetime.utcnow().year
        assert application.application_no == f'APP-{year}-0001'
        assert second.application_no == f'APP-{year}-0002'
        assert application.status == ApplicationStatus.PENDING
        assert application.full_name == 'Layla Hassan'

    @pytest.mark.asyncio
    async def test_open_application_blocks_same_email(self, db_session, program, application):
        with pytest.raises(ConflictError):
            await admission_service.create(db_session, _application(program, email='LAYLA@applicant.test'))

    @pytest.mark.asyncio
    async def test_rejected_application_allows_reapplying(self, db_session, program, application):
        await admission_service.reject(db_session, application.id, 'Incomplete transcripts')

        again = await admission_service.create(db_session, _application(program))

        assert again.status == ApplicationStatus.PENDING

    @pytest.mark.asyncio
    async def test_existing_account_email_conflicts(self, db_session, program, student_user):
        with pytest.raises(ConflictError):
            await admission_service.create(db_session, _application(program, email=student_user.email))

    @pytest.mark.asyncio
    async def test_unknown_program_rejected(self, db_session, program):
        with pytest.raises(BadRequestError):
            await admission_service.create(db_session, _application(program, program_id='missing'))

    @pytest.mark.asyncio
    async def test_update_only_while_open(self, db_session, application, approved):
        with pytest.raises(BadRequestError):
            await admission_service.update(db_session, application.id, ApplicationUpdate(city='Hargeisa'))


class TestReview:
    """pending -> under review -> approved / rejected"""

    @pytest.mark.asyncio
    async def test_review_then_approve(self, db_session, application, hod_user):
        await admission_service.review(db_session, application.id, ApplicationStatus.UNDER_REVIEW)
        approved = await admission_service.review(
            db_session, application.id, ApplicationStatus.APPROVED, 'Strong results', user_id=hod_user.id
        )

        assert approved.status == ApplicationStatus.APPROVED
        assert approved.reviewed_by_id == hod_user.id
        assert approved.review_remarks == 'Strong results'

    @pytest.mark.asyncio
    async def test_approved_cannot_go_back(self, db_session, application, approved):
        with pytest.raises(BadRequestError):
            await admission_service.review(db_session, application.id, ApplicationStatus.UNDER_REVIEW)

    @pytest.mark.asyncio
    async def test_rejection_needs_reason(self, db_session, application):
        with pytest.raises(BadRequestError):
            await admission_service.reject(db_session, application.id, '   ')

        rejected = await admission_service.reject(db_session, application.id, 'Below minimum grade')
        assert rejected.rejection_reason == 'Below minimum grade'

    @pytest.mark.asyncio
    async def test_enrolled_is_not_a_review_outcome(self, db_session, application):
        with pytest.raises(BadRequestError):
            await admission_service.review(db_session, application.id, ApplicationStatus.ENROLLED)


class TestEnroll:

    def test_temp_password_shape(self):
        password = generate_temp_password()
        assert len(password) == 11
        assert password.endswith('!')

    @pytest.mark.asyncio
    async def test_enroll_creates_account_and_student(self, db_session, application, approved, program):
        result = await admission_service.enroll(db_session, application.id)

        account = await db_session.get(User, result['user_id'])
        student = await db_session.get(Student, result['student_id'])

        assert result['student_number'] == f'STU-{datetime.utcnow().year}-0001'
        assert account.role == UserRole.STUDENT
        assert verify_password(result['temporary_password'], account.hashed_password)
        assert student.user_id == account.id
        assert student.program_id == program.id
        assert application.status == ApplicationStatus.ENROLLED
        assert application.student_id == student.id
        assert application.enrolled_at is not None

    @pytest.mark.asyncio
    async def test_numbering_continues_after_existing_students(
        self, db_session, application, approved, make_student
    ):
        await make_student()

        result = await admission_service.enroll(db_session, application.id)

        assert result['student_number'] == f'STU-{datetime.utcnow().year}-0002'

    @pytest.mark.asyncio
    async def test_only_approved_applications(self, db_session, application):
        with pytest.raises(BadRequestError):
            await admission_service.enroll(db_session, application.id)

    @pytest.mark.asyncio
    async def test_enroll_twice(self, db_session, application, approved):
        await admission_service.enroll(db_session, application.id)

        with pytest.raises(BadRequestError):
            await admission_service.enroll(db_session, application.id)


class TestStatistics:

    @pytest.mark.asyncio
    async def test_counts_by_status_program_and_month(self, db_session, program, application):
        second = await admission_service.create(db_session, _application(program, email='yusuf@applicant.test'))
        await admission_service.reject(db_session, second.id, 'Late submission')

        stats = await admission_service.get_statistics(db_session)

        assert stats['total'] == 2
        assert stats['by_status'] == {'pending': 1, 'rejected': 1}
        assert stats['by_program'] == {program.code: 2}
        assert stats['monthly_trend'] == [{'month': datetime.utcnow().month, 'count': 2}]
