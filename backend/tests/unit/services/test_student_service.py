"""
Unit Tests for student records
"""
import pytest
from datetime import date

from campus_erp.core.exceptions import BadRequestError
from campus_erp.models import Program, ProgramType, StudentStatus
from campus_erp.schemas.people import StudentCreate
from campus_erp.services.audit_service import audit_service
from campus_erp.services.student_service import student_service


@pytest.fixture
async def other_program(db_session, department):
    program = Program(
        name='BSc Data Science', code='BSDS', type=ProgramType.BACHELOR,
        duration_years=3, total_credits=90, department_id=department.id,
    )
    db_session.add(program)
    await db_session.commit()
    return program


class TestStudentNumbers:

    @pytest.mark.asyncio
    async def test_numbers_follow_admission_year(self, db_session, program):
        first = await student_service.create(
            db_session,
            StudentCreate(full_name='Amina Noor', email='amina@campus.test', program_id=program.id,
                          admission_date=date(2025, 9, 1)),
        )
        second = await student_service.create(
            db_session,
            StudentCreate(full_name='Omar Ali', email='omar@campus.test', program_id=program.id,
                          admission_date=date(2025, 9, 2)),
        )

        assert first.student_id == 'STU-2025-0001'
        assert second.student_id == 'STU-2025-0002'
        assert first.status == StudentStatus.ACTIVE


class TestDeactivate:
    """Moving an active student out of ACTIVE"""

    @pytest.mark.asyncio
    async def test_suspension_locks_account(self, db_session, student, student_user, hod_user):
        suspended = await student_service.deactivate(
            db_session, student.id, StudentStatus.SUSPENDED, 'Disciplinary hearing', user_id=hod_user.id
        )

        assert suspended.status == StudentStatus.SUSPENDED
        assert student_user.is_active is False

        history = await audit_service.get_entity_history(db_session, 'student', student.id)
        assert history[-1].new_values == {'status': 'suspended', 'reason': 'Disciplinary hearing'}

    @pytest.mark.asyncio
    async def test_only_active_students(self, db_session, make_student):
        graduated = await make_student(status=StudentStatus.GRADUATED)

        with pytest.raises(BadRequestError):
            await student_service.deactivate(db_session, graduated.id, StudentStatus.WITHDRAWN, 'Left')

    @pytest.mark.asyncio
    async def test_target_cannot_be_active(self, db_session, student):
        with pytest.raises(BadRequestError):
            await student_service.deactivate(db_session, student.id, StudentStatus.ACTIVE, 'No change')


class TestTransfer:

    @pytest.mark.asyncio
    async def test_transfer_to_other_program(self, db_session, student, program, other_program):
        transferred = await student_service.transfer(db_session, student.id, other_program.id, 'Changed major')

        assert transferred.program_id == other_program.id
        history = await audit_service.get_entity_history(db_session, 'student', student.id)
        assert history[-1].old_values == {'program_id': program.id}

    @pytest.mark.asyncio
    async def test_same_program_rejected(self, db_session, student, program):
        with pytest.raises(BadRequestError):
            await student_service.transfer(db_session, student.id, program.id, 'No change')

    @pytest.mark.asyncio
    async def test_unknown_program_rejected(self, db_session, student):
        with pytest.raises(BadRequestError):
            await student_service.transfer(db_session, student.id, 'missing', 'Changed major')

    @pytest.mark.asyncio
    async def test_inactive_student_cannot_transfer(self, db_session, make_student, other_program):
        withdrawn = await make_student(status=StudentStatus.WITHDRAWN)

        with pytest.raises(BadRequestError):
            await student_service.transfer(db_session, withdrawn.id, other_program.id, 'Changed major')
