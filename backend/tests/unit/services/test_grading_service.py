"""
Unit Tests for grading: components, final grades and GPA
"""
import pytest
from decimal import Decimal

from campus_erp.core.exceptions import BadRequestError
from campus_erp.models import EnrollmentStatus
from campus_erp.schemas.grading import GradeComponentCreate, GradeEntryIn
from campus_erp.services.grading_service import (
    credit_weighted_gpa,
    grade_scale_service,
    grade_component_service,
    grade_entry_service,
    grade_calculation_service,
)
from campus_erp.services.registration_service import enrollment_service


@pytest.fixture
async def default_scale(db_session):
    return await grade_scale_service.seed_default(db_session)


@pytest.fixture
async def graded_class(db_session, course_class):
    """Class with a 40% midterm out of 50 and a 60% final out of 100"""
    midterm = await grade_component_service.create(
        db_session, course_class.id,
        GradeComponentCreate(name='Midterm', type='midterm', weight=Decimal('40'), max_score=Decimal('50')),
    )
    final = await grade_component_service.create(
        db_session, course_class.id,
        GradeComponentCreate(name='Final', type='final', weight=Decimal('60')),
    )
    return course_class, midterm, final


class TestGpaArithmetic:

    def test_credit_weighted(self):
        assert credit_weighted_gpa([(3, Decimal('4.0')), (1, Decimal('2.0'))]) == Decimal('3.50')

    def test_no_credits(self):
        assert credit_weighted_gpa([]) == Decimal('0.00')

    def test_missing_points_count_as_zero(self):
        assert credit_weighted_gpa([(2, Decimal('3.0')), (2, None)]) == Decimal('1.50')


class TestLetterGrades:
    """Letter lookup on the seeded 4.0 scale"""

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session, default_scale):
        assert default_scale is not None
        assert await grade_scale_service.seed_default(db_session) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize('percentage,letter,points', [
        (Decimal('100'), 'A+', Decimal('4.0')),
        (Decimal('89.5'), 'A-', Decimal('3.7')),
        (Decimal('80'), 'B', Decimal('3.0')),
        (Decimal('59.99'), 'F', Decimal('0.0')),
    ])
    async def test_boundaries(self, db_session, default_scale, percentage, letter, points):
        result = await grade_scale_service.calculate_letter_grade(db_session, percentage)
        assert result['letter'] == letter
        assert result['grade_points'] == points


class TestComponents:
    """Component weights per class"""

    @pytest.mark.asyncio
    async def test_weights_cannot_exceed_hundred(self, db_session, graded_class):
        course_class, _, _ = graded_class

        with pytest.raises(BadRequestError) as exc_info:
            await grade_component_service.create(
                db_session, course_class.id, GradeComponentCreate(name='Quiz', weight=Decimal('5')),
            )
        assert exc_info.value.details['current_weight'] == 100.0

    @pytest.mark.asyncio
    async def test_validate_weights(self, db_session, graded_class):
        course_class, _, _ = graded_class

        validation = await grade_component_service.validate_weights(db_session, course_class.id)
        assert validation == {'is_valid': True, 'total_weight': 100.0, 'components': 2}

    @pytest.mark.asyncio
    async def test_score_above_max_rejected(self, db_session, graded_class, student, registration_open):
        course_class, midterm, _ = graded_class
        enrollment = await enrollment_service.enroll(db_session, student.id, course_class.id)

        with pytest.raises(BadRequestError):
            await grade_entry_service.enter_grades(
                db_session, midterm.id, [GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('51'))]
            )

    @pytest.mark.asyncio
    async def test_repeated_enrollment_in_batch_rejected(self, db_session, graded_class, student, registration_open):
        course_class, midterm, _ = graded_class
        enrollment = await enrollment_service.enroll(db_session, student.id, course_class.id)

        with pytest.raises(BadRequestError) as exc_info:
            await grade_entry_service.enter_grades(
                db_session, midterm.id, [
                    GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('30')),
                    GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('40')),
                ]
            )
        assert exc_info.value.details['enrollment_id'] == enrollment.id

        # Nothing was written; a clean batch still goes through
        entries = await grade_entry_service.enter_grades(
            db_session, midterm.id, [GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('40'))]
        )
        assert len(entries) == 1

    @pytest.mark.asyncio
    async def test_component_with_grades_cannot_be_deleted(self, db_session, graded_class, student, registration_open):
        course_class, midterm, _ = graded_class
        enrollment = await enrollment_service.enroll(db_session, student.id, course_class.id)
        await grade_entry_service.enter_grades(
            db_session, midterm.id, [GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('30'))]
        )

        with pytest.raises(BadRequestError):
            await grade_component_service.delete(db_session, midterm.id)


class TestFinalGrades:
    """Weighted final grade, finalization and GPA"""

    @pytest.mark.asyncio
    async def test_weighted_final_grade(self, db_session, default_scale, graded_class, student, registration_open):
        course_class, midterm, final = graded_class
        enrollment = await enrollment_service.enroll(db_session, student.id, course_class.id)
        await grade_entry_service.enter_grades(
            db_session, midterm.id, [GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('40'))]
        )
        await grade_entry_service.enter_grades(
            db_session, final.id, [GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('90'))]
        )

        result = await grade_calculation_service.calculate_final_grade(db_session, enrollment.id)

        # 80% of 40 + 90% of 60
        assert result['total_percentage'] == Decimal('86.00')
        assert result['letter'] == 'B+'
        assert result['grade_points'] == Decimal('3.3')

    @pytest.mark.asyncio
    async def test_missing_entry_counts_as_zero(self, db_session, default_scale, graded_class, student, registration_open):
        course_class, midterm, _ = graded_class
        enrollment = await enrollment_service.enroll(db_session, student.id, course_class.id)
        await grade_entry_service.enter_grades(
            db_session, midterm.id, [GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('50'))]
        )

        result = await grade_calculation_service.calculate_final_grade(db_session, enrollment.id)

        assert result['total_percentage'] == Decimal('40.00')
        assert result['letter'] == 'F'

    @pytest.mark.asyncio
    async def test_finalize_locks_and_complete_updates_cgpa(
        self, db_session, default_scale, graded_class, student, registration_open
    ):
        course_class, midterm, final = graded_class
        enrollment = await enrollment_service.enroll(db_session, student.id, course_class.id)
        await grade_entry_service.enter_grades(
            db_session, midterm.id, [GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('50'))]
        )
        await grade_entry_service.enter_grades(
            db_session, final.id, [GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('95'))]
        )

        assert await grade_calculation_service.finalize_class_grades(db_session, course_class.id) == 1
        assert enrollment.final_grade == 'A+'
        assert await grade_calculation_service.calculate_semester_gpa(
            db_session, student.id, course_class.semester_id
        ) == Decimal('4.00')

        with pytest.raises(BadRequestError):
            await grade_entry_service.enter_grades(
                db_session, final.id, [GradeEntryIn(enrollment_id=enrollment.id, score=Decimal('10'))]
            )

        counts = await grade_calculation_service.complete_class(db_session, course_class.id)
        assert counts == {'completed': 1, 'failed': 0}
        assert enrollment.status == EnrollmentStatus.COMPLETED
        assert await grade_calculation_service.calculate_cgpa(db_session, student.id) == Decimal('4.00')

    @pytest.mark.asyncio
    async def test_finalize_without_components(self, db_session, course_class):
        with pytest.raises(BadRequestError):
            await grade_calculation_service.finalize_class_grades(db_session, course_class.id)
