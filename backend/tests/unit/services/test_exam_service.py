"""
Unit Tests for exam scheduling
"""
import pytest
from datetime import date

from campus_erp.core.exceptions import BadRequestError, NotFoundError
from campus_erp.models import ExamStatus, ExamType
from campus_erp.schemas.grading import ExamCreate, ExamUpdate
from campus_erp.services.exam_service import exam_service

EXAM_DAY = date(2026, 6, 15)


def _exam(start='09:00', end='11:00', room='Hall A', title='Midterm Exam'):
    return ExamCreate(
        title=title, type=ExamType.MIDTERM, date=EXAM_DAY, start_time=start, end_time=end, room=room,
    )


class TestScheduling:
    """Room clash detection"""

    @pytest.mark.asyncio
    async def test_schedule(self, db_session, course_class):
        exam = await exam_service.schedule(db_session, course_class.id, _exam())

        assert exam.status == ExamStatus.SCHEDULED
        assert exam.class_id == course_class.id

    @pytest.mark.asyncio
    async def test_unknown_class(self, db_session):
        with pytest.raises(NotFoundError):
            await exam_service.schedule(db_session, 'missing-class', _exam())

    @pytest.mark.asyncio
    async def test_overlapping_room_rejected(self, db_session, course_class):
        first = await exam_service.schedule(db_session, course_class.id, _exam())

        with pytest.raises(BadRequestError) as exc_info:
            await exam_service.schedule(db_session, course_class.id, _exam('10:30', '12:00', title='Quiz'))
        assert exc_info.value.details['exam_id'] == first.id

    @pytest.mark.asyncio
    async def test_adjacent_slot_and_other_room_allowed(self, db_session, course_class):
        await exam_service.schedule(db_session, course_class.id, _exam())

        await exam_service.schedule(db_session, course_class.id, _exam('11:00', '12:00', title='Quiz'))
        await exam_service.schedule(db_session, course_class.id, _exam(room='Hall B', title='Lab Test'))

    @pytest.mark.asyncio
    async def test_start_must_precede_end(self, db_session, course_class):
        with pytest.raises(BadRequestError):
            await exam_service.schedule(db_session, course_class.id, _exam('11:00', '09:00'))

    @pytest.mark.asyncio
    async def test_cancelled_exam_frees_room(self, db_session, course_class):
        exam = await exam_service.schedule(db_session, course_class.id, _exam())
        await exam_service.cancel(db_session, exam.id, 'Public holiday')

        replacement = await exam_service.schedule(db_session, course_class.id, _exam(title='Makeup Exam'))
        assert replacement.status == ExamStatus.SCHEDULED


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_cancelled_exam_cannot_be_updated(self, db_session, course_class):
        exam = await exam_service.schedule(db_session, course_class.id, _exam())
        await exam_service.cancel(db_session, exam.id, 'Room flooded')

        with pytest.raises(BadRequestError):
            await exam_service.update(db_session, exam.id, ExamUpdate(room='Hall C'))

    @pytest.mark.asyncio
    async def test_completed_exam_cannot_be_cancelled(self, db_session, course_class):
        exam = await exam_service.schedule(db_session, course_class.id, _exam())
        await exam_service.update(db_session, exam.id, ExamUpdate(status=ExamStatus.COMPLETED))

        with pytest.raises(BadRequestError):
            await exam_service.cancel(db_session, exam.id, 'Too late')

    @pytest.mark.asyncio
    async def test_semester_schedule_skips_cancelled(self, db_session, course_class, semester):
        kept = await exam_service.schedule(db_session, course_class.id, _exam())
        dropped = await exam_service.schedule(db_session, course_class.id, _exam(room='Hall B', title='Quiz'))
        await exam_service.cancel(db_session, dropped.id, 'Merged')

        schedule = await exam_service.get_semester_schedule(db_session, semester.id)

        assert [exam.id for exam in schedule] == [kept.id]
