"""
Exam Service - exam scheduling with room clash detection
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import date
from typing import Optional, List
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, BadRequestError
from campus_erp.models.academic import CourseClass
from campus_erp.models.grading import Exam, ExamStatus, ExamType
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.grading import ExamCreate, ExamUpdate
from campus_erp.services.academic_service import academic_service
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

EXAM_FIELDS = ("title", "type", "date", "start_time", "end_time", "room", "status")


class ExamService:
    """Service for exams"""

    async def _ensure_room_free(
        self,
        db: AsyncSession,
        room: str,
        on: date,
        start_time: str,
        end_time: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        if start_time >= end_time:
            raise BadRequestError("start_time must be before end_time")

        query = select(Exam).where(
            Exam.room == room,
            Exam.date == on,
            Exam.status == ExamStatus.SCHEDULED,
            Exam.start_time < end_time,
            Exam.end_time > start_time,
        )
        if exclude_id:
            query = query.where(Exam.id != exclude_id)
        clash = await db.scalar(query.limit(1))
        if clash:
            raise BadRequestError(
                f"Room {room} is already booked for another exam at that time",
                details={"exam_id": clash.id, "start_time": clash.start_time, "end_time": clash.end_time},
            )

    async def schedule(
        self, db: AsyncSession, class_id: str, data: ExamCreate, user_id: Optional[str] = None
    ) -> Exam:
        course_class = await academic_service.get_class(db, class_id)
        await self._ensure_room_free(db, data.room, data.date, data.start_time, data.end_time)

        exam = Exam(class_id=course_class.id, status=ExamStatus.SCHEDULED, **data.model_dump())
        async with atomic(db):
            db.add(exam)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "exam", exam.id, user_id,
                new_values={"class_id": course_class.id, **model_snapshot(exam, EXAM_FIELDS)},
            )

        logger.info(f"Scheduled {exam.type.value} exam for class {course_class.id} on {exam.date}")
        return exam

    async def get(self, db: AsyncSession, exam_id: str) -> Exam:
        exam = await db.get(Exam, exam_id)
        if not exam:
            raise NotFoundError("Exam not found")
        return exam

    async def update(self, db: AsyncSession, exam_id: str, data: ExamUpdate, user_id: Optional[str] = None) -> Exam:
        exam = await self.get(db, exam_id)
        if exam.status in (ExamStatus.COMPLETED, ExamStatus.CANCELLED):
            raise BadRequestError(f"Cannot update a {exam.status.value} exam")

        changes = data.model_dump(exclude_unset=True)
        if changes.keys() & {"room", "date", "start_time", "end_time"}:
            await self._ensure_room_free(
                db,
                changes.get("room", exam.room),
                changes.get("date", exam.date),
                changes.get("start_time", exam.start_time),
                changes.get("end_time", exam.end_time),
                exclude_id=exam.id,
            )

        old_values = model_snapshot(exam, EXAM_FIELDS)
        async with atomic(db):
            for field, value in changes.items():
                setattr(exam, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "exam", exam.id, user_id,
                old_values=old_values, new_values=model_snapshot(exam, EXAM_FIELDS),
            )
        return exam

    async def cancel(self, db: AsyncSession, exam_id: str, reason: str, user_id: Optional[str] = None) -> Exam:
        exam = await self.get(db, exam_id)
        if exam.status == ExamStatus.COMPLETED:
            raise BadRequestError("Cannot cancel a completed exam")
        async with atomic(db):
            exam.status = ExamStatus.CANCELLED
            exam.cancel_reason = reason
            await audit_service.log(
                db, AuditAction.UPDATE, "exam", exam.id, user_id,
                new_values={"status": ExamStatus.CANCELLED, "reason": reason},
            )
        return exam

    async def list(
        self,
        db: AsyncSession,
        class_id: Optional[str] = None,
        type: Optional[ExamType] = None,
        status: Optional[ExamStatus] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Exam)
        if class_id:
            query = query.where(Exam.class_id == class_id)
        if type:
            query = query.where(Exam.type == type)
        if status:
            query = query.where(Exam.status == status)
        if from_date:
            query = query.where(Exam.date >= from_date)
        if to_date:
            query = query.where(Exam.date <= to_date)
        return await paginate(db, query.order_by(Exam.date, Exam.start_time), page, limit)

    async def get_semester_schedule(self, db: AsyncSession, semester_id: str) -> List[Exam]:
        await academic_service.get_semester(db, semester_id)
        result = await db.execute(
            select(Exam)
            .join(CourseClass, CourseClass.id == Exam.class_id)
            .where(CourseClass.semester_id == semester_id, Exam.status != ExamStatus.CANCELLED)
            .order_by(Exam.date, Exam.start_time, Exam.room)
        )
        return list(result.scalars().all())


exam_service = ExamService()
