"""
Registration Service - holds, registration windows and enrollment

Handles:
- Student holds that block registration, grades or transcripts
- Registration periods per semester
- Enrolling into / dropping classes with hold, capacity, prerequisite
  and timetable checks
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime
from typing import Optional, List, Dict, Any
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import (
    CampusError, NotFoundError, ConflictError, BadRequestError, ForbiddenError,
)
from campus_erp.models.academic import CourseClass, ClassSchedule, ClassStatus, Course, course_prerequisites
from campus_erp.models.people import Student, StudentStatus
from campus_erp.models.registration import (
    Hold,
    HoldType,
    RegistrationPeriod,
    RegistrationPeriodType,
    Enrollment,
    EnrollmentStatus,
    PrerequisiteOverride,
)
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.registration import HoldCreate, HoldUpdate, RegistrationPeriodCreate, RegistrationPeriodUpdate
from campus_erp.services.academic_service import academic_service
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.services.student_service import student_service
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)

HOLD_FIELDS = ("type", "reason", "blocks_registration", "blocks_grades", "blocks_transcript")


def slots_overlap(a: ClassSchedule, b: ClassSchedule) -> bool:
    """Same weekday and intersecting [start, end) time ranges"""
    return a.day_of_week == b.day_of_week and a.start_time < b.end_time and b.start_time < a.end_time


class HoldService:
    """Service for student holds"""

    async def create(self, db: AsyncSession, data: HoldCreate, user_id: Optional[str] = None) -> Hold:
        student = await student_service.get(db, data.student_id)
        existing = await db.scalar(
            select(func.count(Hold.id)).where(
                Hold.student_id == student.id, Hold.type == data.type, Hold.released_at.is_(None)
            )
        )
        if existing:
            raise ConflictError(f"Student already has an active {data.type.value} hold")

        hold = Hold(**data.model_dump(), placed_by_id=user_id, placed_at=datetime.utcnow())
        async with atomic(db):
            db.add(hold)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "hold", hold.id, user_id,
                new_values={"student_id": student.id, **model_snapshot(hold, HOLD_FIELDS)},
            )

        logger.info(f"Placed {hold.type.value} hold on student {student.student_id}")
        return hold

    async def get(self, db: AsyncSession, hold_id: str) -> Hold:
        hold = await db.get(Hold, hold_id)
        if not hold:
            raise NotFoundError("Hold not found")
        return hold

    async def update(self, db: AsyncSession, hold_id: str, data: HoldUpdate, user_id: Optional[str] = None) -> Hold:
        hold = await self.get(db, hold_id)
        if not hold.is_active:
            raise BadRequestError("Released holds cannot be modified")

        changes = data.model_dump(exclude_unset=True)
        old_values = model_snapshot(hold, changes.keys())
        async with atomic(db):
            for field, value in changes.items():
                setattr(hold, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "hold", hold.id, user_id,
                old_values=old_values, new_values=model_snapshot(hold, changes.keys()),
            )
        return hold

    async def release(self, db: AsyncSession, hold_id: str, reason: str, user_id: Optional[str] = None) -> Hold:
        hold = await self.get(db, hold_id)
        if not hold.is_active:
            raise BadRequestError("Hold has already been released")

        async with atomic(db):
            hold.released_at = datetime.utcnow()
            hold.released_by_id = user_id
            hold.release_reason = reason
            await audit_service.log(
                db, AuditAction.UPDATE, "hold", hold.id, user_id,
                new_values={"released": True, "reason": reason},
            )
        return hold

    async def list(
        self,
        db: AsyncSession,
        student_id: Optional[str] = None,
        type: Optional[HoldType] = None,
        active_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Hold)
        if student_id:
            query = query.where(Hold.student_id == student_id)
        if type:
            query = query.where(Hold.type == type)
        if active_only:
            query = query.where(Hold.released_at.is_(None))
        return await paginate(db, query.order_by(Hold.placed_at.desc()), page, limit)

    async def get_active_holds(self, db: AsyncSession, student_id: str) -> List[Hold]:
        result = await db.execute(
            select(Hold)
            .where(Hold.student_id == student_id, Hold.released_at.is_(None))
            .order_by(Hold.placed_at)
        )
        return list(result.scalars().all())

    async def has_registration_hold(self, db: AsyncSession, student_id: str) -> bool:
        count = await db.scalar(
            select(func.count(Hold.id)).where(
                Hold.student_id == student_id,
                Hold.released_at.is_(None),
                Hold.blocks_registration.is_(True),
            )
        )
        return bool(count)

    async def has_transcript_hold(self, db: AsyncSession, student_id: str) -> bool:
        count = await db.scalar(
            select(func.count(Hold.id)).where(
                Hold.student_id == student_id,
                Hold.released_at.is_(None),
                Hold.blocks_transcript.is_(True),
            )
        )
        return bool(count)


class RegistrationPeriodService:
    """Service for registration windows"""

    async def _ensure_no_overlap(
        self,
        db: AsyncSession,
        semester_id: str,
        period_type: RegistrationPeriodType,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ):
        query = select(func.count(RegistrationPeriod.id)).where(
            RegistrationPeriod.semester_id == semester_id,
            RegistrationPeriod.type == period_type,
            RegistrationPeriod.is_active.is_(True),
            RegistrationPeriod.start_date < end,
            RegistrationPeriod.end_date > start,
        )
        if exclude_id:
            query = query.where(RegistrationPeriod.id != exclude_id)
        if await db.scalar(query):
            raise ConflictError("An overlapping registration period already exists")

    async def create(
        self, db: AsyncSession, data: RegistrationPeriodCreate, user_id: Optional[str] = None
    ) -> RegistrationPeriod:
        await academic_service.get_semester(db, data.semester_id)
        if data.start_date >= data.end_date:
            raise BadRequestError("start_date must be before end_date")
        if data.is_active:
            await self._ensure_no_overlap(db, data.semester_id, data.type, data.start_date, data.end_date)

        period = RegistrationPeriod(**data.model_dump())
        async with atomic(db):
            db.add(period)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "registration_period", period.id, user_id,
                new_values=model_snapshot(period, ("semester_id", "type", "start_date", "end_date")),
            )
        return period

    async def get(self, db: AsyncSession, period_id: str) -> RegistrationPeriod:
        period = await db.get(RegistrationPeriod, period_id)
        if not period:
            raise NotFoundError("Registration period not found")
        return period

    async def update(
        self, db: AsyncSession, period_id: str, data: RegistrationPeriodUpdate, user_id: Optional[str] = None
    ) -> RegistrationPeriod:
        period = await self.get(db, period_id)
        changes = data.model_dump(exclude_unset=True)
        start = changes.get("start_date", period.start_date)
        end = changes.get("end_date", period.end_date)
        if start >= end:
            raise BadRequestError("start_date must be before end_date")
        if changes.get("is_active", period.is_active):
            await self._ensure_no_overlap(
                db, period.semester_id, changes.get("type", period.type), start, end, exclude_id=period.id
            )

        async with atomic(db):
            for field, value in changes.items():
                setattr(period, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "registration_period", period.id, user_id, new_values=changes,
            )
        return period

    async def delete(self, db: AsyncSession, period_id: str, user_id: Optional[str] = None) -> None:
        period = await self.get(db, period_id)
        async with atomic(db):
            await db.delete(period)
            await audit_service.log(db, AuditAction.DELETE, "registration_period", period_id, user_id)

    async def list(self, db: AsyncSession, semester_id: Optional[str] = None) -> List[RegistrationPeriod]:
        query = select(RegistrationPeriod)
        if semester_id:
            query = query.where(RegistrationPeriod.semester_id == semester_id)
        result = await db.execute(query.order_by(RegistrationPeriod.start_date))
        return list(result.scalars().all())

    async def get_current_period(
        self, db: AsyncSession, semester_id: Optional[str] = None
    ) -> Optional[RegistrationPeriod]:
        now = datetime.utcnow()
        query = select(RegistrationPeriod).where(
            RegistrationPeriod.is_active.is_(True),
            RegistrationPeriod.start_date <= now,
            RegistrationPeriod.end_date >= now,
        )
        if semester_id:
            query = query.where(RegistrationPeriod.semester_id == semester_id)
        result = await db.execute(query.order_by(RegistrationPeriod.start_date))
        return result.scalars().first()

    async def is_registration_open(self, db: AsyncSession, semester_id: str) -> Dict[str, Any]:
        period = await self.get_current_period(db, semester_id)
        if period:
            return {
                "is_open": True,
                "period": period,
                "message": f"{period.type.value.replace('_', '/')} registration is open until {period.end_date:%Y-%m-%d %H:%M}",
            }
        return {"is_open": False, "period": None, "message": "Registration is closed for this semester"}


class EnrollmentService:
    """Service for class enrollments"""

    async def get(self, db: AsyncSession, enrollment_id: str) -> Enrollment:
        enrollment = await db.get(Enrollment, enrollment_id)
        if not enrollment:
            raise NotFoundError("Enrollment not found")
        return enrollment

    async def _missing_prerequisites(self, db: AsyncSession, student_id: str, course_id: str) -> List[Course]:
        required = (await db.execute(
            select(Course)
            .join(course_prerequisites, course_prerequisites.c.prerequisite_id == Course.id)
            .where(course_prerequisites.c.course_id == course_id)
        )).scalars().all()
        if not required:
            return []

        completed = set((await db.execute(
            select(CourseClass.course_id)
            .join(Enrollment, Enrollment.class_id == CourseClass.id)
            .where(Enrollment.student_id == student_id, Enrollment.status == EnrollmentStatus.COMPLETED)
        )).scalars().all())
        overridden = set((await db.execute(
            select(PrerequisiteOverride.course_id).where(PrerequisiteOverride.student_id == student_id)
        )).scalars().all())

        return [course for course in required if course.id not in completed and course.id not in overridden]

    async def _schedule_conflict(
        self, db: AsyncSession, student_id: str, course_class: CourseClass
    ) -> Optional[CourseClass]:
        if not course_class.schedules:
            return None
        result = await db.execute(
            select(CourseClass)
            .join(Enrollment, Enrollment.class_id == CourseClass.id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.semester_id == course_class.semester_id,
                Enrollment.status == EnrollmentStatus.REGISTERED,
                CourseClass.id != course_class.id,
            )
        )
        for other in result.scalars().all():
            for slot in course_class.schedules:
                if any(slots_overlap(slot, taken) for taken in other.schedules):
                    return other
        return None

    async def enroll(
        self,
        db: AsyncSession,
        student_id: str,
        class_id: str,
        override_prerequisites: bool = False,
        override_reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Enrollment:
        """
        Register a student into a class

        Args:
            db: Database session
            student_id: Student to enroll
            class_id: Target class
            override_prerequisites: Skip missing prerequisites (needs a reason)
            override_reason: Recorded on the PrerequisiteOverride
            user_id: Acting user

        Returns:
            The REGISTERED Enrollment
        """
        student = await student_service.get(db, student_id)
        if student.status != StudentStatus.ACTIVE:
            raise BadRequestError(f"Student is not active (status: {student.status.value})")
        if await hold_service.has_registration_hold(db, student.id):
            raise ForbiddenError("Student has an active hold blocking registration")

        course_class = await academic_service.get_class(db, class_id)
        if course_class.status != ClassStatus.OPEN:
            raise BadRequestError(f"Class is not open for enrollment (status: {course_class.status.value})")

        registration = await registration_period_service.is_registration_open(db, course_class.semester_id)
        if not registration["is_open"]:
            raise BadRequestError(registration["message"])

        already = await db.scalar(
            select(func.count(Enrollment.id)).where(
                Enrollment.student_id == student.id,
                Enrollment.class_id == course_class.id,
                Enrollment.status == EnrollmentStatus.REGISTERED,
            )
        )
        if already:
            raise ConflictError("Student is already enrolled in this class")

        if course_class.enrolled_count >= course_class.capacity:
            raise BadRequestError("Class is full")

        missing = await self._missing_prerequisites(db, student.id, course_class.course_id)
        if missing and not override_prerequisites:
            raise BadRequestError(
                "Prerequisites not satisfied",
                details={"missing": [course.code for course in missing]},
            )
        if missing and not override_reason:
            raise BadRequestError("A reason is required to override prerequisites")

        clash = await self._schedule_conflict(db, student.id, course_class)
        if clash:
            raise ConflictError("Schedule conflicts with another registered class", details={"class_id": clash.id})

        enrollment = Enrollment(
            student_id=student.id,
            class_id=course_class.id,
            semester_id=course_class.semester_id,
            status=EnrollmentStatus.REGISTERED,
            enrolled_at=datetime.utcnow(),
        )
        async with atomic(db):
            db.add(enrollment)
            course_class.enrolled_count += 1
            if missing:
                db.add(PrerequisiteOverride(
                    student_id=student.id,
                    course_id=course_class.course_id,
                    reason=override_reason,
                    approved_by_id=user_id,
                ))
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "enrollment", enrollment.id, user_id,
                new_values={"student_id": student.id, "class_id": course_class.id,
                            "prerequisites_overridden": bool(missing)},
            )

        logger.info(f"Enrolled {student.student_id} into class {course_class.id}")
        return enrollment

    async def drop(
        self, db: AsyncSession, enrollment_id: str, reason: Optional[str] = None, user_id: Optional[str] = None
    ) -> Enrollment:
        enrollment = await self.get(db, enrollment_id)
        if enrollment.status != EnrollmentStatus.REGISTERED:
            raise BadRequestError(f"Only registered enrollments can be dropped (status: {enrollment.status.value})")
        course_class = await academic_service.get_class(db, enrollment.class_id)

        async with atomic(db):
            enrollment.status = EnrollmentStatus.DROPPED
            enrollment.dropped_at = datetime.utcnow()
            enrollment.drop_reason = reason
            course_class.enrolled_count = max(0, course_class.enrolled_count - 1)
            await audit_service.log(
                db, AuditAction.UPDATE, "enrollment", enrollment.id, user_id,
                old_values={"status": EnrollmentStatus.REGISTERED},
                new_values={"status": EnrollmentStatus.DROPPED, "reason": reason},
            )
        return enrollment

    async def bulk_enroll(
        self, db: AsyncSession, student_ids: List[str], class_id: str, user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        successful: List[str] = []
        failed: List[Dict[str, str]] = []
        for student_id in student_ids:
            try:
                await self.enroll(db, student_id, class_id, user_id=user_id)
                successful.append(student_id)
            except CampusError as e:
                failed.append({"student_id": student_id, "error": e.message})
        return {"successful": successful, "failed": failed}

    async def list(
        self,
        db: AsyncSession,
        student_id: Optional[str] = None,
        class_id: Optional[str] = None,
        semester_id: Optional[str] = None,
        status: Optional[EnrollmentStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        query = select(Enrollment)
        if student_id:
            query = query.where(Enrollment.student_id == student_id)
        if class_id:
            query = query.where(Enrollment.class_id == class_id)
        if semester_id:
            query = query.where(Enrollment.semester_id == semester_id)
        if status:
            query = query.where(Enrollment.status == status)
        return await paginate(db, query.order_by(Enrollment.enrolled_at.desc()), page, limit)

    async def get_available_classes(self, db: AsyncSession, student_id: str, semester_id: str) -> List[CourseClass]:
        """Open classes with free seats the student is not already in"""
        taken = select(Enrollment.class_id).where(
            Enrollment.student_id == student_id,
            Enrollment.semester_id == semester_id,
            Enrollment.status != EnrollmentStatus.DROPPED,
        )
        result = await db.execute(
            select(CourseClass)
            .where(
                CourseClass.semester_id == semester_id,
                CourseClass.status == ClassStatus.OPEN,
                CourseClass.enrolled_count < CourseClass.capacity,
                CourseClass.id.not_in(taken),
            )
            .order_by(CourseClass.created_at)
        )
        return list(result.scalars().all())

    async def get_student_schedule(self, db: AsyncSession, student_id: str, semester_id: str) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(CourseClass, Course.code, Course.name)
            .join(Enrollment, Enrollment.class_id == CourseClass.id)
            .join(Course, Course.id == CourseClass.course_id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.semester_id == semester_id,
                Enrollment.status == EnrollmentStatus.REGISTERED,
            )
        )
        entries = []
        for course_class, code, name in result.all():
            for slot in course_class.schedules:
                entries.append({
                    "class_id": course_class.id,
                    "course_code": code,
                    "course_name": name,
                    "section": course_class.section,
                    "day_of_week": slot.day_of_week,
                    "start_time": slot.start_time,
                    "end_time": slot.end_time,
                    "room": slot.room,
                })
        return sorted(entries, key=lambda e: (e["day_of_week"], e["start_time"]))


hold_service = HoldService()
registration_period_service = RegistrationPeriodService()
enrollment_service = EnrollmentService()
