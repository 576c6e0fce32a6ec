"""
Grading Service - scales, weighted components, score entry and GPA

Handles:
- Grade scales (letter bands) and the seeded default scale
- Weighted grade components per class
- Score entry against enrollments
- Final grade calculation, finalization, GPA and transcripts
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any
import logging

from campus_erp.core.database import atomic
from campus_erp.core.exceptions import NotFoundError, ConflictError, BadRequestError
from campus_erp.core.types import to_money
from campus_erp.models.academic import CourseClass, Course, Semester
from campus_erp.models.grading import GradeScale, GradeDefinition, GradeComponent, GradeEntry
from campus_erp.models.registration import Enrollment, EnrollmentStatus
from campus_erp.models.audit_log import AuditAction
from campus_erp.schemas.grading import (
    GradeScaleCreate,
    GradeScaleUpdate,
    GradeComponentCreate,
    GradeComponentUpdate,
    GradeEntryIn,
)
from campus_erp.services.academic_service import academic_service
from campus_erp.services.audit_service import audit_service, model_snapshot
from campus_erp.services.registration_service import enrollment_service, hold_service
from campus_erp.services.student_service import student_service

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

# letter, min, max, points
DEFAULT_SCALE = [
    ("A+", 95, 100, "4.0"),
    ("A", 90, 94, "4.0"),
    ("A-", 87, 89, "3.7"),
    ("B+", 83, 86, "3.3"),
    ("B", 80, 82, "3.0"),
    ("B-", 77, 79, "2.7"),
    ("C+", 73, 76, "2.3"),
    ("C", 70, 72, "2.0"),
    ("C-", 67, 69, "1.7"),
    ("D+", 63, 66, "1.3"),
    ("D", 60, 62, "1.0"),
    ("F", 0, 59, "0.0"),
]
DEFAULT_SCALE_NAME = "Standard 4.0 Scale"

COMPONENT_FIELDS = ("name", "type", "weight", "max_score", "is_published")


def credit_weighted_gpa(rows) -> Decimal:
    """rows of (credits, grade_points) -> sum(credits * points) / sum(credits)"""
    total_credits = 0
    total_points = Decimal("0")
    for credits, points in rows:
        total_credits += credits
        total_points += credits * Decimal(points or 0)
    if total_credits == 0:
        return Decimal("0.00")
    return to_money(total_points / total_credits)


class GradeScaleService:
    """Service for grade scales"""

    async def create(self, db: AsyncSession, data: GradeScaleCreate, user_id: Optional[str] = None) -> GradeScale:
        existing = await db.scalar(select(func.count(GradeScale.id)).where(GradeScale.name == data.name))
        if existing:
            raise ConflictError("Grade scale with this name already exists")

        scale = GradeScale(
            name=data.name,
            is_default=data.is_default,
            definitions=[GradeDefinition(**d.model_dump()) for d in data.definitions],
        )
        async with atomic(db):
            if data.is_default:
                await db.execute(update(GradeScale).values(is_default=False))
            db.add(scale)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "grade_scale", scale.id, user_id,
                new_values={"name": scale.name, "is_default": scale.is_default},
            )
        return scale

    async def list(self, db: AsyncSession) -> List[GradeScale]:
        result = await db.execute(select(GradeScale).order_by(GradeScale.name))
        return list(result.scalars().all())

    async def get(self, db: AsyncSession, scale_id: str) -> GradeScale:
        scale = await db.get(GradeScale, scale_id)
        if not scale:
            raise NotFoundError("Grade scale not found")
        return scale

    async def get_default(self, db: AsyncSession) -> Optional[GradeScale]:
        return await db.scalar(select(GradeScale).where(GradeScale.is_default.is_(True)))

    async def update(
        self, db: AsyncSession, scale_id: str, data: GradeScaleUpdate, user_id: Optional[str] = None
    ) -> GradeScale:
        scale = await self.get(db, scale_id)
        if data.name and data.name != scale.name:
            taken = await db.scalar(
                select(func.count(GradeScale.id)).where(GradeScale.name == data.name, GradeScale.id != scale.id)
            )
            if taken:
                raise ConflictError("Grade scale with this name already exists")

        async with atomic(db):
            if data.name:
                scale.name = data.name
            if data.definitions is not None:
                scale.definitions = [GradeDefinition(**d.model_dump()) for d in data.definitions]
            await audit_service.log(
                db, AuditAction.UPDATE, "grade_scale", scale.id, user_id,
                new_values=data.model_dump(exclude_unset=True, exclude={"definitions"}),
            )
        await db.refresh(scale, attribute_names=["definitions"])
        return scale

    async def delete(self, db: AsyncSession, scale_id: str, user_id: Optional[str] = None) -> None:
        scale = await self.get(db, scale_id)
        if scale.is_default:
            raise BadRequestError("Cannot delete the default grade scale")
        async with atomic(db):
            await db.delete(scale)
            await audit_service.log(db, AuditAction.DELETE, "grade_scale", scale.id, user_id)

    async def set_default(self, db: AsyncSession, scale_id: str, user_id: Optional[str] = None) -> GradeScale:
        scale = await self.get(db, scale_id)
        async with atomic(db):
            await db.execute(update(GradeScale).where(GradeScale.id != scale.id).values(is_default=False))
            scale.is_default = True
            await audit_service.log(
                db, AuditAction.UPDATE, "grade_scale", scale.id, user_id, new_values={"is_default": True}
            )
        return scale

    async def seed_default(self, db: AsyncSession) -> Optional[GradeScale]:
        """Create the standard 4.0 scale when no default scale exists"""
        if await self.get_default(db):
            return None
        scale = GradeScale(
            name=DEFAULT_SCALE_NAME,
            is_default=True,
            definitions=[
                GradeDefinition(
                    letter=letter,
                    min_percentage=Decimal(low),
                    max_percentage=Decimal(high),
                    grade_points=Decimal(points),
                )
                for letter, low, high, points in DEFAULT_SCALE
            ],
        )
        async with atomic(db):
            db.add(scale)
        logger.info("Seeded default grade scale")
        return scale

    async def calculate_letter_grade(
        self, db: AsyncSession, percentage, scale_id: Optional[str] = None
    ) -> Dict[str, Any]:
        scale = await self.get(db, scale_id) if scale_id else await self.get_default(db)
        pct = to_money(percentage)
        if scale:
            for definition in sorted(scale.definitions, key=lambda d: d.min_percentage, reverse=True):
                if definition.min_percentage <= pct:
                    return {"percentage": pct, "letter": definition.letter, "grade_points": definition.grade_points}
        return {"percentage": pct, "letter": "F", "grade_points": Decimal("0.00")}


class GradeComponentService:
    """Service for weighted grade components"""

    async def get(self, db: AsyncSession, component_id: str) -> GradeComponent:
        component = await db.get(GradeComponent, component_id)
        if not component:
            raise NotFoundError("Grade component not found")
        return component

    async def list(self, db: AsyncSession, class_id: str) -> List[GradeComponent]:
        result = await db.execute(
            select(GradeComponent).where(GradeComponent.class_id == class_id).order_by(GradeComponent.created_at)
        )
        return list(result.scalars().all())

    async def _total_weight(self, db: AsyncSession, class_id: str, exclude_id: Optional[str] = None) -> Decimal:
        query = select(func.coalesce(func.sum(GradeComponent.weight), 0)).where(GradeComponent.class_id == class_id)
        if exclude_id:
            query = query.where(GradeComponent.id != exclude_id)
        return Decimal(str(await db.scalar(query)))

    async def create(
        self, db: AsyncSession, class_id: str, data: GradeComponentCreate, user_id: Optional[str] = None
    ) -> GradeComponent:
        course_class = await academic_service.get_class(db, class_id)
        current = await self._total_weight(db, course_class.id)
        if current + data.weight > HUNDRED:
            raise BadRequestError(
                "Total component weight cannot exceed 100%",
                details={"current_weight": float(current), "requested": float(data.weight)},
            )

        component = GradeComponent(class_id=course_class.id, **data.model_dump())
        async with atomic(db):
            db.add(component)
            await db.flush()
            await audit_service.log(
                db, AuditAction.CREATE, "grade_component", component.id, user_id,
                new_values={"class_id": course_class.id, **model_snapshot(component, COMPONENT_FIELDS)},
            )
        return component

    async def update(
        self, db: AsyncSession, component_id: str, data: GradeComponentUpdate, user_id: Optional[str] = None
    ) -> GradeComponent:
        component = await self.get(db, component_id)
        changes = data.model_dump(exclude_unset=True)

        if "weight" in changes:
            others = await self._total_weight(db, component.class_id, exclude_id=component.id)
            if others + changes["weight"] > HUNDRED:
                raise BadRequestError(
                    "Total component weight cannot exceed 100%",
                    details={"current_weight": float(others), "requested": float(changes["weight"])},
                )
        if "max_score" in changes:
            highest = await db.scalar(
                select(func.max(GradeEntry.score)).where(GradeEntry.component_id == component.id)
            )
            if highest is not None and changes["max_score"] < highest:
                raise BadRequestError(f"max_score cannot be lower than an existing score ({float(highest)})")

        old_values = model_snapshot(component, COMPONENT_FIELDS)
        async with atomic(db):
            for field, value in changes.items():
                setattr(component, field, value)
            await audit_service.log(
                db, AuditAction.UPDATE, "grade_component", component.id, user_id,
                old_values=old_values, new_values=model_snapshot(component, COMPONENT_FIELDS),
            )
        return component

    async def delete(self, db: AsyncSession, component_id: str, user_id: Optional[str] = None) -> None:
        component = await self.get(db, component_id)
        entries = await db.scalar(select(func.count(GradeEntry.id)).where(GradeEntry.component_id == component.id))
        if entries:
            raise BadRequestError(
                "Cannot delete a component that has grades entered", details={"entries": entries}
            )
        async with atomic(db):
            await db.delete(component)
            await audit_service.log(db, AuditAction.DELETE, "grade_component", component.id, user_id)

    async def validate_weights(self, db: AsyncSession, class_id: str) -> Dict[str, Any]:
        components = await self.list(db, class_id)
        total = sum((c.weight for c in components), Decimal("0"))
        return {"is_valid": total == HUNDRED, "total_weight": float(total), "components": len(components)}

    async def copy_from_class(
        self, db: AsyncSession, source_class_id: str, target_class_id: str, user_id: Optional[str] = None
    ) -> List[GradeComponent]:
        await academic_service.get_class(db, source_class_id)
        await academic_service.get_class(db, target_class_id)
        source = await self.list(db, source_class_id)
        if not source:
            raise BadRequestError("Source class has no grade components")
        if await self.list(db, target_class_id):
            raise BadRequestError("Target class already has grade components")

        copies = [
            GradeComponent(
                class_id=target_class_id,
                name=c.name,
                type=c.type,
                weight=c.weight,
                max_score=c.max_score,
            )
            for c in source
        ]
        async with atomic(db):
            db.add_all(copies)
            await audit_service.log(
                db, AuditAction.CREATE, "grade_component", None, user_id,
                new_values={"copied_from": source_class_id, "class_id": target_class_id, "count": len(copies)},
            )
        return copies

    async def set_published(
        self, db: AsyncSession, component_id: str, published: bool, user_id: Optional[str] = None
    ) -> GradeComponent:
        component = await self.get(db, component_id)
        async with atomic(db):
            component.is_published = published
            await audit_service.log(
                db, AuditAction.UPDATE, "grade_component", component.id, user_id,
                new_values={"is_published": published},
            )
        return component

    async def publish(self, db: AsyncSession, component_id: str, user_id: Optional[str] = None) -> GradeComponent:
        return await self.set_published(db, component_id, True, user_id)

    async def unpublish(self, db: AsyncSession, component_id: str, user_id: Optional[str] = None) -> GradeComponent:
        return await self.set_published(db, component_id, False, user_id)


class GradeEntryService:
    """Service for scores entered against grade components"""

    async def get(self, db: AsyncSession, entry_id: str) -> GradeEntry:
        entry = await db.get(GradeEntry, entry_id)
        if not entry:
            raise NotFoundError("Grade entry not found")
        return entry

    async def enter_grades(
        self, db: AsyncSession, component_id: str, grades: List[GradeEntryIn], user_id: Optional[str] = None
    ) -> List[GradeEntry]:
        """
        Record scores for a component, one per enrollment

        Every row is validated before anything is written; an existing
        entry for the same enrollment is overwritten.
        """
        component = await grade_component_service.get(db, component_id)

        seen = set()
        for grade in grades:
            if grade.enrollment_id in seen:
                raise BadRequestError(
                    "Each enrollment may appear only once per batch",
                    details={"enrollment_id": grade.enrollment_id},
                )
            seen.add(grade.enrollment_id)

        for grade in grades:
            if grade.score < 0 or grade.score > component.max_score:
                raise BadRequestError(
                    f"Score must be between 0 and {float(component.max_score)}",
                    details={"enrollment_id": grade.enrollment_id},
                )
            enrollment = await enrollment_service.get(db, grade.enrollment_id)
            if enrollment.class_id != component.class_id:
                raise BadRequestError(
                    "Enrollment does not belong to this class", details={"enrollment_id": enrollment.id}
                )
            if enrollment.is_finalized:
                raise BadRequestError(
                    "Grades are finalized for this enrollment", details={"enrollment_id": enrollment.id}
                )

        now = datetime.utcnow()
        entries = []
        async with atomic(db):
            for grade in grades:
                entry = await db.scalar(
                    select(GradeEntry).where(
                        GradeEntry.enrollment_id == grade.enrollment_id,
                        GradeEntry.component_id == component.id,
                    )
                )
                if entry:
                    entry.score = grade.score
                    entry.remarks = grade.remarks
                    entry.entered_by_id = user_id
                    entry.updated_at = now
                else:
                    entry = GradeEntry(
                        enrollment_id=grade.enrollment_id,
                        component_id=component.id,
                        score=grade.score,
                        remarks=grade.remarks,
                        entered_by_id=user_id,
                        entered_at=now,
                    )
                    db.add(entry)
                entries.append(entry)
            await audit_service.log(
                db, AuditAction.UPDATE, "grade_component", component.id, user_id,
                new_values={"grades_entered": len(grades)},
            )

        logger.info(f"Entered {len(entries)} grades for component {component.id}")
        return entries

    async def _ensure_editable(self, db: AsyncSession, entry: GradeEntry) -> GradeComponent:
        enrollment = await enrollment_service.get(db, entry.enrollment_id)
        if enrollment.is_finalized:
            raise BadRequestError("Grades are finalized for this enrollment")
        return await grade_component_service.get(db, entry.component_id)

    async def update_grade(
        self,
        db: AsyncSession,
        entry_id: str,
        score: Decimal,
        remarks: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> GradeEntry:
        entry = await self.get(db, entry_id)
        component = await self._ensure_editable(db, entry)
        if score < 0 or score > component.max_score:
            raise BadRequestError(f"Score must be between 0 and {float(component.max_score)}")

        old_score = entry.score
        async with atomic(db):
            entry.score = score
            if remarks is not None:
                entry.remarks = remarks
            entry.entered_by_id = user_id
            await audit_service.log(
                db, AuditAction.UPDATE, "grade_entry", entry.id, user_id,
                old_values={"score": old_score}, new_values={"score": score},
            )
        return entry

    async def delete_grade(self, db: AsyncSession, entry_id: str, user_id: Optional[str] = None) -> None:
        entry = await self.get(db, entry_id)
        await self._ensure_editable(db, entry)
        async with atomic(db):
            await db.delete(entry)
            await audit_service.log(
                db, AuditAction.DELETE, "grade_entry", entry.id, user_id, old_values={"score": entry.score}
            )

    async def get_component_grades(self, db: AsyncSession, component_id: str) -> Dict[str, Any]:
        component = await grade_component_service.get(db, component_id)
        result = await db.execute(
            select(GradeEntry).where(GradeEntry.component_id == component.id).order_by(GradeEntry.entered_at)
        )
        entries = list(result.scalars().all())
        scores = [float(e.score) for e in entries]
        statistics = {
            "count": len(scores),
            "average": round(sum(scores) / len(scores), 2) if scores else None,
            "highest": max(scores) if scores else None,
            "lowest": min(scores) if scores else None,
        }
        return {"component": component, "entries": entries, "statistics": statistics}

    async def get_student_grades(self, db: AsyncSession, enrollment_id: str) -> List[Dict[str, Any]]:
        enrollment = await enrollment_service.get(db, enrollment_id)
        components = await grade_component_service.list(db, enrollment.class_id)
        entries = {
            e.component_id: e
            for e in (await db.execute(
                select(GradeEntry).where(GradeEntry.enrollment_id == enrollment.id)
            )).scalars().all()
        }
        return [
            {
                "component_id": c.id,
                "name": c.name,
                "type": c.type,
                "weight": float(c.weight),
                "max_score": float(c.max_score),
                "score": float(entries[c.id].score) if c.id in entries else None,
                "remarks": entries[c.id].remarks if c.id in entries else None,
            }
            for c in components
        ]


class GradeCalculationService:
    """Final grades, GPA and transcripts"""

    async def calculate_final_grade(self, db: AsyncSession, enrollment_id: str) -> Dict[str, Any]:
        """
        Weighted percentage of an enrollment across all class components

        A component without an entry counts as zero.
        """
        enrollment = await enrollment_service.get(db, enrollment_id)
        components = await grade_component_service.list(db, enrollment.class_id)
        scores = {
            component_id: score
            for component_id, score in (await db.execute(
                select(GradeEntry.component_id, GradeEntry.score).where(GradeEntry.enrollment_id == enrollment.id)
            )).all()
        }

        breakdown = []
        total = Decimal("0")
        for component in components:
            score = scores.get(component.id)
            percentage = (Decimal(score) / component.max_score * HUNDRED) if score is not None else Decimal("0")
            weighted = percentage * component.weight / HUNDRED
            total += weighted
            breakdown.append({
                "component_id": component.id,
                "name": component.name,
                "weight": float(component.weight),
                "score": float(score) if score is not None else None,
                "max_score": float(component.max_score),
                "percentage": float(to_money(percentage)),
                "weighted": float(to_money(weighted)),
            })

        total = to_money(total)
        letter = await grade_scale_service.calculate_letter_grade(db, total)
        return {
            "enrollment_id": enrollment.id,
            "student_id": enrollment.student_id,
            "total_percentage": total,
            "letter": letter["letter"],
            "grade_points": letter["grade_points"],
            "components": breakdown,
        }

    async def _registered(self, db: AsyncSession, class_id: str) -> List[Enrollment]:
        result = await db.execute(
            select(Enrollment).where(
                Enrollment.class_id == class_id, Enrollment.status == EnrollmentStatus.REGISTERED
            )
        )
        return list(result.scalars().all())

    async def calculate_class_grades(self, db: AsyncSession, class_id: str) -> List[Dict[str, Any]]:
        await academic_service.get_class(db, class_id)
        results = [await self.calculate_final_grade(db, e.id) for e in await self._registered(db, class_id)]
        return sorted(results, key=lambda r: r["total_percentage"], reverse=True)

    async def finalize_class_grades(self, db: AsyncSession, class_id: str, user_id: Optional[str] = None) -> int:
        await academic_service.get_class(db, class_id)
        validation = await grade_component_service.validate_weights(db, class_id)
        if not validation["components"]:
            raise BadRequestError("Class has no grade components")

        enrollments = await self._registered(db, class_id)
        results = {r["enrollment_id"]: r for r in [await self.calculate_final_grade(db, e.id) for e in enrollments]}
        now = datetime.utcnow()
        async with atomic(db):
            for enrollment in enrollments:
                result = results[enrollment.id]
                enrollment.final_percentage = result["total_percentage"]
                enrollment.final_grade = result["letter"]
                enrollment.grade_points = result["grade_points"]
                enrollment.is_finalized = True
                enrollment.finalized_at = now
                enrollment.finalized_by_id = user_id
            await audit_service.log(
                db, AuditAction.UPDATE, "class", class_id, user_id,
                new_values={"grades_finalized": len(enrollments)},
            )

        logger.info(f"Finalized grades for {len(enrollments)} enrollments in class {class_id}")
        return len(enrollments)

    async def unfinalize_class_grades(
        self, db: AsyncSession, class_id: str, reason: str, user_id: Optional[str] = None
    ) -> int:
        await academic_service.get_class(db, class_id)
        async with atomic(db):
            result = await db.execute(
                update(Enrollment)
                .where(
                    Enrollment.class_id == class_id,
                    Enrollment.status == EnrollmentStatus.REGISTERED,
                    Enrollment.is_finalized.is_(True),
                )
                .values(is_finalized=False, finalized_at=None, finalized_by_id=None)
                .execution_options(synchronize_session="fetch")
            )
            await audit_service.log(
                db, AuditAction.UPDATE, "class", class_id, user_id,
                new_values={"grades_unfinalized": result.rowcount, "reason": reason},
            )
        return result.rowcount

    async def complete_class(self, db: AsyncSession, class_id: str, user_id: Optional[str] = None) -> Dict[str, int]:
        await academic_service.get_class(db, class_id)
        enrollments = [e for e in await self._registered(db, class_id) if e.is_finalized]
        counts = {"completed": 0, "failed": 0}
        async with atomic(db):
            for enrollment in enrollments:
                if not enrollment.grade_points:
                    enrollment.status = EnrollmentStatus.FAILED
                    counts["failed"] += 1
                else:
                    enrollment.status = EnrollmentStatus.COMPLETED
                    counts["completed"] += 1
            await audit_service.log(db, AuditAction.UPDATE, "class", class_id, user_id, new_values=counts)
        return counts

    async def _graded_rows(self, db: AsyncSession, student_id: str, statuses, semester_id: Optional[str] = None):
        query = (
            select(Course.credits, Enrollment.grade_points)
            .join(CourseClass, CourseClass.id == Enrollment.class_id)
            .join(Course, Course.id == CourseClass.course_id)
            .where(
                Enrollment.student_id == student_id,
                Enrollment.status.in_(statuses),
                Enrollment.final_grade.is_not(None),
            )
        )
        if semester_id:
            query = query.where(Enrollment.semester_id == semester_id)
        return (await db.execute(query)).all()

    async def calculate_semester_gpa(self, db: AsyncSession, student_id: str, semester_id: str) -> Decimal:
        rows = await self._graded_rows(
            db, student_id, (EnrollmentStatus.COMPLETED, EnrollmentStatus.REGISTERED), semester_id
        )
        return credit_weighted_gpa(rows)

    async def calculate_cgpa(self, db: AsyncSession, student_id: str) -> Decimal:
        return credit_weighted_gpa(await self._graded_rows(db, student_id, (EnrollmentStatus.COMPLETED,)))

    async def get_gpa_details(
        self, db: AsyncSession, student_id: str, semester_id: Optional[str] = None
    ) -> Dict[str, Any]:
        student = await student_service.get(db, student_id)
        completed = await self._graded_rows(db, student.id, (EnrollmentStatus.COMPLETED,))
        details = {
            "student_id": student.id,
            "cgpa": float(credit_weighted_gpa(completed)),
            "total_credits": sum(credits for credits, _ in completed),
            "semester_gpa": None,
            "semester_credits": None,
        }
        if semester_id:
            rows = await self._graded_rows(
                db, student.id, (EnrollmentStatus.COMPLETED, EnrollmentStatus.REGISTERED), semester_id
            )
            details["semester_gpa"] = float(credit_weighted_gpa(rows))
            details["semester_credits"] = sum(credits for credits, _ in rows)
        return details

    async def generate_transcript(self, db: AsyncSession, student_id: str, official: bool = False) -> Dict[str, Any]:
        student = await student_service.get(db, student_id)
        if official and await hold_service.has_transcript_hold(db, student.id):
            raise BadRequestError("Student has holds blocking transcript generation")

        result = await db.execute(
            select(Enrollment, Semester, Course)
            .join(Semester, Semester.id == Enrollment.semester_id)
            .join(CourseClass, CourseClass.id == Enrollment.class_id)
            .join(Course, Course.id == CourseClass.course_id)
            .where(
                Enrollment.student_id == student.id,
                Enrollment.status == EnrollmentStatus.COMPLETED,
                Enrollment.final_grade.is_not(None),
            )
            .order_by(Semester.start_date, Course.code)
        )

        semesters: Dict[str, Dict[str, Any]] = {}
        for enrollment, semester, course in result.all():
            block = semesters.setdefault(semester.id, {
                "id": semester.id,
                "name": semester.name,
                "courses": [],
                "rows": [],
            })
            points = course.credits * Decimal(enrollment.grade_points or 0)
            block["courses"].append({
                "code": course.code,
                "name": course.name,
                "credits": course.credits,
                "grade": enrollment.final_grade,
                "points": float(to_money(points)),
            })
            block["rows"].append((course.credits, enrollment.grade_points))

        all_rows = []
        blocks = []
        for block in semesters.values():
            rows = block.pop("rows")
            all_rows.extend(rows)
            block["semester_credits"] = sum(credits for credits, _ in rows)
            block["semester_gpa"] = float(credit_weighted_gpa(rows))
            blocks.append(block)

        return {
            "student": {
                "id": student.id,
                "student_id": student.student_id,
                "name": student.full_name,
                "program_id": student.program_id,
                "admission_date": student.admission_date,
            },
            "semesters": blocks,
            "cumulative_credits": sum(credits for credits, _ in all_rows),
            "cumulative_gpa": float(credit_weighted_gpa(all_rows)),
            "generated_at": datetime.utcnow(),
            "is_official": official,
        }


grade_scale_service = GradeScaleService()
grade_component_service = GradeComponentService()
grade_entry_service = GradeEntryService()
grade_calculation_service = GradeCalculationService()
