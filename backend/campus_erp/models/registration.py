"""
Registration Models
- Student holds (registration / grade / transcript blocks)
- Registration windows per semester
- Enrollments of students into classes, with final grades
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Enum as SQLEnum, Text, ForeignKey, Numeric,
)
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, generate_uuid


class HoldType(str, enum.Enum):
    FINANCIAL = "financial"
    ACADEMIC = "academic"
    LIBRARY = "library"
    DISCIPLINARY = "disciplinary"
    ADMINISTRATIVE = "administrative"


class RegistrationPeriodType(str, enum.Enum):
    REGULAR = "regular"
    LATE = "late"
    DROP_ADD = "drop_add"


class EnrollmentStatus(str, enum.Enum):
    REGISTERED = "registered"
    DROPPED = "dropped"
    COMPLETED = "completed"
    FAILED = "failed"


class Hold(Base):
    """Administrative block on a student's record; active while released_at is null"""
    __tablename__ = "holds"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    type = Column(SQLEnum(HoldType), nullable=False)
    reason = Column(Text, nullable=False)

    blocks_registration = Column(Boolean, default=True, nullable=False)
    blocks_grades = Column(Boolean, default=False, nullable=False)
    blocks_transcript = Column(Boolean, default=False, nullable=False)

    placed_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    placed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    released_at = Column(DateTime, nullable=True)
    released_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    release_reason = Column(Text, nullable=True)

    @property
    def is_active(self) -> bool:
        return self.released_at is None


class RegistrationPeriod(Base):
    __tablename__ = "registration_periods"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    semester_id = Column(GUID, ForeignKey("semesters.id"), nullable=False, index=True)
    type = Column(SQLEnum(RegistrationPeriodType), default=RegistrationPeriodType.REGULAR, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(GUID, ForeignKey("classes.id"), nullable=False, index=True)
    semester_id = Column(GUID, ForeignKey("semesters.id"), nullable=False, index=True)

    status = Column(SQLEnum(EnrollmentStatus), default=EnrollmentStatus.REGISTERED, nullable=False, index=True)
    enrolled_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    dropped_at = Column(DateTime, nullable=True)
    drop_reason = Column(Text, nullable=True)

    # Final grade (set when the class grades are finalized)
    final_percentage = Column(Numeric(5, 2), nullable=True)
    final_grade = Column(String(3), nullable=True)
    grade_points = Column(Numeric(3, 2), nullable=True)
    is_finalized = Column(Boolean, default=False, nullable=False)
    finalized_at = Column(DateTime, nullable=True)
    finalized_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)


class PrerequisiteOverride(Base):
    """Permission for a student to skip a course's prerequisites"""
    __tablename__ = "prerequisite_overrides"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=False, index=True)
    course_id = Column(GUID, ForeignKey("courses.id"), nullable=False)
    reason = Column(Text, nullable=False)
    approved_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
