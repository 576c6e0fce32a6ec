"""
Grading Models
- Grade scales and their letter definitions
- Weighted grade components per class and the scores entered against them
- Scheduled exams
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Enum as SQLEnum, Text,
    ForeignKey, UniqueConstraint, Numeric,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, generate_uuid


class GradeComponentType(str, enum.Enum):
    ASSIGNMENT = "assignment"
    QUIZ = "quiz"
    MIDTERM = "midterm"
    FINAL = "final"
    PROJECT = "project"
    ATTENDANCE = "attendance"
    OTHER = "other"


class ExamType(str, enum.Enum):
    QUIZ = "quiz"
    MIDTERM = "midterm"
    FINAL = "final"
    PRACTICAL = "practical"


class ExamStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GradeScale(Base):
    __tablename__ = "grade_scales"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    definitions = relationship(
        "GradeDefinition",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GradeDefinition.min_percentage.desc()",
    )


class GradeDefinition(Base):
    """Letter grade band of a scale"""
    __tablename__ = "grade_definitions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    scale_id = Column(GUID, ForeignKey("grade_scales.id", ondelete="CASCADE"), nullable=False, index=True)
    letter = Column(String(3), nullable=False)
    min_percentage = Column(Numeric(5, 2), nullable=False)
    max_percentage = Column(Numeric(5, 2), nullable=False)
    grade_points = Column(Numeric(3, 2), nullable=False)
    description = Column(String(100), nullable=True)


class GradeComponent(Base):
    """Weighted assessment of a class (weights of a class sum to at most 100)"""
    __tablename__ = "grade_components"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    class_id = Column(GUID, ForeignKey("classes.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    type = Column(SQLEnum(GradeComponentType), default=GradeComponentType.OTHER, nullable=False)
    weight = Column(Numeric(5, 2), nullable=False)  # percent of final grade
    max_score = Column(Numeric(6, 2), nullable=False, default=100)
    is_published = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class GradeEntry(Base):
    __tablename__ = "grade_entries"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "component_id", name="uq_grade_entry"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    enrollment_id = Column(GUID, ForeignKey("enrollments.id"), nullable=False, index=True)
    component_id = Column(GUID, ForeignKey("grade_components.id"), nullable=False, index=True)
    score = Column(Numeric(6, 2), nullable=False)
    remarks = Column(Text, nullable=True)

    entered_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    entered_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Exam(Base):
    __tablename__ = "exams"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    class_id = Column(GUID, ForeignKey("classes.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    type = Column(SQLEnum(ExamType), nullable=False)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)  # "HH:MM"
    end_time = Column(String(5), nullable=False)
    room = Column(String(50), nullable=False)
    instructions = Column(Text, nullable=True)

    status = Column(SQLEnum(ExamStatus), default=ExamStatus.SCHEDULED, nullable=False)
    cancel_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
