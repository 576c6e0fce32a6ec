"""
Academic Structure Models
- Faculty (school) -> Department -> Program / Course
- Semester and the classes (course offerings) taught in it
"""

from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Enum as SQLEnum, Integer, Text,
    ForeignKey, Table, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, generate_uuid


class ProgramType(str, enum.Enum):
    CERTIFICATE = "certificate"
    DIPLOMA = "diploma"
    BACHELOR = "bachelor"
    MASTER = "master"


class ClassStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"


course_prerequisites = Table(
    "course_prerequisites",
    Base.metadata,
    Column("course_id", GUID, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("prerequisite_id", GUID, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
)


class Faculty(Base):
    """Faculty / school grouping several departments"""
    __tablename__ = "faculties"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    dean_id = Column(GUID, ForeignKey("employees.id", use_alter=True), nullable=True)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Faculty {self.code}>"


class Department(Base):
    """Academic department"""
    __tablename__ = "departments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    name_local = Column(String(255), nullable=True)  # name in the local language
    code = Column(String(20), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    faculty_id = Column(GUID, ForeignKey("faculties.id"), nullable=False, index=True)
    hod_id = Column(GUID, ForeignKey("employees.id", use_alter=True), nullable=True)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Department {self.code}>"


class Program(Base):
    """Degree / diploma program offered by a department"""
    __tablename__ = "programs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    type = Column(SQLEnum(ProgramType), nullable=False)
    duration_years = Column(Integer, default=4, nullable=False)
    total_credits = Column(Integer, default=0, nullable=False)

    department_id = Column(GUID, ForeignKey("departments.id"), nullable=False, index=True)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Program {self.code}>"


class Course(Base):
    """Catalogue course"""
    __tablename__ = "courses"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    credits = Column(Integer, default=3, nullable=False)
    description = Column(Text, nullable=True)

    department_id = Column(GUID, ForeignKey("departments.id"), nullable=False, index=True)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Course {self.code}>"


class Semester(Base):
    """Academic term"""
    __tablename__ = "semesters"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, nullable=False)  # e.g. "Fall 2026"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<Semester {self.name}>"


class CourseClass(Base):
    """A course offered in a semester (one section)"""
    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("course_id", "semester_id", "section", name="uq_class_course_semester_section"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    course_id = Column(GUID, ForeignKey("courses.id"), nullable=False, index=True)
    semester_id = Column(GUID, ForeignKey("semesters.id"), nullable=False, index=True)
    lecturer_id = Column(GUID, ForeignKey("employees.id"), nullable=True)

    section = Column(String(10), default="A", nullable=False)
    capacity = Column(Integer, default=40, nullable=False)
    enrolled_count = Column(Integer, default=0, nullable=False)
    status = Column(SQLEnum(ClassStatus), default=ClassStatus.OPEN, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    schedules = relationship(
        "ClassSchedule",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ClassSchedule.day_of_week",
    )

    @property
    def available_seats(self) -> int:
        return max(0, self.capacity - self.enrolled_count)

    def __repr__(self):
        return f"<CourseClass {self.course_id} {self.section}>"


class ClassSchedule(Base):
    """Weekly meeting slot of a class"""
    __tablename__ = "class_schedules"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    class_id = Column(GUID, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Monday
    start_time = Column(String(5), nullable=False)  # "HH:MM"
    end_time = Column(String(5), nullable=False)
    room = Column(String(50), nullable=True)
