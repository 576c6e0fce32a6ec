"""
Admission Models
- Applications submitted by prospective students and their review state
"""

from sqlalchemy import Column, String, DateTime, Date, Integer, Text, Enum as SQLEnum, ForeignKey
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, generate_uuid


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    ENROLLED = "enrolled"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"


class EducationLevel(str, enum.Enum):
    SECONDARY = "secondary"
    DIPLOMA = "diploma"
    BACHELOR = "bachelor"
    MASTER = "master"


class AdmissionApplication(Base):
    """Application for a place in a program"""
    __tablename__ = "admission_applications"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    application_no = Column(String(20), unique=True, nullable=False, index=True)  # e.g. APP-2026-0001

    # Applicant
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(SQLEnum(Gender), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), nullable=False)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    nationality = Column(String(100), nullable=True)

    emergency_contact_name = Column(String(200), nullable=True)
    emergency_contact_phone = Column(String(20), nullable=True)
    emergency_contact_relation = Column(String(100), nullable=True)

    # Prior education
    previous_education_level = Column(SQLEnum(EducationLevel), nullable=False)
    previous_school_name = Column(String(200), nullable=True)
    graduation_year = Column(Integer, nullable=True)

    program_id = Column(GUID, ForeignKey("programs.id"), nullable=False, index=True)

    # Review
    status = Column(SQLEnum(ApplicationStatus), default=ApplicationStatus.PENDING, nullable=False, index=True)
    reviewed_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_remarks = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Set once the applicant becomes a student
    enrolled_at = Column(DateTime, nullable=True)
    student_id = Column(GUID, ForeignKey("students.id"), nullable=True, unique=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.middle_name, self.last_name) if part)

    def __repr__(self):
        return f"<AdmissionApplication {self.application_no} ({self.status.value})>"
