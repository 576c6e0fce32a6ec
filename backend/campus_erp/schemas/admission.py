"""
Admission Schemas - applications and their review
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Dict, List
from datetime import datetime, date

from campus_erp.models.admission import ApplicationStatus, Gender, EducationLevel


class ApplicationCreate(BaseModel):
    """Schema for submitting an application"""
    first_name: str = Field(..., min_length=1, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    gender: Gender
    email: EmailStr
    phone: str = Field(..., min_length=5, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    nationality: Optional[str] = Field(None, max_length=100)
    emergency_contact_name: Optional[str] = Field(None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)
    emergency_contact_relation: Optional[str] = Field(None, max_length=100)
    previous_education_level: EducationLevel
    previous_school_name: Optional[str] = Field(None, max_length=200)
    graduation_year: Optional[int] = Field(None, ge=1950, le=2100)
    program_id: str


class ApplicationUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    middle_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, min_length=5, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    emergency_contact_name: Optional[str] = Field(None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)
    emergency_contact_relation: Optional[str] = Field(None, max_length=100)
    previous_school_name: Optional[str] = Field(None, max_length=200)
    graduation_year: Optional[int] = Field(None, ge=1950, le=2100)
    program_id: Optional[str] = None


class ApplicationReview(BaseModel):
    status: ApplicationStatus
    remarks: Optional[str] = Field(None, max_length=2000)


class ApplicationResponse(BaseModel):
    id: str
    application_no: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    full_name: str
    date_of_birth: date
    gender: Gender
    email: str
    phone: str
    city: Optional[str] = None
    nationality: Optional[str] = None
    previous_education_level: EducationLevel
    previous_school_name: Optional[str] = None
    graduation_year: Optional[int] = None
    program_id: str
    status: ApplicationStatus
    reviewed_by_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_remarks: Optional[str] = None
    rejection_reason: Optional[str] = None
    enrolled_at: Optional[datetime] = None
    student_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class EnrollmentResult(BaseModel):
    """Returned once; the temporary password is not stored in clear"""
    application_no: str
    student_id: str
    student_number: str
    user_id: str
    email: str
    temporary_password: str


class MonthlyCount(BaseModel):
    month: int
    count: int


class AdmissionStatistics(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_program: Dict[str, int]
    monthly_trend: List[MonthlyCount]
