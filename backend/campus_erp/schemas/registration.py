"""
Registration Schemas - holds, registration periods and enrollments
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime, timezone

from campus_erp.models.registration import HoldType, RegistrationPeriodType, EnrollmentStatus


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ============== Hold Schemas ==============

class HoldCreate(BaseModel):
    student_id: str
    type: HoldType
    reason: str = Field(..., min_length=1, max_length=2000)
    blocks_registration: bool = True
    blocks_grades: bool = False
    blocks_transcript: bool = False


class HoldUpdate(BaseModel):
    reason: Optional[str] = Field(None, min_length=1, max_length=2000)
    blocks_registration: Optional[bool] = None
    blocks_grades: Optional[bool] = None
    blocks_transcript: Optional[bool] = None


class HoldResponse(BaseModel):
    id: str
    student_id: str
    type: HoldType
    reason: str
    blocks_registration: bool
    blocks_grades: bool
    blocks_transcript: bool
    is_active: bool
    placed_by_id: Optional[str] = None
    placed_at: datetime
    released_at: Optional[datetime] = None
    release_reason: Optional[str] = None

    class Config:
        from_attributes = True


# ============== Registration Period Schemas ==============

class RegistrationPeriodCreate(BaseModel):
    semester_id: str
    type: RegistrationPeriodType = RegistrationPeriodType.REGULAR
    start_date: datetime
    end_date: datetime
    is_active: bool = True

    @field_validator('start_date', 'end_date')
    @classmethod
    def to_naive_utc(cls, v):
        return _naive_utc(v)

    @model_validator(mode='after')
    def check_dates(self):
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class RegistrationPeriodUpdate(BaseModel):
    type: Optional[RegistrationPeriodType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator('start_date', 'end_date')
    @classmethod
    def to_naive_utc(cls, v):
        return _naive_utc(v)


class RegistrationPeriodResponse(BaseModel):
    id: str
    semester_id: str
    type: RegistrationPeriodType
    start_date: datetime
    end_date: datetime
    is_active: bool

    class Config:
        from_attributes = True


class RegistrationStatus(BaseModel):
    is_open: bool
    period: Optional[RegistrationPeriodResponse] = None
    message: str


# ============== Enrollment Schemas ==============

class EnrollmentCreate(BaseModel):
    student_id: str
    class_id: str
    override_prerequisites: bool = False
    override_reason: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode='after')
    def check_override_reason(self):
        if self.override_prerequisites and not self.override_reason:
            raise ValueError("override_reason is required when overriding prerequisites")
        return self


class BulkEnrollRequest(BaseModel):
    class_id: str
    student_ids: List[str] = Field(..., min_length=1, max_length=500)


class DropRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class EnrollmentResponse(BaseModel):
    id: str
    student_id: str
    class_id: str
    semester_id: str
    status: EnrollmentStatus
    enrolled_at: datetime
    dropped_at: Optional[datetime] = None
    drop_reason: Optional[str] = None
    final_percentage: Optional[float] = None
    final_grade: Optional[str] = None
    grade_points: Optional[float] = None
    is_finalized: bool

    class Config:
        from_attributes = True


class BulkEnrollResult(BaseModel):
    successful: List[str]
    failed: List[dict]
