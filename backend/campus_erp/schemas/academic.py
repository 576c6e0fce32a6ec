"""
Academic Structure Schemas - faculties, departments, programs, courses,
semesters and classes
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime, date
import re

from campus_erp.models.academic import ProgramType, ClassStatus

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class CodedModel(BaseModel):
    """Base for payloads carrying an upper-cased unique code"""

    @field_validator('code', check_fields=False)
    @classmethod
    def normalize_code(cls, v):
        return v.upper().strip() if isinstance(v, str) else v


# ============== Faculty Schemas ==============

class FacultyCreate(CodedModel):
    name: str = Field(..., min_length=2, max_length=255)
    code: str = Field(..., min_length=2, max_length=20, description="Unique faculty code")
    description: Optional[str] = None
    dean_id: Optional[str] = Field(None, description="Employee ID of the dean")


class FacultyUpdate(CodedModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    code: Optional[str] = Field(None, min_length=2, max_length=20)
    description: Optional[str] = None
    dean_id: Optional[str] = None


class FacultyResponse(BaseModel):
    id: str
    name: str
    code: str
    description: Optional[str] = None
    dean_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Department Schemas ==============

class DepartmentCreate(CodedModel):
    """Schema for creating a department"""
    name: str = Field(..., min_length=2, max_length=255)
    name_local: Optional[str] = Field(None, max_length=255, description="Name in the local language")
    code: str = Field(..., min_length=2, max_length=20, description="Unique department code")
    description: Optional[str] = None
    faculty_id: str = Field(..., description="Owning faculty")
    hod_id: Optional[str] = Field(None, description="Employee ID of the head of department")


class DepartmentUpdate(CodedModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    name_local: Optional[str] = Field(None, max_length=255)
    code: Optional[str] = Field(None, min_length=2, max_length=20)
    description: Optional[str] = None
    faculty_id: Optional[str] = None
    hod_id: Optional[str] = None


class DepartmentResponse(BaseModel):
    id: str
    name: str
    name_local: Optional[str] = None
    code: str
    description: Optional[str] = None
    faculty_id: str
    hod_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DepartmentStatistics(BaseModel):
    department_id: str
    programs: int
    courses: int
    employees: int
    students: int


# ============== Program Schemas ==============

class ProgramCreate(CodedModel):
    name: str = Field(..., min_length=2, max_length=255)
    code: str = Field(..., min_length=2, max_length=20)
    type: ProgramType
    duration_years: int = Field(4, ge=1, le=10)
    total_credits: int = Field(0, ge=0)
    department_id: str


class ProgramUpdate(CodedModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    code: Optional[str] = Field(None, min_length=2, max_length=20)
    type: Optional[ProgramType] = None
    duration_years: Optional[int] = Field(None, ge=1, le=10)
    total_credits: Optional[int] = Field(None, ge=0)
    department_id: Optional[str] = None


class ProgramResponse(BaseModel):
    id: str
    name: str
    code: str
    type: ProgramType
    duration_years: int
    total_credits: int
    department_id: str
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Course Schemas ==============

class CourseCreate(CodedModel):
    name: str = Field(..., min_length=2, max_length=255)
    code: str = Field(..., min_length=2, max_length=20)
    credits: int = Field(3, ge=0, le=12)
    description: Optional[str] = None
    department_id: str
    prerequisite_ids: List[str] = Field(default_factory=list)


class CourseUpdate(CodedModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    code: Optional[str] = Field(None, min_length=2, max_length=20)
    credits: Optional[int] = Field(None, ge=0, le=12)
    description: Optional[str] = None
    department_id: Optional[str] = None


class CourseResponse(BaseModel):
    id: str
    name: str
    code: str
    credits: int
    description: Optional[str] = None
    department_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class PrerequisiteRequest(BaseModel):
    prerequisite_id: str


# ============== Semester Schemas ==============

class SemesterCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    start_date: date
    end_date: date
    is_current: bool = False

    @model_validator(mode='after')
    def check_dates(self):
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class SemesterUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: Optional[bool] = None


class SemesterResponse(BaseModel):
    id: str
    name: str
    start_date: date
    end_date: date
    is_current: bool

    class Config:
        from_attributes = True


# ============== Class Schemas ==============

class ScheduleSlot(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Monday")
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    room: Optional[str] = Field(None, max_length=50)

    @field_validator('start_time', 'end_time')
    @classmethod
    def check_time_format(cls, v):
        if not TIME_PATTERN.match(v):
            raise ValueError("time must be in HH:MM format")
        return v

    @model_validator(mode='after')
    def check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class ScheduleSlotResponse(BaseModel):
    day_of_week: int
    start_time: str
    end_time: str
    room: Optional[str] = None

    class Config:
        from_attributes = True


class ClassCreate(BaseModel):
    course_id: str
    semester_id: str
    lecturer_id: Optional[str] = None
    section: str = Field("A", min_length=1, max_length=10)
    capacity: int = Field(40, ge=1, le=1000)
    schedules: List[ScheduleSlot] = Field(default_factory=list)


class ClassUpdate(BaseModel):
    lecturer_id: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1, le=1000)
    status: Optional[ClassStatus] = None
    schedules: Optional[List[ScheduleSlot]] = None


class ClassResponse(BaseModel):
    id: str
    course_id: str
    semester_id: str
    lecturer_id: Optional[str] = None
    section: str
    capacity: int
    enrolled_count: int
    available_seats: int
    status: ClassStatus
    schedules: List[ScheduleSlotResponse] = []

    class Config:
        from_attributes = True
