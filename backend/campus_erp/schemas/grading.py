"""
Grading Schemas - grade scales, components, entries, results and exams
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
import datetime as dt
from decimal import Decimal

from campus_erp.models.grading import GradeComponentType, ExamType, ExamStatus
from campus_erp.schemas.academic import TIME_PATTERN


# ============== Grade Scale Schemas ==============

class GradeDefinitionIn(BaseModel):
    letter: str = Field(..., min_length=1, max_length=3)
    min_percentage: Decimal = Field(..., ge=0, le=100)
    max_percentage: Decimal = Field(..., ge=0, le=100)
    grade_points: Decimal = Field(..., ge=0, le=5)
    description: Optional[str] = Field(None, max_length=100)

    @model_validator(mode='after')
    def check_range(self):
        if self.min_percentage > self.max_percentage:
            raise ValueError("min_percentage must not exceed max_percentage")
        return self


class GradeScaleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    is_default: bool = False
    definitions: List[GradeDefinitionIn] = Field(..., min_length=1)


class GradeScaleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    definitions: Optional[List[GradeDefinitionIn]] = Field(None, min_length=1)


class GradeDefinitionResponse(BaseModel):
    letter: str
    min_percentage: float
    max_percentage: float
    grade_points: float
    description: Optional[str] = None

    class Config:
        from_attributes = True


class GradeScaleResponse(BaseModel):
    id: str
    name: str
    is_default: bool
    definitions: List[GradeDefinitionResponse] = []

    class Config:
        from_attributes = True


class LetterGrade(BaseModel):
    percentage: float
    letter: str
    grade_points: float


# ============== Grade Component Schemas ==============

class GradeComponentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: GradeComponentType = GradeComponentType.OTHER
    weight: Decimal = Field(..., gt=0, le=100, description="Percent of the final grade")
    max_score: Decimal = Field(Decimal("100"), gt=0, le=1000)


class GradeComponentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[GradeComponentType] = None
    weight: Optional[Decimal] = Field(None, gt=0, le=100)
    max_score: Optional[Decimal] = Field(None, gt=0, le=1000)


class GradeComponentResponse(BaseModel):
    id: str
    class_id: str
    name: str
    type: GradeComponentType
    weight: float
    max_score: float
    is_published: bool

    class Config:
        from_attributes = True


class WeightValidation(BaseModel):
    is_valid: bool
    total_weight: float
    components: int


class CopyComponentsRequest(BaseModel):
    source_class_id: str


# ============== Grade Entry Schemas ==============

class GradeEntryIn(BaseModel):
    enrollment_id: str
    score: Decimal = Field(..., ge=0)
    remarks: Optional[str] = Field(None, max_length=500)


class GradeEntryBatch(BaseModel):
    grades: List[GradeEntryIn] = Field(..., min_length=1)


class GradeEntryUpdate(BaseModel):
    score: Decimal = Field(..., ge=0)
    remarks: Optional[str] = Field(None, max_length=500)


class GradeEntryResponse(BaseModel):
    id: str
    enrollment_id: str
    component_id: str
    score: float
    remarks: Optional[str] = None
    entered_at: datetime

    class Config:
        from_attributes = True


class ComponentGradeStatistics(BaseModel):
    count: int
    average: Optional[float] = None
    highest: Optional[float] = None
    lowest: Optional[float] = None


class ComponentGrades(BaseModel):
    component: GradeComponentResponse
    entries: List[GradeEntryResponse]
    statistics: ComponentGradeStatistics


class UnfinalizeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


# ============== Exam Schemas ==============

class ExamCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=200)
    type: ExamType
    date: dt.date
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    room: str = Field(..., min_length=1, max_length=50)
    instructions: Optional[str] = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def check_time_format(cls, v):
        if not TIME_PATTERN.match(v):
            raise ValueError("time must be in HH:MM format")
        return v


class ExamUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    type: Optional[ExamType] = None
    date: Optional[dt.date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    room: Optional[str] = Field(None, min_length=1, max_length=50)
    instructions: Optional[str] = None
    status: Optional[ExamStatus] = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def check_time_format(cls, v):
        if v is not None and not TIME_PATTERN.match(v):
            raise ValueError("time must be in HH:MM format")
        return v


class ExamResponse(BaseModel):
    id: str
    class_id: str
    title: str
    type: ExamType
    date: dt.date
    start_time: str
    end_time: str
    room: str
    instructions: Optional[str] = None
    status: ExamStatus
    cancel_reason: Optional[str] = None

    class Config:
        from_attributes = True
