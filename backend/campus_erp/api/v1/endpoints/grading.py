"""
Grading API

Grade scales, weighted components per class, score entry, final grade
calculation/finalization, GPA and transcripts.

Lecturers enter and finalize grades; scales are managed by HOD.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.common import ApiResponse, MessageResponse
from campus_erp.schemas.grading import (
    GradeScaleCreate,
    GradeScaleUpdate,
    GradeScaleResponse,
    LetterGrade,
    GradeComponentCreate,
    GradeComponentUpdate,
    GradeComponentResponse,
    WeightValidation,
    CopyComponentsRequest,
    GradeEntryBatch,
    GradeEntryUpdate,
    GradeEntryResponse,
    ComponentGrades,
    UnfinalizeRequest,
)
from campus_erp.services.grading_service import (
    grade_scale_service,
    grade_component_service,
    grade_entry_service,
    grade_calculation_service,
)
from campus_erp.services.student_service import student_service
from campus_erp.utils.responses import success

router = APIRouter()

manage_scales = require_roles(UserRole.HOD)
grading_staff = require_roles(UserRole.LECTURER, UserRole.HOD)


async def _ensure_own_student(db: AsyncSession, current_user: User, student_id: str) -> None:
    if current_user.role != UserRole.STUDENT:
        return
    own = await student_service.get_by_user(db, current_user.id)
    if not own or own.id != student_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only view your own grades")


# ==================== Grade Scales ====================

@router.post("/scales", response_model=ApiResponse[GradeScaleResponse], status_code=status.HTTP_201_CREATED)
async def create_scale(
    data: GradeScaleCreate,
    current_user: User = Depends(manage_scales),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_scale_service.create(db, data, current_user.id), "Grade scale created")


@router.get("/scales", response_model=ApiResponse[List[GradeScaleResponse]])
async def list_scales(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_scale_service.list(db))


@router.get("/scales/letter", response_model=ApiResponse[LetterGrade])
async def letter_for_percentage(
    percentage: float = Query(..., ge=0, le=100),
    scale_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_scale_service.calculate_letter_grade(db, percentage, scale_id))


@router.get("/scales/{scale_id}", response_model=ApiResponse[GradeScaleResponse])
async def get_scale(
    scale_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_scale_service.get(db, scale_id))


@router.patch("/scales/{scale_id}", response_model=ApiResponse[GradeScaleResponse])
async def update_scale(
    scale_id: str,
    data: GradeScaleUpdate,
    current_user: User = Depends(manage_scales),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_scale_service.update(db, scale_id, data, current_user.id), "Grade scale updated")


@router.delete("/scales/{scale_id}", response_model=MessageResponse)
async def delete_scale(
    scale_id: str,
    current_user: User = Depends(manage_scales),
    db: AsyncSession = Depends(get_db)
):
    await grade_scale_service.delete(db, scale_id, current_user.id)
    return {"success": True, "message": "Grade scale deleted"}


@router.post("/scales/{scale_id}/default", response_model=ApiResponse[GradeScaleResponse])
async def set_default_scale(
    scale_id: str,
    current_user: User = Depends(manage_scales),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_scale_service.set_default(db, scale_id, current_user.id), "Default grade scale set")


# ==================== Components ====================

@router.post(
    "/classes/{class_id}/components",
    response_model=ApiResponse[GradeComponentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_component(
    class_id: str,
    data: GradeComponentCreate,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_component_service.create(db, class_id, data, current_user.id), "Component created")


@router.get("/classes/{class_id}/components", response_model=ApiResponse[List[GradeComponentResponse]])
async def list_components(
    class_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_component_service.list(db, class_id))


@router.get("/classes/{class_id}/components/validate", response_model=ApiResponse[WeightValidation])
async def validate_weights(
    class_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_component_service.validate_weights(db, class_id))


@router.post(
    "/classes/{class_id}/components/copy",
    response_model=ApiResponse[List[GradeComponentResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def copy_components(
    class_id: str,
    data: CopyComponentsRequest,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    components = await grade_component_service.copy_from_class(db, data.source_class_id, class_id, current_user.id)
    return success(components, f"Copied {len(components)} components")


@router.patch("/components/{component_id}", response_model=ApiResponse[GradeComponentResponse])
async def update_component(
    component_id: str,
    data: GradeComponentUpdate,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_component_service.update(db, component_id, data, current_user.id), "Component updated")


@router.delete("/components/{component_id}", response_model=MessageResponse)
async def delete_component(
    component_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    await grade_component_service.delete(db, component_id, current_user.id)
    return {"success": True, "message": "Component deleted"}


@router.post("/components/{component_id}/publish", response_model=ApiResponse[GradeComponentResponse])
async def publish_component(
    component_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_component_service.publish(db, component_id, current_user.id), "Component published")


@router.post("/components/{component_id}/unpublish", response_model=ApiResponse[GradeComponentResponse])
async def unpublish_component(
    component_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_component_service.unpublish(db, component_id, current_user.id), "Component unpublished")


# ==================== Entries ====================

@router.post("/components/{component_id}/grades", response_model=ApiResponse[List[GradeEntryResponse]])
async def enter_grades(
    component_id: str,
    data: GradeEntryBatch,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    entries = await grade_entry_service.enter_grades(db, component_id, data.grades, current_user.id)
    return success(entries, f"{len(entries)} grades saved")


@router.get("/components/{component_id}/grades", response_model=ApiResponse[ComponentGrades])
async def get_component_grades(
    component_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_entry_service.get_component_grades(db, component_id))


@router.patch("/entries/{entry_id}", response_model=ApiResponse[GradeEntryResponse])
async def update_grade(
    entry_id: str,
    data: GradeEntryUpdate,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    entry = await grade_entry_service.update_grade(db, entry_id, data.score, data.remarks, current_user.id)
    return success(entry, "Grade updated")


@router.delete("/entries/{entry_id}", response_model=MessageResponse)
async def delete_grade(
    entry_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    await grade_entry_service.delete_grade(db, entry_id, current_user.id)
    return {"success": True, "message": "Grade deleted"}


@router.get("/enrollments/{enrollment_id}/grades")
async def get_enrollment_grades(
    enrollment_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_entry_service.get_student_grades(db, enrollment_id))


@router.get("/enrollments/{enrollment_id}/final")
async def calculate_final_grade(
    enrollment_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_calculation_service.calculate_final_grade(db, enrollment_id))


# ==================== Class Results ====================

@router.get("/classes/{class_id}/results")
async def calculate_class_grades(
    class_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await grade_calculation_service.calculate_class_grades(db, class_id))


@router.post("/classes/{class_id}/finalize")
async def finalize_class_grades(
    class_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    count = await grade_calculation_service.finalize_class_grades(db, class_id, current_user.id)
    return success({"finalized": count}, f"Finalized grades for {count} students")


@router.post("/classes/{class_id}/unfinalize")
async def unfinalize_class_grades(
    class_id: str,
    data: UnfinalizeRequest,
    current_user: User = Depends(require_roles(UserRole.HOD)),
    db: AsyncSession = Depends(get_db)
):
    count = await grade_calculation_service.unfinalize_class_grades(db, class_id, data.reason, current_user.id)
    return success({"unfinalized": count}, f"Reopened grades for {count} students")


@router.post("/classes/{class_id}/complete")
async def complete_class(
    class_id: str,
    current_user: User = Depends(grading_staff),
    db: AsyncSession = Depends(get_db)
):
    counts = await grade_calculation_service.complete_class(db, class_id, current_user.id)
    return success(counts, "Class completed")


# ==================== GPA & Transcripts ====================

@router.get("/students/{student_id}/gpa")
async def get_gpa(
    student_id: str,
    semester_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_own_student(db, current_user, student_id)
    return success(await grade_calculation_service.get_gpa_details(db, student_id, semester_id))


@router.get("/students/{student_id}/transcript")
async def get_transcript(
    student_id: str,
    official: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_own_student(db, current_user, student_id)
    if official and current_user.role not in (UserRole.ADMIN, UserRole.HOD):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only HOD can issue official transcripts")
    return success(await grade_calculation_service.generate_transcript(db, student_id, official))
