from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.grading import ExamType, ExamStatus
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, ReasonRequest
from campus_erp.schemas.grading import ExamCreate, ExamUpdate, ExamResponse
from campus_erp.services.exam_service import exam_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

exam_staff = require_roles(UserRole.LECTURER, UserRole.HOD)


@router.post("/classes/{class_id}", response_model=ApiResponse[ExamResponse], status_code=status.HTTP_201_CREATED)
async def schedule_exam(
    class_id: str,
    data: ExamCreate,
    current_user: User = Depends(exam_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await exam_service.schedule(db, class_id, data, current_user.id), "Exam scheduled")


@router.get("", response_model=PaginatedResponse[ExamResponse])
async def list_exams(
    class_id: Optional[str] = None,
    type: Optional[ExamType] = None,
    status: Optional[ExamStatus] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await exam_service.list(
        db, class_id=class_id, type=type, status=status,
        from_date=from_date, to_date=to_date, page=page, limit=limit,
    )
    return paginated(result, ExamResponse)


@router.get("/semester/{semester_id}", response_model=ApiResponse[List[ExamResponse]])
async def semester_schedule(
    semester_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await exam_service.get_semester_schedule(db, semester_id))


@router.get("/{exam_id}", response_model=ApiResponse[ExamResponse])
async def get_exam(
    exam_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await exam_service.get(db, exam_id))


@router.patch("/{exam_id}", response_model=ApiResponse[ExamResponse])
async def update_exam(
    exam_id: str,
    data: ExamUpdate,
    current_user: User = Depends(exam_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await exam_service.update(db, exam_id, data, current_user.id), "Exam updated")


@router.post("/{exam_id}/cancel", response_model=ApiResponse[ExamResponse])
async def cancel_exam(
    exam_id: str,
    data: ReasonRequest,
    current_user: User = Depends(exam_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await exam_service.cancel(db, exam_id, data.reason, current_user.id), "Exam cancelled")
