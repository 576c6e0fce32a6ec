from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.people import StudentStatus
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, MessageResponse
from campus_erp.schemas.people import (
    StudentCreate,
    StudentUpdate,
    StudentStatusChange,
    StudentTransfer,
    StudentResponse,
    FinancialSummary,
)
from campus_erp.schemas.registration import EnrollmentResponse
from campus_erp.services.student_service import student_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

manage_students = require_roles(UserRole.HOD)


async def _ensure_can_view(db: AsyncSession, current_user: User, student_id: str) -> None:
    """Students may only read their own record"""
    if current_user.role != UserRole.STUDENT:
        return
    own = await student_service.get_by_user(db, current_user.id)
    if not own or own.id != student_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own student record"
        )


@router.post("", response_model=ApiResponse[StudentResponse], status_code=status.HTTP_201_CREATED)
async def create_student(
    data: StudentCreate,
    current_user: User = Depends(manage_students),
    db: AsyncSession = Depends(get_db)
):
    return success(await student_service.create(db, data, current_user.id), "Student admitted successfully")


@router.get("", response_model=PaginatedResponse[StudentResponse])
async def list_students(
    search: Optional[str] = Query(None, description="Match on name, student ID or email"),
    status: Optional[StudentStatus] = None,
    program_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_roles(UserRole.HOD, UserRole.LECTURER, UserRole.FINANCE)),
    db: AsyncSession = Depends(get_db)
):
    result = await student_service.list(
        db, search=search, status=status, program_id=program_id, page=page, limit=limit
    )
    return paginated(result, StudentResponse)


@router.get("/me", response_model=ApiResponse[StudentResponse])
async def get_my_student_record(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    student = await student_service.get_by_user(db, current_user.id)
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No student record for this account")
    return success(student)


@router.get("/by-number/{code}", response_model=ApiResponse[StudentResponse])
async def get_student_by_number(
    code: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    student = await student_service.get_by_student_id(db, code)
    await _ensure_can_view(db, current_user, student.id)
    return success(student)


@router.get("/{student_id}", response_model=ApiResponse[StudentResponse])
async def get_student(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_can_view(db, current_user, student_id)
    return success(await student_service.get(db, student_id))


@router.patch("/{student_id}", response_model=ApiResponse[StudentResponse])
async def update_student(
    student_id: str,
    data: StudentUpdate,
    current_user: User = Depends(manage_students),
    db: AsyncSession = Depends(get_db)
):
    return success(await student_service.update(db, student_id, data, current_user.id), "Student updated successfully")


@router.delete("/{student_id}", response_model=MessageResponse)
async def delete_student(
    student_id: str,
    current_user: User = Depends(manage_students),
    db: AsyncSession = Depends(get_db)
):
    await student_service.delete(db, student_id, current_user.id)
    return {"success": True, "message": "Student deleted successfully"}


@router.post("/{student_id}/status", response_model=ApiResponse[StudentResponse])
async def change_student_status(
    student_id: str,
    data: StudentStatusChange,
    current_user: User = Depends(manage_students),
    db: AsyncSession = Depends(get_db)
):
    student = await student_service.deactivate(db, student_id, data.status, data.reason, current_user.id)
    return success(student, f"Student status changed to {data.status.value}")


@router.post("/{student_id}/transfer", response_model=ApiResponse[StudentResponse])
async def transfer_student(
    student_id: str,
    data: StudentTransfer,
    current_user: User = Depends(manage_students),
    db: AsyncSession = Depends(get_db)
):
    student = await student_service.transfer(db, student_id, data.program_id, data.reason, current_user.id)
    return success(student, "Student transferred successfully")


@router.get("/{student_id}/enrollments", response_model=ApiResponse[List[EnrollmentResponse]])
async def get_student_enrollments(
    student_id: str,
    semester_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_can_view(db, current_user, student_id)
    return success(await student_service.get_enrollments(db, student_id, semester_id))


@router.get("/{student_id}/grades", response_model=ApiResponse[List[EnrollmentResponse]])
async def get_student_grades(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_can_view(db, current_user, student_id)
    return success(await student_service.get_grades(db, student_id))


@router.get("/{student_id}/financial-summary", response_model=ApiResponse[FinancialSummary])
async def get_financial_summary(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_can_view(db, current_user, student_id)
    return success(await student_service.get_financial_summary(db, student_id))
