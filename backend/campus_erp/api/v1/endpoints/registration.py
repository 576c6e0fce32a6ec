"""
Registration API

Holds, registration periods and class enrollment. Holds and periods are
managed by HOD; students may enroll themselves while registration is open.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.registration import HoldType, EnrollmentStatus
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import get_current_user, require_roles
from campus_erp.schemas.academic import ClassResponse
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, MessageResponse, ReasonRequest
from campus_erp.schemas.registration import (
    HoldCreate,
    HoldUpdate,
    HoldResponse,
    RegistrationPeriodCreate,
    RegistrationPeriodUpdate,
    RegistrationPeriodResponse,
    RegistrationStatus,
    EnrollmentCreate,
    BulkEnrollRequest,
    DropRequest,
    EnrollmentResponse,
    BulkEnrollResult,
)
from campus_erp.services.registration_service import hold_service, registration_period_service, enrollment_service
from campus_erp.services.student_service import student_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

registrar = require_roles(UserRole.HOD)


async def _ensure_own_student(db: AsyncSession, current_user: User, student_id: str) -> None:
    """Students act only on their own record; staff on anyone's"""
    if current_user.role != UserRole.STUDENT:
        return
    own = await student_service.get_by_user(db, current_user.id)
    if not own or own.id != student_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Students can only manage their own enrollments"
        )


# ==================== Holds ====================

@router.post("/holds", response_model=ApiResponse[HoldResponse], status_code=status.HTTP_201_CREATED)
async def create_hold(
    data: HoldCreate,
    current_user: User = Depends(require_roles(UserRole.HOD, UserRole.FINANCE, UserRole.LIBRARIAN)),
    db: AsyncSession = Depends(get_db)
):
    return success(await hold_service.create(db, data, current_user.id), "Hold placed")


@router.get("/holds", response_model=PaginatedResponse[HoldResponse])
async def list_holds(
    student_id: Optional[str] = None,
    type: Optional[HoldType] = None,
    active_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_roles(UserRole.HOD, UserRole.FINANCE, UserRole.LIBRARIAN)),
    db: AsyncSession = Depends(get_db)
):
    result = await hold_service.list(
        db, student_id=student_id, type=type, active_only=active_only, page=page, limit=limit
    )
    return paginated(result, HoldResponse)


@router.get("/holds/student/{student_id}", response_model=ApiResponse[List[HoldResponse]])
async def get_student_holds(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_own_student(db, current_user, student_id)
    return success(await hold_service.get_active_holds(db, student_id))


@router.get("/holds/{hold_id}", response_model=ApiResponse[HoldResponse])
async def get_hold(
    hold_id: str,
    current_user: User = Depends(require_roles(UserRole.HOD, UserRole.FINANCE, UserRole.LIBRARIAN)),
    db: AsyncSession = Depends(get_db)
):
    return success(await hold_service.get(db, hold_id))


@router.patch("/holds/{hold_id}", response_model=ApiResponse[HoldResponse])
async def update_hold(
    hold_id: str,
    data: HoldUpdate,
    current_user: User = Depends(require_roles(UserRole.HOD, UserRole.FINANCE, UserRole.LIBRARIAN)),
    db: AsyncSession = Depends(get_db)
):
    return success(await hold_service.update(db, hold_id, data, current_user.id), "Hold updated")


@router.post("/holds/{hold_id}/release", response_model=ApiResponse[HoldResponse])
async def release_hold(
    hold_id: str,
    data: ReasonRequest,
    current_user: User = Depends(require_roles(UserRole.HOD, UserRole.FINANCE, UserRole.LIBRARIAN)),
    db: AsyncSession = Depends(get_db)
):
    return success(await hold_service.release(db, hold_id, data.reason, current_user.id), "Hold released")


# ==================== Registration Periods ====================

@router.post(
    "/registration-periods",
    response_model=ApiResponse[RegistrationPeriodResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_registration_period(
    data: RegistrationPeriodCreate,
    current_user: User = Depends(registrar),
    db: AsyncSession = Depends(get_db)
):
    return success(await registration_period_service.create(db, data, current_user.id), "Registration period created")


@router.get("/registration-periods", response_model=ApiResponse[List[RegistrationPeriodResponse]])
async def list_registration_periods(
    semester_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await registration_period_service.list(db, semester_id))


@router.get("/registration-periods/status/{semester_id}", response_model=ApiResponse[RegistrationStatus])
async def registration_status(
    semester_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await registration_period_service.is_registration_open(db, semester_id))


@router.get("/registration-periods/{period_id}", response_model=ApiResponse[RegistrationPeriodResponse])
async def get_registration_period(
    period_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return success(await registration_period_service.get(db, period_id))


@router.patch("/registration-periods/{period_id}", response_model=ApiResponse[RegistrationPeriodResponse])
async def update_registration_period(
    period_id: str,
    data: RegistrationPeriodUpdate,
    current_user: User = Depends(registrar),
    db: AsyncSession = Depends(get_db)
):
    period = await registration_period_service.update(db, period_id, data, current_user.id)
    return success(period, "Registration period updated")


@router.delete("/registration-periods/{period_id}", response_model=MessageResponse)
async def delete_registration_period(
    period_id: str,
    current_user: User = Depends(registrar),
    db: AsyncSession = Depends(get_db)
):
    await registration_period_service.delete(db, period_id, current_user.id)
    return {"success": True, "message": "Registration period deleted"}


# ==================== Enrollments ====================

@router.post("/enrollments", response_model=ApiResponse[EnrollmentResponse], status_code=status.HTTP_201_CREATED)
async def enroll(
    data: EnrollmentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_own_student(db, current_user, data.student_id)
    if data.override_prerequisites and current_user.role not in (UserRole.ADMIN, UserRole.HOD):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only HOD can override prerequisites")
    enrollment = await enrollment_service.enroll(
        db,
        data.student_id,
        data.class_id,
        override_prerequisites=data.override_prerequisites,
        override_reason=data.override_reason,
        user_id=current_user.id,
    )
    return success(enrollment, "Enrolled successfully")


@router.post("/enrollments/bulk", response_model=ApiResponse[BulkEnrollResult])
async def bulk_enroll(
    data: BulkEnrollRequest,
    current_user: User = Depends(registrar),
    db: AsyncSession = Depends(get_db)
):
    result = await enrollment_service.bulk_enroll(db, data.student_ids, data.class_id, current_user.id)
    return success(result, f"{len(result['successful'])} enrolled, {len(result['failed'])} failed")


@router.get("/enrollments", response_model=PaginatedResponse[EnrollmentResponse])
async def list_enrollments(
    student_id: Optional[str] = None,
    class_id: Optional[str] = None,
    semester_id: Optional[str] = None,
    status: Optional[EnrollmentStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if current_user.role == UserRole.STUDENT:
        own = await student_service.get_by_user(db, current_user.id)
        if not own:
            raise HTTPException(status_code=403, detail="No student record for this account")
        student_id = own.id
    result = await enrollment_service.list(
        db, student_id=student_id, class_id=class_id, semester_id=semester_id,
        status=status, page=page, limit=limit,
    )
    return paginated(result, EnrollmentResponse)


@router.get("/enrollments/available/{student_id}", response_model=ApiResponse[List[ClassResponse]])
async def available_classes(
    student_id: str,
    semester_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_own_student(db, current_user, student_id)
    return success(await enrollment_service.get_available_classes(db, student_id, semester_id))


@router.get("/enrollments/schedule/{student_id}")
async def student_schedule(
    student_id: str,
    semester_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_own_student(db, current_user, student_id)
    return success(await enrollment_service.get_student_schedule(db, student_id, semester_id))


@router.get("/enrollments/{enrollment_id}", response_model=ApiResponse[EnrollmentResponse])
async def get_enrollment(
    enrollment_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    enrollment = await enrollment_service.get(db, enrollment_id)
    await _ensure_own_student(db, current_user, enrollment.student_id)
    return success(enrollment)


@router.post("/enrollments/{enrollment_id}/drop", response_model=ApiResponse[EnrollmentResponse])
async def drop_enrollment(
    enrollment_id: str,
    data: DropRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    enrollment = await enrollment_service.get(db, enrollment_id)
    await _ensure_own_student(db, current_user, enrollment.student_id)
    return success(await enrollment_service.drop(db, enrollment_id, data.reason, current_user.id), "Class dropped")
