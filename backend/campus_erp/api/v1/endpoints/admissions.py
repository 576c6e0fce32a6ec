"""
Admissions API

Applications are recorded and reviewed by admissions staff (HOD).
Enrolling an approved application creates the student and their
login account.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from campus_erp.core.database import get_db
from campus_erp.models.admission import ApplicationStatus
from campus_erp.models.user import User, UserRole
from campus_erp.modules.auth.dependencies import require_roles
from campus_erp.schemas.admission import (
    ApplicationCreate,
    ApplicationUpdate,
    ApplicationReview,
    ApplicationResponse,
    EnrollmentResult,
    AdmissionStatistics,
)
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, ReasonRequest
from campus_erp.services.admission_service import admission_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()

admissions_staff = require_roles(UserRole.HOD)


@router.post("", response_model=ApiResponse[ApplicationResponse], status_code=status.HTTP_201_CREATED)
async def create_application(
    data: ApplicationCreate,
    current_user: User = Depends(admissions_staff),
    db: AsyncSession = Depends(get_db)
):
    application = await admission_service.create(db, data, current_user.id)
    return success(application, f"Application {application.application_no} received")


@router.get("", response_model=PaginatedResponse[ApplicationResponse])
async def list_applications(
    search: Optional[str] = Query(None, description="Match on name, email or application number"),
    status: Optional[ApplicationStatus] = None,
    program_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(admissions_staff),
    db: AsyncSession = Depends(get_db)
):
    result = await admission_service.list(
        db, search=search, status=status, program_id=program_id, page=page, limit=limit
    )
    return paginated(result, ApplicationResponse)


@router.get("/statistics", response_model=ApiResponse[AdmissionStatistics])
async def get_admission_statistics(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    current_user: User = Depends(admissions_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await admission_service.get_statistics(db, year))


@router.get("/by-number/{application_no}", response_model=ApiResponse[ApplicationResponse])
async def get_application_by_number(
    application_no: str,
    current_user: User = Depends(admissions_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await admission_service.get_by_number(db, application_no))


@router.get("/{application_id}", response_model=ApiResponse[ApplicationResponse])
async def get_application(
    application_id: str,
    current_user: User = Depends(admissions_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(await admission_service.get(db, application_id))


@router.patch("/{application_id}", response_model=ApiResponse[ApplicationResponse])
async def update_application(
    application_id: str,
    data: ApplicationUpdate,
    current_user: User = Depends(admissions_staff),
    db: AsyncSession = Depends(get_db)
):
    application = await admission_service.update(db, application_id, data, current_user.id)
    return success(application, "Application updated")


@router.post("/{application_id}/review", response_model=ApiResponse[ApplicationResponse])
async def review_application(
    application_id: str,
    data: ApplicationReview,
    current_user: User = Depends(admissions_staff),
    db: AsyncSession = Depends(get_db)
):
    application = await admission_service.review(db, application_id, data.status, data.remarks, current_user.id)
    return success(application, f"Application is now {application.status.value}")


@router.post("/{application_id}/reject", response_model=ApiResponse[ApplicationResponse])
async def reject_application(
    application_id: str,
    data: ReasonRequest,
    current_user: User = Depends(admissions_staff),
    db: AsyncSession = Depends(get_db)
):
    return success(
        await admission_service.reject(db, application_id, data.reason, current_user.id), "Application rejected"
    )


@router.post("/{application_id}/enroll", response_model=ApiResponse[EnrollmentResult])
async def enroll_applicant(
    application_id: str,
    current_user: User = Depends(admissions_staff),
    db: AsyncSession = Depends(get_db)
):
    result = await admission_service.enroll(db, application_id, current_user.id)
    return success(result, f"Enrolled as {result['student_number']}")
