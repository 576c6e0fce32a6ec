"""
Audit Log API - Admin only
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from typing import Optional, List

from campus_erp.core.database import get_db
from campus_erp.models.audit_log import AuditAction
from campus_erp.models.user import User
from campus_erp.modules.auth.dependencies import get_current_admin
from campus_erp.schemas.audit import AuditLogResponse, AuditStatistics
from campus_erp.schemas.common import ApiResponse, PaginatedResponse
from campus_erp.services.audit_service import audit_service
from campus_erp.utils.responses import success, paginated

router = APIRouter()


@router.get("", response_model=PaginatedResponse[AuditLogResponse])
async def list_audit_logs(
    user_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    resource: Optional[str] = None,
    resource_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await audit_service.list_logs(
        db,
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return paginated(result, AuditLogResponse)


@router.get("/statistics", response_model=ApiResponse[AuditStatistics])
async def audit_statistics(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return success(await audit_service.get_statistics(db, date_from, date_to))


@router.get("/history/{resource}/{resource_id}", response_model=ApiResponse[List[AuditLogResponse]])
async def entity_history(
    resource: str,
    resource_id: str,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Every recorded change to one entity, oldest first"""
    return success(await audit_service.get_entity_history(db, resource, resource_id))


@router.get("/users/{user_id}", response_model=ApiResponse[List[AuditLogResponse]])
async def user_activity(
    user_id: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    return success(await audit_service.get_user_activity(db, user_id, date_from, date_to))
