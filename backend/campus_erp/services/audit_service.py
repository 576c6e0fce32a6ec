"""
Audit Service - records who changed what.

Audit rows are added to the caller's session and commit together with
the business write they describe.
"""
import enum
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from campus_erp.core.logging_config import get_client_info
from campus_erp.models.audit_log import AuditLog, AuditAction
from campus_erp.utils.pagination import paginate, Page

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def model_snapshot(obj: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """JSON-safe dict of selected attributes of a model instance"""
    return {field: _json_safe(getattr(obj, field, None)) for field in fields}


def diff_changes(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Keep only the keys whose values differ"""
    return {
        key: {"old": old.get(key), "new": new.get(key)}
        for key in new
        if old.get(key) != new.get(key)
    }


class AuditService:
    """Write and query audit logs"""

    async def log(
        self,
        db: AsyncSession,
        action: AuditAction,
        resource: str,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        client = get_client_info()
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id else None,
            old_values={k: _json_safe(v) for k, v in old_values.items()} if old_values else None,
            new_values={k: _json_safe(v) for k, v in new_values.items()} if new_values else None,
            ip_address=client["ip_address"],
            user_agent=client["user_agent"],
        )
        db.add(entry)
        logger.info(f"[Audit] {action.value} {resource} {resource_id or ''} by {user_id or 'system'}")
        return entry

    async def list_logs(
        self,
        db: AsyncSession,
        user_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        conditions = []
        if user_id:
            conditions.append(AuditLog.user_id == user_id)
        if action:
            conditions.append(AuditLog.action == action)
        if resource:
            conditions.append(AuditLog.resource == resource)
        if resource_id:
            conditions.append(AuditLog.resource_id == resource_id)
        if date_from:
            conditions.append(AuditLog.created_at >= date_from)
        if date_to:
            conditions.append(AuditLog.created_at <= date_to)

        query = select(AuditLog)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(AuditLog.created_at.desc())
        return await paginate(db, query, page, limit)

    async def get_entity_history(self, db: AsyncSession, resource: str, resource_id: str):
        result = await db.execute(
            select(AuditLog)
            .where(AuditLog.resource == resource, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_user_activity(
        self,
        db: AsyncSession,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ):
        query = select(AuditLog).where(AuditLog.user_id == user_id)
        if date_from:
            query = query.where(AuditLog.created_at >= date_from)
        if date_to:
            query = query.where(AuditLog.created_at <= date_to)
        result = await db.execute(query.order_by(AuditLog.created_at.desc()).limit(100))
        return list(result.scalars().all())

    async def get_statistics(
        self,
        db: AsyncSession,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        conditions = []
        if date_from:
            conditions.append(AuditLog.created_at >= date_from)
        if date_to:
            conditions.append(AuditLog.created_at <= date_to)

        by_action_q = select(AuditLog.action, func.count()).group_by(AuditLog.action)
        by_resource_q = select(AuditLog.resource, func.count()).group_by(AuditLog.resource)
        if conditions:
            by_action_q = by_action_q.where(and_(*conditions))
            by_resource_q = by_resource_q.where(and_(*conditions))

        by_action = {row[0].value: row[1] for row in (await db.execute(by_action_q)).all()}
        by_resource = {row[0]: row[1] for row in (await db.execute(by_resource_q)).all()}

        return {
            "total": sum(by_action.values()),
            "by_action": by_action,
            "by_resource": by_resource,
        }


audit_service = AuditService()
