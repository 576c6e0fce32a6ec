from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime

from campus_erp.models.audit_log import AuditAction


class AuditLogResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    action: AuditAction
    resource: str
    resource_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditStatistics(BaseModel):
    total: int
    by_action: Dict[str, int]
    by_resource: Dict[str, int]
