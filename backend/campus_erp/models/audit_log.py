from sqlalchemy import Column, String, DateTime, Text, ForeignKey, JSON, Enum as SQLEnum
from datetime import datetime
import enum

from campus_erp.core.database import Base
from campus_erp.core.types import GUID, generate_uuid


class AuditAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LOGIN = "login"


class AuditLog(Base):
    """Audit trail of every write made through the API"""
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=True, index=True)

    # Action details
    action = Column(SQLEnum(AuditAction), nullable=False, index=True)
    resource = Column(String(50), nullable=False, index=True)  # e.g. 'Book', 'Department'
    resource_id = Column(String(64), nullable=True, index=True)

    # Change details
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action.value} {self.resource} by {self.user_id}>"
