# Pydantic schemas
from campus_erp.schemas.common import ApiResponse, PaginatedResponse, MessageResponse, ReasonRequest

__all__ = [
    "ApiResponse",
    "PaginatedResponse",
    "MessageResponse",
    "ReasonRequest",
]
