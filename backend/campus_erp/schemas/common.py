"""Response envelopes shared by all endpoints"""
from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel, Field

from campus_erp.utils.pagination import PaginationMeta

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """{"success": true, "data": ..., "message": ...}"""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class PaginatedResponse(BaseModel, Generic[T]):
    """{"success": true, "data": [...], "pagination": {...}}"""
    success: bool = True
    data: List[T]
    pagination: PaginationMeta


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
