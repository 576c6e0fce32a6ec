"""
Pagination Utility Module

Page/limit pagination shared by every list endpoint.
"""
import math
from typing import List, Any, Optional
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from campus_erp.core.config import settings


class PaginationMeta(BaseModel):
    """Pagination block returned next to list data"""
    page: int
    limit: int
    total: int
    total_pages: int


class Page(BaseModel):
    """One page of ORM rows plus its metadata"""
    items: List[Any]
    pagination: PaginationMeta

    class Config:
        arbitrary_types_allowed = True


def build_meta(total: int, page: int, limit: int) -> PaginationMeta:
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if total > 0 else 0,
    )


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int = 1,
    limit: int = 20,
    count_query: Optional[Select] = None
) -> Page:
    """
    Apply pagination to a SQLAlchemy query.

    Args:
        db: Database session
        query: Ordered base query selecting one entity
        page: Page number (1-indexed)
        limit: Items per page, capped at MAX_PAGE_SIZE
        count_query: Optional custom count query

    Returns:
        Page with the rows of the requested page and pagination metadata
    """
    page = max(1, page)
    limit = max(1, min(settings.MAX_PAGE_SIZE, limit))

    if count_query is None:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.offset((page - 1) * limit).limit(limit))
    items = list(result.scalars().all())

    return Page(items=items, pagination=build_meta(total, page, limit))
