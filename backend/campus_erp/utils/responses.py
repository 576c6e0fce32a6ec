"""Builders for the {"success", "data", "message"} response envelope"""
from typing import Any, Optional, Type

from pydantic import BaseModel

from campus_erp.utils.pagination import Page


def success(data: Any = None, message: Optional[str] = None) -> dict:
    return {"success": True, "data": data, "message": message}


def paginated(page: Page, schema: Type[BaseModel]) -> dict:
    """Serialize one page of ORM rows with the given response schema"""
    return {
        "success": True,
        "data": [schema.model_validate(item) for item in page.items],
        "pagination": page.pagination,
    }
