"""
Application Exceptions for Campus ERP
=====================================

Services raise these for every domain rule they enforce. The handler
registered in ``campus_erp.main`` turns them into JSON responses with
the matching HTTP status code.

Usage:
    from campus_erp.core.exceptions import NotFoundError, ConflictError

    if not book:
        raise NotFoundError("Book not found")

    if existing:
        raise ConflictError("Book with this ISBN already exists")
"""

from typing import Optional, Any, Dict


class CampusError(Exception):
    """Base exception for all application errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Client errors (400-type)
# ============================================

class BadRequestError(CampusError):
    """Request breaks a business rule"""

    status_code = 400

    def __init__(self, message: str = "Bad request", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="BAD_REQUEST", details=details)


class ForbiddenError(CampusError):
    """Caller may not perform this action"""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN")


class NotFoundError(CampusError):
    """Requested resource does not exist"""

    status_code = 404

    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="NOT_FOUND", details=details)


class ConflictError(CampusError):
    """Uniqueness or state conflict"""

    status_code = 409

    def __init__(self, message: str = "Conflict", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: CampusError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    body: Dict[str, Any] = {
        "success": False,
        "message": error.message,
        "code": error.code,
    }
    if error.details:
        body["details"] = error.details
    return body
