# Authentication module

from campus_erp.modules.auth.dependencies import (
    get_current_user,
    get_current_admin,
    require_roles,
    is_admin,
)

__all__ = [
    "get_current_user",
    "get_current_admin",
    "require_roles",
    "is_admin",
]
