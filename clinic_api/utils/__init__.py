from .decorators import (
    require_role,
    require_super_admin,
    get_current_clinic_id,
    get_current_user,
    verify_clinic_access,
    resolve_clinic_id,
    filter_by_clinic,
)

from .audit import log_audit

from .errors import (
    ApiError,
    ValidationError,
    BadRequestError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
)

from .responses import success_response, pagination_meta, get_pagination_args
from .validation import validate_body, format_errors

__all__ = [
    # Decorators
    "require_role",
    "require_super_admin",
    "get_current_clinic_id",
    "get_current_user",
    "verify_clinic_access",
    "resolve_clinic_id",
    "filter_by_clinic",
    # Audit
    "log_audit",
    # Errors
    "ApiError",
    "ValidationError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    # Responses / validation
    "success_response",
    "pagination_meta",
    "get_pagination_args",
    "validate_body",
    "format_errors",
]
