"""
Typed API errors. Raised from services and routes, shaped into the JSON
envelope by the handlers registered in create_app().
"""
from typing import Optional


class ApiError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None,
                 errors: Optional[dict] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {'success': False, 'message': self.message}
        if self.errors:
            body['errors'] = self.errors
        return body


class ValidationError(ApiError):
    status_code = 400
    default_message = 'Validation failed'


class BadRequestError(ApiError):
    status_code = 400
    default_message = 'Bad request'


class UnauthorizedError(ApiError):
    status_code = 401
    default_message = 'Authentication required'


class ForbiddenError(ApiError):
    status_code = 403
    default_message = 'Permission denied'


class NotFoundError(ApiError):
    status_code = 404
    default_message = 'Not found'


class ConflictError(ApiError):
    status_code = 409
    default_message = 'Conflict'
