from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt_identity, get_jwt

from clinic_api.extensions import db
from clinic_api.models import User
from clinic_api.utils.errors import ForbiddenError, NotFoundError, UnauthorizedError


def get_current_clinic_id():
    """Returns (clinic_id, is_super_admin) from JWT claims."""
    claims = get_jwt()
    is_super = claims.get("is_super_admin", False)
    if is_super:
        return None, True
    return claims.get("clinic_id"), False


def get_current_user():
    """Load the authenticated user once per request."""
    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        raise UnauthorizedError()
    user = g.get("current_user")
    if user is not None and user.id == user_id:
        return user
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise UnauthorizedError()
    g.current_user = user
    return user


def verify_clinic_access(record, clinic_id, is_super, label='Record'):
    """Raise NotFoundError if the record belongs to another clinic."""
    if record is None:
        raise NotFoundError(f'{label} not found')
    if is_super or not hasattr(record, 'clinic_id'):
        return record
    if record.clinic_id != clinic_id:
        raise NotFoundError(f'{label} not found')
    return record


def resolve_clinic_id(requested_clinic_id):
    """
    Clinic a write should target. Staff always act on their own clinic;
    super admins must name one.
    """
    clinic_id, is_super = get_current_clinic_id()
    if is_super:
        if not requested_clinic_id:
            raise ForbiddenError('clinicId is required for super admin requests')
        return requested_clinic_id
    if requested_clinic_id and requested_clinic_id != clinic_id:
        raise ForbiddenError('You do not have access to this clinic')
    if not clinic_id:
        raise ForbiddenError('User is not assigned to any clinic')
    return clinic_id


def filter_by_clinic(query, model):
    """
    Filter query by current user's clinic_id
    Super admin sees all data
    """
    clinic_id, is_super = get_current_clinic_id()
    if not is_super:
        return query.filter(model.clinic_id == clinic_id)
    return query


def require_role(*roles):
    """
    Decorator to require specific roles
    Usage: @require_role('doctor', 'receptionist')
    Must be used together with @jwt_required() on the route.
    Super admins pass every role check.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = get_current_user()
            if not user.has_any_role(*roles):
                raise ForbiddenError(f'Permission denied. Required roles: {", ".join(roles)}')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_super_admin(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if not user.is_super_admin:
            raise ForbiddenError('Super admin only')
        return f(*args, **kwargs)
    return decorated_function
