"""
Clinic staff accounts.
"""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clinic_api.extensions import db
from clinic_api.models import User
from clinic_api.models.user import ROLES
from clinic_api.schemas import CreateUserSchema, UpdateUserSchema
from clinic_api.services.account_service import create_staff_user
from clinic_api.utils.audit import log_audit
from clinic_api.utils.decorators import (
    filter_by_clinic,
    get_current_clinic_id,
    get_current_user,
    require_role,
    resolve_clinic_id,
    verify_clinic_access,
)
from clinic_api.utils.errors import BadRequestError
from clinic_api.utils.responses import get_pagination_args, pagination_meta, success_response
from clinic_api.utils.validation import validate_body

user_bp = Blueprint('user', __name__, url_prefix='/api/users')


def _get_user_or_404(user_id):
    clinic_id, is_super = get_current_clinic_id()
    return verify_clinic_access(db.session.get(User, user_id), clinic_id, is_super, 'User')


@user_bp.route('', methods=['GET'])
@jwt_required()
def list_users():
    """
    List staff of the current clinic.
    Query params: role, is_active, search, page, limit
    """
    page, limit = get_pagination_args(request.args)
    query = filter_by_clinic(User.query.filter(User.is_super_admin.is_(False)), User)

    role = request.args.get('role', type=str)
    if role:
        if role not in ROLES:
            raise BadRequestError(f'Invalid role. Must be one of: {", ".join(ROLES)}')
        query = query.filter(User.role == role)
    is_active = request.args.get('is_active', type=str)
    if is_active in ('true', 'false'):
        query = query.filter(User.is_active.is_(is_active == 'true'))
    search = request.args.get('search', type=str)
    if search:
        like = f'%{search}%'
        query = query.filter(db.or_(
            User.first_name.ilike(like),
            User.last_name.ilike(like),
            User.username.ilike(like),
            User.email.ilike(like),
        ))

    total = query.count()
    users = query.order_by(User.first_name.asc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        'Users retrieved',
        data={'users': [u.to_dict() for u in users], 'pagination': pagination_meta(page, limit, total)},
    )


@user_bp.route('', methods=['POST'])
@jwt_required()
@require_role('admin')
def create_user():
    """Create a staff member; they receive a set-password link by email."""
    body = validate_body(CreateUserSchema)
    clinic_id = resolve_clinic_id(body.clinic_id)
    current = get_current_user()

    user = create_staff_user(
        clinic_id=clinic_id,
        username=body.username,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        role=body.role,
        specialization=body.specialization,
    )
    log_audit('user', 'create', user_id=current.id, entity_id=user.id,
              details={'role': user.role}, clinic_id=clinic_id)
    return success_response('User created. A set-password link was sent by email.', data=user.to_dict(), status_code=201)


@user_bp.route('/<int:user_id>', methods=['GET'])
@jwt_required()
def get_user(user_id):
    user = _get_user_or_404(user_id)
    return success_response('User retrieved', data=user.to_dict())


@user_bp.route('/<int:user_id>', methods=['PUT'])
@jwt_required()
@require_role('admin')
def update_user(user_id):
    user = _get_user_or_404(user_id)
    body = validate_body(UpdateUserSchema)
    current = get_current_user()

    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if user.id == current.id and (changes.get('is_active') is False or changes.get('role', user.role) != user.role):
        raise BadRequestError('You cannot deactivate or change the role of your own account')

    for field, value in changes.items():
        setattr(user, field, value)

    log_audit('user', 'update', user_id=current.id, entity_id=user.id,
              details=changes, clinic_id=user.clinic_id, commit=False)
    db.session.commit()
    return success_response('User updated successfully', data=user.to_dict())


@user_bp.route('/<int:user_id>', methods=['DELETE'])
@jwt_required()
@require_role('admin')
def deactivate_user(user_id):
    """Staff are deactivated, never deleted (appointments and payments reference them)."""
    user = _get_user_or_404(user_id)
    current = get_current_user()
    if user.id == current.id:
        raise BadRequestError('You cannot deactivate your own account')

    user.is_active = False
    log_audit('user', 'deactivate', user_id=current.id, entity_id=user.id,
              clinic_id=user.clinic_id, commit=False)
    db.session.commit()
    return success_response('User deactivated successfully', data=user.to_dict())
