"""
Clinic (tenant) management.
"""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clinic_api.extensions import db
from clinic_api.models import Clinic
from clinic_api.schemas import CreateClinicSchema, UpdateClinicSchema
from clinic_api.services.account_service import create_staff_user, send_setup_email
from clinic_api.utils.audit import log_audit
from clinic_api.utils.decorators import (
    get_current_clinic_id,
    get_current_user,
    require_role,
    require_super_admin,
    verify_clinic_access,
)
from clinic_api.utils.errors import ForbiddenError
from clinic_api.utils.responses import get_pagination_args, pagination_meta, success_response
from clinic_api.utils.validation import validate_body

clinic_bp = Blueprint('clinic', __name__, url_prefix='/api/clinics')


@clinic_bp.route('', methods=['GET'])
@jwt_required()
def list_clinics():
    """Super admins see every clinic, staff only their own."""
    page, limit = get_pagination_args(request.args)
    clinic_id, is_super = get_current_clinic_id()

    query = Clinic.query
    if not is_super:
        query = query.filter(Clinic.id == clinic_id)
    search = request.args.get('search', type=str)
    if search:
        query = query.filter(Clinic.name.ilike(f'%{search}%'))
    is_active = request.args.get('is_active', type=str)
    if is_active in ('true', 'false'):
        query = query.filter(Clinic.is_active.is_(is_active == 'true'))

    total = query.count()
    clinics = query.order_by(Clinic.name.asc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        'Clinics retrieved',
        data={
            'clinics': [c.to_dict(with_counts=True) for c in clinics],
            'pagination': pagination_meta(page, limit, total),
        },
    )


@clinic_bp.route('', methods=['POST'])
@jwt_required()
@require_super_admin
def create_clinic():
    """Create a clinic, optionally with its first admin account."""
    body = validate_body(CreateClinicSchema)
    current = get_current_user()

    clinic = Clinic(
        name=body.name,
        phone=body.phone,
        description=body.description,
        address=body.address,
        email=body.email,
        appointment_duration=body.appointment_duration,
        send_reminders=body.send_reminders,
        currency=body.currency.upper(),
    )
    db.session.add(clinic)
    db.session.flush()

    admin = None
    if body.admin:
        admin = create_staff_user(
            clinic_id=clinic.id,
            username=body.admin.username,
            email=body.admin.email,
            first_name=body.admin.first_name,
            last_name=body.admin.last_name,
            phone=body.admin.phone,
            role='admin',
            commit=False,
        )

    log_audit('clinic', 'create', user_id=current.id, entity_id=clinic.id,
              details={'name': clinic.name}, clinic_id=clinic.id, commit=False)
    db.session.commit()

    if admin:
        send_setup_email(admin)

    data = clinic.to_dict()
    data['admin'] = admin.to_dict() if admin else None
    return success_response('Clinic created successfully', data=data, status_code=201)


@clinic_bp.route('/<int:clinic_id>', methods=['GET'])
@jwt_required()
def get_clinic(clinic_id):
    current_clinic_id, is_super = get_current_clinic_id()
    if not is_super and clinic_id != current_clinic_id:
        raise ForbiddenError('You do not have access to this clinic')
    clinic = verify_clinic_access(db.session.get(Clinic, clinic_id), current_clinic_id, True, 'Clinic')
    return success_response('Clinic retrieved', data=clinic.to_dict(with_counts=True))


@clinic_bp.route('/<int:clinic_id>', methods=['PUT'])
@jwt_required()
@require_role('admin')
def update_clinic(clinic_id):
    """Super admins update any clinic, clinic admins their own."""
    current_clinic_id, is_super = get_current_clinic_id()
    if not is_super and clinic_id != current_clinic_id:
        raise ForbiddenError('You do not have access to this clinic')
    clinic = verify_clinic_access(db.session.get(Clinic, clinic_id), current_clinic_id, True, 'Clinic')
    body = validate_body(UpdateClinicSchema)

    changes = body.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is not None:
            setattr(clinic, field, value.upper() if field == 'currency' else value)

    log_audit('clinic', 'update', user_id=get_current_user().id, entity_id=clinic.id,
              details=changes, clinic_id=clinic.id, commit=False)
    db.session.commit()
    return success_response('Clinic updated successfully', data=clinic.to_dict())


@clinic_bp.route('/<int:clinic_id>', methods=['DELETE'])
@jwt_required()
@require_super_admin
def deactivate_clinic(clinic_id):
    """Clinics are never removed, only deactivated."""
    clinic = verify_clinic_access(db.session.get(Clinic, clinic_id), None, True, 'Clinic')
    clinic.is_active = False
    log_audit('clinic', 'deactivate', user_id=get_current_user().id, entity_id=clinic.id,
              clinic_id=clinic.id, commit=False)
    db.session.commit()
    return success_response('Clinic deactivated successfully', data=clinic.to_dict())
