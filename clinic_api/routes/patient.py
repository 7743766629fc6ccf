from datetime import datetime

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clinic_api.extensions import db
from clinic_api.models import Appointment, Invoice, Patient, Prescription
from clinic_api.schemas import CreatePatientSchema, UpdatePatientSchema
from clinic_api.utils.audit import log_audit
from clinic_api.utils.decorators import (
    filter_by_clinic,
    get_current_clinic_id,
    get_current_user,
    require_role,
    resolve_clinic_id,
    verify_clinic_access,
)
from clinic_api.utils.errors import ConflictError
from clinic_api.utils.responses import get_pagination_args, pagination_meta, success_response
from clinic_api.utils.validation import validate_body

patient_bp = Blueprint('patient', __name__, url_prefix='/api/patients')


def get_patient_or_404(patient_id):
    """Active patient visible to the current user."""
    patient = Patient.query.filter_by(id=patient_id).filter(Patient.deleted_at.is_(None)).first()
    clinic_id, is_super = get_current_clinic_id()
    return verify_clinic_access(patient, clinic_id, is_super, 'Patient')


def _ensure_phone_free(clinic_id, phone, exclude_id=None):
    query = Patient.query.filter_by(clinic_id=clinic_id, phone=phone)
    if exclude_id is not None:
        query = query.filter(Patient.id != exclude_id)
    if query.first():
        raise ConflictError('A patient with this phone number already exists', errors={'phone': 'Already registered'})


@patient_bp.route('', methods=['GET'])
@jwt_required()
def list_patients():
    """
    List patients of the current clinic.
    Query params:
        search: name, phone or email (optional)
        gender: Filter by gender (optional)
        page, limit: Pagination
    """
    # Step 1: Query parameters
    page, limit = get_pagination_args(request.args)
    search = request.args.get('search', type=str)
    gender = request.args.get('gender', type=str)

    # Step 2: Base query (exclude soft-deleted, clinic isolation)
    query = filter_by_clinic(Patient.query.filter(Patient.deleted_at.is_(None)), Patient)

    # Step 3: Filters
    if search:
        like = f'%{search.strip()}%'
        query = query.filter(db.or_(
            Patient.first_name.ilike(like),
            Patient.last_name.ilike(like),
            Patient.phone.ilike(like),
            Patient.email.ilike(like),
        ))
    if gender:
        query = query.filter(Patient.gender == gender)

    # Step 4: Paginate
    total = query.count()
    patients = query.order_by(Patient.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

    return success_response(
        'Patients retrieved',
        data={'patients': [p.to_dict() for p in patients], 'pagination': pagination_meta(page, limit, total)},
    )


@patient_bp.route('/<int:patient_id>', methods=['GET'])
@jwt_required()
def get_patient(patient_id):
    patient = get_patient_or_404(patient_id)
    return success_response('Patient retrieved', data=patient.to_dict())


@patient_bp.route('/<int:patient_id>/history', methods=['GET'])
@jwt_required()
def get_patient_history(patient_id):
    """
    Full history for a patient: appointments, prescriptions and invoices.
    """
    # Step 1: Find patient
    patient = get_patient_or_404(patient_id)

    # Step 2: Appointments (exclude soft-deleted)
    appointments = (
        Appointment.query
        .filter(Appointment.patient_id == patient.id, Appointment.deleted_at.is_(None))
        .order_by(Appointment.scheduled_date.desc(), Appointment.start_time.asc())
        .all()
    )

    # Step 3: Prescriptions
    prescriptions = (
        Prescription.query
        .filter_by(patient_id=patient.id)
        .order_by(Prescription.created_at.desc())
        .all()
    )

    # Step 4: Invoices (exclude soft-deleted)
    invoices = (
        Invoice.query
        .filter(Invoice.patient_id == patient.id, Invoice.deleted_at.is_(None))
        .order_by(Invoice.invoice_date.desc())
        .all()
    )

    return success_response(
        'Patient history retrieved',
        data={
            'patient': patient.to_dict(),
            'appointments': [a.to_dict() for a in appointments],
            'prescriptions': [p.to_dict() for p in prescriptions],
            'invoices': [i.to_dict() for i in invoices],
            'summary': {
                'total_appointments': len(appointments),
                'completed_appointments': sum(1 for a in appointments if a.status == 'completed'),
                'total_billed': float(sum(i.total_amount for i in invoices if i.status != 'cancelled')),
                'total_due': float(sum(i.balance_due for i in invoices if i.status != 'cancelled')),
            },
        },
    )


@patient_bp.route('', methods=['POST'])
@jwt_required()
@require_role('admin', 'receptionist', 'doctor')
def create_patient():
    body = validate_body(CreatePatientSchema)
    clinic_id = resolve_clinic_id(body.clinic_id)
    _ensure_phone_free(clinic_id, body.phone)

    patient = Patient(clinic_id=clinic_id, **body.model_dump(exclude={'clinic_id'}))
    db.session.add(patient)
    db.session.flush()
    log_audit('patient', 'create', user_id=get_current_user().id, entity_id=patient.id,
              details={'name': patient.full_name}, clinic_id=clinic_id, commit=False)
    db.session.commit()
    return success_response('Patient created successfully', data=patient.to_dict(), status_code=201)


@patient_bp.route('/<int:patient_id>', methods=['PUT'])
@jwt_required()
@require_role('admin', 'receptionist', 'doctor')
def update_patient(patient_id):
    patient = get_patient_or_404(patient_id)
    body = validate_body(UpdatePatientSchema)

    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if 'phone' in changes and changes['phone'] != patient.phone:
        _ensure_phone_free(patient.clinic_id, changes['phone'], exclude_id=patient.id)

    for field, value in changes.items():
        setattr(patient, field, value)

    log_audit('patient', 'update', user_id=get_current_user().id, entity_id=patient.id,
              details=changes, clinic_id=patient.clinic_id, commit=False)
    db.session.commit()
    return success_response('Patient updated successfully', data=patient.to_dict())


@patient_bp.route('/<int:patient_id>', methods=['DELETE'])
@jwt_required()
@require_role('admin', 'receptionist')
def delete_patient(patient_id):
    """Soft delete: medical data is never hard deleted."""
    patient = get_patient_or_404(patient_id)
    patient.deleted_at = datetime.utcnow()
    log_audit('patient', 'delete', user_id=get_current_user().id, entity_id=patient.id,
              details={'name': patient.full_name}, clinic_id=patient.clinic_id, commit=False)
    db.session.commit()
    return success_response(f'Patient {patient_id} deleted successfully')
