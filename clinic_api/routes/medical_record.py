"""
Medical record routes.
"""
import logging
from collections import Counter
from datetime import date

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clinic_api.extensions import db
from clinic_api.models import Appointment, Invoice, MedicalRecord, User
from clinic_api.models.base import isoformat
from clinic_api.routes.appointment import CLINICAL, parse_date
from clinic_api.routes.patient import get_patient_or_404
from clinic_api.schemas import CreateMedicalRecordSchema, UpdateMedicalRecordSchema
from clinic_api.utils.audit import log_audit
from clinic_api.utils.decorators import (
    filter_by_clinic,
    get_current_clinic_id,
    get_current_user,
    require_role,
    verify_clinic_access,
)
from clinic_api.utils.errors import ForbiddenError, NotFoundError
from clinic_api.utils.responses import get_pagination_args, pagination_meta, success_response
from clinic_api.utils.validation import validate_body

logger = logging.getLogger(__name__)

medical_record_bp = Blueprint('medical_record', __name__, url_prefix='/api/medical-records')

JSON_FIELDS = ('vitals', 'diagnosis', 'treatment', 'lab_tests', 'referrals')


def get_medical_record_or_404(record_id):
    clinic_id, is_super = get_current_clinic_id()
    record = db.session.get(MedicalRecord, record_id)
    return verify_clinic_access(record, clinic_id, is_super, 'Medical record')


def _dump(body, fields):
    """Plain column values from a validated body; nested parts become JSON."""
    values = {}
    for field in fields:
        value = getattr(body, field)
        if value is None:
            continue
        if field in JSON_FIELDS:
            if isinstance(value, list):
                value = [item.model_dump(exclude_none=True) for item in value]
            else:
                value = value.model_dump(exclude_none=True)
        values[field] = value
    return values


def _resolve_doctor(user, requested_doctor_id, clinic_id):
    """Doctors write their own records; admins name the treating doctor."""
    if user.role == 'doctor' and not user.is_super_admin:
        if requested_doctor_id and requested_doctor_id != user.id:
            raise ForbiddenError('Doctors can only write their own medical records')
        return user.id

    doctor = None
    if requested_doctor_id:
        doctor = User.query.filter_by(
            id=requested_doctor_id, clinic_id=clinic_id, role='doctor', is_active=True
        ).first()
    if not doctor:
        raise NotFoundError('Doctor not found')
    return doctor.id


def _apply_list_filters(query):
    patient_id = request.args.get('patient_id', type=int)
    if patient_id:
        query = query.filter(MedicalRecord.patient_id == patient_id)
    doctor_id = request.args.get('doctor_id', type=int)
    if doctor_id:
        query = query.filter(MedicalRecord.doctor_id == doctor_id)
    if request.args.get('start_date'):
        query = query.filter(MedicalRecord.visit_date >= parse_date(request.args['start_date'], 'start_date'))
    if request.args.get('end_date'):
        query = query.filter(MedicalRecord.visit_date <= parse_date(request.args['end_date'], 'end_date'))
    return query


def _paginated(query, message):
    page, limit = get_pagination_args(request.args)
    total = query.count()
    records = (
        query.order_by(MedicalRecord.visit_date.desc(), MedicalRecord.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return success_response(
        message,
        data={'medical_records': [r.to_dict() for r in records], 'pagination': pagination_meta(page, limit, total)},
    )


@medical_record_bp.route('', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL)
def list_medical_records():
    """
    List medical records of the current clinic.
    Query params: patient_id, doctor_id, start_date, end_date, page, limit
    """
    query = _apply_list_filters(filter_by_clinic(MedicalRecord.query, MedicalRecord))
    return _paginated(query, 'Medical records retrieved')


@medical_record_bp.route('/my-records', methods=['GET'])
@jwt_required()
@require_role('doctor')
def my_medical_records():
    """Records written by the signed-in doctor."""
    user = get_current_user()
    query = _apply_list_filters(MedicalRecord.query.filter(MedicalRecord.doctor_id == user.id))
    return _paginated(query, 'Your medical records retrieved')


@medical_record_bp.route('', methods=['POST'])
@jwt_required()
@require_role('admin', 'doctor')
def create_medical_record():
    """
    Record a visit for a patient of the clinic.

    Body:
        patientId: Patient ID (required)
        appointmentId: Appointment of the same patient (optional)
        doctorId: Treating doctor (required for admins, implied for doctors)
        visitDate: Defaults to the appointment date, else today; never in the future
        chiefComplaint: (required)
        diagnosis: [{code?, name, type?, notes?}] (at least one)
        vitals, treatment, labTests, referrals, followUpDate, ...: optional
    """
    body = validate_body(CreateMedicalRecordSchema)
    user = get_current_user()
    patient = get_patient_or_404(body.patient_id)
    doctor_id = _resolve_doctor(user, body.doctor_id, patient.clinic_id)

    visit_date = body.visit_date
    if body.appointment_id is not None:
        appointment = Appointment.query.filter_by(id=body.appointment_id, patient_id=patient.id).filter(
            Appointment.deleted_at.is_(None)
        ).first()
        if not appointment:
            raise NotFoundError('Appointment not found')
        if visit_date is None and appointment.scheduled_date <= date.today():
            visit_date = appointment.scheduled_date

    record = MedicalRecord(
        clinic_id=patient.clinic_id,
        patient_id=patient.id,
        appointment_id=body.appointment_id,
        doctor_id=doctor_id,
        visit_date=visit_date or date.today(),
        visit_type=body.visit_type,
        chief_complaint=body.chief_complaint,
        **_dump(body, ('present_illness', 'examination', 'notes', 'follow_up_date', 'follow_up_instructions')
                + JSON_FIELDS),
    )
    db.session.add(record)
    db.session.flush()
    log_audit('medical_record', 'create', user_id=user.id, entity_id=record.id,
              details={'patient_id': patient.id, 'doctor_id': doctor_id},
              clinic_id=patient.clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Medical record {record.id} created by user {user.id} for patient {patient.id}")
    return success_response('Medical record created successfully', data=record.to_dict(), status_code=201)


@medical_record_bp.route('/patient/<int:patient_id>/history', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL)
def patient_medical_history(patient_id):
    """All records of a patient, newest first, with a short clinical summary."""
    patient = get_patient_or_404(patient_id)
    records = (
        MedicalRecord.query
        .filter_by(patient_id=patient.id)
        .order_by(MedicalRecord.visit_date.desc(), MedicalRecord.id.desc())
        .all()
    )

    diagnoses = Counter(
        d['name'] for record in records for d in (record.diagnosis or []) if d.get('name')
    )
    summary = {
        'total_visits': len(records),
        'last_visit': isoformat(records[0].visit_date) if records else None,
        'common_diagnoses': [{'name': name, 'count': count} for name, count in diagnoses.most_common(5)],
        'recent_vitals': records[0].vitals if records else None,
    }
    return success_response(
        'Patient medical history retrieved',
        data={'patient': patient.to_summary(), 'summary': summary, 'records': [r.to_dict() for r in records]},
    )


@medical_record_bp.route('/<int:record_id>', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL)
def get_medical_record(record_id):
    record = get_medical_record_or_404(record_id)
    data = record.to_dict()
    data['patient'] = record.patient.to_summary() if record.patient else None
    return success_response('Medical record retrieved', data=data)


@medical_record_bp.route('/<int:record_id>', methods=['PUT'])
@jwt_required()
@require_role('admin', 'doctor')
def update_medical_record(record_id):
    record = get_medical_record_or_404(record_id)
    user = get_current_user()
    if record.doctor_id != user.id:
        raise ForbiddenError('You can only update your own medical records')
    body = validate_body(UpdateMedicalRecordSchema)

    changes = _dump(body, tuple(body.model_fields_set))
    for field, value in changes.items():
        setattr(record, field, value)

    log_audit('medical_record', 'update', user_id=user.id, entity_id=record.id,
              details={'fields': sorted(changes)}, clinic_id=record.clinic_id, commit=False)
    db.session.commit()
    return success_response('Medical record updated successfully', data=record.to_dict())


@medical_record_bp.route('/<int:record_id>', methods=['DELETE'])
@jwt_required()
@require_role('admin', 'doctor')
def delete_medical_record(record_id):
    record = get_medical_record_or_404(record_id)
    user = get_current_user()
    if record.doctor_id != user.id and not (user.role == 'admin' or user.is_super_admin):
        raise ForbiddenError('Not authorized to delete this record')

    log_audit('medical_record', 'delete', user_id=user.id, entity_id=record.id,
              details={'patient_id': record.patient_id}, clinic_id=record.clinic_id, commit=False)
    # Invoices keep their lines; only the link goes
    Invoice.query.filter_by(medical_record_id=record.id).update(
        {Invoice.medical_record_id: None}, synchronize_session=False
    )
    db.session.delete(record)
    db.session.commit()
    return success_response(f'Medical record {record_id} deleted successfully')
