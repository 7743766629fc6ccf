from datetime import date, datetime

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clinic_api.models import Appointment
from clinic_api.models.appointment import APPOINTMENT_STATUSES
from clinic_api.schemas import (
    CreateAppointmentSchema,
    UpdateAppointmentSchema,
    CancelAppointmentSchema,
    RescheduleAppointmentSchema,
)
from clinic_api.services import scheduling_service
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

appointment_bp = Blueprint('appointment', __name__, url_prefix='/api/appointments')

FRONT_DESK = ('admin', 'receptionist')
CLINICAL = ('admin', 'receptionist', 'doctor')


def parse_date(value, field):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise BadRequestError('Invalid date format. Use YYYY-MM-DD', errors={field: 'Expected YYYY-MM-DD'})


def get_appointment_or_404(appointment_id):
    appointment = Appointment.query.filter_by(id=appointment_id).filter(Appointment.deleted_at.is_(None)).first()
    clinic_id, is_super = get_current_clinic_id()
    return verify_clinic_access(appointment, clinic_id, is_super, 'Appointment')


def _base_query():
    return filter_by_clinic(Appointment.query.filter(Appointment.deleted_at.is_(None)), Appointment)


@appointment_bp.route('', methods=['GET'])
@jwt_required()
def list_appointments():
    """
    List appointments with filters and pagination.
    Query params:
        status, type, doctor_id, patient_id (optional)
        date: YYYY-MM-DD exact day (optional)
        date_from, date_to: YYYY-MM-DD range (optional)
        page, limit: Pagination
    Doctors only see their own appointments.
    """
    # Step 1: Query parameters
    page, limit = get_pagination_args(request.args)
    status = request.args.get('status', type=str)
    appointment_type = request.args.get('type', type=str)
    doctor_id = request.args.get('doctor_id', type=int)
    patient_id = request.args.get('patient_id', type=int)

    # Step 2: Base query with clinic isolation
    query = _base_query()

    current = get_current_user()
    if current.role == 'doctor' and not current.is_super_admin:
        doctor_id = current.id

    # Step 3: Filters
    if status:
        if status not in APPOINTMENT_STATUSES:
            raise BadRequestError(f'Invalid status. Must be one of: {", ".join(APPOINTMENT_STATUSES)}')
        query = query.filter(Appointment.status == status)
    if appointment_type:
        query = query.filter(Appointment.type == appointment_type)
    if doctor_id:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if patient_id:
        query = query.filter(Appointment.patient_id == patient_id)
    if request.args.get('date'):
        query = query.filter(Appointment.scheduled_date == parse_date(request.args['date'], 'date'))
    if request.args.get('date_from'):
        query = query.filter(Appointment.scheduled_date >= parse_date(request.args['date_from'], 'date_from'))
    if request.args.get('date_to'):
        query = query.filter(Appointment.scheduled_date <= parse_date(request.args['date_to'], 'date_to'))

    # Step 4: Paginate
    total = query.count()
    appointments = (
        query.order_by(Appointment.scheduled_date.desc(), Appointment.start_time.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return success_response(
        'Appointments retrieved',
        data={
            'appointments': [a.to_dict() for a in appointments],
            'pagination': pagination_meta(page, limit, total),
        },
    )


@appointment_bp.route('/today', methods=['GET'])
@jwt_required()
def today_appointments():
    """Today's calendar; doctors get their own, front desk the whole clinic."""
    query = _base_query().filter(Appointment.scheduled_date == date.today())
    current = get_current_user()
    if current.role == 'doctor' and not current.is_super_admin:
        query = query.filter(Appointment.doctor_id == current.id)
    appointments = query.order_by(Appointment.start_time.asc()).all()

    by_status = {}
    for appointment in appointments:
        by_status[appointment.status] = by_status.get(appointment.status, 0) + 1
    return success_response(
        "Today's appointments retrieved",
        data={
            'date': date.today().isoformat(),
            'appointments': [a.to_dict() for a in appointments],
            'count': len(appointments),
            'by_status': by_status,
        },
    )


@appointment_bp.route('/<int:appointment_id>', methods=['GET'])
@jwt_required()
def get_appointment(appointment_id):
    appointment = get_appointment_or_404(appointment_id)
    return success_response('Appointment retrieved', data=appointment.to_dict())


@appointment_bp.route('', methods=['POST'])
@jwt_required()
@require_role(*FRONT_DESK)
def create_appointment():
    """
    Book an appointment.
    Body: { patientId, doctorId, scheduledDate, scheduledTime: {start, end}, reason, ... }
    """
    body = validate_body(CreateAppointmentSchema)
    clinic_id = resolve_clinic_id(body.clinic_id)

    appointment = scheduling_service.book_appointment(
        clinic_id=clinic_id,
        patient_id=body.patient_id,
        doctor_id=body.doctor_id,
        scheduled_date=body.scheduled_date,
        start_time=body.scheduled_time.start,
        end_time=body.scheduled_time.end,
        duration=body.duration,
        type=body.type,
        reason=body.reason,
        symptoms=body.symptoms,
        notes=body.notes,
        booking_source=body.booking_source,
        booked_by=get_current_user().id,
    )
    return success_response('Appointment booked successfully', data=appointment.to_dict(), status_code=201)


@appointment_bp.route('/<int:appointment_id>', methods=['PUT'])
@jwt_required()
@require_role(*CLINICAL)
def update_appointment(appointment_id):
    appointment = get_appointment_or_404(appointment_id)
    body = validate_body(UpdateAppointmentSchema)
    appointment = scheduling_service.update_appointment(
        appointment,
        body.model_dump(exclude_unset=True),
        actor_id=get_current_user().id,
    )
    return success_response('Appointment updated successfully', data=appointment.to_dict())


@appointment_bp.route('/<int:appointment_id>/confirm', methods=['POST'])
@jwt_required()
@require_role(*CLINICAL)
def confirm_appointment(appointment_id):
    appointment = get_appointment_or_404(appointment_id)
    appointment = scheduling_service.confirm_appointment(appointment, actor_id=get_current_user().id)
    return success_response('Appointment confirmed', data=appointment.to_dict())


@appointment_bp.route('/<int:appointment_id>/start', methods=['POST'])
@jwt_required()
@require_role(*CLINICAL)
def start_appointment(appointment_id):
    appointment = get_appointment_or_404(appointment_id)
    appointment = scheduling_service.start_appointment(appointment, actor_id=get_current_user().id)
    return success_response('Appointment started', data=appointment.to_dict())


@appointment_bp.route('/<int:appointment_id>/complete', methods=['POST'])
@jwt_required()
@require_role('admin', 'doctor')
def complete_appointment(appointment_id):
    appointment = get_appointment_or_404(appointment_id)
    data = request.get_json(silent=True) or {}
    appointment = scheduling_service.complete_appointment(
        appointment,
        actor_id=get_current_user().id,
        notes=data.get('notes'),
    )
    return success_response('Appointment completed', data=appointment.to_dict())


@appointment_bp.route('/<int:appointment_id>/cancel', methods=['POST'])
@jwt_required()
@require_role(*CLINICAL)
def cancel_appointment(appointment_id):
    appointment = get_appointment_or_404(appointment_id)
    body = validate_body(CancelAppointmentSchema)
    appointment = scheduling_service.cancel_appointment(
        appointment,
        reason=body.cancel_reason,
        actor_id=get_current_user().id,
    )
    return success_response('Appointment cancelled successfully', data=appointment.to_dict())


@appointment_bp.route('/<int:appointment_id>/reschedule', methods=['POST'])
@jwt_required()
@require_role(*FRONT_DESK)
def reschedule_appointment(appointment_id):
    appointment = get_appointment_or_404(appointment_id)
    body = validate_body(RescheduleAppointmentSchema)
    appointment = scheduling_service.reschedule_appointment(
        appointment,
        new_date=body.new_date,
        new_start=body.new_time.start,
        new_end=body.new_time.end,
        actor_id=get_current_user().id,
    )
    return success_response('Appointment rescheduled successfully', data=appointment.to_dict())


@appointment_bp.route('/<int:appointment_id>', methods=['DELETE'])
@jwt_required()
@require_role(*FRONT_DESK)
def delete_appointment(appointment_id):
    """Soft delete; an active appointment is cancelled so its slot frees up."""
    appointment = get_appointment_or_404(appointment_id)
    scheduling_service.delete_appointment(appointment, actor_id=get_current_user().id)
    return success_response(f'Appointment {appointment_id} deleted successfully')
