"""
Appointment Scheduler
Double-booking prevention and the appointment lifecycle
"""
import logging
from datetime import date, datetime
from typing import Optional, Dict, Any, List

from clinic_api.extensions import db
from clinic_api.models import Appointment, Clinic, Patient, User
from clinic_api.models.appointment import INACTIVE_STATUSES
from clinic_api.services.numbering import next_number
from clinic_api.services.notification_service import dispatch, notify
from clinic_api.utils.audit import log_audit
from clinic_api.utils.errors import BadRequestError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

# Generic updates may only move an appointment between these
UPDATABLE_STATUSES = ('scheduled', 'confirmed', 'in-progress', 'no-show')


def ranges_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    """
    Half-open interval overlap on zero-padded "HH:MM" strings.
    Ranges that only touch (09:00-09:30 and 09:30-10:00) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def _minutes_between(start: str, end: str) -> int:
    start_h, start_m = (int(part) for part in start.split(':'))
    end_h, end_m = (int(part) for part in end.split(':'))
    return (end_h * 60 + end_m) - (start_h * 60 + start_m)


def find_conflict(
    doctor_id: int,
    scheduled_date: date,
    start_time: str,
    end_time: str,
    exclude_id: Optional[int] = None,
) -> Optional[Appointment]:
    """
    First active appointment of the doctor on that date overlapping [start, end).

    Runs as a single query on (doctor_id, scheduled_date); cancelled, completed
    and soft-deleted rows never block a slot.
    """
    query = Appointment.query.filter(
        Appointment.doctor_id == doctor_id,
        Appointment.scheduled_date == scheduled_date,
        Appointment.status.notin_(INACTIVE_STATUSES),
        Appointment.deleted_at.is_(None),
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.order_by(Appointment.start_time.asc()).first()


def _lock_doctor(doctor_id: int) -> Optional[User]:
    """Serialize bookings per doctor (SELECT ... FOR UPDATE; a no-op on SQLite)."""
    return db.session.execute(
        db.select(User)
        .where(User.id == doctor_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _ensure_slot_free(doctor_id, scheduled_date, start_time, end_time, exclude_id=None):
    conflict = find_conflict(doctor_id, scheduled_date, start_time, end_time, exclude_id=exclude_id)
    if conflict:
        logger.info(
            f"Slot conflict for doctor {doctor_id} on {scheduled_date} {start_time}-{end_time} "
            f"with {conflict.appointment_number}"
        )
        raise ConflictError(
            'Doctor already has an appointment at this time',
            errors={
                'scheduled_time': f'Overlaps {conflict.appointment_number} '
                                  f'({conflict.start_time}-{conflict.end_time})',
            },
        )


def _slot_summary(appointment: Appointment) -> str:
    return f"{appointment.scheduled_date.isoformat()} {appointment.start_time}-{appointment.end_time}"


def _notify_doctor(appointment: Appointment, type: str, title: str, message: str, priority='medium'):
    notify(
        appointment.doctor_id,
        type,
        title,
        message,
        clinic_id=appointment.clinic_id,
        priority=priority,
        related_model='Appointment',
        related_id=appointment.id,
    )


def book_appointment(
    clinic_id: int,
    patient_id: int,
    doctor_id: int,
    scheduled_date: date,
    start_time: str,
    end_time: str,
    reason: str,
    duration: Optional[int] = None,
    type: str = 'consultation',
    symptoms: Optional[List[str]] = None,
    notes: Optional[str] = None,
    booking_source: str = 'staff',
    booked_by: Optional[int] = None,
) -> Appointment:
    """
    Book an appointment after checking the doctor's calendar.

    Args:
        clinic_id: Tenant the appointment belongs to
        patient_id: Patient of the same clinic
        doctor_id: User with the doctor role in the same clinic
        scheduled_date: Day of the visit
        start_time, end_time: Zero-padded "HH:MM", start < end
        reason: Reason for visit
        duration: Minutes; derived from the time range when omitted
        booked_by: User ID of the staff member booking

    Returns:
        Appointment: Committed appointment

    Raises:
        NotFoundError: Clinic, patient or doctor missing in this clinic
        ConflictError: The doctor is busy in that range
    """
    clinic = db.session.get(Clinic, clinic_id)
    if not clinic or not clinic.is_active:
        raise NotFoundError('Clinic not found')

    patient = Patient.query.filter_by(id=patient_id, clinic_id=clinic_id).filter(
        Patient.deleted_at.is_(None)
    ).first()
    if not patient:
        raise NotFoundError('Patient not found')

    doctor = _lock_doctor(doctor_id)
    if not doctor or doctor.clinic_id != clinic_id or doctor.role != 'doctor' or not doctor.is_active:
        raise NotFoundError('Doctor not found')

    _ensure_slot_free(doctor_id, scheduled_date, start_time, end_time)

    appointment = Appointment(
        clinic_id=clinic_id,
        patient_id=patient.id,
        doctor_id=doctor.id,
        appointment_number=next_number(Appointment, Appointment.appointment_number, 'APT'),
        scheduled_date=scheduled_date,
        start_time=start_time,
        end_time=end_time,
        duration=duration or _minutes_between(start_time, end_time),
        type=type,
        status='scheduled',
        reason=reason,
        symptoms=symptoms or [],
        notes=notes,
        booking_source=booking_source,
        booked_by=booked_by,
    )
    db.session.add(appointment)
    db.session.flush()
    log_audit('appointment', 'create', user_id=booked_by, entity_id=appointment.id,
              details={'slot': _slot_summary(appointment), 'doctor_id': doctor_id},
              clinic_id=clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Appointment booked: {appointment.appointment_number} (doctor {doctor_id}, {_slot_summary(appointment)})")

    from clinic_tasks.appointment_tasks import send_appointment_confirmation
    dispatch(send_appointment_confirmation, appointment.id)
    return appointment


def _ensure_active(appointment: Appointment, action: str):
    if appointment.status in INACTIVE_STATUSES:
        raise BadRequestError(f'Cannot {action} a {appointment.status} appointment')


def reschedule_appointment(
    appointment: Appointment,
    new_date: date,
    new_start: str,
    new_end: str,
    actor_id: Optional[int] = None,
) -> Appointment:
    """
    Move an appointment to a new slot in place.

    The row keeps its number; rescheduled_from_id points at itself and the
    previous slot goes to the audit log.
    """
    _ensure_active(appointment, 'reschedule')

    _lock_doctor(appointment.doctor_id)
    _ensure_slot_free(appointment.doctor_id, new_date, new_start, new_end, exclude_id=appointment.id)

    previous = _slot_summary(appointment)
    appointment.scheduled_date = new_date
    appointment.start_time = new_start
    appointment.end_time = new_end
    appointment.duration = _minutes_between(new_start, new_end)
    appointment.status = 'rescheduled'
    appointment.rescheduled_from_id = appointment.id
    # Reminders sent for the old slot no longer apply
    appointment.reminders = [r for r in appointment.reminders if r.window == 'confirmation']

    log_audit('appointment', 'reschedule', user_id=actor_id, entity_id=appointment.id,
              details={'from': previous, 'to': _slot_summary(appointment)},
              clinic_id=appointment.clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Appointment {appointment.appointment_number} rescheduled from {previous} to {_slot_summary(appointment)}")

    _notify_doctor(
        appointment,
        'appointment-rescheduled',
        'Appointment rescheduled',
        f"{appointment.appointment_number} moved from {previous} to {_slot_summary(appointment)}",
    )
    return appointment


def cancel_appointment(appointment: Appointment, reason: str, actor_id: Optional[int] = None) -> Appointment:
    _ensure_active(appointment, 'cancel')
    if not reason:
        raise BadRequestError('Cancellation reason is required')

    appointment.status = 'cancelled'
    appointment.cancel_reason = reason
    appointment.cancelled_by = actor_id
    appointment.cancelled_at = datetime.utcnow()

    log_audit('appointment', 'cancel', user_id=actor_id, entity_id=appointment.id,
              details={'reason': reason, 'slot': _slot_summary(appointment)},
              clinic_id=appointment.clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Appointment {appointment.appointment_number} cancelled by user {actor_id}")

    _notify_doctor(
        appointment,
        'appointment-cancelled',
        'Appointment cancelled',
        f"{appointment.appointment_number} on {_slot_summary(appointment)} was cancelled: {reason}",
    )
    return appointment


def complete_appointment(appointment: Appointment, actor_id: Optional[int] = None, notes: Optional[str] = None) -> Appointment:
    _ensure_active(appointment, 'complete')

    appointment.status = 'completed'
    appointment.actual_end_time = datetime.utcnow()
    if notes:
        appointment.notes = notes

    log_audit('appointment', 'complete', user_id=actor_id, entity_id=appointment.id,
              clinic_id=appointment.clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Appointment {appointment.appointment_number} completed")
    return appointment


def confirm_appointment(appointment: Appointment, actor_id: Optional[int] = None) -> Appointment:
    if appointment.status not in ('scheduled', 'rescheduled'):
        raise BadRequestError(f'Cannot confirm a {appointment.status} appointment')

    appointment.status = 'confirmed'
    log_audit('appointment', 'confirm', user_id=actor_id, entity_id=appointment.id,
              clinic_id=appointment.clinic_id, commit=False)
    db.session.commit()

    _notify_doctor(
        appointment,
        'appointment-confirmed',
        'Appointment confirmed',
        f"{appointment.appointment_number} on {_slot_summary(appointment)} is confirmed",
        priority='low',
    )
    return appointment


def start_appointment(appointment: Appointment, actor_id: Optional[int] = None) -> Appointment:
    if appointment.status not in ('scheduled', 'confirmed', 'rescheduled'):
        raise BadRequestError(f'Cannot start a {appointment.status} appointment')

    appointment.status = 'in-progress'
    appointment.actual_start_time = datetime.utcnow()
    log_audit('appointment', 'start', user_id=actor_id, entity_id=appointment.id,
              clinic_id=appointment.clinic_id, commit=False)
    db.session.commit()
    return appointment


def update_appointment(appointment: Appointment, changes: Dict[str, Any], actor_id: Optional[int] = None) -> Appointment:
    """
    Apply a partial update.

    Moving the date or time re-runs the conflict check; status may only be
    one of UPDATABLE_STATUSES.
    """
    _ensure_active(appointment, 'update')

    status = changes.get('status')
    if status is not None and status not in UPDATABLE_STATUSES:
        raise BadRequestError(f'Status cannot be set to {status} here')

    new_date = changes.get('scheduled_date') or appointment.scheduled_date
    time_range = changes.get('scheduled_time')
    new_start = time_range['start'] if time_range else appointment.start_time
    new_end = time_range['end'] if time_range else appointment.end_time

    moved = (new_date, new_start, new_end) != (appointment.scheduled_date, appointment.start_time, appointment.end_time)
    if moved:
        _lock_doctor(appointment.doctor_id)
        _ensure_slot_free(appointment.doctor_id, new_date, new_start, new_end, exclude_id=appointment.id)

    previous = _slot_summary(appointment)
    appointment.scheduled_date = new_date
    appointment.start_time = new_start
    appointment.end_time = new_end
    if moved and not changes.get('duration'):
        appointment.duration = _minutes_between(new_start, new_end)

    for field in ('duration', 'type', 'status', 'reason', 'symptoms', 'notes'):
        value = changes.get(field)
        if value is not None:
            setattr(appointment, field, value)

    details = {k: v for k, v in changes.items() if v is not None}
    if moved:
        details['from'] = previous
    log_audit('appointment', 'update', user_id=actor_id, entity_id=appointment.id,
              details=details, clinic_id=appointment.clinic_id, commit=False)
    db.session.commit()
    return appointment


def delete_appointment(appointment: Appointment, actor_id: Optional[int] = None) -> Appointment:
    """Soft delete. An appointment still holding a slot is cancelled first."""
    if appointment.status not in INACTIVE_STATUSES:
        appointment.status = 'cancelled'
        appointment.cancel_reason = 'Deleted'
        appointment.cancelled_by = actor_id
        appointment.cancelled_at = datetime.utcnow()
    appointment.deleted_at = datetime.utcnow()

    log_audit('appointment', 'delete', user_id=actor_id, entity_id=appointment.id,
              clinic_id=appointment.clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Appointment {appointment.appointment_number} deleted by user {actor_id}")
    return appointment
