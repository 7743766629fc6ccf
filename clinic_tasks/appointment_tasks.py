"""
Celery tasks for appointment confirmations and reminders
"""
import logging
from datetime import datetime, timedelta

from flask import current_app

from clinic_api.extensions import celery, db
from clinic_api.models import Appointment, AppointmentReminder, Clinic
from clinic_api.services.email_service import (
    send_appointment_confirmation_email,
    send_appointment_reminder_email,
)
from clinic_api.services.notification_service import create_notification
from clinic_api.services.sms_service import render_sms, send_sms

logger = logging.getLogger(__name__)

REMINDABLE_STATUSES = ('scheduled', 'confirmed', 'rescheduled')


def _sms_data(appointment):
    return {
        'patient_name': appointment.patient.full_name,
        'appointment_number': appointment.appointment_number,
        'date': appointment.scheduled_date.isoformat(),
        'time': appointment.start_time,
        'doctor_name': appointment.doctor.full_name if appointment.doctor else '',
        'clinic_name': appointment.clinic.name if appointment.clinic else '',
    }


def _deliver(appointment, window, channels):
    """
    Run each channel independently and record one reminder row per channel.

    Args:
        appointment: Appointment being notified about
        window: 'confirmation', '24h', '1h', ...
        channels: Mapping of channel name -> callable returning bool

    Returns:
        dict: channel -> status
    """
    results = {}
    for channel, send in channels.items():
        try:
            status = 'sent' if send() else 'skipped'
        except Exception as e:
            logger.error(f"{channel} {window} notification failed for {appointment.appointment_number}: {e}")
            status = 'failed'
        results[channel] = status
        appointment.reminders.append(AppointmentReminder(channel=channel, window=window, status=status))
    db.session.commit()
    return results


@celery.task(name='clinic_tasks.send_appointment_confirmation')
def send_appointment_confirmation(appointment_id):
    """Email + SMS to the patient and an in-app notification for the doctor."""
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        logger.warning(f"Appointment {appointment_id} not found for confirmation")
        return {'success': False, 'error': 'Appointment not found'}

    try:
        results = _deliver(appointment, 'confirmation', {
            'email': lambda: send_appointment_confirmation_email(appointment),
            'sms': lambda: send_sms(appointment.patient.phone, render_sms('appointment_confirmed', **_sms_data(appointment)))[0],
        })
        create_notification(
            appointment.doctor_id,
            'new-appointment',
            'New appointment',
            f"{appointment.patient.full_name} booked {appointment.scheduled_date.isoformat()} "
            f"{appointment.start_time}-{appointment.end_time}",
            clinic_id=appointment.clinic_id,
            related_model='Appointment',
            related_id=appointment.id,
        )
    except Exception as e:
        db.session.rollback()
        logger.error(f"Confirmation for appointment {appointment_id} failed: {e}", exc_info=True)
        return {'success': False, 'error': str(e)}

    return {'success': True, 'appointment_id': appointment_id, 'channels': results}


def due_for_reminder(window_hours, now=None):
    """
    Active appointments starting in [now + h, now + h + 1h) with reminders
    enabled for their clinic and no reminder yet for this window.
    """
    now = now or datetime.now()
    window_start = now + timedelta(hours=window_hours)
    window_end = window_start + timedelta(hours=1)
    window = f'{window_hours}h'

    # Narrow by date in SQL, then by time of day in Python ("HH:MM" strings)
    candidates = Appointment.query.join(Clinic, Appointment.clinic_id == Clinic.id).filter(
        Appointment.status.in_(REMINDABLE_STATUSES),
        Appointment.deleted_at.is_(None),
        Appointment.scheduled_date >= window_start.date(),
        Appointment.scheduled_date <= window_end.date(),
        Clinic.send_reminders.is_(True),
    ).all()
    return [
        appointment for appointment in candidates
        if window_start <= appointment.starts_at < window_end and not appointment.has_reminder(window)
    ]


@celery.task(name='clinic_tasks.send_appointment_reminders')
def send_appointment_reminders():
    """
    Hourly: remind patients of upcoming appointments for each configured window.
    """
    # Slots are clinic wall-clock times
    now = datetime.now()
    sent = 0
    failed = 0
    for window_hours in current_app.config.get('REMINDER_WINDOWS_HOURS', [24, 1]):
        window = f'{window_hours}h'
        for appointment in due_for_reminder(window_hours, now):
            try:
                results = _deliver(appointment, window, {
                    'email': lambda: send_appointment_reminder_email(appointment, window_hours),
                    'sms': lambda: send_sms(appointment.patient.phone, render_sms('appointment_reminder', **_sms_data(appointment)))[0],
                })
                create_notification(
                    appointment.doctor_id,
                    'appointment-reminder',
                    'Upcoming appointment',
                    f"{appointment.patient.full_name} at {appointment.start_time} on {appointment.scheduled_date.isoformat()}",
                    clinic_id=appointment.clinic_id,
                    related_model='Appointment',
                    related_id=appointment.id,
                )
                sent += 1
                logger.info(f"{window} reminder for {appointment.appointment_number}: {results}")
            except Exception as e:
                db.session.rollback()
                failed += 1
                logger.error(f"{window} reminder failed for appointment {appointment.id}: {e}", exc_info=True)

    logger.info(f"Appointment reminders: {sent} sent, {failed} failed")
    return {'sent': sent, 'failed': failed}
