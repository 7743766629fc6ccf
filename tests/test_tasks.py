"""
Tests for the scheduled Celery jobs, called directly inside an app context.
"""
from datetime import date, datetime, timedelta
from unittest.mock import patch

from clinic_api.extensions import db
from clinic_api.models import Appointment, Clinic, Invoice, Notification
from clinic_api.services import billing_service
from clinic_api.services.notification_service import create_notification
from clinic_tasks.appointment_tasks import due_for_reminder, send_appointment_reminders
from clinic_tasks.billing_tasks import overdue_invoices, send_overdue_payment_reminders
from clinic_tasks.notification_tasks import cleanup_expired_notifications


def _appointment_at(ids, starts_at, number, status='scheduled'):
    """Insert an appointment directly, bypassing booking and its confirmation."""
    start = starts_at.strftime('%H:%M')
    end = min(starts_at + timedelta(minutes=30), starts_at.replace(hour=23, minute=59)).strftime('%H:%M')
    appointment = Appointment(
        clinic_id=ids['clinic'],
        patient_id=ids['patient'],
        doctor_id=ids['doctor'],
        appointment_number=number,
        scheduled_date=starts_at.date(),
        start_time=start,
        end_time=end,
        duration=30,
        status=status,
        reason='Checkup',
    )
    db.session.add(appointment)
    db.session.commit()
    return appointment


class TestAppointmentReminders:

    def test_due_for_reminder_window(self, ctx, ids):
        now = datetime(2024, 3, 1, 10, 0)
        inside = _appointment_at(ids, datetime(2024, 3, 2, 10, 30), 'APT-T-1')
        _appointment_at(ids, datetime(2024, 3, 2, 11, 30), 'APT-T-2')
        _appointment_at(ids, datetime(2024, 3, 2, 10, 45), 'APT-T-3', status='cancelled')

        due = due_for_reminder(24, now)
        assert [a.id for a in due] == [inside.id]

    def test_reminder_disabled_for_clinic(self, ctx, ids):
        now = datetime(2024, 3, 1, 10, 0)
        _appointment_at(ids, datetime(2024, 3, 2, 10, 30), 'APT-T-4')
        db.session.get(Clinic, ids['clinic']).send_reminders = False
        db.session.commit()
        assert due_for_reminder(24, now) == []

    def test_reminders_sent_once_per_window(self, ctx, ids):
        starts_at = (datetime.now() + timedelta(hours=24, minutes=10)).replace(second=0, microsecond=0)
        appointment = _appointment_at(ids, starts_at, 'APT-T-5')

        with patch('clinic_tasks.appointment_tasks.send_appointment_reminder_email', return_value=True):
            result = send_appointment_reminders()
        assert result == {'sent': 1, 'failed': 0}

        statuses = {(r.channel, r.window): r.status for r in appointment.reminders}
        assert statuses[('email', '24h')] == 'sent'
        assert statuses[('sms', '24h')] == 'skipped'
        assert ('email', '1h') not in statuses
        assert Notification.query.filter_by(recipient_id=ids['doctor'], type='appointment-reminder').count() == 1

        assert send_appointment_reminders() == {'sent': 0, 'failed': 0}

    def test_rescheduled_appointment_is_reminded(self, ctx, ids):
        starts_at = (datetime.now() + timedelta(hours=24, minutes=10)).replace(second=0, microsecond=0)
        appointment = _appointment_at(ids, starts_at, 'APT-T-7', status='rescheduled')

        with patch('clinic_tasks.appointment_tasks.send_appointment_reminder_email', return_value=True):
            assert send_appointment_reminders() == {'sent': 1, 'failed': 0}
        assert ('email', '24h') in {(r.channel, r.window) for r in appointment.reminders}

    def test_channel_failure_recorded(self, ctx, ids):
        starts_at = (datetime.now() + timedelta(hours=1, minutes=10)).replace(second=0, microsecond=0)
        appointment = _appointment_at(ids, starts_at, 'APT-T-6')

        with patch('clinic_tasks.appointment_tasks.send_appointment_reminder_email', side_effect=OSError('smtp down')):
            result = send_appointment_reminders()
        assert result['sent'] == 1

        statuses = {(r.channel, r.window): r.status for r in appointment.reminders}
        assert statuses[('email', '1h')] == 'failed'


class TestOverdueInvoices:

    def _overdue_invoice(self, ids):
        invoice = billing_service.create_invoice(
            clinic_id=ids['clinic'],
            patient_id=ids['patient'],
            items=[{'description': 'Consultation', 'unit_price': 100}],
            invoice_date=date.today() - timedelta(days=40),
            due_date=date.today() - timedelta(days=10),
        )
        return invoice

    def test_overdue_selection(self, ctx, ids):
        overdue = self._overdue_invoice(ids)
        billing_service.create_invoice(
            clinic_id=ids['clinic'],
            patient_id=ids['patient'],
            items=[{'description': 'Lab', 'unit_price': 20}],
        )
        paid = self._overdue_invoice(ids)
        billing_service.record_payment(paid, 100, 'cash')

        assert [i.id for i in overdue_invoices()] == [overdue.id]

    def test_reminder_interval(self, ctx, ids):
        invoice = self._overdue_invoice(ids)

        with patch('clinic_tasks.billing_tasks.send_overdue_invoice_email', return_value=True) as send:
            assert send_overdue_payment_reminders() == {'reminded': 1}
            assert send.call_count == 1
            # Already reminded within the interval
            assert send_overdue_payment_reminders() == {'reminded': 0}

        invoice = db.session.get(Invoice, invoice.id)
        assert invoice.last_reminder_sent is not None
        # Status is reported, not rewritten
        assert invoice.status == 'pending'

        invoice.last_reminder_sent = datetime.utcnow() - timedelta(days=8)
        db.session.commit()
        assert len(overdue_invoices()) == 1


class TestNotificationCleanup:

    def test_cleanup(self, ctx, ids):
        expired = create_notification(ids['admin'], 'general', 'Old', 'Expired',
                                      expires_at=datetime.utcnow() - timedelta(hours=1))
        old_read = create_notification(ids['admin'], 'general', 'Read', 'Seen long ago')
        old_read.is_read = True
        old_read.created_at = datetime.utcnow() - timedelta(days=60)
        fresh = create_notification(ids['admin'], 'general', 'New', 'Unread')
        db.session.commit()
        expired_id, old_read_id, fresh_id = expired.id, old_read.id, fresh.id

        assert cleanup_expired_notifications() == {'expired': 1, 'old_read': 1}

        remaining = {n.id for n in Notification.query.all()}
        assert fresh_id in remaining
        assert expired_id not in remaining
        assert old_read_id not in remaining
