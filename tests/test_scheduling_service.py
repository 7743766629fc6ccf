"""
Tests for the appointment scheduler: conflict detection and lifecycle.
"""
from datetime import date

import pytest

from clinic_api.extensions import db
from clinic_api.models import Appointment, AppointmentReminder, AuditLog
from clinic_api.services import scheduling_service
from clinic_api.utils.errors import BadRequestError, ConflictError, NotFoundError

DAY = date(2024, 1, 10)


def _book(ids, start='09:00', end='09:30', doctor='doctor', day=DAY):
    return scheduling_service.book_appointment(
        clinic_id=ids['clinic'],
        patient_id=ids['patient'],
        doctor_id=ids[doctor],
        scheduled_date=day,
        start_time=start,
        end_time=end,
        reason='Checkup',
        booked_by=ids['receptionist'],
    )


class TestRangesOverlap:

    def test_overlapping(self):
        assert scheduling_service.ranges_overlap('09:00', '09:30', '09:15', '09:45')

    def test_contained(self):
        assert scheduling_service.ranges_overlap('09:00', '10:00', '09:15', '09:30')

    def test_touching_is_not_overlap(self):
        assert not scheduling_service.ranges_overlap('09:00', '09:30', '09:30', '10:00')
        assert not scheduling_service.ranges_overlap('09:30', '10:00', '09:00', '09:30')


class TestBooking:

    def test_book_assigns_number_and_duration(self, ctx, ids):
        appointment = _book(ids)
        assert appointment.status == 'scheduled'
        assert appointment.appointment_number.startswith('APT-')
        assert appointment.duration == 30

    def test_overlapping_slot_rejected(self, ctx, ids):
        _book(ids)
        with pytest.raises(ConflictError) as exc:
            _book(ids, '09:15', '09:45')
        assert 'scheduled_time' in exc.value.errors
        assert Appointment.query.count() == 1

    def test_touching_slot_accepted(self, ctx, ids):
        _book(ids)
        second = _book(ids, '09:30', '10:00')
        assert second.id is not None

    def test_other_doctor_not_blocked(self, ctx, ids):
        _book(ids)
        assert _book(ids, doctor='doctor2').doctor_id == ids['doctor2']

    def test_cancelled_slot_does_not_block(self, ctx, ids):
        first = _book(ids)
        scheduling_service.cancel_appointment(first, 'Patient called', actor_id=ids['receptionist'])
        second = _book(ids)
        assert second.start_time == '09:00'

    def test_completed_slot_does_not_block(self, ctx, ids):
        first = _book(ids)
        scheduling_service.complete_appointment(first, actor_id=ids['doctor'])
        assert _book(ids, '09:10', '09:20').status == 'scheduled'

    def test_doctor_from_another_clinic_rejected(self, ctx, ids):
        with pytest.raises(NotFoundError):
            _book(ids, doctor='other_doctor')

    def test_non_doctor_rejected(self, ctx, ids):
        with pytest.raises(NotFoundError):
            _book(ids, doctor='receptionist')

    def test_booking_audited(self, ctx, ids):
        appointment = _book(ids)
        entry = AuditLog.query.filter_by(entity_type='appointment', action='create', entity_id=str(appointment.id)).first()
        assert entry is not None
        assert entry.user_id == ids['receptionist']


class TestReschedule:

    def test_reschedule_moves_in_place(self, ctx, ids):
        appointment = _book(ids)
        moved = scheduling_service.reschedule_appointment(appointment, DAY, '11:00', '11:45', actor_id=ids['admin'])

        assert moved.id == appointment.id
        assert moved.status == 'rescheduled'
        assert moved.start_time == '11:00'
        assert moved.duration == 45
        assert moved.rescheduled_from_id == appointment.id

    def test_reschedule_drops_old_slot_reminders(self, ctx, ids):
        appointment = _book(ids)
        appointment.reminders.append(AppointmentReminder(channel='email', window='24h', status='sent'))
        db.session.commit()

        scheduling_service.reschedule_appointment(appointment, DAY, '11:00', '11:30')
        assert {r.window for r in appointment.reminders} <= {'confirmation'}

    def test_reschedule_overlapping_itself_allowed(self, ctx, ids):
        appointment = _book(ids)
        moved = scheduling_service.reschedule_appointment(appointment, DAY, '09:15', '09:45')
        assert moved.start_time == '09:15'

    def test_reschedule_into_busy_slot_rejected(self, ctx, ids):
        _book(ids, '10:00', '10:30')
        appointment = _book(ids)
        with pytest.raises(ConflictError):
            scheduling_service.reschedule_appointment(appointment, DAY, '10:15', '10:45')
        db.session.rollback()
        assert db.session.get(Appointment, appointment.id).start_time == '09:00'

    def test_rescheduled_slot_still_blocks(self, ctx, ids):
        appointment = _book(ids)
        scheduling_service.reschedule_appointment(appointment, DAY, '14:00', '14:30')
        with pytest.raises(ConflictError):
            _book(ids, '14:00', '14:30')
        db.session.rollback()
        assert _book(ids).start_time == '09:00'


class TestLifecycle:

    def test_double_cancel_rejected(self, ctx, ids):
        appointment = _book(ids)
        scheduling_service.cancel_appointment(appointment, 'No longer needed')
        with pytest.raises(BadRequestError):
            scheduling_service.cancel_appointment(appointment, 'Again')

    def test_cancel_requires_reason(self, ctx, ids):
        appointment = _book(ids)
        with pytest.raises(BadRequestError):
            scheduling_service.cancel_appointment(appointment, '')

    def test_cannot_complete_cancelled(self, ctx, ids):
        appointment = _book(ids)
        scheduling_service.cancel_appointment(appointment, 'Sick')
        with pytest.raises(BadRequestError):
            scheduling_service.complete_appointment(appointment)

    def test_confirm_start_complete(self, ctx, ids):
        appointment = _book(ids)
        scheduling_service.confirm_appointment(appointment)
        assert appointment.status == 'confirmed'
        scheduling_service.start_appointment(appointment)
        assert appointment.status == 'in-progress'
        assert appointment.actual_start_time is not None
        scheduling_service.complete_appointment(appointment, notes='All good')
        assert appointment.status == 'completed'
        assert appointment.notes == 'All good'

    def test_update_move_checks_conflicts(self, ctx, ids):
        _book(ids, '10:00', '10:30')
        appointment = _book(ids)
        with pytest.raises(ConflictError):
            scheduling_service.update_appointment(appointment, {'scheduled_time': {'start': '10:00', 'end': '10:30'}})

    def test_update_rejects_terminal_status(self, ctx, ids):
        appointment = _book(ids)
        with pytest.raises(BadRequestError):
            scheduling_service.update_appointment(appointment, {'status': 'completed'})

    def test_delete_frees_slot(self, ctx, ids):
        appointment = _book(ids)
        scheduling_service.delete_appointment(appointment)
        assert appointment.status == 'cancelled'
        assert appointment.deleted_at is not None
        assert _book(ids).status == 'scheduled'
