from datetime import datetime

from clinic_api.extensions import db
from .base import TimestampMixin, isoformat

APPOINTMENT_STATUSES = (
    'scheduled',
    'confirmed',
    'in-progress',
    'completed',
    'cancelled',
    'no-show',
    'rescheduled',
)
APPOINTMENT_TYPES = ('consultation', 'follow-up', 'emergency', 'check-up', 'telemedicine')
BOOKING_SOURCES = ('online', 'phone', 'walk-in', 'staff')

# Statuses that no longer hold a slot in the doctor's calendar
INACTIVE_STATUSES = ('cancelled', 'completed')

_ACTIVE_SLOT = "status NOT IN ('cancelled', 'completed')"


class Appointment(db.Model, TimestampMixin):
    __tablename__ = 'appointments'
    __table_args__ = (
        db.Index('ix_appointments_doctor_date', 'doctor_id', 'scheduled_date'),
        db.Index('ix_appointments_clinic_date', 'clinic_id', 'scheduled_date'),
        # A doctor can hold at most one active appointment starting at a given minute
        db.Index(
            'uq_appointments_doctor_active_slot',
            'doctor_id', 'scheduled_date', 'start_time',
            unique=True,
            postgresql_where=db.text(_ACTIVE_SLOT),
            sqlite_where=db.text(_ACTIVE_SLOT),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    appointment_number = db.Column(db.String(32), unique=True, nullable=False)

    scheduled_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.String(5), nullable=False)  # "HH:MM"
    end_time = db.Column(db.String(5), nullable=False)  # "HH:MM"
    duration = db.Column(db.Integer, default=30, nullable=False)  # minutes

    type = db.Column(db.String(20), default='consultation', nullable=False)
    status = db.Column(db.String(20), default='scheduled', nullable=False, index=True)
    reason = db.Column(db.String(500))
    symptoms = db.Column(db.JSON, default=list)
    notes = db.Column(db.Text)
    booking_source = db.Column(db.String(20), default='staff', nullable=False)
    booked_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    cancel_reason = db.Column(db.String(500))
    cancelled_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    cancelled_at = db.Column(db.DateTime)
    rescheduled_from_id = db.Column(db.Integer, db.ForeignKey('appointments.id'), nullable=True)

    actual_start_time = db.Column(db.DateTime)
    actual_end_time = db.Column(db.DateTime)

    deleted_at = db.Column(db.DateTime, nullable=True, index=True)

    # Relationships
    patient = db.relationship('Patient', backref=db.backref('appointments', lazy='dynamic'), lazy=True)
    doctor = db.relationship('User', foreign_keys=[doctor_id], lazy=True)
    clinic = db.relationship('Clinic', lazy=True)
    reminders = db.relationship(
        'AppointmentReminder',
        backref='appointment',
        cascade='all, delete-orphan',
        order_by='AppointmentReminder.sent_at',
        lazy=True,
    )

    @property
    def starts_at(self):
        """Naive datetime of the appointment start."""
        return datetime.combine(self.scheduled_date, datetime.strptime(self.start_time, '%H:%M').time())

    def has_reminder(self, window):
        return any(r.window == window for r in self.reminders)

    def to_dict(self):
        return {
            'id': self.id,
            'appointment_number': self.appointment_number,
            'clinic_id': self.clinic_id,
            'patient_id': self.patient_id,
            'patient': self.patient.to_summary() if self.patient else None,
            'doctor_id': self.doctor_id,
            'doctor': self.doctor.to_summary() if self.doctor else None,
            'scheduled_date': isoformat(self.scheduled_date),
            'scheduled_time': {'start': self.start_time, 'end': self.end_time},
            'duration': self.duration,
            'type': self.type,
            'status': self.status,
            'reason': self.reason,
            'symptoms': self.symptoms or [],
            'notes': self.notes,
            'booking_source': self.booking_source,
            'booked_by': self.booked_by,
            'cancel_reason': self.cancel_reason,
            'cancelled_by': self.cancelled_by,
            'cancelled_at': isoformat(self.cancelled_at),
            'rescheduled_from': self.rescheduled_from_id,
            'actual_start_time': isoformat(self.actual_start_time),
            'actual_end_time': isoformat(self.actual_end_time),
            'reminders': [r.to_dict() for r in self.reminders],
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<Appointment {self.appointment_number} doctor={self.doctor_id} on {self.scheduled_date} {self.start_time}-{self.end_time}>"


class AppointmentReminder(db.Model):
    """One outbound reminder/confirmation attempt for an appointment."""
    __tablename__ = 'appointment_reminders'

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id'), nullable=False, index=True)
    channel = db.Column(db.String(20), nullable=False)  # email, sms, in-app
    window = db.Column(db.String(20), nullable=False)  # confirmation, 24h, 1h
    status = db.Column(db.String(20), nullable=False)  # sent, failed, skipped
    sent_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'channel': self.channel,
            'window': self.window,
            'status': self.status,
            'sent_at': isoformat(self.sent_at),
        }
