"""
Clinic Model for Multi-Tenant Support
"""
from clinic_api.extensions import db
from .base import TimestampMixin, isoformat


class Clinic(db.Model, TimestampMixin):
    """Clinic model - each clinic is a separate tenant"""
    __tablename__ = 'clinics'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    address = db.Column(db.String(255))
    phone = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(120))

    # Scheduling / notification settings
    appointment_duration = db.Column(db.Integer, default=30, nullable=False)  # minutes
    send_reminders = db.Column(db.Boolean, default=True, nullable=False)
    currency = db.Column(db.String(3), default='USD', nullable=False)

    # Status
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Relationships
    users = db.relationship('User', backref='clinic', lazy='dynamic')
    patients = db.relationship('Patient', backref='clinic', lazy='dynamic')

    def is_valid(self):
        """Check if clinic is active"""
        return self.is_active

    def get_doctor_count(self):
        from clinic_api.models import User
        return User.query.filter_by(clinic_id=self.id, role='doctor', is_active=True).count()

    def get_patient_count(self):
        from clinic_api.models import Patient
        return Patient.query.filter_by(clinic_id=self.id).filter(Patient.deleted_at.is_(None)).count()

    def to_dict(self, with_counts=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'address': self.address,
            'phone': self.phone,
            'email': self.email,
            'appointment_duration': self.appointment_duration,
            'send_reminders': self.send_reminders,
            'currency': self.currency,
            'is_active': self.is_active,
            'created_at': isoformat(self.created_at),
        }
        if with_counts:
            data['doctor_count'] = self.get_doctor_count()
            data['patient_count'] = self.get_patient_count()
        return data

    def __repr__(self):
        return f"<Clinic {self.id} {self.name}>"
