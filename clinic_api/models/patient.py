from clinic_api.extensions import db
from .base import TimestampMixin, isoformat


class Patient(db.Model, TimestampMixin):
    __tablename__ = 'patients'
    __table_args__ = (
        db.UniqueConstraint('clinic_id', 'phone', name='uq_patients_clinic_phone'),
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False, index=True)

    # Personal
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    gender = db.Column(db.String(20))
    birth_date = db.Column(db.Date)
    phone = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    address = db.Column(db.String(255))

    blood_group = db.Column(db.String(5))
    allergies = db.Column(db.Text)
    notes = db.Column(db.Text)

    # Soft delete (no hard deletion of medical data)
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def to_dict(self):
        return {
            'id': self.id,
            'clinic_id': self.clinic_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'gender': self.gender,
            'birth_date': isoformat(self.birth_date),
            'phone': self.phone,
            'email': self.email,
            'address': self.address,
            'blood_group': self.blood_group,
            'allergies': self.allergies,
            'notes': self.notes,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def to_summary(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'phone': self.phone,
            'email': self.email,
        }

    def __repr__(self):
        return f"<Patient {self.first_name} {self.last_name} ({self.id})>"
