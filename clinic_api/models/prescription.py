from clinic_api.extensions import db
from .base import TimestampMixin, isoformat

PRESCRIPTION_STATUSES = ('active', 'completed', 'cancelled')


class Prescription(db.Model, TimestampMixin):
    """
    Prescription issued by a doctor.

    Medicines are stored as a JSON list of
    {medicine, dosage, frequency, duration_days, instructions}.
    """

    __tablename__ = "prescriptions"

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey("clinics.id"), nullable=False, index=True)
    patient_id = db.Column(db.Integer, db.ForeignKey("patients.id"), nullable=False, index=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey("appointments.id"), nullable=True, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    diagnosis = db.Column(db.Text)
    notes = db.Column(db.Text)
    status = db.Column(db.String(20), default="active", nullable=False)

    # Relationships
    patient = db.relationship("Patient", backref=db.backref("prescriptions", lazy="dynamic"), lazy=True)
    doctor = db.relationship("User", foreign_keys=[doctor_id], lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "clinic_id": self.clinic_id,
            "patient_id": self.patient_id,
            "appointment_id": self.appointment_id,
            "doctor_id": self.doctor_id,
            "doctor": self.doctor.to_summary() if self.doctor else None,
            "items": self.items or [],
            "diagnosis": self.diagnosis,
            "notes": self.notes or "",
            "status": self.status,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<Prescription {self.id} - Patient: {self.patient_id}>"
