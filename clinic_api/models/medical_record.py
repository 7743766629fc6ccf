"""
Medical record of a single patient visit, written by the treating doctor.
"""
from datetime import date

from clinic_api.extensions import db
from .base import TimestampMixin, isoformat

VISIT_TYPES = ('consultation', 'follow-up', 'emergency', 'check-up')


class MedicalRecord(db.Model, TimestampMixin):
    """
    Visit notes for a patient.

    Structured parts are JSON:
        vitals: {temperature, blood_pressure: {systolic, diastolic}, heart_rate,
                 respiratory_rate, oxygen_saturation, weight, height, bmi}
        diagnosis: [{code, name, type, notes}]
        treatment: {medications, procedures, instructions}
        lab_tests: [{test_name, result, normal_range, status, notes}]
        referrals: [{speciality, doctor_name, reason, notes}]
    """

    __tablename__ = 'medical_records'
    __table_args__ = (
        db.Index('ix_medical_records_patient_visit', 'patient_id', 'visit_date'),
        db.Index('ix_medical_records_clinic_visit', 'clinic_id', 'visit_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id'), nullable=True, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    visit_date = db.Column(db.Date, nullable=False, default=date.today)
    visit_type = db.Column(db.String(20), nullable=False, default='consultation')
    chief_complaint = db.Column(db.Text, nullable=False)
    present_illness = db.Column(db.Text)
    vitals = db.Column(db.JSON)
    examination = db.Column(db.Text)
    diagnosis = db.Column(db.JSON, nullable=False, default=list)
    treatment = db.Column(db.JSON)
    lab_tests = db.Column(db.JSON, nullable=False, default=list)
    referrals = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text)
    follow_up_date = db.Column(db.Date, nullable=True)
    follow_up_instructions = db.Column(db.Text)

    # Relationships
    patient = db.relationship('Patient', backref=db.backref('medical_records', lazy='dynamic'), lazy=True)
    doctor = db.relationship('User', foreign_keys=[doctor_id], lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'clinic_id': self.clinic_id,
            'patient_id': self.patient_id,
            'appointment_id': self.appointment_id,
            'doctor_id': self.doctor_id,
            'doctor': self.doctor.to_summary() if self.doctor else None,
            'visit_date': isoformat(self.visit_date),
            'visit_type': self.visit_type,
            'chief_complaint': self.chief_complaint,
            'present_illness': self.present_illness,
            'vitals': self.vitals,
            'examination': self.examination,
            'diagnosis': self.diagnosis or [],
            'treatment': self.treatment,
            'lab_tests': self.lab_tests or [],
            'referrals': self.referrals or [],
            'notes': self.notes,
            'follow_up_date': isoformat(self.follow_up_date),
            'follow_up_instructions': self.follow_up_instructions,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<MedicalRecord {self.id} - Patient: {self.patient_id} - {self.visit_date}>"
