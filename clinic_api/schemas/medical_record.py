from datetime import date
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from .common import RequestSchema, not_in_past

VisitType = Literal['consultation', 'follow-up', 'emergency', 'check-up']


class BloodPressureSchema(RequestSchema):
    systolic: Optional[int] = Field(default=None, ge=50, le=250)
    diastolic: Optional[int] = Field(default=None, ge=30, le=150)


class VitalsSchema(RequestSchema):
    blood_pressure: Optional[BloodPressureSchema] = None
    temperature: Optional[float] = Field(default=None, ge=30, le=45)  # Celsius
    heart_rate: Optional[int] = Field(default=None, ge=30, le=200)
    respiratory_rate: Optional[int] = Field(default=None, ge=8, le=50)
    oxygen_saturation: Optional[float] = Field(default=None, ge=0, le=100)
    weight: Optional[float] = Field(default=None, ge=0, le=500)  # kg
    height: Optional[float] = Field(default=None, ge=0, le=300)  # cm
    bmi: Optional[float] = Field(default=None, ge=0, le=100)


class DiagnosisSchema(RequestSchema):
    code: Optional[str] = None  # ICD-10
    name: str = Field(min_length=1)
    type: Optional[Literal['primary', 'secondary']] = None
    notes: Optional[str] = ''


class TreatmentSchema(RequestSchema):
    medications: List[str] = Field(default_factory=list)
    procedures: List[str] = Field(default_factory=list)
    instructions: Optional[str] = ''


class LabTestSchema(RequestSchema):
    test_name: str = Field(min_length=1)
    result: Optional[str] = ''
    normal_range: Optional[str] = ''
    status: Literal['pending', 'completed', 'cancelled'] = 'pending'
    notes: Optional[str] = ''


class ReferralSchema(RequestSchema):
    speciality: str = Field(min_length=1)
    doctor_name: Optional[str] = None
    reason: str = Field(min_length=1)
    notes: Optional[str] = ''


def _visit_not_in_future(value: Optional[date]) -> Optional[date]:
    if value is not None and value > date.today():
        raise ValueError('Visit date cannot be in the future')
    return value


class CreateMedicalRecordSchema(RequestSchema):
    patient_id: int
    appointment_id: Optional[int] = None
    # Required when an admin writes the record on a doctor's behalf
    doctor_id: Optional[int] = None
    visit_date: Optional[date] = None
    visit_type: VisitType = 'consultation'
    chief_complaint: str = Field(min_length=1)
    present_illness: Optional[str] = None
    vitals: Optional[VitalsSchema] = None
    examination: Optional[str] = None
    diagnosis: List[DiagnosisSchema] = Field(min_length=1)
    treatment: Optional[TreatmentSchema] = None
    lab_tests: List[LabTestSchema] = Field(default_factory=list)
    referrals: List[ReferralSchema] = Field(default_factory=list)
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None
    follow_up_instructions: Optional[str] = None

    @field_validator('visit_date')
    @classmethod
    def validate_visit_date(cls, v: Optional[date]) -> Optional[date]:
        return _visit_not_in_future(v)

    @field_validator('follow_up_date')
    @classmethod
    def validate_follow_up(cls, v: Optional[date]) -> Optional[date]:
        return not_in_past(v, 'Follow-up date')


class UpdateMedicalRecordSchema(RequestSchema):
    chief_complaint: Optional[str] = Field(default=None, min_length=1)
    present_illness: Optional[str] = None
    vitals: Optional[VitalsSchema] = None
    examination: Optional[str] = None
    diagnosis: Optional[List[DiagnosisSchema]] = Field(default=None, min_length=1)
    treatment: Optional[TreatmentSchema] = None
    lab_tests: Optional[List[LabTestSchema]] = None
    referrals: Optional[List[ReferralSchema]] = None
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None
    follow_up_instructions: Optional[str] = None

    @field_validator('follow_up_date')
    @classmethod
    def validate_follow_up(cls, v: Optional[date]) -> Optional[date]:
        return not_in_past(v, 'Follow-up date')
