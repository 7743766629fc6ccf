from datetime import date
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from .common import RequestSchema, TimeRange, not_in_past

AppointmentType = Literal['consultation', 'follow-up', 'emergency', 'check-up', 'telemedicine']
BookingSource = Literal['online', 'phone', 'walk-in', 'staff']


class CreateAppointmentSchema(RequestSchema):
    clinic_id: Optional[int] = None
    patient_id: int
    doctor_id: int
    scheduled_date: date
    scheduled_time: TimeRange
    duration: Optional[int] = Field(default=None, ge=5, le=180)
    type: AppointmentType = 'consultation'
    reason: str = Field(min_length=1, max_length=500)
    symptoms: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    booking_source: BookingSource = 'staff'

    @field_validator('scheduled_date')
    @classmethod
    def validate_date(cls, v: date) -> date:
        return not_in_past(v, 'Scheduled date')


class UpdateAppointmentSchema(RequestSchema):
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[TimeRange] = None
    duration: Optional[int] = Field(default=None, ge=5, le=180)
    type: Optional[AppointmentType] = None
    # completed / cancelled / rescheduled only through their own endpoints
    status: Optional[Literal['scheduled', 'confirmed', 'in-progress', 'no-show']] = None
    reason: Optional[str] = Field(default=None, min_length=1, max_length=500)
    symptoms: Optional[List[str]] = None
    notes: Optional[str] = None

    @field_validator('scheduled_date')
    @classmethod
    def validate_date(cls, v: Optional[date]) -> Optional[date]:
        return not_in_past(v, 'Scheduled date')


class CancelAppointmentSchema(RequestSchema):
    cancel_reason: str = Field(min_length=1, max_length=500)


class RescheduleAppointmentSchema(RequestSchema):
    new_date: date
    new_time: TimeRange

    @field_validator('new_date')
    @classmethod
    def validate_date(cls, v: date) -> date:
        return not_in_past(v, 'New date')
