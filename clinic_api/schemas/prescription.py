from typing import List, Literal, Optional

from pydantic import Field

from .common import RequestSchema


class PrescriptionItemSchema(RequestSchema):
    medicine: str = Field(min_length=1, max_length=255)
    dosage: str = Field(min_length=1, max_length=50)  # e.g. "1-0-1"
    frequency: Optional[str] = None
    duration_days: int = Field(gt=0)
    instructions: Optional[str] = ''


class CreatePrescriptionSchema(RequestSchema):
    patient_id: int
    appointment_id: Optional[int] = None
    items: List[PrescriptionItemSchema] = Field(min_length=1)
    diagnosis: Optional[str] = None
    notes: Optional[str] = None


class UpdatePrescriptionSchema(RequestSchema):
    status: Optional[Literal['active', 'completed', 'cancelled']] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
