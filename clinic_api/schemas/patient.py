from datetime import date
from typing import Literal, Optional

from pydantic import Field, field_validator

from .common import RequestSchema, check_email

Gender = Literal['male', 'female', 'other']


class CreatePatientSchema(RequestSchema):
    clinic_id: Optional[int] = None
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=5, max_length=20)
    email: Optional[str] = None
    gender: Optional[Gender] = None
    birth_date: Optional[date] = None
    address: Optional[str] = None
    blood_group: Optional[str] = Field(default=None, max_length=5)
    allergies: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return check_email(v)

    @field_validator('birth_date')
    @classmethod
    def validate_birth_date(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v > date.today():
            raise ValueError('Birth date cannot be in the future')
        return v


class UpdatePatientSchema(RequestSchema):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, min_length=5, max_length=20)
    email: Optional[str] = None
    gender: Optional[Gender] = None
    birth_date: Optional[date] = None
    address: Optional[str] = None
    blood_group: Optional[str] = Field(default=None, max_length=5)
    allergies: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return check_email(v)
