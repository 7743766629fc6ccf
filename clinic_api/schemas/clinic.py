from typing import Optional

from pydantic import Field, field_validator

from .common import RequestSchema, check_email


class ClinicAdminSchema(RequestSchema):
    """Initial admin account created together with a clinic."""
    username: str = Field(min_length=3, max_length=80)
    email: str
    first_name: str = Field(min_length=1)
    last_name: str = ''
    phone: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        email = check_email(v)
        if not email:
            raise ValueError('Email is required')
        return email


class CreateClinicSchema(RequestSchema):
    name: str = Field(min_length=2, max_length=100)
    phone: str = Field(min_length=5, max_length=20)
    description: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None
    appointment_duration: int = Field(default=30, ge=5, le=180)
    send_reminders: bool = True
    currency: str = Field(default='USD', min_length=3, max_length=3)
    admin: Optional[ClinicAdminSchema] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return check_email(v)


class UpdateClinicSchema(RequestSchema):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, min_length=5, max_length=20)
    description: Optional[str] = None
    address: Optional[str] = None
    email: Optional[str] = None
    appointment_duration: Optional[int] = Field(default=None, ge=5, le=180)
    send_reminders: Optional[bool] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return check_email(v)
