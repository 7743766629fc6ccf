from typing import Literal, Optional

from pydantic import Field, field_validator

from .common import RequestSchema, check_email

Role = Literal['admin', 'doctor', 'receptionist', 'accountant']


class CreateUserSchema(RequestSchema):
    username: str = Field(min_length=3, max_length=80)
    email: str
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default='', max_length=100)
    phone: Optional[str] = None
    role: Role
    specialization: Optional[str] = None
    clinic_id: Optional[int] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        email = check_email(v)
        if not email:
            raise ValueError('Email is required')
        return email


class UpdateUserSchema(RequestSchema):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = None
    role: Optional[Role] = None
    specialization: Optional[str] = None
    is_active: Optional[bool] = None
