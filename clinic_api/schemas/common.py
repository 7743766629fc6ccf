"""Shared pieces for request schemas."""
import re
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

TIME_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class RequestSchema(BaseModel):
    """Accepts camelCase (API clients) and snake_case keys alike."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra='ignore',
    )


def normalize_time(value: str) -> str:
    """'9:05' -> '09:05'. Stored times are zero-padded so they compare as strings."""
    match = TIME_PATTERN.match(value or '')
    if not match:
        raise ValueError('Time must be in HH:MM format')
    hours, minutes = match.groups()
    return f"{int(hours):02d}:{minutes}"


def check_email(value: Optional[str]) -> Optional[str]:
    if value in (None, ''):
        return None
    if not EMAIL_PATTERN.match(value):
        raise ValueError('Invalid email address')
    return value.lower()


def not_in_past(value: Optional[date], label: str = 'Date') -> Optional[date]:
    if value is not None and value < date.today():
        raise ValueError(f'{label} cannot be in the past')
    return value


class TimeRange(RequestSchema):
    start: str
    end: str

    @field_validator('start', 'end')
    @classmethod
    def validate_time(cls, v: str) -> str:
        return normalize_time(v)

    @model_validator(mode='after')
    def validate_order(self):
        if self.start >= self.end:
            raise ValueError('End time must be after start time')
        return self
