"""
Request body validation on top of pydantic schemas.
"""
from flask import request
from pydantic import ValidationError as PydanticValidationError

from clinic_api.utils.errors import ValidationError


def _field_path(loc):
    return '.'.join(str(part) for part in loc) or '__root__'


def format_errors(exc: PydanticValidationError) -> dict:
    """Flatten pydantic errors into {field: message}, keeping the first message per field."""
    errors = {}
    for error in exc.errors():
        field = _field_path(error.get('loc', ()))
        message = error.get('msg', 'Invalid value')
        # pydantic prefixes custom ValueError messages
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        errors.setdefault(field, message)
    return errors


def validate_body(schema_cls, data=None):
    """
    Validate the JSON body (or the given data) against a pydantic schema.

    Raises ValidationError carrying a field -> message map on failure.
    """
    if data is None:
        data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Request body must be JSON')
    try:
        return schema_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError('Validation failed', errors=format_errors(exc))
