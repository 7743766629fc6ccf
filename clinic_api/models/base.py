from datetime import datetime

from clinic_api.extensions import db


def utcnow():
    return datetime.utcnow()


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


def isoformat(value):
    """ISO string for date/datetime columns, None when unset."""
    return value.isoformat() if value else None


def money(value):
    """JSON-friendly amount for Numeric columns."""
    return float(value) if value is not None else None
