"""
Human-readable document numbers: PREFIX-YYYYMM-NNNNNN.

The sequence restarts every month. Uniqueness is finally enforced by the
unique column; a collision between two concurrent writers surfaces as an
IntegrityError (409) on commit.
"""
from datetime import datetime
from typing import Optional

from clinic_api.extensions import db

SEQUENCE_WIDTH = 6


def period_prefix(prefix: str, when: Optional[datetime] = None) -> str:
    when = when or datetime.utcnow()
    return f"{prefix}-{when.strftime('%Y%m')}-"


def next_number(model, column, prefix: str, when: Optional[datetime] = None) -> str:
    """
    Next free number for the given model column in the current period.

    Args:
        model: Mapped class, e.g. Invoice
        column: Mapped column holding the number, e.g. Invoice.invoice_number
        prefix: Document prefix, e.g. 'INV'
        when: Period reference (defaults to now)
    """
    period = period_prefix(prefix, when)
    last = db.session.execute(
        db.select(db.func.max(column)).where(column.like(f"{period}%"))
    ).scalar()

    sequence = 1
    if last:
        try:
            sequence = int(last[len(period):]) + 1
        except ValueError:
            sequence = 1

    # Skip any number already taken (e.g. flushed earlier in this transaction)
    while True:
        candidate = f"{period}{sequence:0{SEQUENCE_WIDTH}d}"
        exists = db.session.execute(
            db.select(model.id).where(column == candidate)
        ).first()
        if not exists:
            return candidate
        sequence += 1
