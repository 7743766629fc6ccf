from datetime import datetime

from clinic_api.extensions import db
from .base import TimestampMixin, isoformat, money
from .invoice import Money

PAYMENT_METHODS = ('cash', 'credit-card', 'debit-card', 'bank-transfer', 'online', 'insurance', 'other')
PAYMENT_STATUSES = ('pending', 'completed', 'failed', 'refunded', 'cancelled')


class Payment(db.Model, TimestampMixin):
    __tablename__ = 'payments'
    __table_args__ = (
        db.Index('ix_payments_clinic_date', 'clinic_id', 'payment_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id'), nullable=False, index=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False, index=True)
    payment_number = db.Column(db.String(32), unique=True, nullable=False)

    payment_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    amount = db.Column(Money, nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), default='completed', nullable=False, index=True)
    transaction_id = db.Column(db.String(100))
    notes = db.Column(db.Text)
    received_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    # Refund sub-record
    refund_amount = db.Column(Money, nullable=True)
    refund_reason = db.Column(db.String(500))
    refund_date = db.Column(db.DateTime)
    refunded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    invoice = db.relationship('Invoice', back_populates='payments', lazy=True)
    patient = db.relationship('Patient', lazy=True)

    def to_dict(self):
        refund = None
        if self.refund_amount is not None:
            refund = {
                'amount': money(self.refund_amount),
                'reason': self.refund_reason,
                'refund_date': isoformat(self.refund_date),
                'refunded_by': self.refunded_by,
            }
        return {
            'id': self.id,
            'payment_number': self.payment_number,
            'clinic_id': self.clinic_id,
            'invoice_id': self.invoice_id,
            'invoice_number': self.invoice.invoice_number if self.invoice else None,
            'patient_id': self.patient_id,
            'payment_date': isoformat(self.payment_date),
            'amount': money(self.amount),
            'payment_method': self.payment_method,
            'status': self.status,
            'transaction_id': self.transaction_id,
            'notes': self.notes,
            'received_by': self.received_by,
            'refund': refund,
            'created_at': isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<Payment {self.payment_number} {self.amount} {self.status}>"
