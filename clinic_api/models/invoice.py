from datetime import date
from decimal import Decimal

from clinic_api.extensions import db
from .base import TimestampMixin, isoformat, money

INVOICE_STATUSES = ('draft', 'pending', 'partially-paid', 'paid', 'overdue', 'cancelled')
ITEM_CATEGORIES = ('consultation', 'procedure', 'medication', 'lab-test', 'imaging', 'other')

# Statuses that still expect money from the patient
OPEN_STATUSES = ('pending', 'partially-paid', 'overdue')

Money = db.Numeric(12, 2)


class Invoice(db.Model, TimestampMixin):
    __tablename__ = 'invoices'
    __table_args__ = (
        db.Index('ix_invoices_clinic_date', 'clinic_id', 'invoice_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False, index=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id'), nullable=True)
    medical_record_id = db.Column(db.Integer, db.ForeignKey('medical_records.id'), nullable=True)
    invoice_number = db.Column(db.String(32), unique=True, nullable=False)

    invoice_date = db.Column(db.Date, default=date.today, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    subtotal = db.Column(Money, nullable=False, default=Decimal('0'))
    discount_percent = db.Column(Money, nullable=False, default=Decimal('0'))
    discount_amount = db.Column(Money, nullable=False, default=Decimal('0'))
    tax_percent = db.Column(Money, nullable=False, default=Decimal('0'))
    tax_amount = db.Column(Money, nullable=False, default=Decimal('0'))
    total_amount = db.Column(Money, nullable=False, default=Decimal('0'))
    amount_paid = db.Column(Money, nullable=False, default=Decimal('0'))
    balance_due = db.Column(Money, nullable=False, default=Decimal('0'))

    status = db.Column(db.String(20), default='pending', nullable=False, index=True)
    currency = db.Column(db.String(3), default='USD', nullable=False)
    notes = db.Column(db.Text)
    insurance_claim_number = db.Column(db.String(64))
    issued_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    last_reminder_sent = db.Column(db.DateTime, nullable=True)
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)

    # Optimistic lock: concurrent writers of the same row fail with StaleDataError
    version = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {'version_id_col': version}

    # Relationships
    items = db.relationship(
        'InvoiceItem',
        backref='invoice',
        cascade='all, delete-orphan',
        order_by='InvoiceItem.position',
        lazy=True,
    )
    patient = db.relationship('Patient', backref=db.backref('invoices', lazy='dynamic'), lazy=True)
    clinic = db.relationship('Clinic', lazy=True)
    payments = db.relationship('Payment', back_populates='invoice', order_by='Payment.payment_date.desc()', lazy='dynamic')

    @property
    def is_overdue(self):
        return bool(self.due_date and self.due_date < date.today() and self.status in OPEN_STATUSES)

    def summary(self):
        """Balance snapshot returned alongside payment operations."""
        return {
            'id': self.id,
            'invoice_number': self.invoice_number,
            'total_amount': money(self.total_amount),
            'amount_paid': money(self.amount_paid),
            'balance_due': money(self.balance_due),
            'status': self.status,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'invoice_number': self.invoice_number,
            'clinic_id': self.clinic_id,
            'patient_id': self.patient_id,
            'patient': self.patient.to_summary() if self.patient else None,
            'appointment_id': self.appointment_id,
            'medical_record_id': self.medical_record_id,
            'invoice_date': isoformat(self.invoice_date),
            'due_date': isoformat(self.due_date),
            'items': [item.to_dict() for item in self.items],
            'subtotal': money(self.subtotal),
            'discount_percent': money(self.discount_percent),
            'discount_amount': money(self.discount_amount),
            'tax_percent': money(self.tax_percent),
            'tax_amount': money(self.tax_amount),
            'total_amount': money(self.total_amount),
            'amount_paid': money(self.amount_paid),
            'balance_due': money(self.balance_due),
            'status': self.status,
            'is_overdue': self.is_overdue,
            'currency': self.currency,
            'notes': self.notes,
            'insurance_claim_number': self.insurance_claim_number,
            'issued_by': self.issued_by,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<Invoice {self.invoice_number} total={self.total_amount} paid={self.amount_paid} {self.status}>"


class InvoiceItem(db.Model):
    __tablename__ = 'invoice_items'

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(20), default='other', nullable=False)
    quantity = db.Column(Money, nullable=False, default=Decimal('1'))
    unit_price = db.Column(Money, nullable=False)
    discount = db.Column(Money, nullable=False, default=Decimal('0'))  # percent
    tax = db.Column(Money, nullable=False, default=Decimal('0'))  # percent
    total = db.Column(Money, nullable=False)

    def to_dict(self):
        return {
            'description': self.description,
            'category': self.category,
            'quantity': money(self.quantity),
            'unit_price': money(self.unit_price),
            'discount': money(self.discount),
            'tax': money(self.tax),
            'total': money(self.total),
        }
