from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import Field, model_validator

from .common import RequestSchema

ItemCategory = Literal['consultation', 'procedure', 'medication', 'lab-test', 'imaging', 'other']
PaymentMethod = Literal['cash', 'credit-card', 'debit-card', 'bank-transfer', 'online', 'insurance', 'other']


class InvoiceItemSchema(RequestSchema):
    description: str = Field(min_length=1, max_length=255)
    category: ItemCategory = 'other'
    quantity: Decimal = Field(default=Decimal('1'), gt=0)
    unit_price: Decimal = Field(ge=0)
    discount: Decimal = Field(default=Decimal('0'), ge=0, le=100)
    tax: Decimal = Field(default=Decimal('0'), ge=0, le=100)


class CreateInvoiceSchema(RequestSchema):
    patient_id: int
    clinic_id: Optional[int] = None
    appointment_id: Optional[int] = None
    medical_record_id: Optional[int] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    items: List[InvoiceItemSchema] = Field(min_length=1)
    discount: Decimal = Field(default=Decimal('0'), ge=0, le=100)
    tax: Decimal = Field(default=Decimal('0'), ge=0, le=100)
    notes: Optional[str] = None
    insurance_claim_number: Optional[str] = Field(default=None, max_length=64)

    @model_validator(mode='after')
    def validate_dates(self):
        invoice_date = self.invoice_date or date.today()
        if invoice_date > date.today():
            raise ValueError('Invoice date cannot be in the future')
        if self.due_date and self.due_date < invoice_date:
            raise ValueError('Due date cannot be before invoice date')
        return self


class UpdateInvoiceSchema(RequestSchema):
    due_date: Optional[date] = None
    items: Optional[List[InvoiceItemSchema]] = Field(default=None, min_length=1)
    discount: Optional[Decimal] = Field(default=None, ge=0, le=100)
    tax: Optional[Decimal] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None
    insurance_claim_number: Optional[str] = Field(default=None, max_length=64)


class RecordPaymentSchema(RequestSchema):
    amount: Decimal = Field(gt=0)
    payment_method: PaymentMethod
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class CreatePaymentSchema(RecordPaymentSchema):
    invoice_id: int


class UpdatePaymentSchema(RequestSchema):
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class RefundPaymentSchema(RequestSchema):
    amount: Optional[Decimal] = Field(default=None, gt=0)
    reason: str = Field(min_length=1, max_length=500)
    notes: Optional[str] = None
