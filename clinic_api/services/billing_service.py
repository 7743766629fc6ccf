"""
Invoice / Payment Ledger
Line-item arithmetic and payment/refund reconciliation
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any, Iterable, List, Mapping

from clinic_api.extensions import db
from clinic_api.models import Appointment, Clinic, Invoice, InvoiceItem, MedicalRecord, Patient, Payment, User
from clinic_api.models.base import money
from clinic_api.models.invoice import OPEN_STATUSES
from clinic_api.services.numbering import next_number
from clinic_api.services.notification_service import dispatch, notify
from clinic_api.utils.audit import log_audit
from clinic_api.utils.errors import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')

DEFAULT_DUE_DAYS = 30


def to_money(value) -> Decimal:
    """Round to cents, half up."""
    if value is None:
        return ZERO.quantize(CENT)
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _dec(value, default=ZERO) -> Decimal:
    return Decimal(str(value)) if value is not None else default


def compute_item_total(item: Mapping[str, Any]) -> Decimal:
    """
    quantity x unit_price, minus discount %, plus tax % on the discounted amount.

    >>> compute_item_total({'quantity': 2, 'unit_price': 100, 'discount': 10, 'tax': 5})
    Decimal('189.00')
    """
    quantity = _dec(item.get('quantity'), Decimal('1'))
    unit_price = _dec(item.get('unit_price'))
    discount = _dec(item.get('discount'))
    tax = _dec(item.get('tax'))

    if quantity <= 0:
        raise BadRequestError('Item quantity must be greater than zero')
    if unit_price < 0:
        raise BadRequestError('Item unit price cannot be negative')

    base = quantity * unit_price
    discounted = base - base * discount / HUNDRED
    return to_money(discounted + discounted * tax / HUNDRED)


def compute_invoice_totals(items: Iterable[Mapping[str, Any]], discount_percent=0, tax_percent=0) -> Dict[str, Decimal]:
    """
    Invoice-level totals.

    The invoice discount applies to the subtotal of item totals and the
    invoice tax to the discounted subtotal.
    """
    subtotal = sum((compute_item_total(item) for item in items), ZERO)
    subtotal = to_money(subtotal)
    discount_percent = _dec(discount_percent)
    tax_percent = _dec(tax_percent)

    discount_amount = to_money(subtotal * discount_percent / HUNDRED)
    taxable = subtotal - discount_amount
    tax_amount = to_money(taxable * tax_percent / HUNDRED)

    return {
        'subtotal': subtotal,
        'discount_percent': to_money(discount_percent),
        'discount_amount': discount_amount,
        'tax_percent': to_money(tax_percent),
        'tax_amount': tax_amount,
        'total_amount': to_money(taxable + tax_amount),
    }


def _build_items(items: List[Mapping[str, Any]]) -> List[InvoiceItem]:
    rows = []
    for position, item in enumerate(items):
        rows.append(InvoiceItem(
            position=position,
            description=item['description'],
            category=item.get('category') or 'other',
            quantity=_dec(item.get('quantity'), Decimal('1')),
            unit_price=_dec(item.get('unit_price')),
            discount=_dec(item.get('discount')),
            tax=_dec(item.get('tax')),
            total=compute_item_total(item),
        ))
    return rows


def _apply_totals(invoice: Invoice, totals: Dict[str, Decimal]):
    for field, value in totals.items():
        setattr(invoice, field, value)
    invoice.balance_due = to_money(invoice.total_amount - to_money(invoice.amount_paid))


def _notify_clinic_staff(clinic_id, roles, type, title, message, **kwargs):
    """In-app notification to every active staff member of the clinic with one of the roles."""
    recipients = User.query.filter(
        User.clinic_id == clinic_id,
        User.is_active.is_(True),
        User.role.in_(roles),
    ).all()
    for user in recipients:
        notify(user.id, type, title, message, clinic_id=clinic_id, **kwargs)


def create_invoice(
    clinic_id: int,
    patient_id: int,
    items: List[Mapping[str, Any]],
    discount: Any = 0,
    tax: Any = 0,
    invoice_date: Optional[date] = None,
    due_date: Optional[date] = None,
    appointment_id: Optional[int] = None,
    medical_record_id: Optional[int] = None,
    notes: Optional[str] = None,
    insurance_claim_number: Optional[str] = None,
    issued_by: Optional[int] = None,
) -> Invoice:
    """
    Issue an invoice for a patient.

    Args:
        clinic_id: Tenant issuing the invoice
        patient_id: Patient of the same clinic
        items: Mappings with description, category, quantity, unit_price, discount, tax
        discount, tax: Invoice-level percentages
        issued_by: User ID of the issuing staff member

    Returns:
        Invoice: Committed invoice with status pending and balance_due == total
    """
    if not items:
        raise BadRequestError('Invoice must contain at least one item')

    clinic = db.session.get(Clinic, clinic_id)
    if not clinic:
        raise NotFoundError('Clinic not found')

    patient = Patient.query.filter_by(id=patient_id, clinic_id=clinic_id).filter(
        Patient.deleted_at.is_(None)
    ).first()
    if not patient:
        raise NotFoundError('Patient not found')

    if appointment_id is not None:
        appointment = Appointment.query.filter_by(id=appointment_id, clinic_id=clinic_id).first()
        if not appointment or appointment.patient_id != patient.id:
            raise NotFoundError('Appointment not found')

    if medical_record_id is not None:
        record = MedicalRecord.query.filter_by(id=medical_record_id, clinic_id=clinic_id).first()
        if not record or record.patient_id != patient.id:
            raise NotFoundError('Medical record not found')

    invoice_date = invoice_date or date.today()
    totals = compute_invoice_totals(items, discount, tax)

    invoice = Invoice(
        clinic_id=clinic_id,
        patient_id=patient.id,
        appointment_id=appointment_id,
        medical_record_id=medical_record_id,
        invoice_number=next_number(Invoice, Invoice.invoice_number, 'INV'),
        invoice_date=invoice_date,
        due_date=due_date or invoice_date + timedelta(days=DEFAULT_DUE_DAYS),
        items=_build_items(items),
        amount_paid=to_money(0),
        status='pending',
        currency=clinic.currency or 'USD',
        notes=notes,
        insurance_claim_number=insurance_claim_number,
        issued_by=issued_by,
    )
    _apply_totals(invoice, totals)
    db.session.add(invoice)
    db.session.flush()
    log_audit('invoice', 'create', user_id=issued_by, entity_id=invoice.id,
              details={'invoice_number': invoice.invoice_number, 'total': invoice.total_amount},
              clinic_id=clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Invoice created: {invoice.invoice_number} total={invoice.total_amount} (patient {patient.id})")

    _notify_clinic_staff(
        clinic_id,
        ('admin', 'accountant'),
        'invoice-generated',
        'New invoice',
        f"Invoice {invoice.invoice_number} issued to {patient.full_name} for {invoice.total_amount} {invoice.currency}",
        related_model='Invoice',
        related_id=invoice.id,
    )
    return invoice


def update_invoice(invoice: Invoice, changes: Dict[str, Any], actor_id: Optional[int] = None) -> Invoice:
    """
    Edit an unpaid invoice. Items or percentages trigger a full recompute;
    the new total can never drop below what was already paid.
    """
    if invoice.status in ('paid', 'cancelled'):
        raise BadRequestError(f'Cannot update a {invoice.status} invoice')

    items = changes.get('items')
    if items is not None or changes.get('discount') is not None or changes.get('tax') is not None:
        item_data = items if items is not None else [item.to_dict() for item in invoice.items]
        discount = changes.get('discount')
        tax = changes.get('tax')
        totals = compute_invoice_totals(
            item_data,
            invoice.discount_percent if discount is None else discount,
            invoice.tax_percent if tax is None else tax,
        )
        if totals['total_amount'] < to_money(invoice.amount_paid):
            raise BadRequestError('New total cannot be less than the amount already paid')
        if items is not None:
            invoice.items = _build_items(items)
        _apply_totals(invoice, totals)
        if invoice.amount_paid > 0:
            invoice.status = 'paid' if invoice.balance_due == 0 else 'partially-paid'

    for field in ('due_date', 'notes', 'insurance_claim_number'):
        if changes.get(field) is not None:
            setattr(invoice, field, changes[field])

    log_audit('invoice', 'update', user_id=actor_id, entity_id=invoice.id,
              details={k: v for k, v in changes.items() if v is not None and k != 'items'},
              clinic_id=invoice.clinic_id, commit=False)
    db.session.commit()
    return invoice


def _lock_invoice(invoice_id: int) -> Optional[Invoice]:
    """Re-read the invoice under SELECT ... FOR UPDATE."""
    return db.session.execute(
        db.select(Invoice)
        .where(Invoice.id == invoice_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def record_payment(
    invoice: Invoice,
    amount: Any,
    payment_method: str,
    transaction_id: Optional[str] = None,
    notes: Optional[str] = None,
    received_by: Optional[int] = None,
) -> Payment:
    """
    Record a payment against an invoice.

    The payment row and the invoice balance are committed together. The
    invoice row is locked and versioned, so a concurrent writer either waits
    or fails with StaleDataError (409).

    Raises:
        BadRequestError: Invoice paid/cancelled, amount <= 0 or above balance due
    """
    invoice = _lock_invoice(invoice.id) or invoice
    amount = to_money(amount)

    if invoice.status in ('paid', 'cancelled'):
        raise BadRequestError(f'Cannot record payment for a {invoice.status} invoice')
    if amount <= 0:
        raise BadRequestError('Payment amount must be greater than zero')
    balance = to_money(invoice.balance_due)
    if amount > balance:
        raise BadRequestError(
            f'Payment amount ({amount}) exceeds balance due ({balance})',
            errors={'amount': f'Maximum allowed is {balance}'},
        )

    payment = Payment(
        clinic_id=invoice.clinic_id,
        invoice_id=invoice.id,
        patient_id=invoice.patient_id,
        payment_number=next_number(Payment, Payment.payment_number, 'PAY'),
        payment_date=datetime.utcnow(),
        amount=amount,
        payment_method=payment_method,
        status='completed',
        transaction_id=transaction_id,
        notes=notes,
        received_by=received_by,
    )
    db.session.add(payment)

    invoice.amount_paid = to_money(invoice.amount_paid) + amount
    invoice.balance_due = to_money(invoice.total_amount) - invoice.amount_paid
    if invoice.balance_due == 0:
        invoice.status = 'paid'
    elif invoice.amount_paid > 0:
        invoice.status = 'partially-paid'

    db.session.flush()
    log_audit('payment', 'create', user_id=received_by, entity_id=payment.id,
              details={'invoice_number': invoice.invoice_number, 'amount': amount, 'method': payment_method},
              clinic_id=invoice.clinic_id, commit=False)
    db.session.commit()
    logger.info(
        f"Payment {payment.payment_number} of {amount} recorded on {invoice.invoice_number} "
        f"(balance {invoice.balance_due}, {invoice.status})"
    )

    from clinic_tasks.billing_tasks import send_payment_receipt
    dispatch(send_payment_receipt, payment.id)
    _notify_clinic_staff(
        invoice.clinic_id,
        ('admin', 'accountant'),
        'payment-received',
        'Payment received',
        f"{amount} {invoice.currency} received on {invoice.invoice_number}",
        related_model='Payment',
        related_id=payment.id,
    )
    return payment


def refund_payment(
    payment: Payment,
    amount: Any = None,
    reason: Optional[str] = None,
    refunded_by: Optional[int] = None,
    notes: Optional[str] = None,
) -> Payment:
    """
    Refund a payment, fully or partially, and restore the invoice balance.

    Any refund marks the payment as refunded; a partial refund cannot be
    followed by a second one.
    """
    if payment.status == 'refunded' or payment.refund_amount is not None:
        raise BadRequestError('Payment already refunded')
    if payment.status != 'completed':
        raise BadRequestError(f'Cannot refund a {payment.status} payment')
    if not reason:
        raise BadRequestError('Refund reason is required')

    refund_amount = to_money(payment.amount if amount is None else amount)
    if refund_amount <= 0:
        raise BadRequestError('Refund amount must be greater than zero')
    if refund_amount > to_money(payment.amount):
        raise BadRequestError(
            'Refund amount cannot exceed payment amount',
            errors={'amount': f'Maximum allowed is {to_money(payment.amount)}'},
        )

    invoice = _lock_invoice(payment.invoice_id)
    if not invoice:
        raise NotFoundError('Invoice not found')

    payment.status = 'refunded'
    payment.refund_amount = refund_amount
    payment.refund_reason = reason
    payment.refund_date = datetime.utcnow()
    payment.refunded_by = refunded_by
    if notes:
        payment.notes = f"{payment.notes}\n{notes}" if payment.notes else notes

    invoice.amount_paid = to_money(invoice.amount_paid) - refund_amount
    invoice.balance_due = to_money(invoice.total_amount) - invoice.amount_paid
    if invoice.amount_paid == 0:
        invoice.status = 'pending'
    elif invoice.balance_due > 0:
        invoice.status = 'partially-paid'

    log_audit('payment', 'refund', user_id=refunded_by, entity_id=payment.id,
              details={'invoice_number': invoice.invoice_number, 'amount': refund_amount, 'reason': reason},
              clinic_id=payment.clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Payment {payment.payment_number} refunded {refund_amount} ({invoice.invoice_number} now {invoice.status})")
    return payment


def update_payment(payment: Payment, changes: Dict[str, Any], actor_id: Optional[int] = None) -> Payment:
    """Only bookkeeping fields are editable; amounts change through refunds."""
    for field in ('payment_method', 'transaction_id', 'notes'):
        if changes.get(field) is not None:
            setattr(payment, field, changes[field])
    log_audit('payment', 'update', user_id=actor_id, entity_id=payment.id,
              details={k: v for k, v in changes.items() if v is not None},
              clinic_id=payment.clinic_id, commit=False)
    db.session.commit()
    return payment


def _holds_payments(invoice: Invoice) -> bool:
    """Money still on the invoice, including what is left after a partial refund."""
    if to_money(invoice.amount_paid) > 0:
        return True
    return invoice.payments.filter(Payment.status == 'completed').count() > 0


def cancel_invoice(invoice: Invoice, actor_id: Optional[int] = None, reason: Optional[str] = None) -> Invoice:
    if invoice.status == 'cancelled':
        raise BadRequestError('Invoice is already cancelled')
    if invoice.status == 'paid':
        raise BadRequestError('Cannot cancel a paid invoice')
    if _holds_payments(invoice):
        raise BadRequestError('Invoice has payments. Refund them first')

    invoice.status = 'cancelled'
    log_audit('invoice', 'cancel', user_id=actor_id, entity_id=invoice.id,
              details={'reason': reason} if reason else None,
              clinic_id=invoice.clinic_id, commit=False)
    db.session.commit()
    logger.info(f"Invoice {invoice.invoice_number} cancelled by user {actor_id}")
    return invoice


def delete_invoice(invoice: Invoice, actor_id: Optional[int] = None) -> bool:
    """
    Remove an invoice. Invoices with payment history are soft deleted.

    Returns:
        bool: True if the row was hard deleted
    """
    if invoice.status == 'paid' or _holds_payments(invoice):
        raise BadRequestError('Invoice has payments. Refund them first')

    log_audit('invoice', 'delete', user_id=actor_id, entity_id=invoice.id,
              details={'invoice_number': invoice.invoice_number},
              clinic_id=invoice.clinic_id, commit=False)
    hard = invoice.payments.count() == 0
    if hard:
        db.session.delete(invoice)
    else:
        invoice.deleted_at = datetime.utcnow()
        invoice.status = 'cancelled'
    db.session.commit()
    logger.info(f"Invoice {invoice.invoice_number} {'deleted' if hard else 'soft deleted'} by user {actor_id}")
    return hard


def overdue_filter(query, today: Optional[date] = None):
    today = today or date.today()
    return query.filter(Invoice.status.in_(OPEN_STATUSES), Invoice.due_date < today)


def invoice_stats(query) -> Dict[str, Any]:
    """Aggregate totals over an already tenant-filtered Invoice query."""
    invoices = query.filter(Invoice.deleted_at.is_(None)).all()
    by_status: Dict[str, Dict[str, Any]] = {}
    total_amount = total_paid = total_due = ZERO
    overdue = 0
    for invoice in invoices:
        bucket = by_status.setdefault(invoice.status, {'count': 0, 'total_amount': ZERO})
        bucket['count'] += 1
        bucket['total_amount'] += _dec(invoice.total_amount)
        if invoice.status == 'cancelled':
            continue
        total_amount += _dec(invoice.total_amount)
        total_paid += _dec(invoice.amount_paid)
        total_due += _dec(invoice.balance_due)
        if invoice.is_overdue:
            overdue += 1

    return {
        'total_invoices': len(invoices),
        'total_amount': money(total_amount),
        'total_paid': money(total_paid),
        'total_due': money(total_due),
        'overdue_count': overdue,
        'by_status': {
            status: {'count': b['count'], 'total_amount': money(b['total_amount'])}
            for status, b in by_status.items()
        },
    }


def payment_stats(query) -> Dict[str, Any]:
    """Aggregate totals over an already tenant-filtered Payment query."""
    payments = query.all()
    by_method: Dict[str, Dict[str, Any]] = {}
    collected = refunded = ZERO
    refund_count = 0
    for payment in payments:
        if payment.status in ('completed', 'refunded'):
            collected += _dec(payment.amount)
            bucket = by_method.setdefault(payment.payment_method, {'count': 0, 'amount': ZERO})
            bucket['count'] += 1
            bucket['amount'] += _dec(payment.amount)
        if payment.refund_amount is not None:
            refund_count += 1
            refunded += _dec(payment.refund_amount)

    return {
        'total_payments': len(payments),
        'total_collected': money(collected),
        'total_refunded': money(refunded),
        'net_collected': money(collected - refunded),
        'refund_count': refund_count,
        'by_method': {
            method: {'count': b['count'], 'amount': money(b['amount'])}
            for method, b in by_method.items()
        },
    }
