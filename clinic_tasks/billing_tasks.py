"""
Celery tasks for payment receipts and overdue invoice reminders
"""
import logging
from datetime import date, datetime, timedelta

from flask import current_app

from clinic_api.extensions import celery, db
from clinic_api.models import Invoice, Payment
from clinic_api.services.email_service import send_overdue_invoice_email, send_payment_receipt_email
from clinic_api.services.sms_service import render_sms, send_sms

logger = logging.getLogger(__name__)


def _try(label, send):
    try:
        return bool(send())
    except Exception as e:
        logger.error(f"{label} failed: {e}")
        return False


@celery.task(name='clinic_tasks.send_payment_receipt')
def send_payment_receipt(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        logger.warning(f"Payment {payment_id} not found for receipt")
        return {'success': False, 'error': 'Payment not found'}

    invoice = payment.invoice
    sms_body = render_sms(
        'payment_received',
        patient_name=payment.patient.full_name,
        amount=payment.amount,
        currency=invoice.currency,
        invoice_number=invoice.invoice_number,
    )
    return {
        'success': True,
        'email': _try('Receipt email', lambda: send_payment_receipt_email(payment)),
        'sms': _try('Receipt SMS', lambda: send_sms(payment.patient.phone, sms_body)[0]),
    }


def overdue_invoices(today=None, now=None):
    """
    Open invoices past their due date that were not reminded within the
    configured interval.
    """
    today = today or date.today()
    now = now or datetime.utcnow()
    interval = timedelta(days=current_app.config.get('OVERDUE_REMINDER_INTERVAL_DAYS', 7))
    return Invoice.query.filter(
        Invoice.status.in_(('pending', 'partially-paid')),
        Invoice.deleted_at.is_(None),
        Invoice.due_date < today,
        db.or_(Invoice.last_reminder_sent.is_(None), Invoice.last_reminder_sent < now - interval),
    ).all()


@celery.task(name='clinic_tasks.send_overdue_payment_reminders')
def send_overdue_payment_reminders():
    """Daily at 09:00: remind patients of unpaid invoices past their due date."""
    now = datetime.utcnow()
    reminded = 0
    for invoice in overdue_invoices(now=now):
        patient = invoice.patient
        sms_body = render_sms(
            'invoice_overdue',
            patient_name=patient.full_name,
            invoice_number=invoice.invoice_number,
            amount=invoice.balance_due,
            currency=invoice.currency,
            due_date=invoice.due_date.isoformat(),
        )
        email_ok = _try(f'Overdue email {invoice.invoice_number}', lambda: send_overdue_invoice_email(invoice))
        sms_ok = _try(f'Overdue SMS {invoice.invoice_number}', lambda: send_sms(patient.phone, sms_body)[0])
        invoice.last_reminder_sent = now
        reminded += 1
        logger.info(f"Overdue reminder for {invoice.invoice_number}: email={email_ok} sms={sms_ok}")

    db.session.commit()
    logger.info(f"Overdue payment reminders sent for {reminded} invoice(s)")
    return {'reminded': reminded}
