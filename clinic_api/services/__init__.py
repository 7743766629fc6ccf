from .scheduling_service import (
    ranges_overlap,
    find_conflict,
    book_appointment,
    reschedule_appointment,
    cancel_appointment,
    complete_appointment,
    confirm_appointment,
    start_appointment,
    update_appointment,
    delete_appointment,
)

from .billing_service import (
    compute_item_total,
    compute_invoice_totals,
    create_invoice,
    update_invoice,
    record_payment,
    refund_payment,
    update_payment,
    cancel_invoice,
    delete_invoice,
    invoice_stats,
    payment_stats,
)

from .notification_service import create_notification, dispatch, notify
from .email_service import send_email, send_welcome_email, send_password_reset_email
from .sms_service import send_sms, render_sms

__all__ = [
    # Appointment Scheduler
    "ranges_overlap",
    "find_conflict",
    "book_appointment",
    "reschedule_appointment",
    "cancel_appointment",
    "complete_appointment",
    "confirm_appointment",
    "start_appointment",
    "update_appointment",
    "delete_appointment",
    # Invoice / Payment Ledger
    "compute_item_total",
    "compute_invoice_totals",
    "create_invoice",
    "update_invoice",
    "record_payment",
    "refund_payment",
    "update_payment",
    "cancel_invoice",
    "delete_invoice",
    "invoice_stats",
    "payment_stats",
    # Notifications
    "create_notification",
    "dispatch",
    "notify",
    "send_email",
    "send_welcome_email",
    "send_password_reset_email",
    "send_sms",
    "render_sms",
]
