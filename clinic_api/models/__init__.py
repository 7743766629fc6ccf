from .clinic import Clinic
from .user import User
from .patient import Patient
from .appointment import Appointment, AppointmentReminder
from .invoice import Invoice, InvoiceItem
from .payment import Payment
from .prescription import Prescription
from .medical_record import MedicalRecord
from .notification import Notification
from .audit_log import AuditLog

__all__ = [
    "Clinic",
    "User",
    "Patient",
    "Appointment",
    "AppointmentReminder",
    "Invoice",
    "InvoiceItem",
    "Payment",
    "Prescription",
    "MedicalRecord",
    "Notification",
    "AuditLog",
]
