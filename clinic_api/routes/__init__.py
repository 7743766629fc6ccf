from .auth import auth_bp
from .clinic import clinic_bp
from .user import user_bp
from .patient import patient_bp
from .appointment import appointment_bp
from .invoice import invoice_bp
from .payment import payment_bp
from .prescription import prescription_bp
from .medical_record import medical_record_bp
from .notification import notification_bp
from .health import health_bp

__all__ = [
    'auth_bp',
    'clinic_bp',
    'user_bp',
    'patient_bp',
    'appointment_bp',
    'invoice_bp',
    'payment_bp',
    'prescription_bp',
    'medical_record_bp',
    'notification_bp',
    'health_bp',
]
