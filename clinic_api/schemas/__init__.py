from .auth import (
    LoginSchema,
    ForgotPasswordSchema,
    ResetPasswordSchema,
    ChangePasswordSchema,
    TokenSchema,
    SetPasswordSchema,
)
from .clinic import CreateClinicSchema, UpdateClinicSchema
from .user import CreateUserSchema, UpdateUserSchema
from .patient import CreatePatientSchema, UpdatePatientSchema
from .appointment import (
    CreateAppointmentSchema,
    UpdateAppointmentSchema,
    CancelAppointmentSchema,
    RescheduleAppointmentSchema,
)
from .billing import (
    CreateInvoiceSchema,
    UpdateInvoiceSchema,
    RecordPaymentSchema,
    CreatePaymentSchema,
    UpdatePaymentSchema,
    RefundPaymentSchema,
)
from .prescription import CreatePrescriptionSchema, UpdatePrescriptionSchema
from .medical_record import CreateMedicalRecordSchema, UpdateMedicalRecordSchema
from .notification import CreateNotificationSchema

__all__ = [
    "LoginSchema",
    "ForgotPasswordSchema",
    "ResetPasswordSchema",
    "ChangePasswordSchema",
    "TokenSchema",
    "SetPasswordSchema",
    "CreateClinicSchema",
    "UpdateClinicSchema",
    "CreateUserSchema",
    "UpdateUserSchema",
    "CreatePatientSchema",
    "UpdatePatientSchema",
    "CreateAppointmentSchema",
    "UpdateAppointmentSchema",
    "CancelAppointmentSchema",
    "RescheduleAppointmentSchema",
    "CreateInvoiceSchema",
    "UpdateInvoiceSchema",
    "RecordPaymentSchema",
    "CreatePaymentSchema",
    "UpdatePaymentSchema",
    "RefundPaymentSchema",
    "CreatePrescriptionSchema",
    "UpdatePrescriptionSchema",
    "CreateMedicalRecordSchema",
    "UpdateMedicalRecordSchema",
    "CreateNotificationSchema",
]
