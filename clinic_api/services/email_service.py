"""
Email Service for account, appointment and billing messages
"""
import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from flask import current_app

logger = logging.getLogger(__name__)

_LAYOUT = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #4a90a4; color: white; padding: 20px; text-align: center; border-radius: 5px 5px 0 0; }}
        .content {{ background: #f9f9f9; padding: 30px; border: 1px solid #ddd; }}
        .details {{ background: white; padding: 20px; border-radius: 5px; margin: 20px 0; border-left: 4px solid #4a90a4; }}
        .details td {{ padding: 6px 12px 6px 0; }}
        .button {{ display: inline-block; background: #27ae60; color: white; padding: 15px 40px; text-decoration: none; border-radius: 5px; margin: 20px 0; }}
        .footer {{ text-align: center; padding: 20px; color: #666; font-size: 12px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>{title}</h1></div>
        <div class="content">{body}</div>
        <div class="footer"><p>{footer}</p></div>
    </div>
</body>
</html>
"""


def _details_table(rows):
    cells = ''.join(f'<tr><td><strong>{label}:</strong></td><td>{value}</td></tr>' for label, value in rows if value)
    return f'<div class="details"><table>{cells}</table></div>'


def _details_text(rows):
    return '\n'.join(f'{label}: {value}' for label, value in rows if value)


def send_email(to, subject, text, html=None):
    """
    Send a multipart email through the configured SMTP server.

    Returns:
        bool: True if email sent successfully, False otherwise
    """
    if not to:
        logger.warning(f"No recipient for '{subject}'. Skipping email.")
        return False
    try:
        mail_server = current_app.config.get('MAIL_SERVER')
        mail_port = current_app.config.get('MAIL_PORT')
        mail_use_tls = current_app.config.get('MAIL_USE_TLS')
        mail_username = current_app.config.get('MAIL_USERNAME')
        mail_password = current_app.config.get('MAIL_PASSWORD')
        mail_sender = current_app.config.get('MAIL_DEFAULT_SENDER')

        if not mail_server or not mail_username or not mail_password:
            logger.warning(f"Email not configured. Skipping '{subject}'.")
            return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = mail_sender
        msg['To'] = to
        msg.attach(MIMEText(text, 'plain'))
        if html:
            msg.attach(MIMEText(html, 'html'))

        with smtplib.SMTP(mail_server, mail_port) as server:
            if mail_use_tls:
                server.starttls()
            server.login(mail_username, mail_password)
            server.sendmail(mail_sender, to, msg.as_string())

        logger.info(f"Email '{subject}' sent to {to}")
        return True

    except Exception as e:
        logger.error(f"Failed to send email '{subject}' to {to}: {e}")
        return False


def send_welcome_email(email, username, role, set_password_link, clinic_name=None):
    """
    Send welcome email with link to set password (first time login)

    Args:
        email: User's email address
        username: Login username
        role: User role (doctor, receptionist, ...)
        set_password_link: Link to set password
        clinic_name: Name of the clinic (optional)
    """
    rows = [('Username', username), ('Role', role.title()), ('Clinic', clinic_name)]
    text = f"""
Welcome to Clinic Management System!

Your account has been created successfully.

{_details_text(rows)}

To complete your account setup, please set your password using the link below:
{set_password_link}

This link will expire in 24 hours.
"""
    html = _LAYOUT.format(
        title='Welcome!',
        body=(
            '<h2>Your account has been created</h2>'
            f'{_details_table(rows)}'
            f'<center><a href="{set_password_link}" class="button">Set Your Password</a></center>'
            '<p>This link will expire in 24 hours.</p>'
        ),
        footer='Clinic Management System',
    )
    return send_email(email, 'Welcome to Clinic Management System - Set Your Password', text, html)


def send_password_reset_email(email, reset_link, user_name):
    """Send password reset link to user"""
    text = f"""
Hello {user_name},

You requested to reset your password for Clinic Management System.

Click the link below to reset your password:
{reset_link}

This link will expire in 1 hour. If you did not request this, please ignore this email.
"""
    html = _LAYOUT.format(
        title='Password Reset',
        body=(
            f'<p>Hello {user_name},</p>'
            '<p>You requested to reset your password.</p>'
            f'<center><a href="{reset_link}" class="button">Reset Password</a></center>'
            '<p>This link will expire in 1 hour.</p>'
        ),
        footer='Clinic Management System',
    )
    return send_email(email, 'Password Reset - Clinic Management System', text, html)


def _appointment_rows(appointment):
    doctor = appointment.doctor.full_name if appointment.doctor else None
    return [
        ('Appointment', appointment.appointment_number),
        ('Date', appointment.scheduled_date.isoformat()),
        ('Time', f'{appointment.start_time} - {appointment.end_time}'),
        ('Doctor', f'Dr. {doctor}' if doctor else None),
        ('Clinic', appointment.clinic.name if appointment.clinic else None),
    ]


def send_appointment_confirmation_email(appointment):
    patient = appointment.patient
    rows = _appointment_rows(appointment)
    text = f"Dear {patient.full_name},\n\nYour appointment has been booked.\n\n{_details_text(rows)}\n"
    html = _LAYOUT.format(
        title='Appointment Booked',
        body=f'<p>Dear {patient.full_name},</p><p>Your appointment has been booked.</p>{_details_table(rows)}',
        footer=appointment.clinic.name if appointment.clinic else 'Clinic Management System',
    )
    return send_email(patient.email, f'Appointment {appointment.appointment_number} confirmed', text, html)


def send_appointment_reminder_email(appointment, hours_before):
    patient = appointment.patient
    rows = _appointment_rows(appointment)
    when = 'tomorrow' if hours_before >= 24 else f'in {hours_before} hour(s)'
    text = (
        f"Dear {patient.full_name},\n\nThis is a reminder of your appointment {when}.\n\n"
        f"{_details_text(rows)}\n\nPlease arrive 10 minutes early.\n"
    )
    html = _LAYOUT.format(
        title='Appointment Reminder',
        body=(
            f'<p>Dear {patient.full_name},</p><p>This is a reminder of your appointment {when}.</p>'
            f'{_details_table(rows)}<p>Please arrive 10 minutes early.</p>'
        ),
        footer=appointment.clinic.name if appointment.clinic else 'Clinic Management System',
    )
    return send_email(patient.email, f'Reminder: appointment {when}', text, html)


def send_payment_receipt_email(payment):
    invoice = payment.invoice
    patient = payment.patient
    rows = [
        ('Receipt', payment.payment_number),
        ('Invoice', invoice.invoice_number),
        ('Amount', f'{payment.amount} {invoice.currency}'),
        ('Method', payment.payment_method),
        ('Balance due', f'{invoice.balance_due} {invoice.currency}'),
    ]
    text = f"Dear {patient.full_name},\n\nWe received your payment. Thank you.\n\n{_details_text(rows)}\n"
    html = _LAYOUT.format(
        title='Payment Received',
        body=f'<p>Dear {patient.full_name},</p><p>We received your payment. Thank you.</p>{_details_table(rows)}',
        footer=invoice.clinic.name if invoice.clinic else 'Clinic Management System',
    )
    return send_email(patient.email, f'Payment receipt {payment.payment_number}', text, html)


def send_overdue_invoice_email(invoice):
    patient = invoice.patient
    rows = [
        ('Invoice', invoice.invoice_number),
        ('Due date', invoice.due_date.isoformat() if invoice.due_date else None),
        ('Balance due', f'{invoice.balance_due} {invoice.currency}'),
    ]
    text = f"Dear {patient.full_name},\n\nThe following invoice is past due.\n\n{_details_text(rows)}\n"
    html = _LAYOUT.format(
        title='Payment Reminder',
        body=f'<p>Dear {patient.full_name},</p><p>The following invoice is past due.</p>{_details_table(rows)}',
        footer=invoice.clinic.name if invoice.clinic else 'Clinic Management System',
    )
    return send_email(patient.email, f'Invoice {invoice.invoice_number} is overdue', text, html)
