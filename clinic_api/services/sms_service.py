"""
SMS Service
Sends patient text messages through the Twilio REST API
"""
import logging
from typing import Optional, Tuple

import httpx
from flask import current_app

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


SMS_TEMPLATES = {
    'appointment_confirmed': (
        "Dear {patient_name}, your appointment {appointment_number} is booked for "
        "{date} at {time} with Dr. {doctor_name}."
    ),
    'appointment_reminder': (
        "Dear {patient_name}, reminder of your appointment on {date} at {time} "
        "with Dr. {doctor_name} at {clinic_name}. Please arrive 10 minutes early."
    ),
    'payment_received': (
        "Dear {patient_name}, we received {amount} {currency} for invoice {invoice_number}. Thank you."
    ),
    'invoice_overdue': (
        "Dear {patient_name}, invoice {invoice_number} ({amount} {currency}) was due on {due_date}."
    ),
}


def render_sms(template: str, **data) -> str:
    try:
        return SMS_TEMPLATES[template].format(**data)
    except KeyError as e:
        raise ValueError(f"SMS template '{template}' cannot be rendered: missing {e}")


def send_sms(to_phone: Optional[str], body: str) -> Tuple[bool, Optional[str]]:
    """
    Send SMS via Twilio

    Args:
        to_phone: Recipient phone number in E.164 format
        body: SMS message content

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    if not to_phone:
        return False, "No phone number provided"
    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {to_phone}")
        return False, "Phone number must be in E.164 format (e.g., +1234567890)"

    account_sid = current_app.config.get('TWILIO_ACCOUNT_SID')
    auth_token = current_app.config.get('TWILIO_AUTH_TOKEN')
    from_number = current_app.config.get('TWILIO_PHONE_NUMBER')
    if not account_sid or not auth_token or not from_number:
        logger.warning("SMS not configured. Skipping message.")
        return False, "SMS not configured"

    try:
        response = httpx.post(
            TWILIO_MESSAGES_URL.format(sid=account_sid),
            auth=(account_sid, auth_token),
            data={"To": to_phone, "From": from_number, "Body": body},
            timeout=current_app.config.get('TWILIO_TIMEOUT', 10.0),
        )
    except httpx.HTTPError as e:
        logger.error(f"Twilio request failed for {to_phone}: {e}")
        return False, str(e)

    if response.status_code in (200, 201):
        logger.info(f"SMS sent to {to_phone} (SID: {response.json().get('sid')})")
        return True, None

    try:
        error_data = response.json()
    except ValueError:
        error_data = {}
    error_message = error_data.get("message", f"HTTP {response.status_code}")
    error_code = error_data.get("code")
    logger.error(f"Twilio rejected SMS to {to_phone}: [{error_code}] {error_message}")
    return False, f"[{error_code}] {error_message}" if error_code else error_message
