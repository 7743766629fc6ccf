"""
Staff account provisioning and password tokens
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from clinic_api.extensions import db
from clinic_api.models import Clinic, User
from clinic_api.services.email_service import send_welcome_email
from clinic_api.utils.errors import BadRequestError, ConflictError

logger = logging.getLogger(__name__)

SETUP_TOKEN_DAYS = 7
RESET_TOKEN_HOURS = 1


def frontend_link(path: str) -> str:
    base_url = current_app.config.get('FRONTEND_BASE_URL') or 'http://localhost:3000'
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def issue_token(user: User, lifetime: timedelta) -> str:
    """Store a one-time token on the user for password setup or reset."""
    token = secrets.token_urlsafe(32)
    user.reset_token = token
    user.reset_token_expiry = datetime.utcnow() + lifetime
    return token


def find_by_token(token: str) -> Optional[User]:
    user = User.query.filter_by(reset_token=token).first()
    if not user or not user.reset_token_expiry or user.reset_token_expiry < datetime.utcnow():
        return None
    return user


def create_staff_user(
    clinic_id: int,
    username: str,
    email: str,
    first_name: str,
    role: str,
    last_name: str = '',
    phone: Optional[str] = None,
    specialization: Optional[str] = None,
    commit: bool = True,
) -> User:
    """
    Create an inactive staff account and email a set-password link.

    The account becomes active once the password is set.
    """
    if User.query.filter_by(username=username).first():
        raise ConflictError('Username already exists', errors={'username': 'Already taken'})
    if User.query.filter_by(email=email).first():
        raise ConflictError('Email already exists', errors={'email': 'Already taken'})

    clinic = db.session.get(Clinic, clinic_id)
    if not clinic:
        raise BadRequestError('Clinic not found')

    user = User(
        clinic_id=clinic_id,
        username=username,
        email=email,
        first_name=first_name,
        last_name=last_name or '',
        phone=phone,
        specialization=specialization if role == 'doctor' else None,
        role=role,
        is_active=False,
        is_super_admin=False,
    )
    user.set_password(secrets.token_urlsafe(16))
    issue_token(user, timedelta(days=SETUP_TOKEN_DAYS))
    db.session.add(user)
    db.session.flush()
    logger.info(f"Staff user {user.username} ({role}) created for clinic {clinic_id}")
    if commit:
        db.session.commit()
        send_setup_email(user)
    return user


def send_setup_email(user: User) -> bool:
    """Welcome email carrying the set-password link. Call after commit."""
    return send_welcome_email(
        email=user.email,
        username=user.username,
        role=user.role,
        set_password_link=frontend_link(f"set-password/{user.reset_token}"),
        clinic_name=user.clinic.name if user.clinic else None,
    )
