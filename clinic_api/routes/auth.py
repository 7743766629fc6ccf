from datetime import datetime, timedelta

from flask import Blueprint
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity,
)

from clinic_api.extensions import db
from clinic_api.models import User
from clinic_api.schemas import (
    LoginSchema,
    ForgotPasswordSchema,
    ResetPasswordSchema,
    ChangePasswordSchema,
    TokenSchema,
    SetPasswordSchema,
)
from clinic_api.services.account_service import RESET_TOKEN_HOURS, find_by_token, frontend_link, issue_token
from clinic_api.services.email_service import send_password_reset_email
from clinic_api.utils.audit import log_audit
from clinic_api.utils.decorators import get_current_user
from clinic_api.utils.errors import BadRequestError, ForbiddenError, UnauthorizedError
from clinic_api.utils.responses import success_response
from clinic_api.utils.validation import validate_body

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

RESET_MESSAGE = 'If this email exists, a reset link has been sent.'


def _token_payload(user):
    # Identity must be a string for the JWT "sub" claim
    identity = str(user.id)
    claims = user.token_claims()
    return {
        'access_token': create_access_token(identity=identity, additional_claims=claims, fresh=True),
        'refresh_token': create_refresh_token(identity=identity, additional_claims=claims),
        'token_type': 'bearer',
    }


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login endpoint - authenticates staff and returns JWT tokens"""
    body = validate_body(LoginSchema)

    user = User.query.filter_by(username=body.username).first()
    if not user or not user.check_password(body.password):
        raise UnauthorizedError('Invalid username or password')
    if not user.is_active:
        raise ForbiddenError('Account is deactivated')

    # Update login tracking
    user.last_login = datetime.utcnow()
    user.login_count = (user.login_count or 0) + 1
    db.session.commit()

    return success_response('Login successful', data={'user': user.to_dict(), **_token_payload(user)})


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """Stateless JWT: the client drops its tokens."""
    return success_response('Logged out successfully')


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    user = get_current_user()
    data = user.to_dict()
    data['clinic'] = user.clinic.to_dict() if user.clinic else None
    return success_response('Current user', data=data)


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """Refresh access token using refresh token"""
    user = db.session.get(User, int(get_jwt_identity()))
    if not user or not user.is_active:
        raise UnauthorizedError('Could not refresh token')
    # Claims come from the database so role changes apply on refresh
    access_token = create_access_token(
        identity=str(user.id),
        additional_claims=user.token_claims(),
        fresh=False,
    )
    return success_response('Token refreshed', data={'access_token': access_token, 'token_type': 'bearer'})


@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    """
    Request password reset.
    Always returns success (does not leak whether email exists).
    """
    body = validate_body(ForgotPasswordSchema)

    user = User.query.filter_by(email=body.email.lower()).first()
    if not user:
        return success_response(RESET_MESSAGE)

    token = issue_token(user, timedelta(hours=RESET_TOKEN_HOURS))
    db.session.commit()

    send_password_reset_email(
        email=user.email,
        reset_link=frontend_link(f'reset-password/{token}'),
        user_name=user.full_name or user.username,
    )
    return success_response(RESET_MESSAGE)


@auth_bp.route('/verify-reset-token', methods=['POST'])
def verify_reset_token():
    body = validate_body(TokenSchema)
    if not find_by_token(body.token):
        raise BadRequestError('Invalid or expired token')
    return success_response('Token is valid')


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    body = validate_body(ResetPasswordSchema)

    user = find_by_token(body.token)
    if not user:
        raise BadRequestError('Invalid or expired token')

    user.set_password(body.new_password)
    user.reset_token = None
    user.reset_token_expiry = None
    log_audit('user', 'reset_password', user_id=user.id, entity_id=user.id, clinic_id=user.clinic_id, commit=False)
    db.session.commit()
    return success_response('Password has been reset successfully')


@auth_bp.route('/set-password', methods=['POST'])
def set_password():
    """First-time password setup (welcome email). Activates the account."""
    body = validate_body(SetPasswordSchema)

    user = find_by_token(body.token)
    if not user:
        raise BadRequestError('Invalid or expired token')

    user.set_password(body.password)
    user.reset_token = None
    user.reset_token_expiry = None
    user.is_active = True
    db.session.commit()
    return success_response('Password set successfully. You can now log in.')


@auth_bp.route('/change-password', methods=['POST'])
@jwt_required()
def change_password():
    body = validate_body(ChangePasswordSchema)
    user = get_current_user()

    if not user.check_password(body.current_password):
        raise BadRequestError('Current password is incorrect', errors={'current_password': 'Incorrect password'})
    if body.current_password == body.new_password:
        raise BadRequestError('New password must be different from the current one')

    user.set_password(body.new_password)
    log_audit('user', 'change_password', user_id=user.id, entity_id=user.id, clinic_id=user.clinic_id, commit=False)
    db.session.commit()
    return success_response('Password changed successfully')
