"""
In-app notifications for the logged-in staff member.
"""
from datetime import datetime

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from clinic_api.extensions import db
from clinic_api.models import Notification, User
from clinic_api.schemas import CreateNotificationSchema
from clinic_api.services.notification_service import create_notification
from clinic_api.utils.decorators import get_current_user, require_role
from clinic_api.utils.errors import NotFoundError
from clinic_api.utils.responses import get_pagination_args, pagination_meta, success_response
from clinic_api.utils.validation import validate_body

notification_bp = Blueprint('notification', __name__, url_prefix='/api/notifications')


def _mine():
    """Current user's notifications that have not expired."""
    now = datetime.utcnow()
    return Notification.query.filter(
        Notification.recipient_id == get_current_user().id,
        db.or_(Notification.expires_at.is_(None), Notification.expires_at > now),
    )


def _get_mine_or_404(notification_id):
    notification = _mine().filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFoundError('Notification not found')
    return notification


@notification_bp.route('', methods=['GET'])
@jwt_required()
def list_notifications():
    """Query params: is_read=true|false, type, page, limit"""
    page, limit = get_pagination_args(request.args, default_limit=20)
    query = _mine()

    is_read = request.args.get('is_read', type=str)
    if is_read in ('true', 'false'):
        query = query.filter(Notification.is_read.is_(is_read == 'true'))
    notification_type = request.args.get('type', type=str)
    if notification_type:
        query = query.filter(Notification.type == notification_type)

    total = query.count()
    notifications = query.order_by(Notification.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        'Notifications retrieved',
        data={
            'notifications': [n.to_dict() for n in notifications],
            'unread_count': _mine().filter(Notification.is_read.is_(False)).count(),
            'pagination': pagination_meta(page, limit, total),
        },
    )


@notification_bp.route('/unread-count', methods=['GET'])
@jwt_required()
def unread_count():
    return success_response('Unread count', data={'count': _mine().filter(Notification.is_read.is_(False)).count()})


@notification_bp.route('', methods=['POST'])
@jwt_required()
@require_role('admin', 'doctor', 'receptionist', 'accountant')
def send_notification():
    """Staff to staff message within the same clinic."""
    body = validate_body(CreateNotificationSchema)
    sender = get_current_user()

    recipient = db.session.get(User, body.recipient_id)
    if not recipient or (not sender.is_super_admin and recipient.clinic_id != sender.clinic_id):
        raise NotFoundError('Recipient not found')

    data = dict(body.data or {})
    data['sender_id'] = sender.id
    notification = create_notification(
        recipient.id,
        body.type,
        body.title,
        body.message,
        clinic_id=recipient.clinic_id,
        data=data,
        priority=body.priority,
        expires_at=body.expires_at,
    )
    return success_response('Notification sent', data=notification.to_dict(), status_code=201)


@notification_bp.route('/read-all', methods=['PUT'])
@jwt_required()
def mark_all_read():
    now = datetime.utcnow()
    updated = (
        Notification.query
        .filter(Notification.recipient_id == get_current_user().id, Notification.is_read.is_(False))
        .update({'is_read': True, 'read_at': now}, synchronize_session=False)
    )
    db.session.commit()
    return success_response('All notifications marked as read', data={'updated': updated})


@notification_bp.route('/<int:notification_id>/read', methods=['PUT'])
@jwt_required()
def mark_read(notification_id):
    notification = _get_mine_or_404(notification_id)
    if not notification.is_read:
        notification.mark_as_read()
        db.session.commit()
    return success_response('Notification marked as read', data=notification.to_dict())


@notification_bp.route('/<int:notification_id>', methods=['DELETE'])
@jwt_required()
def delete_notification(notification_id):
    notification = _get_mine_or_404(notification_id)
    db.session.delete(notification)
    db.session.commit()
    return success_response('Notification deleted')
