"""
Celery tasks for in-app notifications
"""
import logging
from datetime import datetime, timedelta

from flask import current_app

from clinic_api.extensions import celery, db
from clinic_api.models import Notification
from clinic_api.services.notification_service import create_notification

logger = logging.getLogger(__name__)


@celery.task(name='clinic_tasks.deliver_notification')
def deliver_notification(recipient_id, type, title, message, **kwargs):
    """Store an in-app notification outside the request that triggered it."""
    try:
        notification = create_notification(recipient_id, type, title, message, **kwargs)
        return {'success': True, 'notification_id': notification.id}
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to create {type} notification for user {recipient_id}: {e}", exc_info=True)
        return {'success': False, 'error': str(e)}


@celery.task(name='clinic_tasks.cleanup_expired_notifications')
def cleanup_expired_notifications():
    """
    Delete expired notifications and read ones older than the retention period.
    Runs daily at 02:00.
    """
    now = datetime.utcnow()
    retention_days = current_app.config.get('NOTIFICATION_RETENTION_DAYS', 30)
    cutoff = now - timedelta(days=retention_days)

    try:
        expired = Notification.query.filter(
            Notification.expires_at.isnot(None),
            Notification.expires_at < now,
        ).delete(synchronize_session=False)
        old_read = Notification.query.filter(
            Notification.is_read.is_(True),
            Notification.created_at < cutoff,
        ).delete(synchronize_session=False)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Notification cleanup failed: {e}", exc_info=True)
        raise

    logger.info(f"Notification cleanup: {expired} expired, {old_read} read older than {retention_days} days")
    return {'expired': expired, 'old_read': old_read}
