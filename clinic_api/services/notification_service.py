"""
In-app notifications and fire-and-forget task dispatch.
"""
import logging
from datetime import datetime
from typing import Optional

from clinic_api.extensions import db
from clinic_api.models import Notification

logger = logging.getLogger(__name__)


def create_notification(
    recipient_id: int,
    type: str,
    title: str,
    message: str,
    clinic_id: Optional[int] = None,
    data: Optional[dict] = None,
    priority: str = 'medium',
    related_model: Optional[str] = None,
    related_id: Optional[int] = None,
    expires_at: Optional[datetime] = None,
    commit: bool = True,
) -> Notification:
    """Store an in-app notification for a staff member."""
    notification = Notification(
        clinic_id=clinic_id,
        recipient_id=recipient_id,
        type=type,
        title=title,
        message=message,
        data=data,
        priority=priority,
        related_model=related_model,
        related_id=related_id,
        expires_at=expires_at,
        channels=[{'type': 'in-app', 'status': 'sent', 'sent_at': datetime.utcnow().isoformat()}],
    )
    db.session.add(notification)
    if commit:
        db.session.commit()
    return notification


def dispatch(task, *args, **kwargs) -> bool:
    """
    Queue a Celery task without letting broker or task errors reach the caller.

    Returns:
        bool: True if the task was handed to Celery
    """
    try:
        task.delay(*args, **kwargs)
        return True
    except Exception as e:
        logger.error(f"Failed to dispatch {getattr(task, 'name', task)}{args}: {e}", exc_info=True)
        return False


def notify(recipient_id, type, title, message, **kwargs) -> bool:
    """Create an in-app notification in the background."""
    from clinic_tasks.notification_tasks import deliver_notification

    return dispatch(deliver_notification, recipient_id, type, title, message, **kwargs)
