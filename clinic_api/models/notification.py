"""
In-app notifications for clinic staff.
"""
from datetime import datetime

from clinic_api.extensions import db
from .base import TimestampMixin, isoformat

NOTIFICATION_TYPES = (
    'appointment-reminder',
    'appointment-confirmed',
    'appointment-cancelled',
    'appointment-rescheduled',
    'new-appointment',
    'payment-received',
    'payment-overdue',
    'invoice-generated',
    'prescription-ready',
    'general',
)
PRIORITIES = ('low', 'medium', 'high', 'urgent')


class Notification(db.Model, TimestampMixin):
    __tablename__ = 'notifications'
    __table_args__ = (
        db.Index('ix_notifications_recipient_read', 'recipient_id', 'is_read', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=True, index=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    type = db.Column(db.String(40), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON)
    # [{type, status, sent_at, error}]
    channels = db.Column(db.JSON, default=list)
    priority = db.Column(db.String(10), default='medium', nullable=False)

    is_read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime)

    related_model = db.Column(db.String(40))
    related_id = db.Column(db.Integer)
    expires_at = db.Column(db.DateTime, index=True)

    def mark_as_read(self):
        self.is_read = True
        self.read_at = datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'clinic_id': self.clinic_id,
            'recipient_id': self.recipient_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'data': self.data,
            'channels': self.channels or [],
            'priority': self.priority,
            'is_read': self.is_read,
            'read_at': isoformat(self.read_at),
            'related_to': {'model': self.related_model, 'id': self.related_id} if self.related_model else None,
            'expires_at': isoformat(self.expires_at),
            'created_at': isoformat(self.created_at),
        }
