from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from .common import RequestSchema


class CreateNotificationSchema(RequestSchema):
    recipient_id: int
    type: Literal[
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
    ] = 'general'
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    priority: Literal['low', 'medium', 'high', 'urgent'] = 'medium'
    data: Optional[dict] = None
    expires_at: Optional[datetime] = None
