"""
Celery tasks module
Import all tasks here so Celery can discover them
"""
from . import appointment_tasks, billing_tasks, notification_tasks

__all__ = ['appointment_tasks', 'billing_tasks', 'notification_tasks']
