"""
Audit logging for appointment, billing and patient changes.
"""
import json
import logging
from typing import Any, Optional

from clinic_api.extensions import db
from clinic_api.models import AuditLog

logger = logging.getLogger(__name__)


def log_audit(
    entity_type: str,
    action: str,
    user_id: Optional[int] = None,
    entity_id: Optional[Any] = None,
    details: Optional[dict] = None,
    clinic_id: Optional[int] = None,
    commit: bool = True,
) -> None:
    """
    Append an audit log entry.

    With commit=False the entry joins the caller's transaction, so it is
    persisted (or rolled back) together with the change it describes.
    """
    entry = AuditLog(
        clinic_id=clinic_id,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        action=action,
        user_id=user_id,
        details=json.dumps(details, default=str) if details else None,
    )
    if not commit:
        db.session.add(entry)
        return
    try:
        db.session.add(entry)
        db.session.commit()
    except Exception as e:
        logger.warning("Audit log failed: %s", e)
        db.session.rollback()
