"""
Audit trail for create, update, reschedule, payment and refund actions.
"""
import json
from datetime import datetime

from clinic_api.extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey("clinics.id"), nullable=True, index=True)
    entity_type = db.Column(db.String(64), nullable=False, index=True)  # appointment, invoice, payment, ...
    entity_id = db.Column(db.String(64), nullable=True, index=True)
    action = db.Column(db.String(32), nullable=False, index=True)  # create, update, cancel, reschedule, refund, delete
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    details = db.Column(db.Text, nullable=True)  # JSON
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "clinic_id": self.clinic_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "user_id": self.user_id,
            "details": json.loads(self.details) if self.details else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
