import json
from datetime import datetime, timezone
from abstract_portal.extensions import db


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    event = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.String(64), nullable=True)  # actor
    target_id = db.Column(db.String(64), nullable=True)
    ip = db.Column(db.String(64), nullable=True)
    detail = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            'id': self.id,
            'event': self.event,
            'user_id': self.user_id,
            'target_id': self.target_id,
            'ip': self.ip,
            'detail': self.detail,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @staticmethod
    def validate_detail_format(detail):
        """
        Normalise the detail payload for storage: objects become JSON,
        strings are stored as given.
        """
        if detail is None:
            return None
        if isinstance(detail, str):
            return detail
        try:
            return json.dumps(detail, default=str)
        except (TypeError, ValueError):
            return str(detail)
