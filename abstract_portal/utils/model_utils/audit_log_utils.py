from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from sqlalchemy import desc

from abstract_portal.extensions import db
from abstract_portal.models.AuditLog import AuditLog
from abstract_portal.utils.logging_utils import get_logger, log_context

from .base import _serialize_value, list_instances

logger = get_logger("app")


def record_event(
    *,
    event: str,
    user_id: Optional[Any] = None,
    target_id: Optional[Any] = None,
    ip: Optional[str] = None,
    detail: Any = None,
    commit: bool = True,
) -> AuditLog:
    with log_context(module="audit_log_utils", action="record_event", actor_id=user_id):
        log_entry = AuditLog(
            event=event,
            user_id=str(user_id) if user_id is not None else None,
            target_id=str(target_id) if target_id is not None else None,
            ip=ip,
            detail=AuditLog.validate_detail_format(detail),
        )
        db.session.add(log_entry)
        if commit:
            db.session.commit()
        logger.info("record_event event=%s id=%s", event, _serialize_value(log_entry.id))
    return log_entry


def list_audit_logs(
    *,
    event: Optional[str] = None,
    limit: Optional[int] = None,
    context: Optional[Dict[str, object]] = None,
) -> Sequence[AuditLog]:
    filters = [AuditLog.event == event] if event else None
    return list_instances(
        AuditLog,
        filters=filters,
        order_by=(desc(AuditLog.created_at), desc(AuditLog.id)),
        limit=limit,
        context={"function": "list_audit_logs", **(context or {})},
    )
