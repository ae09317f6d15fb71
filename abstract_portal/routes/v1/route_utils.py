from typing import Dict, Optional, Tuple

from flask import current_app, jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity

from abstract_portal.extensions import db
from abstract_portal.models import Role
from abstract_portal.services.errors import (
    ConflictStateError,
    DispatchError,
    NotFoundError,
    TransactionError,
    ValidationError,
)
from abstract_portal.utils.model_utils import audit_log_utils


def log_audit_event(event_type, user_id, details, ip_address=None, target_id=None):
    """Write an audit entry in its own commit; failures are logged, not raised."""
    try:
        audit_log_utils.record_event(
            event=event_type,
            user_id=user_id,
            target_id=target_id,
            ip=ip_address if ip_address is not None else request.remote_addr,
            detail=details,
            commit=True,
        )
    except Exception as e:
        current_app.logger.error("Failed to create audit log: %s", e)
        db.session.rollback()


def resolve_actor_context(action: str) -> Tuple[Optional[int], Dict[str, object]]:
    """Return the acting user id (as int) and a logging context for ``action``."""

    identity = get_jwt_identity()
    try:
        actor_id = int(identity) if identity is not None else None
    except (TypeError, ValueError):
        actor_id = None

    context: Dict[str, object] = {"route": action}
    if actor_id is not None:
        context["actor_id"] = actor_id
    jti = (get_jwt() or {}).get("jti")
    if jti:
        context["token_jti"] = jti
    return actor_id, context


def is_admin() -> bool:
    return Role.ADMIN.value in ((get_jwt() or {}).get("roles") or [])


def review_error_response(exc):
    """Map a service-layer ``ReviewError`` onto a JSON error response."""

    if isinstance(exc, ValidationError):
        status = 400
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, ConflictStateError):
        status = 409
    elif isinstance(exc, TransactionError):
        status = 503 if exc.kind == TransactionError.CONNECTION else 500
    elif isinstance(exc, DispatchError):
        status = 502
    else:
        status = 500
    return jsonify({"success": False, **exc.to_dict()}), status
