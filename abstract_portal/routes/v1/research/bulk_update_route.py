from datetime import datetime, timezone

from flask import current_app, jsonify, request
from flask_jwt_extended import jwt_required

from abstract_portal.models import Role
from abstract_portal.routes.v1.research import research_bp
from abstract_portal.routes.v1.route_utils import log_audit_event, resolve_actor_context
from abstract_portal.services.bulk_update import BulkUpdateOrchestrator
from abstract_portal.services.errors import ValidationError
from abstract_portal.services.notification_dispatcher import NotificationDispatcher
from abstract_portal.services.statistics import compute_stats
from abstract_portal.utils.decorator import require_roles
from abstract_portal.utils.logging_utils import get_logger, log_context
from abstract_portal.utils.model_utils import abstract_utils

logger = get_logger("bulk")


@research_bp.route('/abstracts/bulk-update', methods=['POST'])
@jwt_required()
@require_roles(Role.ADMIN.value)
def bulk_update_abstracts():
    """
    Apply one status to many abstracts.

    Handled outcomes (partial matches, zero matches, database failures) are
    reported with HTTP 200 and ``success`` set accordingly; only malformed
    input is a 400.
    """
    actor_id, context = resolve_actor_context("bulk_update_abstracts")
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"success": False, "error": "Request body must be a JSON object", "fields": {}}), 400

    with log_context(**context):
        try:
            result = BulkUpdateOrchestrator().run(
                body.get("abstractIds"),
                body.get("status"),
                body.get("comments"),
                actor_id=actor_id,
                notify=body.get("notify"),
            )
        except ValidationError as exc:
            logger.warning("Bulk update rejected: %s", exc.message)
            log_audit_event("abstract.bulk_update.rejected", actor_id, exc.to_dict())
            return jsonify({"success": False, **exc.to_dict()}), 400

        payload = result.to_dict()
        log_audit_event(
            "abstract.bulk_update",
            actor_id,
            {
                "status": result.status,
                "requested": result.total,
                "successful": result.successful,
                "failed": result.failed,
                "errorType": result.error_type,
            },
        )

        if result.success and result.notify:
            targets = abstract_utils.resolve_recipients(result.updated_ids)
            summary = NotificationDispatcher.from_app().notify_bulk(targets, result.status, result.comments)
            payload["notifications"] = summary.to_dict()

    return jsonify(payload), 200


@research_bp.route('/abstracts/bulk-update', methods=['GET'])
@jwt_required()
@require_roles(Role.ADMIN.value)
def bulk_update_status_check():
    """Snapshot of one abstract (``?id=``), or a health report when no id is given."""
    reference = request.args.get("id")
    if reference:
        abstract = abstract_utils.get_abstract_by_reference(reference)
        if abstract is None:
            return jsonify({"success": False, "error": "Abstract not found"}), 404
        return jsonify({
            "success": True,
            "data": {
                "abstract": {
                    "id": abstract.id,
                    "abstractNumber": abstract.abstract_number,
                    "title": abstract.title,
                    "status": abstract.status.value,
                    "updatedAt": abstract.updated_at.isoformat() if abstract.updated_at else None,
                    "submissionDate": abstract.submission_date.isoformat() if abstract.submission_date else None,
                }
            },
        }), 200

    connected = abstract_utils.ping_database()
    statistics = compute_stats(abstract_utils.list_abstracts()) if connected else None
    current_app.logger.info("Bulk update health check database=%s", connected)
    return jsonify({
        "success": connected,
        "message": "Bulk update API is running",
        "database": "connected" if connected else "unavailable",
        "statistics": statistics,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }), 200 if connected else 503
