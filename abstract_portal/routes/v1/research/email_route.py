from flask import jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError as SchemaValidationError, fields as ma_fields

from abstract_portal.models import Role
from abstract_portal.routes.v1.research import research_bp
from abstract_portal.routes.v1.route_utils import log_audit_event, resolve_actor_context, review_error_response
from abstract_portal.services.bulk_update import dedupe, validate_request
from abstract_portal.services.errors import DispatchError, ValidationError
from abstract_portal.services.notification_dispatcher import (
    DeliveryResult,
    DispatchSummary,
    NotificationDispatcher,
)
from abstract_portal.services.status_engine import coerce_review_status
from abstract_portal.utils.decorator import require_roles
from abstract_portal.utils.logging_utils import get_logger, log_context
from abstract_portal.utils.model_utils import abstract_utils

logger = get_logger("notification")

EMAIL_TYPES = ("bulk_status_update", "status_update", "test")


def _resolve_ids(identifiers):
    """Split identifiers into known abstract ids and the ones that matched nothing."""
    found, missing = [], []
    for identifier in identifiers:
        abstract = abstract_utils.get_abstract_by_reference(identifier)
        if abstract is None:
            missing.append(identifier)
        elif abstract.id not in found:
            found.append(abstract.id)
    return found, missing


def _summary_response(email_type, summary: DispatchSummary):
    return jsonify({
        "success": summary.sent > 0,
        "type": email_type,
        "emailsSent": summary.sent,
        "emailsTotal": summary.total,
        "successRate": summary.success_rate,
        "errors": summary.errors,
        "results": summary.to_dict()["results"],
    }), 200


@research_bp.route('/abstracts/email', methods=['POST'])
@jwt_required()
@require_roles(Role.ADMIN.value)
def send_abstract_email():
    actor_id, context = resolve_actor_context("send_abstract_email")
    body = request.get_json(silent=True)
    if not isinstance(body, dict) or body.get("type") not in EMAIL_TYPES:
        return jsonify({
            "success": False,
            "error": f"Invalid email type. Must be one of: {', '.join(EMAIL_TYPES)}",
        }), 400

    email_type = body["type"]
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    dispatcher = NotificationDispatcher.from_app()

    with log_context(email_type=email_type, **context):
        try:
            if email_type == "bulk_status_update":
                payload = validate_request(body.get("abstractIds"), body.get("status"), body.get("comments"))
                ids, missing = _resolve_ids(dedupe(payload["abstractIds"]))
                targets = abstract_utils.resolve_recipients(ids)
                summary = dispatcher.notify_bulk(targets, payload["status"], payload.get("comments"))
                for identifier in missing:
                    summary.results.append(
                        DeliveryResult(None, None, False, error=f"Abstract {identifier} not found")
                    )

            elif email_type == "status_update":
                status = coerce_review_status(data.get("status"))
                ids, _ = _resolve_ids([data.get("abstractId")] if data.get("abstractId") is not None else [])
                if not ids:
                    return jsonify({"success": False, "error": "Abstract not found"}), 404
                target = abstract_utils.resolve_recipients(ids)[0]
                summary = DispatchSummary([dispatcher.notify(target, status, data.get("comments"))])

            else:
                try:
                    email = ma_fields.Email().deserialize(data.get("email"))
                except SchemaValidationError:
                    raise ValidationError("A valid email address is required", fields={"email": ["Not a valid email address."]})
                delivery = dispatcher.send_test(email)
                if not delivery.success:
                    raise DispatchError(f"Test email to {email} failed: {delivery.error}")
                summary = DispatchSummary([delivery])
        except ValidationError as exc:
            return jsonify({"success": False, **exc.to_dict()}), 400
        except DispatchError as exc:
            logger.warning("Test email failed: %s", exc.message)
            log_audit_event("abstract.email.test.failed", actor_id, exc.to_dict())
            return review_error_response(exc)

        logger.info("Email request type=%s sent=%s failed=%s", email_type, summary.sent, summary.failed)
        log_audit_event(
            f"abstract.email.{email_type}",
            actor_id,
            {"sent": summary.sent, "failed": summary.failed},
        )
    return _summary_response(email_type, summary)
