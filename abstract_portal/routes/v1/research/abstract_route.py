from flask import current_app, jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError

from abstract_portal.extensions import db
from abstract_portal.models import AbstractCategory, AbstractStatus, Role
from abstract_portal.routes.v1.research import research_bp
from abstract_portal.routes.v1.route_utils import (
    is_admin,
    log_audit_event,
    resolve_actor_context,
    review_error_response,
)
from abstract_portal.schemas import AbstractSchema, FinalUploadSchema, StatusChangeSchema
from abstract_portal.services import status_engine
from abstract_portal.services.errors import ReviewError
from abstract_portal.services.notification_dispatcher import NotificationDispatcher
from abstract_portal.services.statistics import compute_stats
from abstract_portal.utils.decorator import require_roles
from abstract_portal.utils.logging_utils import get_logger, log_context
from abstract_portal.utils.model_utils import abstract_utils

abstract_schema = AbstractSchema()
abstracts_schema = AbstractSchema(many=True)
status_change_schema = StatusChangeSchema()
final_upload_schema = FinalUploadSchema()

logger = get_logger("route")


@research_bp.route('/abstracts', methods=['POST'])
@jwt_required()
@require_roles(Role.DELEGATE.value, Role.ADMIN.value)
def create_abstract():
    """Submit a new abstract owned by the caller."""
    actor_id, context = resolve_actor_context("create_abstract")
    try:
        payload = abstract_schema.load(request.get_json(silent=True) or {})
    except SchemaValidationError as err:
        log_audit_event("abstract.create.failed", actor_id, {"fields": err.messages})
        return jsonify({"success": False, "error": "Invalid abstract submission", "fields": err.messages}), 400

    try:
        abstract = abstract_utils.create_abstract(actor_id=actor_id, context=context, user_id=actor_id, **payload)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to create abstract")
        return jsonify({"success": False, "error": "Database error occurred"}), 500

    log_audit_event("abstract.create", actor_id, {"abstract_number": abstract.abstract_number}, target_id=abstract.id)
    return jsonify({
        "success": True,
        "message": "Abstract submitted successfully",
        "abstract": abstract_schema.dump(abstract),
    }), 201


@research_bp.route('/abstracts/mine', methods=['GET'])
@jwt_required()
def list_my_abstracts():
    actor_id, _ = resolve_actor_context("list_my_abstracts")
    abstracts = abstract_utils.list_abstracts_for_owner(actor_id)
    return jsonify({"success": True, "abstracts": abstracts_schema.dump(abstracts), "total": len(abstracts)}), 200


@research_bp.route('/abstracts', methods=['GET'])
@jwt_required()
@require_roles(Role.ADMIN.value)
def list_abstracts():
    """Admin listing with optional ``status`` / ``category`` filters; stats cover every abstract."""
    actor_id, _ = resolve_actor_context("list_abstracts")
    try:
        status = AbstractStatus(request.args["status"]) if request.args.get("status") else None
        category = AbstractCategory(request.args["category"]) if request.args.get("category") else None
    except ValueError:
        return jsonify({"success": False, "error": "Unknown status or category filter"}), 400

    abstracts = abstract_utils.list_abstracts(status=status, category=category, actor_id=actor_id)
    everything = abstracts if status is None and category is None else abstract_utils.list_abstracts()
    return jsonify({
        "success": True,
        "abstracts": abstracts_schema.dump(abstracts),
        "total": len(abstracts),
        "statistics": compute_stats(everything),
    }), 200


@research_bp.route('/abstracts/statistics', methods=['GET'])
@jwt_required()
@require_roles(Role.ADMIN.value)
def abstract_statistics():
    return jsonify({"success": True, "statistics": compute_stats(abstract_utils.list_abstracts())}), 200


@research_bp.route('/abstracts/<int:abstract_id>', methods=['GET'])
@jwt_required()
def get_abstract(abstract_id):
    actor_id, _ = resolve_actor_context("get_abstract")
    abstract = abstract_utils.get_abstract_by_id(abstract_id, actor_id=actor_id)
    if abstract is None or (abstract.user_id != actor_id and not is_admin()):
        return jsonify({"success": False, "error": "Abstract not found"}), 404
    return jsonify({"success": True, "abstract": abstract_schema.dump(abstract)}), 200


@research_bp.route('/abstracts/<int:abstract_id>', methods=['DELETE'])
@jwt_required()
def delete_abstract(abstract_id):
    """Owners may withdraw an abstract while it is still pending."""
    actor_id, _ = resolve_actor_context("delete_abstract")
    abstract = abstract_utils.get_abstract_by_id(abstract_id, actor_id=actor_id)
    if abstract is None:
        return jsonify({"success": False, "error": "Abstract not found"}), 404
    if abstract.user_id != actor_id:
        return jsonify({"success": False, "error": "You can only delete your own abstracts"}), 403
    if abstract.status != AbstractStatus.PENDING:
        return jsonify({"success": False, "error": "Only pending abstracts can be deleted"}), 409

    try:
        abstract_utils.delete_abstract(abstract, actor_id=actor_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to delete abstract %s", abstract_id)
        return jsonify({"success": False, "error": "Database error occurred"}), 500

    log_audit_event("abstract.delete", actor_id, {"abstract_id": abstract_id}, target_id=abstract_id)
    return jsonify({"success": True, "message": "Abstract deleted"}), 200


@research_bp.route('/abstracts/<int:abstract_id>/status', methods=['POST'])
@jwt_required()
@require_roles(Role.ADMIN.value)
def update_abstract_status(abstract_id):
    """Review a single abstract, then notify the presenter once the change is committed."""
    actor_id, context = resolve_actor_context("update_abstract_status")
    try:
        data = status_change_schema.load(request.get_json(silent=True) or {})
    except SchemaValidationError as err:
        return jsonify({"success": False, "error": "Invalid status. Must be: pending, approved, or rejected", "fields": err.messages}), 400

    with log_context(**context):
        try:
            abstract = status_engine.transition(
                abstract_id,
                data["status"],
                data.get("comments"),
                actor_id=actor_id,
            )
        except ReviewError as exc:
            log_audit_event("abstract.status.failed", actor_id, {"abstract_id": abstract_id, **exc.to_dict()}, target_id=abstract_id)
            return review_error_response(exc)

        log_audit_event(
            "abstract.status",
            actor_id,
            {"abstract_id": abstract_id, "status": data["status"], "comments": data.get("comments")},
            target_id=abstract_id,
        )

        notification = None
        if data["notify"]:
            targets = abstract_utils.resolve_recipients([abstract.id])
            if targets:
                delivery = NotificationDispatcher.from_app().notify(targets[0], abstract.status, abstract.reviewer_comments)
                notification = {
                    "sent": delivery.success,
                    "recipient": delivery.recipient,
                    "error": delivery.error,
                }
            logger.info("Status notification for abstract %s: %s", abstract.id, notification)

    return jsonify({
        "success": True,
        "message": f"Abstract {abstract.status.value} successfully",
        "abstract": abstract_schema.dump(abstract),
        "notification": notification,
    }), 200


@research_bp.route('/abstracts/<int:abstract_id>/final-upload', methods=['POST'])
@jwt_required()
def final_upload(abstract_id):
    """Record the final presentation file for an approved abstract."""
    actor_id, _ = resolve_actor_context("final_upload")
    try:
        data = final_upload_schema.load(request.get_json(silent=True) or {})
    except SchemaValidationError as err:
        return jsonify({"success": False, "error": "Final file details are required", "fields": err.messages}), 400

    try:
        abstract = status_engine.finalize_submission(
            abstract_id,
            owner_id=actor_id,
            final_file_name=data["final_file_name"],
            final_file_path=data.get("final_file_path"),
        )
    except ReviewError as exc:
        return review_error_response(exc)

    log_audit_event("abstract.final_upload", actor_id, {"file": data["final_file_name"]}, target_id=abstract_id)
    return jsonify({
        "success": True,
        "message": "Final presentation submitted successfully",
        "abstract": abstract_schema.dump(abstract),
    }), 200
