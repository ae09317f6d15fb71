# routes/v1/auth_route.py

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import create_access_token, jwt_required
from marshmallow import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from abstract_portal.extensions import db
from abstract_portal.models import Role, User
from abstract_portal.routes.v1.route_utils import log_audit_event, resolve_actor_context
from abstract_portal.schemas import LoginSchema, UserSchema
from abstract_portal.utils.logging_utils import get_logger, log_context

auth_bp = Blueprint("auth_bp", __name__)

login_schema = LoginSchema()
user_schema = UserSchema()
logger = get_logger("auth")


@auth_bp.route("/login", methods=["POST"])
def login():
    try:
        data = login_schema.load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify({"success": False, "error": "Email and password are required", "fields": err.messages}), 400

    user = User.authenticate(data["email"], data["password"])
    if user is None:
        log_audit_event("auth.login.failed", None, {"email": data["email"]})
        return jsonify({"success": False, "error": "Invalid credentials"}), 401

    token = create_access_token(identity=str(user.id))
    with log_context(module="auth_route", action="login", actor_id=user.id):
        logger.info("Login succeeded user_id=%s", user.id)
    log_audit_event("auth.login", user.id, {"email": user.email})
    return jsonify({"success": True, "access_token": token, "user": user_schema.dump(user)}), 200


@auth_bp.route("/register", methods=["POST"])
def register():
    try:
        data = user_schema.load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify({"success": False, "error": "Invalid registration data", "fields": err.messages}), 400

    email = data["email"].strip().lower()
    if db.session.query(User.id).filter(func.lower(User.email) == email).first():
        return jsonify({"success": False, "error": "An account with this email already exists"}), 409

    try:
        user = User(
            email=email,
            full_name=data["full_name"],
            phone=data.get("phone"),
            institution=data.get("institution"),
        )
        user.set_password(data["password"])
        user.roles.append(Role.DELEGATE)
        db.session.add(user)
        db.session.commit()
    except ValueError as ve:
        db.session.rollback()
        return jsonify({"success": False, "error": str(ve)}), 400
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Registration failed for %s", email)
        return jsonify({"success": False, "error": "Database error occurred"}), 500

    logger.info("Delegate registered user_id=%s", user.id)
    log_audit_event("auth.register", user.id, {"email": user.email}, target_id=user.id)
    return jsonify({"success": True, "user": user_schema.dump(user)}), 201


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    actor_id, _ = resolve_actor_context("me")
    user = db.session.get(User, actor_id) if actor_id is not None else None
    if user is None:
        return jsonify({"success": False, "error": "User not found"}), 404
    return jsonify({"success": True, "user": user_schema.dump(user)}), 200
