from flask import jsonify
from flask_jwt_extended import JWTManager

from abstract_portal.extensions import db
from abstract_portal.models.User import User


def _coerce_identity(identity):
    try:
        return int(identity)
    except (TypeError, ValueError):
        return None


def init_jwt_callbacks(jwt: JWTManager):
    @jwt.additional_claims_loader
    def add_claims(identity):
        user_id = _coerce_identity(identity)
        user = db.session.get(User, user_id) if user_id is not None else None
        if not user:
            return {}
        return {"roles": [r.value for r in user.roles]}

    def _auth_required(message="Please log in"):
        return jsonify({"success": False, "error": "auth_required", "message": message}), 401

    @jwt.unauthorized_loader
    def _missing_token(err_msg):
        return _auth_required()

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return _auth_required("Session expired; please log in again")

    @jwt.invalid_token_loader
    def _invalid_token(err_msg):
        return _auth_required("Invalid token")

    @jwt.user_lookup_loader
    def _lookup_user(jwt_header, jwt_data):
        user_id = _coerce_identity(jwt_data.get("sub"))
        return db.session.get(User, user_id) if user_id is not None else None
