from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt

from abstract_portal.utils.logging_utils import get_logger

logger = get_logger("auth")


def require_roles(*roles):
    """Allow the request only if the token's ``roles`` claim holds one of ``roles``.

    Must sit below ``@jwt_required()``.
    """

    allowed = set(roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            claims = get_jwt() or {}
            granted = set(claims.get("roles") or [])
            if not granted & allowed:
                logger.warning(
                    "Access denied sub=%s roles=%s required=%s",
                    claims.get("sub"),
                    sorted(granted),
                    sorted(allowed),
                )
                return jsonify({"success": False, "error": "forbidden", "message": "Insufficient role"}), 403
            return fn(*args, **kwargs)

        return wrapper

    return decorator
