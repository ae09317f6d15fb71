from flask import Blueprint

research_bp = Blueprint('research_bp', __name__)

from abstract_portal.routes.v1.research import (  # noqa: E402,F401
    abstract_route,
    bulk_update_route,
    email_route,
)
