from abstract_portal.routes.v1.auth_route import auth_bp
from abstract_portal.routes.v1.research import research_bp


def register_blueprints(app):
    prefix = app.config.get("API_PREFIX", "/api/v1")
    app.register_blueprint(auth_bp, url_prefix=f"{prefix}/auth")
    app.register_blueprint(research_bp, url_prefix=prefix)
