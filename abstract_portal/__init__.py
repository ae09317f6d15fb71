import os
import logging
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_compress import Compress
from flask_cors import CORS
from sqlalchemy import inspect
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from abstract_portal.utils.logging_utils import get_logger, init_logger

# Load environment variables from .env file
load_dotenv()

from .config import config, Config  # noqa: E402
from .extensions import jwt, db, migrate, ma  # noqa: E402
from .security import init_jwt_callbacks  # noqa: E402
from .models import Role, User  # noqa: E402
from .commands.seed_commands import seed_command, create_admin_command  # noqa: E402
from abstract_portal.routes import register_blueprints  # noqa: E402


def configure_logging(app):
    log_file = app.config.get('LOG_FILE', '/tmp/abstract_portal_app.log')
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    if not any(isinstance(h, RotatingFileHandler) for h in app.logger.handlers):
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=app.config.get('LOG_MAX_BYTES', 10485760),
            backupCount=app.config.get('LOG_BACKUP_COUNT', 5)
        )
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(getattr(logging, app.config.get('LOG_LEVEL', 'INFO')))
        app.logger.addHandler(file_handler)

    app.logger.setLevel(getattr(logging, app.config.get('LOG_LEVEL', 'INFO')))
    app.logger.info("Logging configured with level: %s", app.config.get('LOG_LEVEL', 'INFO'))

    # Categorised loggers share the same configuration.
    init_logger(app)


def bootstrap_admin(app):
    """Create the configured admin account once, if ADMIN_PASSWORD is set."""
    admin_pwd = app.config.get('ADMIN_PASSWORD')
    if not admin_pwd:
        app.logger.info("ADMIN_PASSWORD not set; admin bootstrap disabled")
        return

    with app.app_context():
        if not {"users", "user_roles"}.issubset(set(inspect(db.engine).get_table_names())):
            app.logger.info("Bootstrap skip: user tables missing; run `flask db upgrade`")
            return
        email = app.config['ADMIN_EMAIL'].strip().lower()
        if User.query.filter_by(email=email).first():
            app.logger.info("Admin %s already present; bootstrap skipped", email)
            return
        admin = User(email=email, full_name=app.config.get('ADMIN_FULL_NAME'), is_active=True)
        admin.set_password(admin_pwd)
        admin.roles.append(Role.ADMIN)
        db.session.add(admin)
        db.session.commit()
        app.logger.info("Admin user bootstrapped: %s", email)


def create_app(config_name=None):
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'default')

    config_class = config.get(config_name, Config)

    app = Flask(__name__)
    app.config.from_object(config_class)
    config_class.init_app(app)

    configure_logging(app)
    app.logger.info("Using config: %s", config_class.__name__)
    get_logger("app").info("Application startup with config %s", config_class.__name__)

    # Enable when running behind a trusted proxy by setting PROXY_FIX_NUM
    try:
        num_proxies = int(os.environ.get('PROXY_FIX_NUM', '0'))
    except ValueError:
        num_proxies = 0
    if num_proxies > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=num_proxies, x_proto=num_proxies, x_host=num_proxies, x_port=num_proxies, x_prefix=num_proxies)
        app.logger.info("ProxyFix enabled for %d proxies", num_proxies)

    db.init_app(app)
    migrate.init_app(app, db)
    ma.init_app(app)
    jwt.init_app(app)
    init_jwt_callbacks(jwt)
    app.cli.add_command(seed_command)
    app.cli.add_command(create_admin_command)

    register_blueprints(app)

    @app.before_request
    def _log_request():
        get_logger("route").info("request method=%s path=%s ip=%s", request.method, request.path, request.remote_addr)

    @app.after_request
    def _security_headers(resp):
        resp.headers.setdefault('X-Content-Type-Options', 'nosniff')
        resp.headers.setdefault('X-Frame-Options', 'DENY')
        resp.headers.setdefault('Referrer-Policy', 'no-referrer')
        return resp

    @app.errorhandler(HTTPException)
    def _http_error(e):
        return jsonify({"success": False, "error": e.name, "message": e.description}), e.code

    @app.errorhandler(500)
    def _server_error(e):
        app.logger.exception("Unhandled server error")
        return jsonify({"success": False, "error": "internal_server_error"}), 500

    Compress(app)
    CORS(app, origins=app.config.get('CORS_ORIGINS', '*'), supports_credentials=True)
    app.logger.info("Middleware loaded: Compress, CORS")

    if not app.config.get('TESTING'):
        bootstrap_admin(app)

    return app
