"""
Flask Application Factory
=========================

Factory pattern for creating Flask application instances with
proper initialization. One application serves the admin API (``/api``),
the public site renderer (``/``) and its JSON helpers (``/site-api``).
"""

import logging
import os
import time
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, g, request

from sitegen.extensions import db, init_extensions
from sitegen.utils.logging_config import get_logger, setup_application_logging

logger = get_logger('factory')


def create_app(config_name: str = 'default') -> Flask:
    """
    Create and configure Flask application.

    Args:
        config_name: Configuration environment name

    Returns:
        Configured Flask application
    """
    # Load .env before the settings module reads the environment
    project_root = Path(__file__).resolve().parent.parent.parent
    env_path = project_root / '.env'
    if env_path.exists():
        load_dotenv(env_path, override=False)

    setup_application_logging()
    if env_path.exists():
        logger.info(f"Loaded .env from {env_path}")
    else:
        logger.debug(f".env not found at {env_path}")

    from sitegen.config.settings import config
    config_name = config_name or os.environ.get('FLASK_CONFIG', 'default')
    config_class = config.get(config_name, config['default'])

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Apply LOG_LEVEL from config
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.getLogger('sitegen').setLevel(level)

    if str(app.config['SQLALCHEMY_DATABASE_URI']).startswith('sqlite:///') and not app.config.get('TESTING'):
        Path(app.config['DATABASE_PATH']).parent.mkdir(parents=True, exist_ok=True)

    init_extensions(app)

    with app.app_context():
        import sitegen.models  # noqa: F401  (register tables)
        db.create_all()
        logger.info("Database initialized successfully")

    from sitegen.routes import register_blueprints
    register_blueprints(app)

    # Rich error handlers (HTML + JSON negotiation)
    from sitegen.errors import register_error_handlers
    register_error_handlers(app)

    # Request / Response logging middleware (after error handlers so request_id is present)
    @app.before_request
    def _req_start_timer():
        g._req_start = time.perf_counter()

    @app.after_request
    def _log_response(resp):
        duration_ms = None
        if hasattr(g, '_req_start'):
            duration_ms = (time.perf_counter() - g._req_start) * 1000.0
        logger.debug(
            "%s %s -> %s (%s ms)", request.method, request.path, resp.status_code,
            round(duration_ms, 2) if duration_ms is not None else '?',
        )
        return resp

    @app.route('/health')
    def health():
        return {'status': 'healthy', 'service': 'sitegen'}

    if app.config.get('OTP_SWEEPER_ENABLED'):
        from sitegen.services.otp_store import otp_store
        otp_store.start_sweeper()

    logger.info(
        "Application created (config=%s, environment=%s)",
        config_name, app.config.get('APP_ENV'),
    )
    return app
