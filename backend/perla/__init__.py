# backend/perla/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Module loggers (scheduler, closure service) share the app's level
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("perla").setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.inventory import inventory_bp
    from .routes.finance import finance_bp
    from .routes.payroll import payroll_bp
    from .routes.events import events_bp
    from .routes.customers import customers_bp, plans_bp
    from .routes.attendance import attendance_bp
    from .routes.tasks import tasks_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(payroll_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(plans_bp)
    app.register_blueprint(attendance_bp)
    app.register_blueprint(tasks_bp)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # The scheduler is built here but only started by wsgi.py
    from .scheduler import AutoCloseScheduler
    app.extensions["auto_close"] = AutoCloseScheduler(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
