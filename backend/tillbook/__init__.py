# backend/tillbook/__init__.py
import atexit
import logging

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))
    logging.getLogger("tillbook").setLevel(app.logger.level)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.sales import sales_bp
    from .routes.reports import reports_bp
    from .routes.sync import sync_bp
    from .routes.employees import employees_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(sync_bp)
    app.register_blueprint(employees_bp)
    app.register_blueprint(settings_bp)

    # Audit log + sync outbox listen to domain events
    from . import events
    events.connect_default_subscribers()

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    if app.config["SYNC_WORKER_ENABLED"]:
        from .sync_worker import SyncWorker

        worker = SyncWorker(app)
        worker.start()
        app.extensions["tillbook_sync_worker"] = worker
        # let an in-flight flush finish its commit before the interpreter exits
        atexit.register(worker.stop, app.config["SYNC_WORKER_STOP_TIMEOUT"])

    return app
