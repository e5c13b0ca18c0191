# backend/smartpack/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate
from .logging_setup import configure_logging


def create_app(config_overrides=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.bookings import bookings_bp
    from .routes.assets import assets_bp
    from .routes.events import events_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(assets_bp)
    app.register_blueprint(events_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
