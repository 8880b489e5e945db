# backend/qrdisplay/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config_object=Config, *, notification_dispatcher=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services import notification_service
    notification_service.init_app(app, notification_dispatcher)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.inventory import inventory_bp
    from .routes.receiving import receiving_bp
    from .routes.displays import displays_bp
    from .routes.purchase_intents import purchase_intents_bp
    from .routes.samples import samples_bp
    from .routes.attribution import attribution_bp
    from .routes.holds import holds_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(receiving_bp)
    app.register_blueprint(displays_bp)
    app.register_blueprint(purchase_intents_bp)
    app.register_blueprint(samples_bp)
    app.register_blueprint(attribution_bp)
    app.register_blueprint(holds_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
