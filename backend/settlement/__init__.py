# backend/settlement/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate, read_cache, configure_sqlite_engine
from .services.notification_service import LoggingNotifier


def create_app(config_object=None, notifier=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    read_cache.init_app(app)
    app.extensions["notifier"] = notifier or LoggingNotifier()

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    with app.app_context():
        configure_sqlite_engine(db.engine)

    # Register blueprints
    from .routes.returns import returns_bp
    from .routes.exchange_slips import exchange_slips_bp
    from .routes.credits import credits_bp
    from .routes.policies import policies_bp

    app.register_blueprint(returns_bp)
    app.register_blueprint(exchange_slips_bp)
    app.register_blueprint(credits_bp)
    app.register_blueprint(policies_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
