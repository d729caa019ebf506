# backend/app/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.vehicles import vehicles_bp
    from .routes.customers import customers_bp
    from .routes.rentals import rentals_bp
    from .routes.payments import payments_bp
    from .routes.reservations import reservations_bp
    from .routes.expenses import expenses_bp
    from .routes.consignments import consignments_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(vehicles_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(rentals_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(reservations_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(consignments_bp)

    allowed_origins = {
        origin.strip()
        for origin in app.config.get("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    }

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
