# backend/stockbook/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, mongo


def create_app(config=None) -> Flask:
    """
    Application factory for the /api/db handlers.

    `config` is a mapping of overrides applied after Config, before the
    extensions bind (tests pass an in-memory database URI here).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    # Initialize extensions
    db.init_app(app)
    mongo.init_app(app)

    # Import models so metadata is complete before create_all
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.query import query_bp
    from .routes.documents import documents_bp
    from .routes.setup import setup_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(query_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(setup_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = set(app.config.get("CORS_ORIGINS") or ())
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
