from __future__ import annotations

from collections.abc import Mapping

from flask import Flask
from flask_cors import CORS

from .config import Config, build_engine_options
from .errors import register_error_handlers
from .extensions import db
from .routes import register_routes


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config)
    app.config.from_envvar("APP_SETTINGS", silent=True)
    if isinstance(config_object, Mapping):
        app.config.from_mapping(config_object)
    elif config_object:
        app.config.from_object(config_object)

    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        build_engine_options(
            app.config["SQLALCHEMY_DATABASE_URI"],
            connect_timeout=app.config["DB_CONNECT_TIMEOUT"],
            pool_timeout=app.config["DB_POOL_TIMEOUT"],
            statement_timeout_ms=app.config["DB_STATEMENT_TIMEOUT_MS"],
        ),
    )
    # Oversized request bodies are refused with 413 before they are buffered.
    if app.config.get("MAX_CONTENT_LENGTH") is None:
        app.config["MAX_CONTENT_LENGTH"] = (
            app.config["MAX_UPLOAD_BYTES"] + app.config["MULTIPART_OVERHEAD_BYTES"]
        )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)

    # Allow the storefront to talk to the backend
    CORS(app,
         origins=app.config["CORS_ORIGINS"],
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )

    register_error_handlers(app)
    register_routes(app)

    return app
