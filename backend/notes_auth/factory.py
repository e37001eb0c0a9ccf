"""Application factory wiring Flask extensions, the session facade and blueprints."""

from __future__ import annotations

from flask import Flask

from notes_auth.core.config import BaseConfig, get_config, validate_config
from notes_auth.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application."""

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    validate_config(app.config)

    # flask-jwt-extended guards protected endpoints with the access codec's key
    app.config.setdefault("JWT_SECRET_KEY", app.config["ACCESS_TOKEN_SECRET"])
    app.config.setdefault("JWT_TOKEN_LOCATION", ["headers"])

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from notes_auth.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from notes_auth.api.deps import SESSION_SERVICE_KEY
    from notes_auth.infra.sqlalchemy import SqlUserDirectory
    from notes_auth.services.wiring import build_session_service

    app.extensions[SESSION_SERVICE_KEY] = build_session_service(
        app.config,
        users=SqlUserDirectory(),
        redis_client=extensions.redis_client,
    )

    from notes_auth.api import init_app as init_api

    init_api(app)

    from notes_auth.core import errors

    errors.init_app(app)

    return app
