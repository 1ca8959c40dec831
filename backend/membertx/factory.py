"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from flask import Flask

from membertx.core.config import BaseConfig, get_config
from membertx.core.logger import configure_logging, init_app as init_logging

JOIN_POLICY_KEY = "membertx.join_policy"


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    The join propagation policy is parsed here so a misspelled
    ``*_PROPAGATION`` setting fails at startup rather than on first request.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(
        app.config.get("LOG_LEVEL", "INFO"), tx_level=app.config.get("TX_LOG_LEVEL")
    )

    from membertx.services.members.join import JoinPolicy

    app.extensions[JOIN_POLICY_KEY] = JoinPolicy.from_config(app.config)

    from membertx.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from membertx.api import init_app as init_api

    init_api(app)

    from membertx.core import errors

    errors.init_app(app)

    from membertx import cli as app_cli

    app_cli.init_app(app)

    return app
