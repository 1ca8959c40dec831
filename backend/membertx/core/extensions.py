"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData
from sqlalchemy.orm import Session, sessionmaker

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, and CORS.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`membertx.models` package so SQLAlchemy metadata is complete
        before ``create_all`` or migrations run.
    """
    db.init_app(app)

    from membertx import models as _models  # noqa: F401

    migrate.init_app(app, db)
    _init_cors(app)


def _init_cors(app: Flask) -> None:
    """Configure CORS for API endpoints from ``CORS_ORIGINS``.

    A blank value or ``"*"`` allows any origin but disables credential support.
    """
    raw_origins = app.config.get("CORS_ORIGINS", "")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    wildcard = len(origins) == 0 or origins == ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if wildcard else origins}},
        supports_credentials=not wildcard,
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )


def session_factory() -> sessionmaker[Session]:
    """Return a factory producing independent sessions on the app's engine.

    Every transaction context owns one of these sessions, so each context maps
    to its own connection and physical transaction. Must be called inside an
    application context.
    """
    return sessionmaker(bind=db.engine, autoflush=False, expire_on_commit=False)
