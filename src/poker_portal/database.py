"""SQLAlchemy and migration setup for the portal."""

import os

from flask import Flask
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate()


def init_database(app: Flask) -> None:
    """Bind the database and migrations to an app.

    Without a configured URI the portal falls back to ``DATABASE_URL`` and
    then to a SQLite file at the repository root.
    """
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
        app.config["SQLALCHEMY_DATABASE_URI"] = (
            os.environ.get("DATABASE_URL") or f"sqlite:///{os.path.join(root, 'poker_portal.db')}"
        )
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)

    if "sqlalchemy" not in app.extensions:
        db.init_app(app)
    if "migrate" not in app.extensions:
        migrate.init_app(app, db)


def create_tables() -> None:
    # Models must be registered on the metadata first
    from . import models  # noqa: F401

    db.create_all()


def drop_tables() -> None:
    db.drop_all()
