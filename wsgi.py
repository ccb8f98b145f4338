"""WSGI entry point for production deployment (gunicorn + eventlet)."""

import eventlet
eventlet.monkey_patch()

from app import create_app, setup_logging  # noqa: E402
from poker_portal.config import get_config  # noqa: E402

setup_logging()
app, socketio = create_app(get_config())
