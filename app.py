"""Main Flask application for the poker room player portal."""

import contextlib
import logging
import os

from flask import Flask, jsonify
from flask_socketio import SocketIO

from poker_portal.auth import init_login_manager
from poker_portal.config import Config, get_config
from poker_portal.database import create_tables, db, init_database
from poker_portal.db_utils import get_database_health
from poker_portal.extensions import limiter
from poker_portal.routes.auth_routes import auth_bp
from poker_portal.routes.chat_routes import chat_bp
from poker_portal.routes.feedback_routes import feedback_bp
from poker_portal.routes.food_routes import food_bp
from poker_portal.routes.kyc_routes import kyc_bp
from poker_portal.routes.notification_routes import notifications_bp
from poker_portal.routes.offer_routes import offers_bp
from poker_portal.routes.player_routes import players_bp
from poker_portal.routes.staff_routes import staff_bp
from poker_portal.routes.table_routes import tables_bp
from poker_portal.routes.tournament_routes import tournaments_bp
from poker_portal.routes.waitlist_routes import waitlist_bp
from poker_portal.services.websocket_manager import get_realtime_manager, init_realtime_manager


def create_app(config_class=Config):
    """Create and configure the Flask application.

    Returns:
        Tuple of (app, socketio)
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize extensions
    init_database(app)
    limiter.init_app(app)

    socketio = SocketIO(
        app,
        cors_allowed_origins=app.config.get("SOCKETIO_CORS_ALLOWED_ORIGINS", "*"),
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE"),
        logger=app.config.get("SOCKETIO_LOGGING", False),
        engineio_logger=app.config.get("SOCKETIO_LOGGING", False),
        ping_timeout=60,
        ping_interval=25,
    )

    # Initialize authentication
    init_login_manager(app)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(players_bp, url_prefix="/api/players")
    app.register_blueprint(kyc_bp, url_prefix="/api/kyc")
    app.register_blueprint(tables_bp, url_prefix="/api/tables")
    app.register_blueprint(waitlist_bp, url_prefix="/api/waitlist")
    app.register_blueprint(chat_bp, url_prefix="/api/chat")
    app.register_blueprint(notifications_bp, url_prefix="/api/notifications")
    app.register_blueprint(offers_bp, url_prefix="/api/offers")
    app.register_blueprint(feedback_bp, url_prefix="/api/feedback")
    app.register_blueprint(food_bp, url_prefix="/api/food-beverage")
    app.register_blueprint(tournaments_bp, url_prefix="/api/tournaments")
    app.register_blueprint(staff_bp, url_prefix="/api/staff")

    # Initialize realtime delivery
    init_realtime_manager(socketio)

    # Create database tables
    with app.app_context():
        create_tables()

    @app.errorhandler(429)
    def ratelimit_handler(e):
        return jsonify({"success": False, "error": "Too many requests. Please try again later."}), 429

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"success": False, "error": "Upload is too large"}), 413

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        app.logger.error(f"Unhandled error: {e}")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    @app.route("/api/health")
    def health():
        """Database and realtime status for load balancers."""
        database = get_database_health()
        manager = get_realtime_manager()
        status = 200 if database["status"] == "healthy" else 503
        return jsonify({
            "success": status == 200,
            "database": database,
            "realtime": manager.get_connection_stats() if manager else None,
        }), status

    return app, socketio


def setup_logging():
    """Set up logging for the application."""
    handlers = [logging.StreamHandler()]
    # Only add file handler in development (container filesystems are ephemeral)
    if os.environ.get("FLASK_ENV") != "production":
        with contextlib.suppress(OSError):
            handlers.append(logging.FileHandler("poker_portal.log"))
    logging.basicConfig(
        level=logging.INFO if os.environ.get("FLASK_ENV") == "production" else logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


if __name__ == "__main__":
    setup_logging()

    config_class = get_config()
    app, socketio = create_app(config_class)

    app.logger.info("Starting poker portal on http://localhost:5000")

    socketio.run(
        app,
        debug=app.config.get("DEBUG", False),
        use_reloader=False,  # Reloader breaks WebSocket connections
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "5000")),
        allow_unsafe_werkzeug=True,
    )
