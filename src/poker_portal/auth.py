"""Flask-Login integration for the player portal."""

import functools

from flask import jsonify
from flask_login import LoginManager, current_user, login_required

from .services.player_manager import PlayerManager, PlayerValidationError


def init_login_manager(app):
    """Initialize Flask-Login with the Flask app."""
    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(player_id):
        """Load player by ID for Flask-Login."""
        try:
            return PlayerManager.get_player_by_id(PlayerManager.normalize_player_id(player_id))
        except PlayerValidationError:
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "error": "Authentication required"}), 401

    return login_manager


def staff_required(f):
    """Decorator that requires the current player to be staff."""

    @functools.wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_staff:
            return jsonify({"success": False, "error": "Staff access required"}), 403
        return f(*args, **kwargs)

    return decorated_function
