"""Authentication routes for the player portal."""

from flask import Blueprint, current_app, jsonify
from flask_login import login_user

from ..extensions import limiter
from ..services.auth_service import AuthenticationError, SessionManager
from ..services.player_manager import PlayerManager, PlayerValidationError
from .utils import error_response, json_body

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
@limiter.limit(lambda: current_app.config["RATELIMIT_AUTH_REGISTER"])
def register():
    """Register a new player account and sign in."""
    data = json_body()
    if not data:
        return error_response("No data provided")

    try:
        player = PlayerManager.create_player(
            email=data.get("email", ""),
            password=data.get("password", ""),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            phone=data.get("phone", ""),
        )
        login_user(player, remember=True)

        return jsonify({"success": True, "message": "Account created successfully", "player": player.to_dict()}), 201

    except PlayerValidationError as e:
        return error_response(str(e))
    except Exception as e:
        current_app.logger.error(f"Registration error: {e}")
        return error_response("Registration failed", 500)


@auth_bp.route("/login", methods=["POST"])
@limiter.limit(lambda: current_app.config["RATELIMIT_AUTH_LOGIN"])
def login():
    """Login player and create session."""
    data = json_body()
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""

    if not email or not password:
        return error_response("Email and password required")

    try:
        result = SessionManager.login_player_session(email, password, bool(data.get("remember_me", False)))
        return jsonify(result), 200

    except AuthenticationError as e:
        return error_response(str(e), 401)
    except Exception as e:
        current_app.logger.error(f"Login error: {e}")
        return error_response("Login failed", 500)


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """Logout player and clear session."""
    return jsonify(SessionManager.logout_player_session()), 200


@auth_bp.route("/me", methods=["GET"])
def me():
    """Get current authenticated player information."""
    info = SessionManager.get_current_player_info()
    if not info:
        return error_response("Not authenticated", 401)
    return jsonify({"success": True, **info}), 200
