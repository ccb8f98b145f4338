"""Session authentication for the player portal."""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from flask import session, current_app
from flask_login import login_user, logout_user, current_user

from .player_manager import PlayerManager


class AuthenticationError(Exception):
    """Exception raised for authentication errors."""
    pass


class SessionManager:
    """Manages player sessions and authentication state."""

    @staticmethod
    def login_player_session(email: str, password: str, remember_me: bool = False) -> Dict[str, Any]:
        """Authenticate a player and create a session.

        Args:
            email: Login email
            password: Plain text password
            remember_me: Whether to create persistent session

        Returns:
            Dict containing login result and player info

        Raises:
            AuthenticationError: If authentication fails
        """
        player = PlayerManager.authenticate_player(email, password)
        if not player:
            raise AuthenticationError("Invalid email or password")

        remember_days = current_app.config.get('REMEMBER_ME_DAYS', 30)
        login_user(player, remember=remember_me, duration=timedelta(days=remember_days))

        session['login_time'] = datetime.utcnow().isoformat()
        if not remember_me:
            session.permanent = True

        current_app.logger.info(f"Player logged in: {player.email} (ID: {player.id})")

        return {
            'success': True,
            'player': player.to_dict(),
            'message': 'Login successful'
        }

    @staticmethod
    def logout_player_session() -> Dict[str, Any]:
        """Logout player and clear session."""
        player_id = current_user.id if current_user.is_authenticated else None

        # Clear Flask-Login session
        logout_user()
        session.clear()

        current_app.logger.info(f"Player logged out: {player_id}")

        return {
            'success': True,
            'message': 'Logout successful'
        }

    @staticmethod
    def get_current_player_info() -> Optional[Dict[str, Any]]:
        """Get current authenticated player information, or None if not authenticated."""
        if not current_user.is_authenticated:
            return None

        return {
            'player': current_user.to_dict(),
            'login_time': session.get('login_time'),
            'is_authenticated': True
        }
