"""Player account management service for the poker room portal."""

import re
from typing import Optional, Dict, Any
from sqlalchemy.exc import IntegrityError
from flask import current_app

from ..database import db
from ..models.player import Player, PlayerPrefs


class PlayerValidationError(Exception):
    """Exception raised for player validation errors."""
    pass


PAN_CARD_PATTERN = re.compile(r'^[A-Z]{5}[0-9]{4}[A-Z]$')
PHONE_PATTERN = re.compile(r'^\+?[0-9][0-9\s-]{8,18}[0-9]$')


class PlayerManager:
    """Service class for managing player accounts and authentication."""

    PROFILE_FIELDS = ('first_name', 'last_name', 'phone', 'address')

    @staticmethod
    def normalize_player_id(value: Any) -> int:
        """Coerce a player id from a session, URL or payload to an int.

        Raises:
            PlayerValidationError: If the value is not a positive integer
        """
        if isinstance(value, bool):
            raise PlayerValidationError("Invalid player ID")
        if isinstance(value, int):
            player_id = value
        elif isinstance(value, str) and value.strip().isdigit():
            player_id = int(value.strip())
        else:
            raise PlayerValidationError("Invalid player ID")

        if player_id <= 0:
            raise PlayerValidationError("Invalid player ID")
        return player_id

    @staticmethod
    def validate_email(email: str) -> None:
        """Validate email format and availability.

        Args:
            email: Email to validate

        Raises:
            PlayerValidationError: If email is invalid
        """
        if not email:
            raise PlayerValidationError("Email is required")

        # Basic email validation
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, email):
            raise PlayerValidationError("Invalid email format")

        if len(email) > 120:
            raise PlayerValidationError("Email must be no more than 120 characters long")

        # Check if email already exists
        existing_player = Player.query.filter_by(email=email).first()
        if existing_player:
            raise PlayerValidationError("Email already exists")

    @staticmethod
    def validate_password(password: str) -> None:
        """Validate password strength.

        Args:
            password: Password to validate

        Raises:
            PlayerValidationError: If password is invalid
        """
        if not password:
            raise PlayerValidationError("Password is required")

        if len(password) < 8:
            raise PlayerValidationError("Password must be at least 8 characters long")

        if len(password) > 128:
            raise PlayerValidationError("Password must be no more than 128 characters long")

        # Check for at least one letter and one number
        if not re.search(r'[a-zA-Z]', password):
            raise PlayerValidationError("Password must contain at least one letter")

        if not re.search(r'\d', password):
            raise PlayerValidationError("Password must contain at least one number")

    @staticmethod
    def validate_name(name: str, label: str = "Name") -> None:
        if not name or not name.strip():
            raise PlayerValidationError(f"{label} is required")

        if len(name.strip()) > 60:
            raise PlayerValidationError(f"{label} must be no more than 60 characters long")

        if not re.match(r"^[A-Za-z][A-Za-z .'-]*$", name.strip()):
            raise PlayerValidationError(f"{label} contains invalid characters")

    @staticmethod
    def validate_phone(phone: str) -> None:
        if not phone:
            raise PlayerValidationError("Phone number is required")

        if not PHONE_PATTERN.match(phone.strip()):
            raise PlayerValidationError("Invalid phone number")

    @staticmethod
    def validate_pan_card(pan_card: str) -> None:
        """Validate an Indian PAN card number (five letters, four digits, one letter)."""
        if not pan_card:
            raise PlayerValidationError("PAN card number is required")

        if not PAN_CARD_PATTERN.match(pan_card.strip().upper()):
            raise PlayerValidationError("Invalid PAN card format (expected AAAAA9999A)")

    @staticmethod
    def create_player(email: str, password: str, first_name: str, last_name: str,
                      phone: str, role: str = Player.ROLE_PLAYER) -> Player:
        """Create a new player account with validation.

        Args:
            email: Player's email address (login name)
            password: Plain text password (will be hashed)
            first_name: First name
            last_name: Last name
            phone: Contact number
            role: player, staff or admin

        Returns:
            Player: Created player instance

        Raises:
            PlayerValidationError: If validation fails
        """
        email = (email or '').strip().lower()

        # Validate all inputs
        PlayerManager.validate_email(email)
        PlayerManager.validate_password(password)
        PlayerManager.validate_name(first_name, "First name")
        PlayerManager.validate_name(last_name, "Last name")
        PlayerManager.validate_phone(phone)

        if role not in (Player.ROLE_PLAYER, Player.ROLE_STAFF, Player.ROLE_ADMIN):
            raise PlayerValidationError("Invalid role")

        try:
            player = Player(
                email=email,
                password=password,
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                phone=phone.strip(),
                role=role
            )
            player.preferences = PlayerPrefs(
                seat_available=True, call_time_warning=True, game_updates=False, push_enabled=True
            )

            # Save to database
            db.session.add(player)
            db.session.commit()

            current_app.logger.info(f"Created new player: {email} (ID: {player.id}, role: {role})")
            return player

        except IntegrityError as e:
            db.session.rollback()
            current_app.logger.error(f"Database integrity error creating player {email}: {e}")
            raise PlayerValidationError("Email already exists")

    @staticmethod
    def authenticate_player(email: str, password: str) -> Optional[Player]:
        """Authenticate player with email and password.

        Returns:
            Player: Authenticated player instance or None if authentication fails
        """
        if not email or not password:
            return None

        email = email.strip().lower()
        player = Player.query.filter_by(email=email).first()

        if player and player.is_active and player.check_password(password):
            # Update last login timestamp
            player.update_last_login()
            db.session.commit()

            current_app.logger.info(f"Player authenticated: {player.email} (ID: {player.id})")
            return player

        current_app.logger.warning(f"Failed authentication attempt for: {email}")
        return None

    @staticmethod
    def get_player_by_id(player_id: int) -> Optional[Player]:
        """Get an active player by ID."""
        return Player.query.filter_by(id=player_id, is_active=True).first()

    @staticmethod
    def get_player_by_email(email: str) -> Optional[Player]:
        """Get an active player by email."""
        if not email:
            return None
        return Player.query.filter_by(email=email.strip().lower(), is_active=True).first()

    @staticmethod
    def require_player(player_id: Any) -> Player:
        """Fetch an active player or raise."""
        player = PlayerManager.get_player_by_id(PlayerManager.normalize_player_id(player_id))
        if not player:
            raise PlayerValidationError("Player not found")
        return player

    @staticmethod
    def update_profile(player_id: int, fields: Dict[str, Any]) -> Player:
        """Update editable profile fields.

        Only first name, last name, phone and address can be changed here;
        anything else in ``fields`` (ids, email, balances) is ignored.
        """
        player = PlayerManager.require_player(player_id)
        updates = {key: value for key, value in fields.items() if key in PlayerManager.PROFILE_FIELDS}
        if not updates:
            raise PlayerValidationError("No profile fields to update")
        for key, value in updates.items():
            if not isinstance(value, str):
                raise PlayerValidationError(f"{key.replace('_', ' ').capitalize()} must be text")

        if 'first_name' in updates:
            PlayerManager.validate_name(updates['first_name'], "First name")
        if 'last_name' in updates:
            PlayerManager.validate_name(updates['last_name'], "Last name")
        if 'phone' in updates:
            PlayerManager.validate_phone(updates['phone'])

        for key, value in updates.items():
            setattr(player, key, value.strip())

        db.session.commit()
        current_app.logger.info(f"Updated profile for player {player.id}: {sorted(updates)}")
        return player

    @staticmethod
    def get_preferences(player_id: int) -> PlayerPrefs:
        """Get a player's notification preferences, creating defaults when missing."""
        player = PlayerManager.require_player(player_id)
        if player.preferences is None:
            player.preferences = PlayerPrefs(
                seat_available=True, call_time_warning=True, game_updates=False, push_enabled=True
            )
            db.session.commit()
        return player.preferences

    @staticmethod
    def update_preferences(player_id: int, updates: Dict[str, Any]) -> PlayerPrefs:
        prefs = PlayerManager.get_preferences(player_id)
        unknown = set(updates) - set(PlayerPrefs.FIELDS)
        if unknown:
            raise PlayerValidationError(f"Unknown preference: {', '.join(sorted(unknown))}")

        for key, value in updates.items():
            if not isinstance(value, bool):
                raise PlayerValidationError(f"Preference {key} must be true or false")
            setattr(prefs, key, value)

        db.session.commit()
        return prefs

    @staticmethod
    def deactivate_player(player_id: int) -> bool:
        """Deactivate a player account.

        Returns:
            bool: True if successful, False if the player does not exist
        """
        player = Player.query.filter_by(id=player_id).first()
        if not player:
            return False

        player.is_active = False
        db.session.commit()

        current_app.logger.info(f"Deactivated player: {player.email} (ID: {player_id})")
        return True
