"""Unit tests for PlayerManager service."""

import pytest

from poker_portal.database import db
from poker_portal.models.player import Player
from poker_portal.services.player_manager import PlayerManager, PlayerValidationError
from tests.test_helpers import create_test_app, create_test_player


@pytest.fixture
def app():
    """Create test Flask app."""
    app = create_test_app()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_context(app):
    """Create app context for tests."""
    with app.app_context():
        yield


class TestPlayerIdNormalization:
    """Player IDs arrive as ints from the session and as strings from payloads."""

    def test_int_passes_through(self):
        assert PlayerManager.normalize_player_id(42) == 42

    def test_numeric_string(self):
        assert PlayerManager.normalize_player_id(" 42 ") == 42

    @pytest.mark.parametrize("value", [None, "", "abc", "4.2", 0, -3, True, 4.0])
    def test_rejects_invalid(self, value):
        with pytest.raises(PlayerValidationError, match="Invalid player ID"):
            PlayerManager.normalize_player_id(value)


class TestPlayerValidation:
    """Test player validation methods."""

    def test_validate_email_valid(self, app_context):
        PlayerManager.validate_email("new@example.com")

    def test_validate_email_invalid_format(self, app_context):
        with pytest.raises(PlayerValidationError, match="Invalid email format"):
            PlayerManager.validate_email("not-an-email")

    def test_validate_email_already_exists(self, app_context):
        create_test_player("taken@example.com")
        with pytest.raises(PlayerValidationError, match="Email already exists"):
            PlayerManager.validate_email("taken@example.com")

    def test_validate_password_too_short(self, app_context):
        with pytest.raises(PlayerValidationError, match="at least 8 characters"):
            PlayerManager.validate_password("abc123")

    def test_validate_password_no_number(self, app_context):
        with pytest.raises(PlayerValidationError, match="at least one number"):
            PlayerManager.validate_password("passwordonly")

    def test_validate_name_rejects_digits(self, app_context):
        with pytest.raises(PlayerValidationError, match="First name contains invalid characters"):
            PlayerManager.validate_name("R2D2", "First name")

    def test_validate_phone(self, app_context):
        PlayerManager.validate_phone("+91 98765 43210")
        with pytest.raises(PlayerValidationError, match="Invalid phone number"):
            PlayerManager.validate_phone("12345")

    def test_validate_pan_card(self, app_context):
        PlayerManager.validate_pan_card("abcde1234f")
        with pytest.raises(PlayerValidationError, match="Invalid PAN card format"):
            PlayerManager.validate_pan_card("ABCD12345F")


class TestPlayerCreation:
    """Test player creation."""

    def test_create_player_success(self, app_context):
        player = PlayerManager.create_player(
            "New.Player@Example.com", "password123", "Asha", "Kumar", "+91 98765 43210"
        )

        assert player.id is not None
        assert player.email == "new.player@example.com"
        assert player.role == Player.ROLE_PLAYER
        assert player.kyc_status == Player.KYC_PENDING
        assert player.balance == 0
        assert player.check_password("password123")
        assert player.preferences.seat_available is True
        assert player.preferences.game_updates is False

    def test_create_player_duplicate_email_case_insensitive(self, app_context):
        create_test_player("dup@example.com")
        with pytest.raises(PlayerValidationError, match="Email already exists"):
            PlayerManager.create_player("DUP@example.com", "password123", "Asha", "Kumar", "+91 98765 43210")

    def test_create_player_invalid_role(self, app_context):
        with pytest.raises(PlayerValidationError, match="Invalid role"):
            PlayerManager.create_player(
                "role@example.com", "password123", "Asha", "Kumar", "+91 98765 43210", role="owner"
            )


class TestPlayerAuthentication:
    """Test player authentication."""

    def test_authenticate_success_updates_last_login(self, app_context):
        create_test_player("auth@example.com")
        player = PlayerManager.authenticate_player("AUTH@example.com", "password123")

        assert player is not None
        assert player.last_login is not None

    def test_authenticate_wrong_password(self, app_context):
        create_test_player("auth@example.com")
        assert PlayerManager.authenticate_player("auth@example.com", "wrongpass1") is None

    def test_authenticate_inactive(self, app_context):
        player = create_test_player("auth@example.com")
        PlayerManager.deactivate_player(player.id)
        assert PlayerManager.authenticate_player("auth@example.com", "password123") is None


class TestProfileAndPreferences:
    """Test profile and preference updates."""

    def test_update_profile_ignores_protected_fields(self, app_context):
        player = create_test_player()
        updated = PlayerManager.update_profile(player.id, {
            'player_id': 999, 'first_name': "  Meera ", 'address': "12 MG Road",
            'balance': 999999, 'role': "admin",
        })

        assert updated.first_name == "Meera"
        assert updated.address == "12 MG Road"
        assert updated.balance == 0
        assert updated.role == Player.ROLE_PLAYER

    def test_update_profile_requires_a_field(self, app_context):
        player = create_test_player()
        with pytest.raises(PlayerValidationError, match="No profile fields"):
            PlayerManager.update_profile(player.id, {'email': "other@example.com"})

    def test_update_profile_rejects_non_text(self, app_context):
        player = create_test_player()
        with pytest.raises(PlayerValidationError, match="First name must be text"):
            PlayerManager.update_profile(player.id, {'first_name': 42})

    def test_get_preferences_creates_defaults(self, app_context):
        player = create_test_player()
        db.session.delete(player.preferences)
        db.session.commit()

        prefs = PlayerManager.get_preferences(player.id)
        assert prefs.to_dict() == {
            'seat_available': True,
            'call_time_warning': True,
            'game_updates': False,
            'push_enabled': True,
        }

    def test_update_preferences(self, app_context):
        player = create_test_player()
        prefs = PlayerManager.update_preferences(player.id, {'push_enabled': False})
        assert prefs.push_enabled is False

    def test_update_preferences_rejects_unknown_and_non_bool(self, app_context):
        player = create_test_player()
        with pytest.raises(PlayerValidationError, match="Unknown preference"):
            PlayerManager.update_preferences(player.id, {'dark_mode': True})
        with pytest.raises(PlayerValidationError, match="must be true or false"):
            PlayerManager.update_preferences(player.id, {'push_enabled': "no"})

