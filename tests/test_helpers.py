"""Test helper functions shared by the unit and integration suites."""
from typing import Optional

from flask import Flask
from flask.testing import FlaskClient

from poker_portal.config import TestingConfig
from poker_portal.database import db, init_database
from poker_portal.models.player import Player
from poker_portal.models.table import PokerTable
from poker_portal.services import websocket_manager
from poker_portal.services.player_manager import PlayerManager
from poker_portal.services.transaction_manager import TransactionManager

_phone_counter = iter(range(10_000_000, 99_999_999))


def create_test_app(**overrides) -> Flask:
    """Bare Flask app with the testing config and an in-memory database.

    The realtime manager is cleared so service calls do not emit into a
    Socket.IO server left over from another test.
    """
    app = Flask(__name__)
    app.config.from_object(TestingConfig)
    app.config['SECRET_KEY'] = 'test-secret-key'
    app.config.update(overrides)
    init_database(app)
    websocket_manager.realtime_manager = None
    return app


def create_test_player(email: str = "player@example.com", first_name: str = "Test",
                       last_name: str = "Player", balance: int = 0,
                       kyc_approved: bool = True, role: str = Player.ROLE_PLAYER) -> Player:
    """Create a player, optionally KYC approved and funded through the ledger."""
    player = PlayerManager.create_player(
        email=email,
        password="password123",
        first_name=first_name,
        last_name=last_name,
        phone=f"+91 {next(_phone_counter)}",
        role=role,
    )
    if kyc_approved:
        player.kyc_status = Player.KYC_APPROVED
        db.session.commit()
    if balance:
        TransactionManager.create_adjustment(player.id, balance, "Opening balance")
    return player


def create_test_staff(email: str = "staff@example.com") -> Player:
    return create_test_player(email, "Floor", "Manager", role=Player.ROLE_STAFF)


def create_test_table(name: str = "Table 1", max_players: int = 9,
                      min_buy_in: int = 1000, max_buy_in: int = 10000,
                      is_active: bool = True, current_players: int = 0) -> PokerTable:
    table = PokerTable(
        name=name,
        game_type="Texas Hold'em",
        min_buy_in=min_buy_in,
        max_buy_in=max_buy_in,
        small_blind=25,
        big_blind=50,
        max_players=max_players,
        current_players=current_players,
        pot=0,
        avg_stack=0,
        is_active=is_active,
    )
    db.session.add(table)
    db.session.commit()
    return table


class PortalTestClient(FlaskClient):
    """Test client that gives every request its own app context.

    Tests keep an app context open for fixtures and assertions. Without a
    fresh context per request, `g` (and the user Flask-Login caches there)
    would be shared by every client in the test.
    """

    def open(self, *args, **kwargs):
        with self.application.app_context():
            return super().open(*args, **kwargs)


def login(client, email: str, password: str = "password123"):
    """Sign a test client in through the auth API."""
    return client.post('/api/auth/login', json={'email': email, 'password': password})


def reload(model, ident) -> Optional[object]:
    """Fetch a fresh copy of a row after other sessions changed it."""
    db.session.expire_all()
    return db.session.get(model, ident)
