"""Database setup utilities."""

from datetime import datetime, timedelta

from flask import Flask
from sqlalchemy import inspect

from .database import create_tables, db, drop_tables, init_database
from .models import (ChatMessage, ChatSession, FoodOrder, MenuItem, OfferBanner, Player, PokerTable,
                     PushNotification, Tournament, Transaction)
from .services.player_manager import PlayerManager
from .services.table_service import TableService
from .services.transaction_manager import TransactionManager

SAMPLE_PASSWORD = "password123"

SAMPLE_STAFF = [
    ("floor@example.com", "Priya", "Nair"),
]

SAMPLE_PLAYERS = [
    ("arjun@example.com", "Arjun", "Mehta", 25000),
    ("kavya@example.com", "Kavya", "Rao", 10000),
    ("rohan@example.com", "Rohan", "Desai", 5000),
]

SAMPLE_TABLES = [
    {"name": "Table 1 - NLH 25/50", "game_type": "Texas Hold'em", "small_blind": 25, "big_blind": 50,
     "min_buy_in": 2000, "max_buy_in": 10000, "max_players": 9},
    {"name": "Table 2 - PLO 50/100", "game_type": "Pot Limit Omaha", "small_blind": 50, "big_blind": 100,
     "min_buy_in": 5000, "max_buy_in": 20000, "max_players": 6},
    {"name": "Table 3 - NLH 100/200", "game_type": "Texas Hold'em", "small_blind": 100, "big_blind": 200,
     "min_buy_in": 10000, "max_buy_in": 50000, "max_players": 9},
]

SAMPLE_MENU = [
    {"name": "Masala Chai", "price": 80, "category": "beverage", "display_order": 1},
    {"name": "Cold Coffee", "price": 150, "category": "beverage", "display_order": 2},
    {"name": "Paneer Tikka Sandwich", "price": 250, "category": "food", "display_order": 3},
    {"name": "Chicken Biryani", "price": 400, "category": "food", "display_order": 4},
]


def setup_database(app: Flask, create_sample_data: bool = False) -> None:
    """Set up database with initial schema and optional sample data."""
    init_database(app)

    with app.app_context():
        create_tables()
        app.logger.info("Database tables created.")

        if create_sample_data:
            create_sample_data_if_needed()


def create_sample_data_if_needed() -> bool:
    """Create a staff account, a few players, tables, an offer, a menu and a tournament if the database is empty.

    Returns:
        True if sample data was created
    """
    if Player.query.first() is not None:
        return False

    for email, first_name, last_name in SAMPLE_STAFF:
        PlayerManager.create_player(email, SAMPLE_PASSWORD, first_name, last_name,
                                    "+91 98765 00000", role=Player.ROLE_STAFF)

    for index, (email, first_name, last_name, balance) in enumerate(SAMPLE_PLAYERS, start=1):
        player = PlayerManager.create_player(email, SAMPLE_PASSWORD, first_name, last_name,
                                             f"+91 98765 0000{index}")
        player.kyc_status = Player.KYC_APPROVED
        player.kyc_verified_at = datetime.utcnow()
        db.session.commit()
        TransactionManager.create_adjustment(player.id, balance, "Opening balance")

    for table in SAMPLE_TABLES:
        TableService.create_table(table)

    db.session.add(OfferBanner(
        title="Weekend Freeroll",
        description="Play 4 hours on Saturday to enter the Sunday freeroll.",
        offer_type="tournament",
        display_order=1,
        is_active=True,
    ))
    db.session.add_all([MenuItem(is_available=True, **item) for item in SAMPLE_MENU])
    db.session.add(Tournament(
        name="Sunday Deepstack",
        buy_in=5000,
        prize_pool=500000,
        start_time=datetime.utcnow().replace(hour=14, minute=0, second=0, microsecond=0) + timedelta(days=7),
        max_players=120,
    ))
    db.session.commit()
    return True


def reset_database(app: Flask) -> None:
    """Reset database by dropping and recreating all tables."""
    with app.app_context():
        drop_tables()
        create_tables()
        app.logger.warning("Database reset completed.")


def get_database_info(app: Flask) -> dict:
    """Get information about the current database."""
    with app.app_context():
        inspector = inspect(db.engine)

        return {
            "database_url": app.config.get("SQLALCHEMY_DATABASE_URI"),
            "tables": inspector.get_table_names(),
            "player_count": Player.query.count(),
            "table_count": PokerTable.query.count(),
            "transaction_count": Transaction.query.count(),
            "chat_session_count": ChatSession.query.count(),
            "chat_message_count": ChatMessage.query.count(),
            "notification_count": PushNotification.query.count(),
            "food_order_count": FoodOrder.query.count(),
            "tournament_count": Tournament.query.count(),
        }
