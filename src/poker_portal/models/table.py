"""Poker table model for the live card room."""

from datetime import datetime
from typing import List

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import db


class PokerTable(db.Model):
    """A physical table on the card room floor, as published by staff."""

    __tablename__ = "tables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Table configuration
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    game_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Texas Hold'em")
    min_buy_in: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    max_buy_in: Mapped[int] = mapped_column(Integer, nullable=False, default=10000)
    small_blind: Mapped[int] = mapped_column(Integer, nullable=False, default=25)
    big_blind: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    max_players: Mapped[int] = mapped_column(Integer, nullable=False, default=9)

    # Live stats pushed by the floor
    current_players: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pot: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_stack: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    seat_requests: Mapped[List["SeatRequest"]] = relationship("SeatRequest", back_populates="table")

    @property
    def stakes(self) -> str:
        """Display string for the buy-in range."""
        return f"₹{self.min_buy_in}/{self.max_buy_in}"

    @property
    def blinds(self) -> str:
        return f"{self.small_blind}/{self.big_blind}"

    @property
    def seats_available(self) -> int:
        return max(self.max_players - self.current_players, 0)

    def to_dict(self, waiting_list: int = 0) -> dict:
        """Convert table to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "game_type": self.game_type,
            "stakes": self.stakes,
            "blinds": self.blinds,
            "min_buy_in": self.min_buy_in,
            "max_buy_in": self.max_buy_in,
            "max_players": self.max_players,
            "current_players": self.current_players,
            "seats_available": self.seats_available,
            "waiting_list": waiting_list,
            "pot": self.pot,
            "avg_stack": self.avg_stack,
            "status": "active" if self.is_active else "closed",
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<PokerTable {self.name} ({self.game_type})>"
