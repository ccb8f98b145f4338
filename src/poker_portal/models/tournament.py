"""Tournament schedule model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..database import db


class Tournament(db.Model):
    """A scheduled tournament. Buy-in and guarantee are whole currency units."""

    __tablename__ = "tournaments"

    STATUS_SCHEDULED = "scheduled"
    STATUS_REGISTERING = "registering"
    STATUS_RUNNING = "running"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUSES = (STATUS_SCHEDULED, STATUS_REGISTERING, STATUS_RUNNING, STATUS_COMPLETED, STATUS_CANCELLED)
    UPCOMING_STATUSES = (STATUS_SCHEDULED, STATUS_REGISTERING, STATUS_RUNNING)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    game_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Texas Hold'em")
    description: Mapped[Optional[str]] = mapped_column(Text)
    buy_in: Mapped[int] = mapped_column(Integer, nullable=False)
    prize_pool: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    registered_players: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_players: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_SCHEDULED)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def seats_left(self) -> int:
        return max(self.max_players - self.registered_players, 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "game_type": self.game_type,
            "description": self.description,
            "buy_in": self.buy_in,
            "guarantee": self.prize_pool,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "registered": self.registered_players,
            "max_players": self.max_players,
            "seats_left": self.seats_left,
            "status": self.status,
        }

    def __repr__(self) -> str:
        return f"<Tournament {self.id} {self.name} {self.status}>"
