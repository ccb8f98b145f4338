"""Seat request (waitlist entry) model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import db


class SeatRequest(db.Model):
    """A player's place in the queue for a table."""

    __tablename__ = "seat_requests"
    __table_args__ = (
        # A player waits for at most one table
        Index(
            "uq_seat_requests_waiting_player", "player_id", unique=True,
            postgresql_where=text("status = 'waiting'"),
            sqlite_where=text("status = 'waiting'"),
        ),
    )

    STATUS_WAITING = "waiting"
    STATUS_SEATED = "seated"
    STATUS_CANCELLED = "cancelled"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    table_id: Mapped[int] = mapped_column(Integer, ForeignKey("tables.id"), nullable=False, index=True)
    seat_number: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_WAITING)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    seated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    seated_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("players.id"))

    player: Mapped["Player"] = relationship("Player", foreign_keys=[player_id])
    table: Mapped["PokerTable"] = relationship("PokerTable", back_populates="seat_requests")

    @property
    def is_waiting(self) -> bool:
        return self.status == self.STATUS_WAITING

    def to_dict(self, minutes_per_position: Optional[int] = None) -> dict:
        result = {
            "id": self.id,
            "player_id": self.player_id,
            "table_id": self.table_id,
            "table_name": self.table.name if self.table else None,
            "seat_number": self.seat_number,
            "status": self.status,
            "position": self.position if self.is_waiting else None,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "seated_at": self.seated_at.isoformat() if self.seated_at else None,
        }
        if minutes_per_position is not None and self.is_waiting:
            result["estimated_wait"] = self.position * minutes_per_position
        return result

    def __repr__(self) -> str:
        return f"<SeatRequest player={self.player_id} table={self.table_id} {self.status}#{self.position}>"
