"""Cashier request models: cash-out and credit requests."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import db


class _CashierRequestMixin:
    """Columns shared by requests that go through the cashier desk."""

    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_pending(self) -> bool:
        return self.status == self.STATUS_PENDING

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "player_id": self.player_id,
            "player_name": self.player.full_name if self.player else None,
            "amount": self.amount,
            "status": self.status,
            "notes": self.notes,
            "processed_by": self.processed_by,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class CashOutRequest(_CashierRequestMixin, db.Model):
    """A player's request to withdraw cash balance at the cage."""

    __tablename__ = "cash_out_requests"

    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    processed_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("players.id"))

    player: Mapped["Player"] = relationship("Player", foreign_keys=[player_id])

    def to_dict(self) -> dict:
        return self._base_dict()

    def __repr__(self) -> str:
        return f"<CashOutRequest player={self.player_id} {self.amount} {self.status}>"


class CreditRequest(_CashierRequestMixin, db.Model):
    """A player's request for a credit line."""

    __tablename__ = "credit_requests"

    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    processed_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("players.id"))
    reason: Mapped[Optional[str]] = mapped_column(Text)

    player: Mapped["Player"] = relationship("Player", foreign_keys=[player_id])

    def to_dict(self) -> dict:
        result = self._base_dict()
        result["reason"] = self.reason
        return result

    def __repr__(self) -> str:
        return f"<CreditRequest player={self.player_id} {self.amount} {self.status}>"
