"""Player feedback model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import db


class PlayerFeedback(db.Model):
    """Feedback a player sends to the club or the super admin."""

    __tablename__ = "player_feedback"

    STATUS_RECEIVED = "received"
    STATUS_IN_REVIEW = "in_review"
    STATUS_RESOLVED = "resolved"
    STATUS_REJECTED = "rejected"
    STATUSES = (STATUS_RECEIVED, STATUS_IN_REVIEW, STATUS_RESOLVED, STATUS_REJECTED)

    TYPE_DEFAULT = "player_feedback"
    TARGET_DEFAULT = "super_admin"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    feedback_type: Mapped[str] = mapped_column(String(40), nullable=False, default=TYPE_DEFAULT)
    target_role: Mapped[str] = mapped_column(String(40), nullable=False, default=TARGET_DEFAULT)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_RECEIVED)
    response: Mapped[Optional[str]] = mapped_column(Text)
    reviewed_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("players.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    player: Mapped["Player"] = relationship("Player", foreign_keys=[player_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "player_id": self.player_id,
            "player_name": self.player.full_name if self.player else None,
            "feedback_type": self.feedback_type,
            "target_role": self.target_role,
            "message": self.message,
            "status": self.status,
            "response": self.response,
            "reviewed_by": self.reviewed_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<PlayerFeedback {self.id} player={self.player_id} {self.status}>"
