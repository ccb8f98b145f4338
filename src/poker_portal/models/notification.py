"""Notification models."""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import db


class PushNotification(db.Model):
    """A notification shown in the portal, targeted at one player or broadcast to all."""

    __tablename__ = 'push_notifications'

    TYPE_GENERAL = 'general'
    TYPE_CHAT = 'chat'
    TYPE_KYC = 'kyc'
    TYPE_SEAT = 'seat_available'
    TYPE_CASHIER = 'cashier'
    TYPE_OFFER = 'offer'
    TYPE_FOOD_ORDER = 'food_order'
    TYPE_FEEDBACK = 'feedback'

    PRIORITIES = ('low', 'normal', 'high', 'urgent')

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('players.id'), index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    notification_type: Mapped[str] = mapped_column(String(40), nullable=False, default=TYPE_GENERAL)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default='normal')
    data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('players.id'))
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def is_broadcast(self) -> bool:
        return self.player_id is None

    def to_dict(self, is_read: Optional[bool] = None) -> Dict[str, Any]:
        return {
            'id': self.id,
            'player_id': self.player_id,
            'title': self.title,
            'message': self.message,
            'notification_type': self.notification_type,
            'priority': self.priority,
            'data': self.data or {},
            'is_broadcast': self.is_broadcast,
            'is_read': self.is_read if is_read is None else is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        target = self.player_id if self.player_id is not None else 'all'
        return f'<PushNotification {self.id} -> {target}: {self.title}>'


class NotificationReceipt(db.Model):
    """Per-player read marker for broadcast notifications."""

    __tablename__ = 'notification_receipts'
    __table_args__ = (
        UniqueConstraint('notification_id', 'player_id', name='uq_notification_receipts_player'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    notification_id: Mapped[int] = mapped_column(Integer, ForeignKey('push_notifications.id'), nullable=False)
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey('players.id'), nullable=False, index=True)
    read_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    notification: Mapped["PushNotification"] = relationship("PushNotification")
