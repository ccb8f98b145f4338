"""Player/staff chat models.

A ``ChatSession`` is one support conversation between a player and the GRE
desk. Messages inside a session are totally ordered by ``sequence``, which is
allocated from ``ChatSession.last_sequence`` while the session row is locked.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import db


class ChatSession(db.Model):
    """Model for a player support conversation."""

    __tablename__ = 'chat_sessions'
    __table_args__ = (
        # At most one pending or active session per player
        Index(
            'uq_chat_sessions_open_player', 'player_id', unique=True,
            postgresql_where=text("status IN ('pending', 'active')"),
            sqlite_where=text("status IN ('pending', 'active')"),
        ),
    )

    STATUS_PENDING = 'pending'
    STATUS_ACTIVE = 'active'
    STATUS_RESOLVED = 'resolved'
    STATUS_ARCHIVED = 'archived'
    OPEN_STATUSES = (STATUS_PENDING, STATUS_ACTIVE)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey('players.id'), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_PENDING)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default='medium')
    assigned_staff_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('players.id'))

    last_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    player_last_read: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    staff_last_read: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    player: Mapped["Player"] = relationship("Player", foreign_keys=[player_id])
    assigned_staff: Mapped[Optional["Player"]] = relationship("Player", foreign_keys=[assigned_staff_id])
    messages: Mapped[List["ChatMessage"]] = relationship(
        "ChatMessage", back_populates="session", order_by="ChatMessage.sequence"
    )

    @property
    def is_open(self) -> bool:
        return self.status in self.OPEN_STATUSES

    def to_dict(self, include_messages: bool = False) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result = {
            'id': self.id,
            'player_id': self.player_id,
            'player_name': self.player.full_name if self.player else None,
            'subject': self.subject,
            'status': self.status,
            'priority': self.priority,
            'assigned_staff_id': self.assigned_staff_id,
            'assigned_staff_name': self.assigned_staff.full_name if self.assigned_staff else None,
            'last_sequence': self.last_sequence,
            'player_last_read': self.player_last_read,
            'staff_last_read': self.staff_last_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'resolved_at': self.resolved_at.isoformat() if self.resolved_at else None,
        }
        if include_messages:
            result['messages'] = [message.to_dict() for message in self.messages]
        return result

    def __repr__(self) -> str:
        return f'<ChatSession {self.id} player={self.player_id} {self.status}>'


class ChatMessage(db.Model):
    """Model for a single chat message."""

    __tablename__ = 'chat_messages'
    __table_args__ = (
        UniqueConstraint('session_id', 'sequence', name='uq_chat_messages_session_sequence'),
        UniqueConstraint('sender_type', 'sender_id', 'client_message_id', name='uq_chat_messages_client_id'),
        Index('ix_chat_messages_player_created', 'player_id', 'created_at'),
    )

    SENDER_PLAYER = 'player'
    SENDER_STAFF = 'staff'
    SENDER_SYSTEM = 'system'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id: Mapped[str] = mapped_column(String(36), ForeignKey('chat_sessions.id'), nullable=False)
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey('players.id'), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    sender_type: Mapped[str] = mapped_column(String(20), nullable=False)
    sender_id: Mapped[Optional[int]] = mapped_column(Integer)
    sender_name: Mapped[str] = mapped_column(String(120), nullable=False)

    body: Mapped[str] = mapped_column(Text, nullable=False)
    filtered_body: Mapped[Optional[str]] = mapped_column(Text)  # Message after filtering
    client_message_id: Mapped[Optional[str]] = mapped_column(String(120))
    source: Mapped[str] = mapped_column(String(40), nullable=False, default='portal')

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    session: Mapped["ChatSession"] = relationship("ChatSession", back_populates="messages")

    @property
    def is_filtered(self) -> bool:
        return self.filtered_body is not None

    @property
    def display_body(self) -> str:
        return self.filtered_body if self.is_filtered else self.body

    def to_dict(self, include_original: bool = False) -> Dict[str, Any]:
        """Convert to dictionary representation.

        Args:
            include_original: Whether to include original unfiltered message

        Returns:
            Dictionary representation
        """
        result = {
            'id': self.id,
            'session_id': self.session_id,
            'player_id': self.player_id,
            'sequence': self.sequence,
            'sender_type': self.sender_type,
            'sender_id': self.sender_id,
            'sender_name': self.sender_name,
            'message': self.display_body,
            'is_filtered': self.is_filtered,
            'client_message_id': self.client_message_id,
            'source': self.source,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_original and self.is_filtered:
            result['original_message'] = self.body

        return result

    def __repr__(self) -> str:
        return f'<ChatMessage {self.session_id}#{self.sequence} {self.sender_type}>'
