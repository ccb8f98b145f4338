"""Player model for the poker room portal."""

from datetime import datetime
from typing import Optional, List

import bcrypt
from flask import current_app, has_app_context
from flask_login import UserMixin
from sqlalchemy import String, Integer, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import db


class Player(UserMixin, db.Model):
    """Player account. Staff members are players with a staff or admin role."""

    __tablename__ = 'players'

    ROLE_PLAYER = 'player'
    ROLE_STAFF = 'staff'
    ROLE_ADMIN = 'admin'

    KYC_PENDING = 'pending'
    KYC_SUBMITTED = 'submitted'
    KYC_APPROVED = 'approved'
    KYC_REJECTED = 'rejected'

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Credentials
    email: Mapped[str] = mapped_column(String(120), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=ROLE_PLAYER, nullable=False)

    # Profile
    first_name: Mapped[str] = mapped_column(String(60), nullable=False)
    last_name: Mapped[str] = mapped_column(String(60), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)

    # KYC
    kyc_status: Mapped[str] = mapped_column(String(20), default=KYC_PENDING, nullable=False)
    pan_card_number: Mapped[Optional[str]] = mapped_column(String(10))
    kyc_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    kyc_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Dual balance: cash plus a staff-approved credit line
    balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    credit_limit: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_credit: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    credit_approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    total_deposits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_withdrawals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Account state
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    preferences: Mapped[Optional["PlayerPrefs"]] = relationship(
        "PlayerPrefs", back_populates="player", uselist=False, cascade="all, delete-orphan"
    )
    transactions: Mapped[List["Transaction"]] = relationship(
        "Transaction", back_populates="player", foreign_keys="Transaction.player_id"
    )
    kyc_documents: Mapped[List["KycDocument"]] = relationship(
        "KycDocument", back_populates="player", foreign_keys="KycDocument.player_id"
    )

    def __init__(self, email: str, password: str, first_name: str, last_name: str,
                 phone: str, role: str = ROLE_PLAYER):
        """Initialize player with hashed password."""
        self.email = email
        self.first_name = first_name
        self.last_name = last_name
        self.phone = phone
        self.role = role
        self.kyc_status = self.KYC_PENDING
        self.balance = 0
        self.credit_limit = 0
        self.current_credit = 0
        self.credit_approved = False
        self.total_deposits = 0
        self.total_withdrawals = 0
        self.is_active = True
        self.set_password(password)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_staff(self) -> bool:
        return self.role in (self.ROLE_STAFF, self.ROLE_ADMIN)

    @property
    def is_kyc_approved(self) -> bool:
        return self.kyc_status == self.KYC_APPROVED

    def set_password(self, password: str) -> None:
        """Hash and set player password."""
        rounds = current_app.config.get('BCRYPT_LOG_ROUNDS', 12) if has_app_context() else 12
        salt = bcrypt.gensalt(rounds=rounds)
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def check_password(self, password: str) -> bool:
        """Check if provided password matches stored hash."""
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))

    def update_last_login(self) -> None:
        """Update last login timestamp."""
        self.last_login = datetime.utcnow()

    def balance_snapshot(self) -> dict:
        """Cash and credit balances as shown in the portal."""
        return {
            'cash_balance': self.balance,
            'credit_balance': self.current_credit,
            'credit_limit': self.credit_limit,
            'credit_approved': self.credit_approved,
            'total_balance': self.balance + self.current_credit,
        }

    def to_dict(self) -> dict:
        """Convert player to dictionary representation."""
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'phone': self.phone,
            'address': self.address,
            'role': self.role,
            'kyc_status': self.kyc_status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'last_login': self.last_login.isoformat() if self.last_login else None,
            'is_active': self.is_active,
            **self.balance_snapshot(),
        }

    def __repr__(self) -> str:
        return f'<Player {self.id} {self.email}>'


class PlayerPrefs(db.Model):
    """Notification preferences for a player."""

    __tablename__ = 'player_prefs'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey('players.id'), unique=True, nullable=False)
    seat_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    call_time_warning: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    game_updates: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    push_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    player: Mapped["Player"] = relationship("Player", back_populates="preferences")

    FIELDS = ('seat_available', 'call_time_warning', 'game_updates', 'push_enabled')

    def to_dict(self) -> dict:
        return {field: getattr(self, field) for field in self.FIELDS}
