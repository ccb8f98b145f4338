"""Transaction model for the cash and credit ledger."""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import db


class Transaction(db.Model):
    """Model for tracking balance movements. The ledger is the source of truth for balances."""

    __tablename__ = 'transactions'

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Transaction details
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # Positive for credits, negative for debits
    balance_type: Mapped[str] = mapped_column(String(10), nullable=False, default='cash')
    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Optional references
    table_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('tables.id'))
    staff_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('players.id'))

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # Foreign keys
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey('players.id'), nullable=False, index=True)

    # Relationships
    player: Mapped["Player"] = relationship("Player", back_populates="transactions", foreign_keys=[player_id])

    # Balance types
    CASH = "cash"
    CREDIT = "credit"

    # Transaction types
    TYPE_DEPOSIT = "deposit"
    TYPE_WITHDRAWAL = "withdrawal"
    TYPE_BUYIN = "table_buy_in"
    TYPE_CASHOUT = "table_cash_out"
    TYPE_CREDIT_TRANSFER = "credit_transfer"
    TYPE_CREDIT_GRANT = "credit_grant"
    TYPE_BONUS = "bonus_credit"
    TYPE_ADJUSTMENT = "manual_adjustment"

    def __init__(self, player_id: int, amount: int, transaction_type: str, description: str,
                 balance_type: str = CASH, table_id: Optional[int] = None, staff_id: Optional[int] = None):
        """Initialize transaction."""
        self.player_id = player_id
        self.amount = amount
        self.transaction_type = transaction_type
        self.description = description
        self.balance_type = balance_type
        self.table_id = table_id
        self.staff_id = staff_id

    def is_credit(self) -> bool:
        """Check if transaction is a credit (positive amount)."""
        return self.amount > 0

    def get_absolute_amount(self) -> int:
        """Get absolute value of transaction amount."""
        return abs(self.amount)

    def to_dict(self) -> dict:
        """Convert transaction to dictionary representation."""
        return {
            'id': self.id,
            'player_id': self.player_id,
            'amount': self.amount,
            'balance_type': self.balance_type,
            'transaction_type': self.transaction_type,
            'description': self.description,
            'table_id': self.table_id,
            'staff_id': self.staff_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'is_credit': self.is_credit(),
            'absolute_amount': self.get_absolute_amount()
        }

    def __repr__(self) -> str:
        return f'<Transaction {self.transaction_type}: {self.amount} ({self.balance_type})>'
