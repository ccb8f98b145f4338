"""Transaction management service for cash and credit balances."""

from datetime import datetime, timedelta
from typing import Any

from flask import current_app
from sqlalchemy import and_, case, desc, func

from ..database import db
from ..models.player import Player
from ..models.table import PokerTable
from ..models.transaction import Transaction
from .websocket_manager import PortalEvent, notify_player, notify_staff


class TransactionError(Exception):
    """Exception raised for transaction errors."""

    pass


class InsufficientFundsError(TransactionError):
    """Exception raised when a player has insufficient cash balance."""

    pass


class InsufficientCreditError(TransactionError):
    """Exception raised when a player has insufficient credit balance."""

    pass


class CreditNotApprovedError(TransactionError):
    """Exception raised when a player has no approved credit line."""

    pass


def _require_positive(amount: Any, label: str) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TransactionError(f"{label} must be a whole number")
    if amount <= 0:
        raise TransactionError(f"{label} must be positive")
    return amount


class TransactionManager:
    """Service class for the player ledger.

    A player's ``balance`` is always the sum of their cash transactions and
    ``current_credit`` the sum of their credit transactions. Balances are only
    ever changed here, with the player row locked.
    """

    @staticmethod
    def _lock_player(player_id: int) -> Player:
        # Get player with row lock to prevent concurrent modifications
        player = db.session.query(Player).filter_by(id=player_id).with_for_update().first()
        if not player:
            raise TransactionError(f"Player {player_id} not found")
        return player

    @staticmethod
    def _apply(player: Player, amount: int, transaction_type: str, description: str,
               balance_type: str = Transaction.CASH, table_id: int | None = None,
               staff_id: int | None = None) -> Transaction:
        """Post one ledger entry against a locked player without committing."""
        if balance_type == Transaction.CASH:
            if amount < 0 and player.balance + amount < 0:
                raise InsufficientFundsError(
                    f"Insufficient funds: current balance {player.balance}, attempted debit {abs(amount)}"
                )
            player.balance += amount
            if transaction_type == Transaction.TYPE_DEPOSIT:
                player.total_deposits += amount
            elif transaction_type == Transaction.TYPE_WITHDRAWAL:
                player.total_withdrawals += abs(amount)
        elif balance_type == Transaction.CREDIT:
            if amount < 0 and player.current_credit + amount < 0:
                raise InsufficientCreditError(
                    f"Insufficient credit: current credit {player.current_credit}, attempted debit {abs(amount)}"
                )
            player.current_credit += amount
        else:
            raise TransactionError(f"Unknown balance type: {balance_type}")

        transaction = Transaction(
            player_id=player.id,
            amount=amount,
            transaction_type=transaction_type,
            description=description,
            balance_type=balance_type,
            table_id=table_id,
            staff_id=staff_id,
        )
        db.session.add(transaction)
        return transaction

    @staticmethod
    def _publish(player: Player, operation: str, amount: int, **extra: Any) -> None:
        snapshot = player.balance_snapshot()
        notify_player(player.id, PortalEvent.BALANCE_UPDATED, {
            **snapshot,
            'operation': operation,
            'amount': amount,
            **extra,
        })
        notify_staff(PortalEvent.PLAYER_BALANCE_UPDATE, {
            'player_id': player.id,
            'player_name': player.full_name,
            'type': operation,
            'amount': amount,
            **snapshot,
            'timestamp': datetime.utcnow().isoformat(),
            **extra,
        })

    @staticmethod
    def create_transaction(
        player_id: int, amount: int, transaction_type: str, description: str,
        balance_type: str = Transaction.CASH, table_id: int | None = None, staff_id: int | None = None
    ) -> Transaction:
        """Create a new transaction with atomic balance update.

        Args:
            player_id: Player's ID
            amount: Transaction amount (positive for credit, negative for debit)
            transaction_type: Type of transaction
            description: Human-readable description
            balance_type: Which balance the entry moves (cash or credit)
            table_id: Optional table ID for table-related transactions
            staff_id: Staff member who performed the operation

        Returns:
            Transaction: Created transaction instance

        Raises:
            TransactionError: If transaction fails
            InsufficientFundsError: If the player has insufficient cash for a debit
            InsufficientCreditError: If the player has insufficient credit for a debit
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise TransactionError("Transaction amount must be a non-zero whole number")

        try:
            player = TransactionManager._lock_player(player_id)
            transaction = TransactionManager._apply(
                player, amount, transaction_type, description, balance_type, table_id, staff_id
            )
            db.session.commit()

        except TransactionError:
            db.session.rollback()
            raise
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Error creating transaction: {e}")
            raise TransactionError(f"Failed to create transaction: {str(e)}")

        current_app.logger.info(
            f"Transaction created: {transaction.id} - Player {player.id} {transaction_type} {amount} ({balance_type})"
        )
        TransactionManager._publish(player, transaction_type, amount, table_id=table_id)
        return transaction

    @staticmethod
    def _get_table(table_id: int) -> PokerTable:
        table = db.session.get(PokerTable, table_id)
        if not table:
            raise TransactionError(f"Table {table_id} not found")
        return table

    @staticmethod
    def table_buy_in(player_id: int, table_id: int, amount: int, staff_id: int | None = None) -> Transaction:
        """Debit cash for chips bought at a table."""
        _require_positive(amount, "Buy-in amount")
        table = TransactionManager._get_table(table_id)

        return TransactionManager.create_transaction(
            player_id=player_id,
            amount=-amount,  # Debit from cash balance
            transaction_type=Transaction.TYPE_BUYIN,
            description=f"Buy-in to table '{table.name}'",
            table_id=table.id,
            staff_id=staff_id,
        )

    @staticmethod
    def table_cash_out(player_id: int, table_id: int, amount: int, staff_id: int | None = None) -> Transaction:
        """Credit cash for chips returned from a table."""
        _require_positive(amount, "Cash-out amount")
        table = TransactionManager._get_table(table_id)

        return TransactionManager.create_transaction(
            player_id=player_id,
            amount=amount,  # Credit to cash balance
            transaction_type=Transaction.TYPE_CASHOUT,
            description=f"Cash-out from table '{table.name}'",
            table_id=table.id,
            staff_id=staff_id,
        )

    @staticmethod
    def credit_transfer(player_id: int, amount: int) -> tuple[Transaction, Transaction]:
        """Move approved credit into the cash balance.

        Writes a credit-side debit and a cash-side credit in one database
        transaction, so both balances change together or not at all.

        Raises:
            CreditNotApprovedError: If the player has no approved credit line
            InsufficientCreditError: If amount exceeds the available credit
        """
        _require_positive(amount, "Transfer amount")

        try:
            player = TransactionManager._lock_player(player_id)
            if not player.credit_approved:
                raise CreditNotApprovedError("Credit is not approved for this player")

            debit = TransactionManager._apply(
                player, -amount, Transaction.TYPE_CREDIT_TRANSFER,
                "Credit transferred to cash balance", Transaction.CREDIT,
            )
            credit = TransactionManager._apply(
                player, amount, Transaction.TYPE_CREDIT_TRANSFER,
                "Credit transfer received", Transaction.CASH,
            )
            db.session.commit()

        except TransactionError:
            db.session.rollback()
            raise
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Error transferring credit: {e}")
            raise TransactionError(f"Failed to transfer credit: {str(e)}")

        current_app.logger.info(f"Credit transfer: player {player.id} moved {amount} to cash")
        TransactionManager._publish(player, Transaction.TYPE_CREDIT_TRANSFER, amount)
        return debit, credit

    @staticmethod
    def _grant(player: Player, amount: int, staff_id: int | None = None) -> Transaction:
        """Fund a locked player's credit line without committing."""
        _require_positive(amount, "Credit amount")
        player.credit_approved = True
        player.credit_limit = max(player.credit_limit, player.current_credit + amount)
        return TransactionManager._apply(
            player, amount, Transaction.TYPE_CREDIT_GRANT,
            "Credit approved by cashier", Transaction.CREDIT, staff_id=staff_id,
        )

    @staticmethod
    def grant_credit(player_id: int, amount: int, staff_id: int | None = None) -> Transaction:
        """Approve and fund a credit line, raising the limit when needed."""
        _require_positive(amount, "Credit amount")

        try:
            player = TransactionManager._lock_player(player_id)
            transaction = TransactionManager._grant(player, amount, staff_id)
            db.session.commit()

        except TransactionError:
            db.session.rollback()
            raise
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Error granting credit: {e}")
            raise TransactionError(f"Failed to grant credit: {str(e)}")

        current_app.logger.info(f"Granted credit {amount} to player {player.id}")
        TransactionManager._publish(player, Transaction.TYPE_CREDIT_GRANT, amount)
        return transaction

    @staticmethod
    def create_adjustment(player_id: int, amount: int, description: str,
                          staff_id: int | None = None, balance_type: str = Transaction.CASH) -> Transaction:
        """Create a manual adjustment transaction.

        Args:
            player_id: Player's ID
            amount: Adjustment amount (positive or negative)
            description: Adjustment description
            staff_id: Staff member making the adjustment
            balance_type: Which balance to adjust

        Returns:
            Transaction: Created adjustment transaction
        """
        if amount == 0:
            raise TransactionError("Adjustment amount cannot be zero")
        if not description or not description.strip():
            raise TransactionError("Adjustment description is required")

        return TransactionManager.create_transaction(
            player_id=player_id,
            amount=amount,
            transaction_type=Transaction.TYPE_ADJUSTMENT,
            description=description.strip(),
            balance_type=balance_type,
            staff_id=staff_id,
        )

    @staticmethod
    def get_balance(player_id: int) -> dict[str, Any]:
        player = db.session.get(Player, player_id)
        if not player:
            raise TransactionError(f"Player {player_id} not found")
        return player.balance_snapshot()

    @staticmethod
    def get_player_transactions(
        player_id: int,
        limit: int | None = None,
        offset: int = 0,
        transaction_type: str | None = None,
    ) -> list[Transaction]:
        """Get a player's transaction history, most recent first.

        Args:
            player_id: Player's ID
            limit: Maximum number of transactions to return
            offset: Number of transactions to skip
            transaction_type: Filter by transaction type

        Returns:
            List[Transaction]: List of transactions
        """
        if limit is None:
            limit = current_app.config.get("TRANSACTION_HISTORY_LIMIT", 10)
        limit = max(1, min(limit, current_app.config.get("TRANSACTION_HISTORY_MAX_LIMIT", 100)))

        query = Transaction.query.filter_by(player_id=player_id)

        if transaction_type:
            query = query.filter(Transaction.transaction_type == transaction_type)

        return query.order_by(desc(Transaction.created_at), desc(Transaction.id)).offset(max(offset, 0)).limit(limit).all()

    @staticmethod
    def get_transaction_summary(player_id: int, days: int = 30) -> dict[str, Any]:
        """Get transaction summary for a player over specified days.

        Args:
            player_id: Player's ID
            days: Number of days to include in summary

        Returns:
            Dict: Transaction summary statistics
        """
        start_date = datetime.utcnow() - timedelta(days=days)

        transactions = Transaction.query.filter(
            and_(Transaction.player_id == player_id, Transaction.created_at >= start_date)
        ).all()

        cash = [t for t in transactions if t.balance_type == Transaction.CASH]

        # Calculate summary statistics
        total_credits = sum(t.amount for t in cash if t.amount > 0)
        total_debits = sum(abs(t.amount) for t in cash if t.amount < 0)

        # Count by transaction type
        type_counts: dict[str, int] = {}
        type_amounts: dict[str, int] = {}

        for transaction in transactions:
            t_type = transaction.transaction_type
            type_counts[t_type] = type_counts.get(t_type, 0) + 1
            type_amounts[t_type] = type_amounts.get(t_type, 0) + transaction.amount

        return {
            "period_days": days,
            "total_transactions": len(transactions),
            "total_credits": total_credits,
            "total_debits": total_debits,
            "net_change": total_credits - total_debits,
            "transaction_counts": type_counts,
            "transaction_amounts": type_amounts,
            "start_date": start_date.isoformat(),
            "end_date": datetime.utcnow().isoformat(),
        }

    @staticmethod
    def audit_balances() -> list[dict[str, Any]]:
        """Players whose stored balances disagree with their ledger."""
        ledger = (
            db.session.query(
                Transaction.player_id,
                func.coalesce(func.sum(case((Transaction.balance_type == Transaction.CASH, Transaction.amount), else_=0)), 0),
                func.coalesce(func.sum(case((Transaction.balance_type == Transaction.CREDIT, Transaction.amount), else_=0)), 0),
            )
            .group_by(Transaction.player_id)
            .all()
        )
        totals = {player_id: (int(cash), int(credit)) for player_id, cash, credit in ledger}

        mismatches = []
        for player in Player.query.order_by(Player.id).all():
            ledger_cash, ledger_credit = totals.get(player.id, (0, 0))
            if player.balance != ledger_cash or player.current_credit != ledger_credit:
                mismatches.append({
                    "player_id": player.id,
                    "email": player.email,
                    "balance": player.balance,
                    "ledger_balance": ledger_cash,
                    "current_credit": player.current_credit,
                    "ledger_credit": ledger_credit,
                })

        if mismatches:
            current_app.logger.warning(f"Balance audit found {len(mismatches)} mismatched players")
        return mismatches
