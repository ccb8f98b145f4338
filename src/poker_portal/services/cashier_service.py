"""Cashier desk: cash-out and credit requests reviewed by staff."""

from datetime import datetime
from typing import List, Optional

from flask import current_app

from ..database import db
from ..models.cashier import CashOutRequest, CreditRequest
from ..models.notification import PushNotification
from ..models.player import Player
from ..models.transaction import Transaction
from .notification_service import NotificationService
from .transaction_manager import TransactionError, TransactionManager
from .websocket_manager import PortalEvent, notify_staff


class CashierError(Exception):
    """Exception raised for cashier request errors."""
    pass


def _require_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise CashierError("Amount must be a positive whole number")
    return amount


class CashierService:
    """Service class for requests that go through the cashier."""

    @staticmethod
    def _get_player(player_id: int) -> Player:
        player = db.session.get(Player, player_id)
        if not player or not player.is_active:
            raise CashierError("Player not found")
        return player

    @staticmethod
    def submit_cash_out(player_id: int, amount: int, notes: Optional[str] = None) -> CashOutRequest:
        """Ask the cashier to pay out part of the cash balance.

        Raises:
            CashierError: If KYC is incomplete, the amount exceeds the balance
                or another request is still pending
        """
        amount = _require_amount(amount)
        player = CashierService._get_player(player_id)

        if not player.is_kyc_approved:
            raise CashierError("KYC verification is required before cashing out")
        if amount > player.balance:
            raise CashierError(f"Insufficient balance. Available: {player.balance}")

        pending = CashOutRequest.query.filter_by(
            player_id=player.id, status=CashOutRequest.STATUS_PENDING
        ).first()
        if pending:
            raise CashierError("A cash-out request is already pending")

        request = CashOutRequest(player_id=player.id, amount=amount, notes=notes,
                                 status=CashOutRequest.STATUS_PENDING)
        db.session.add(request)
        db.session.commit()

        current_app.logger.info(f"Cash-out request {request.id}: player {player.id} amount {amount}")
        notify_staff(PortalEvent.CASHIER_UPDATE, {'kind': 'cash_out', 'action': 'submitted', 'request': request.to_dict()})
        return request

    @staticmethod
    def _lock_request(model, request_id: int, label: str):
        # Row lock so two cashiers cannot both settle the same request
        request = db.session.query(model).filter_by(id=request_id).with_for_update().first()
        if not request:
            db.session.rollback()
            raise CashierError(f"{label} not found")
        if not request.is_pending:
            status = request.status
            db.session.rollback()
            raise CashierError(f"{label} already {status}")
        return request

    @staticmethod
    def _settle(request, staff_id: int, status: str, notes: Optional[str], post_entry=None) -> None:
        """Post the ledger entry (if any) and close the request in one commit."""
        player = transaction = None
        try:
            if post_entry is not None:
                player = TransactionManager._lock_player(request.player_id)
                transaction = post_entry(player)
            request.status = status
            request.processed_by = staff_id
            request.processed_at = datetime.utcnow()
            if notes:
                request.notes = notes
            db.session.commit()
        except TransactionError as e:
            db.session.rollback()
            raise CashierError(str(e))
        except Exception:
            db.session.rollback()
            raise

        if transaction is not None:
            TransactionManager._publish(player, transaction.transaction_type, transaction.amount)

    @staticmethod
    def process_cash_out(request_id: int, staff_id: int, approve: bool,
                         notes: Optional[str] = None) -> CashOutRequest:
        """Approve or reject a pending cash-out. Approval posts a withdrawal.

        The withdrawal and the status change are committed together.
        """
        request = CashierService._lock_request(CashOutRequest, request_id, "Cash-out request")

        if approve:
            def withdraw(player: Player) -> Transaction:
                return TransactionManager._apply(
                    player, -request.amount, Transaction.TYPE_WITHDRAWAL,
                    f"Cash-out request #{request.id} paid by cashier", staff_id=staff_id,
                )
            CashierService._settle(request, staff_id, CashOutRequest.STATUS_APPROVED, notes, withdraw)
        else:
            CashierService._settle(request, staff_id, CashOutRequest.STATUS_REJECTED, notes)

        current_app.logger.info(f"Cash-out request {request.id} {request.status} by staff {staff_id}")
        notify_staff(PortalEvent.CASHIER_UPDATE, {'kind': 'cash_out', 'action': request.status, 'request': request.to_dict()})

        if approve:
            message = f"Your cash-out of ₹{request.amount} has been approved. Collect it at the cashier."
        else:
            message = f"Your cash-out request of ₹{request.amount} was declined."
            if notes:
                message += f" Reason: {notes}"
        NotificationService.create_notification(
            title="Cash-out request update",
            message=message,
            player_id=request.player_id,
            notification_type=PushNotification.TYPE_CASHIER,
            data={'request_id': request.id, 'status': request.status},
            created_by=staff_id,
        )
        return request

    @staticmethod
    def get_player_cash_outs(player_id: int) -> List[CashOutRequest]:
        return CashOutRequest.query.filter_by(player_id=player_id).order_by(
            CashOutRequest.created_at.desc(), CashOutRequest.id.desc()
        ).all()

    @staticmethod
    def get_pending_cash_outs() -> List[CashOutRequest]:
        return CashOutRequest.query.filter_by(status=CashOutRequest.STATUS_PENDING).order_by(
            CashOutRequest.created_at, CashOutRequest.id
        ).all()

    @staticmethod
    def submit_credit_request(player_id: int, amount: int, reason: Optional[str] = None) -> CreditRequest:
        """Ask staff for a credit line. One pending request per player."""
        amount = _require_amount(amount)
        player = CashierService._get_player(player_id)

        pending = CreditRequest.query.filter_by(
            player_id=player.id, status=CreditRequest.STATUS_PENDING
        ).first()
        if pending:
            raise CashierError("A credit request is already pending")

        request = CreditRequest(player_id=player.id, amount=amount, reason=(reason or '').strip() or None,
                                status=CreditRequest.STATUS_PENDING)
        db.session.add(request)
        db.session.commit()

        current_app.logger.info(f"Credit request {request.id}: player {player.id} amount {amount}")
        notify_staff(PortalEvent.CASHIER_UPDATE, {'kind': 'credit', 'action': 'submitted', 'request': request.to_dict()})
        return request

    @staticmethod
    def process_credit_request(request_id: int, staff_id: int, approve: bool,
                               notes: Optional[str] = None) -> CreditRequest:
        request = CashierService._lock_request(CreditRequest, request_id, "Credit request")

        if approve:
            def grant(player: Player) -> Transaction:
                return TransactionManager._grant(player, request.amount, staff_id)
            CashierService._settle(request, staff_id, CreditRequest.STATUS_APPROVED, notes, grant)
        else:
            CashierService._settle(request, staff_id, CreditRequest.STATUS_REJECTED, notes)

        current_app.logger.info(f"Credit request {request.id} {request.status} by staff {staff_id}")
        notify_staff(PortalEvent.CASHIER_UPDATE, {'kind': 'credit', 'action': request.status, 'request': request.to_dict()})

        if approve:
            message = f"Your credit request of ₹{request.amount} has been approved."
        else:
            message = f"Your credit request of ₹{request.amount} was declined."
            if notes:
                message += f" Reason: {notes}"
        NotificationService.create_notification(
            title="Credit request update",
            message=message,
            player_id=request.player_id,
            notification_type=PushNotification.TYPE_CASHIER,
            data={'request_id': request.id, 'status': request.status},
            created_by=staff_id,
        )
        return request

    @staticmethod
    def get_player_credit_requests(player_id: int) -> List[CreditRequest]:
        return CreditRequest.query.filter_by(player_id=player_id).order_by(
            CreditRequest.created_at.desc(), CreditRequest.id.desc()
        ).all()

    @staticmethod
    def get_pending_credit_requests() -> List[CreditRequest]:
        return CreditRequest.query.filter_by(status=CreditRequest.STATUS_PENDING).order_by(
            CreditRequest.created_at, CreditRequest.id
        ).all()
