"""Table waitlist (seat request) service."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..database import db
from ..models.notification import PushNotification
from ..models.player import Player
from ..models.seat_request import SeatRequest
from ..models.table import PokerTable
from .notification_service import NotificationService
from .websocket_manager import PortalEvent, notify_player, notify_staff


class WaitlistError(Exception):
    """Exception raised for waitlist errors."""
    pass


class WaitlistService:
    """Service class for the per-table seat queues.

    Waiting requests of a table always hold positions 1..n in join order, and
    a player waits for at most one table at a time.
    """

    @staticmethod
    def _lock_table(table_id: int) -> PokerTable:
        table = db.session.query(PokerTable).filter_by(id=table_id).with_for_update().first()
        if not table:
            raise WaitlistError("Table not found")
        return table

    @staticmethod
    def _waiting(table_id: int) -> List[SeatRequest]:
        return SeatRequest.query.filter_by(
            table_id=table_id, status=SeatRequest.STATUS_WAITING
        ).order_by(SeatRequest.position, SeatRequest.created_at, SeatRequest.id).all()

    @staticmethod
    def _compact(table_id: int) -> None:
        """Renumber a table's waiting requests to 1..n, keeping their order."""
        for index, request in enumerate(WaitlistService._waiting(table_id), start=1):
            request.position = index

    @staticmethod
    def _minutes_per_position() -> int:
        return current_app.config.get('SEAT_WAIT_MINUTES_PER_POSITION', 15)

    @staticmethod
    def _announce(table_id: int, action: str, request: SeatRequest) -> None:
        notify_staff(PortalEvent.WAITLIST_UPDATE, {
            'action': action,
            'table_id': table_id,
            'request': request.to_dict(),
            'waiting_list': len(WaitlistService._waiting(table_id)),
        })

    @staticmethod
    def join_waitlist(player_id: int, table_id: int, seat_number: Optional[int] = None,
                      notes: Optional[str] = None) -> Tuple[SeatRequest, bool]:
        """Put a player in the queue for a table.

        Repeating a request for the same table and seat is a no-op. Picking a
        different seat at the same table keeps the player's place. Asking for
        another table leaves the old queue first.

        Returns:
            Tuple of (request, created)

        Raises:
            WaitlistError: If the table, seat or player is not eligible
        """
        attempts = current_app.config.get('WAITLIST_JOIN_RETRIES', 2)
        for attempt in range(1, attempts + 1):
            try:
                return WaitlistService._join(player_id, table_id, seat_number, notes)
            except IntegrityError:
                # Another join for this player committed a waiting request first
                db.session.rollback()
                current_app.logger.warning(
                    f"Waitlist join for player {player_id} collided (attempt {attempt}/{attempts})"
                )
        raise WaitlistError("Could not join the waitlist, please try again")

    @staticmethod
    def _join(player_id: int, table_id: int, seat_number: Optional[int],
              notes: Optional[str]) -> Tuple[SeatRequest, bool]:
        player = db.session.get(Player, player_id)
        if not player or not player.is_active:
            raise WaitlistError("Player not found")

        table = WaitlistService._lock_table(table_id)
        if not table.is_active:
            raise WaitlistError("Table is not open")

        if seat_number is not None:
            if isinstance(seat_number, bool) or not isinstance(seat_number, int) \
                    or not 1 <= seat_number <= table.max_players:
                raise WaitlistError(f"Seat number must be between 1 and {table.max_players}")

        if current_app.config.get('REQUIRE_KYC_FOR_WAITLIST', True) and not player.is_kyc_approved:
            raise WaitlistError("KYC verification is required to join a waitlist")

        existing = SeatRequest.query.filter_by(
            player_id=player.id, status=SeatRequest.STATUS_WAITING
        ).with_for_update().first()

        if existing and existing.table_id == table.id:
            if existing.seat_number == seat_number:
                return existing, False

            existing.seat_number = seat_number
            if notes is not None:
                existing.notes = notes
            db.session.commit()
            current_app.logger.info(f"Player {player.id} changed seat preference at table {table.id}")
            WaitlistService._announce(table.id, 'updated', existing)
            return existing, False

        if existing:
            old_table_id = existing.table_id
            existing.status = SeatRequest.STATUS_CANCELLED
            existing.position = 0
            db.session.flush()
            WaitlistService._compact(old_table_id)
            current_app.logger.info(f"Player {player.id} left table {old_table_id} queue to join table {table.id}")

        request = SeatRequest(
            player_id=player.id,
            table_id=table.id,
            seat_number=seat_number,
            notes=notes,
            status=SeatRequest.STATUS_WAITING,
            position=len(WaitlistService._waiting(table.id)) + 1,
        )
        db.session.add(request)
        db.session.commit()

        current_app.logger.info(f"Player {player.id} joined table {table.id} waitlist at position {request.position}")
        if existing:
            WaitlistService._announce(existing.table_id, 'cancelled', existing)
        WaitlistService._announce(table.id, 'joined', request)
        return request, True

    @staticmethod
    def cancel_request(player_id: int, request_id: int) -> SeatRequest:
        request = db.session.get(SeatRequest, request_id)
        if not request or request.player_id != player_id:
            raise WaitlistError("Seat request not found")
        if not request.is_waiting:
            raise WaitlistError(f"Seat request is already {request.status}")

        WaitlistService._lock_table(request.table_id)
        request.status = SeatRequest.STATUS_CANCELLED
        request.position = 0
        db.session.flush()
        WaitlistService._compact(request.table_id)
        db.session.commit()

        current_app.logger.info(f"Player {player_id} left table {request.table_id} waitlist")
        WaitlistService._announce(request.table_id, 'cancelled', request)
        return request

    @staticmethod
    def seat_player(request_id: int, staff_id: int, seat_number: Optional[int] = None) -> SeatRequest:
        """Seat a waiting player and notify them."""
        request = db.session.get(SeatRequest, request_id)
        if not request:
            raise WaitlistError("Seat request not found")
        if not request.is_waiting:
            raise WaitlistError(f"Seat request is already {request.status}")

        table = WaitlistService._lock_table(request.table_id)
        if not table.is_active:
            raise WaitlistError("Table is not open")
        if table.current_players >= table.max_players:
            raise WaitlistError("Table is full")

        if seat_number is not None:
            if isinstance(seat_number, bool) or not isinstance(seat_number, int) \
                    or not 1 <= seat_number <= table.max_players:
                raise WaitlistError(f"Seat number must be between 1 and {table.max_players}")
            request.seat_number = seat_number

        request.status = SeatRequest.STATUS_SEATED
        request.position = 0
        request.seated_at = datetime.utcnow()
        request.seated_by = staff_id
        table.current_players += 1
        db.session.flush()
        WaitlistService._compact(table.id)
        db.session.commit()

        current_app.logger.info(f"Seated player {request.player_id} at table {table.id} (staff {staff_id})")

        seat_text = f" seat {request.seat_number}" if request.seat_number else ""
        notify_player(request.player_id, PortalEvent.SEAT_ASSIGNED, request.to_dict())
        prefs = request.player.preferences if request.player else None
        if prefs is None or prefs.seat_available:
            NotificationService.create_notification(
                title="Your seat is ready",
                message=f"Please report to {table.name}{seat_text}.",
                player_id=request.player_id,
                notification_type=PushNotification.TYPE_SEAT,
                priority='high',
                data={'table_id': table.id, 'seat_number': request.seat_number},
                created_by=staff_id,
            )
        WaitlistService._announce(table.id, 'seated', request)
        return request

    @staticmethod
    def get_player_requests(player_id: int) -> List[Dict[str, Any]]:
        """A player's waiting requests with position and estimated wait in minutes."""
        requests = SeatRequest.query.filter_by(
            player_id=player_id, status=SeatRequest.STATUS_WAITING
        ).order_by(SeatRequest.created_at).all()
        minutes = WaitlistService._minutes_per_position()
        return [request.to_dict(minutes_per_position=minutes) for request in requests]

    @staticmethod
    def get_table_waitlist(table_id: int) -> List[Dict[str, Any]]:
        if not db.session.get(PokerTable, table_id):
            raise WaitlistError("Table not found")

        minutes = WaitlistService._minutes_per_position()
        result = []
        for request in WaitlistService._waiting(table_id):
            entry = request.to_dict(minutes_per_position=minutes)
            entry['player_name'] = request.player.full_name if request.player else None
            result.append(entry)
        return result
