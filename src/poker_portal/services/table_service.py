"""Table registry for the card room floor."""

from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func

from ..database import db
from ..models.seat_request import SeatRequest
from ..models.table import PokerTable
from .websocket_manager import PortalEvent, broadcast_event


class TableValidationError(Exception):
    """Exception raised for table validation errors."""
    pass


class TableService:
    """Service class for publishing tables and their live stats."""

    MIN_PLAYERS = 2
    MAX_PLAYERS = 10

    EDITABLE_FIELDS = ('name', 'game_type', 'min_buy_in', 'max_buy_in', 'small_blind', 'big_blind', 'max_players')

    @staticmethod
    def waiting_counts(table_ids: Optional[List[int]] = None) -> Dict[int, int]:
        query = db.session.query(SeatRequest.table_id, func.count(SeatRequest.id)).filter(
            SeatRequest.status == SeatRequest.STATUS_WAITING
        )
        if table_ids is not None:
            query = query.filter(SeatRequest.table_id.in_(table_ids))
        return {table_id: count for table_id, count in query.group_by(SeatRequest.table_id)}

    @staticmethod
    def serialize(table: PokerTable) -> Dict[str, Any]:
        return table.to_dict(waiting_list=TableService.waiting_counts([table.id]).get(table.id, 0))

    @staticmethod
    def get_active_tables() -> List[Dict[str, Any]]:
        """Active tables by name, each with its live waiting list count."""
        tables = PokerTable.query.filter_by(is_active=True).order_by(PokerTable.name).all()
        counts = TableService.waiting_counts([table.id for table in tables])
        return [table.to_dict(waiting_list=counts.get(table.id, 0)) for table in tables]

    @staticmethod
    def get_table(table_id: int) -> PokerTable:
        table = db.session.get(PokerTable, table_id)
        if not table:
            raise TableValidationError("Table not found")
        return table

    @staticmethod
    def _validate(values: Dict[str, Any]) -> None:
        name = values.get('name')
        if not name or not str(name).strip():
            raise TableValidationError("Table name is required")
        if len(str(name).strip()) > 100:
            raise TableValidationError("Table name must be no more than 100 characters long")

        for key in ('min_buy_in', 'max_buy_in', 'small_blind', 'big_blind', 'max_players'):
            value = values.get(key)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise TableValidationError(f"{key} must be a positive whole number")

        if values['min_buy_in'] > values['max_buy_in']:
            raise TableValidationError("Minimum buy-in cannot exceed maximum buy-in")
        if values['small_blind'] > values['big_blind']:
            raise TableValidationError("Small blind cannot exceed big blind")
        if not TableService.MIN_PLAYERS <= values['max_players'] <= TableService.MAX_PLAYERS:
            raise TableValidationError(
                f"Table must seat between {TableService.MIN_PLAYERS} and {TableService.MAX_PLAYERS} players"
            )

    @staticmethod
    def _announce(table: PokerTable, action: str) -> None:
        broadcast_event(PortalEvent.TABLE_UPDATE, {'action': action, 'table': TableService.serialize(table)})

    @staticmethod
    def create_table(data: Dict[str, Any]) -> PokerTable:
        """Publish a new table.

        Raises:
            TableValidationError: If the configuration is invalid
        """
        values = {
            'name': data.get('name'),
            'game_type': data.get('game_type') or "Texas Hold'em",
            'min_buy_in': data.get('min_buy_in', 1000),
            'max_buy_in': data.get('max_buy_in', 10000),
            'small_blind': data.get('small_blind', 25),
            'big_blind': data.get('big_blind', 50),
            'max_players': data.get('max_players', 9),
        }
        TableService._validate(values)
        values['name'] = values['name'].strip()

        table = PokerTable(**values, current_players=0, pot=0, avg_stack=0, is_active=True)
        db.session.add(table)
        db.session.commit()

        current_app.logger.info(f"Created table {table.id}: {table.name}")
        TableService._announce(table, 'created')
        return table

    @staticmethod
    def update_table(table_id: int, data: Dict[str, Any]) -> PokerTable:
        table = TableService.get_table(table_id)
        updates = {key: value for key, value in data.items() if key in TableService.EDITABLE_FIELDS}
        if not updates:
            raise TableValidationError("No table fields to update")

        values = {key: getattr(table, key) for key in TableService.EDITABLE_FIELDS}
        values.update(updates)
        TableService._validate(values)
        if values['max_players'] < table.current_players:
            raise TableValidationError("Cannot reduce seats below the current player count")

        for key, value in updates.items():
            setattr(table, key, value.strip() if isinstance(value, str) else value)
        db.session.commit()

        current_app.logger.info(f"Updated table {table.id}: {sorted(updates)}")
        TableService._announce(table, 'updated')
        return table

    @staticmethod
    def update_live_stats(table_id: int, current_players: Optional[int] = None,
                          pot: Optional[int] = None, avg_stack: Optional[int] = None) -> PokerTable:
        """Record the floor's live numbers for a table."""
        table = TableService.get_table(table_id)

        if current_players is not None:
            if isinstance(current_players, bool) or not isinstance(current_players, int) \
                    or not 0 <= current_players <= table.max_players:
                raise TableValidationError(f"current_players must be between 0 and {table.max_players}")
            table.current_players = current_players
        for key, value in (('pot', pot), ('avg_stack', avg_stack)):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise TableValidationError(f"{key} must be a non-negative whole number")
            setattr(table, key, value)

        db.session.commit()
        TableService._announce(table, 'stats')
        return table

    @staticmethod
    def deactivate_table(table_id: int) -> int:
        """Close a table and cancel its waiting seat requests. Returns the number cancelled."""
        table = TableService.get_table(table_id)
        table.is_active = False

        waiting = SeatRequest.query.filter_by(table_id=table.id, status=SeatRequest.STATUS_WAITING).all()
        for request in waiting:
            request.status = SeatRequest.STATUS_CANCELLED
            request.position = 0
        db.session.commit()

        current_app.logger.info(f"Closed table {table.id}, cancelled {len(waiting)} seat requests")
        TableService._announce(table, 'closed')
        return len(waiting)
