"""Tournament schedule service."""

from typing import Any, Dict, List, Optional

from flask import current_app

from ..database import db
from ..models.tournament import Tournament
from .offer_service import OfferError, _parse_date


class TournamentError(Exception):
    """Exception raised for tournament errors."""
    pass


TOURNAMENT_FIELDS = ('name', 'game_type', 'description', 'buy_in', 'prize_pool', 'start_time',
                     'registered_players', 'max_players', 'status')


class TournamentService:
    """Service class for the tournament list shown to players."""

    @staticmethod
    def list_tournaments(status: Optional[str] = None, upcoming_only: bool = False) -> List[Tournament]:
        """Tournaments ordered by start time."""
        query = Tournament.query
        if status:
            if status not in Tournament.STATUSES:
                raise TournamentError(f"Invalid status: {status}")
            query = query.filter_by(status=status)
        elif upcoming_only:
            query = query.filter(Tournament.status.in_(Tournament.UPCOMING_STATUSES))
        return query.order_by(Tournament.start_time, Tournament.id).all()

    @staticmethod
    def get_tournament(tournament_id: int) -> Tournament:
        tournament = db.session.get(Tournament, tournament_id)
        if not tournament:
            raise TournamentError("Tournament not found")
        return tournament

    @staticmethod
    def _apply(tournament: Tournament, data: Dict[str, Any]) -> None:
        for key in ('buy_in', 'prize_pool', 'registered_players', 'max_players'):
            if key in data:
                value = data[key]
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise TournamentError(f"{key} must be a non-negative whole number")
                setattr(tournament, key, value)
        for key in ('name', 'game_type', 'description'):
            if key in data:
                value = data[key]
                if value is not None and not isinstance(value, str):
                    raise TournamentError(f"{key} must be text")
                setattr(tournament, key, value.strip() if value else None)
        if 'start_time' in data:
            try:
                tournament.start_time = _parse_date(data['start_time'], 'start time')
            except OfferError as e:
                raise TournamentError(str(e))
        if 'status' in data:
            if data['status'] not in Tournament.STATUSES:
                raise TournamentError(f"Invalid status: {data['status']}")
            tournament.status = data['status']

        if not tournament.name:
            raise TournamentError("Tournament name is required")
        if not tournament.game_type:
            tournament.game_type = "Texas Hold'em"
        if tournament.start_time is None:
            raise TournamentError("Start time is required")
        if not tournament.max_players or tournament.max_players < 2:
            raise TournamentError("max_players must be at least 2")
        if tournament.registered_players > tournament.max_players:
            raise TournamentError("Registered players cannot exceed max_players")

    @staticmethod
    def create_tournament(data: Dict[str, Any]) -> Tournament:
        if 'buy_in' not in data:
            raise TournamentError("buy_in is required")
        tournament = Tournament(prize_pool=0, registered_players=0, status=Tournament.STATUS_SCHEDULED)
        TournamentService._apply(tournament, data)
        db.session.add(tournament)
        db.session.commit()
        current_app.logger.info(f"Scheduled tournament {tournament.id}: {tournament.name}")
        return tournament

    @staticmethod
    def update_tournament(tournament_id: int, data: Dict[str, Any]) -> Tournament:
        tournament = TournamentService.get_tournament(tournament_id)
        unknown = set(data) - set(TOURNAMENT_FIELDS)
        if unknown:
            raise TournamentError(f"Unknown field: {', '.join(sorted(unknown))}")
        try:
            TournamentService._apply(tournament, data)
        except TournamentError:
            db.session.rollback()
            raise
        db.session.commit()
        current_app.logger.info(f"Updated tournament {tournament.id}: {sorted(data)}")
        return tournament
