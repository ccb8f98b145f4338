"""Unit tests for TournamentService."""

from datetime import datetime

import pytest

from poker_portal.database import db
from poker_portal.models.tournament import Tournament
from poker_portal.services.tournament_service import TournamentError, TournamentService
from tests.test_helpers import create_test_app


@pytest.fixture
def app():
    """Create test Flask app."""
    app = create_test_app()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_context(app):
    with app.app_context():
        yield


def _create(name, start_time, **extra):
    data = {'name': name, 'buy_in': 5000, 'start_time': start_time, 'max_players': 100}
    data.update(extra)
    return TournamentService.create_tournament(data)


def test_list_is_ordered_by_start_time(app_context):
    _create("Sunday Deepstack", "2026-06-07T14:00:00")
    _create("Friday Turbo", "2026-06-05T20:00:00")
    _create("Old Freezeout", "2026-05-01T14:00:00", status=Tournament.STATUS_COMPLETED)

    assert [t.name for t in TournamentService.list_tournaments()] == [
        "Old Freezeout", "Friday Turbo", "Sunday Deepstack"
    ]
    assert [t.name for t in TournamentService.list_tournaments(upcoming_only=True)] == [
        "Friday Turbo", "Sunday Deepstack"
    ]
    assert [t.name for t in TournamentService.list_tournaments(status=Tournament.STATUS_COMPLETED)] == [
        "Old Freezeout"
    ]
    with pytest.raises(TournamentError, match="Invalid status"):
        TournamentService.list_tournaments(status="paused")


def test_create_defaults_and_serialisation(app_context):
    tournament = _create("Deepstack", "2026-06-07T14:00:00+05:30", prize_pool=500000, registered_players=40)

    assert tournament.game_type == "Texas Hold'em"
    assert tournament.status == Tournament.STATUS_SCHEDULED
    assert tournament.start_time == datetime(2026, 6, 7, 8, 30)
    data = tournament.to_dict()
    assert data['guarantee'] == 500000
    assert data['registered'] == 40
    assert data['seats_left'] == 60


@pytest.mark.parametrize("data,message", [
    ({'buy_in': 100, 'start_time': '2026-06-07', 'max_players': 10}, "name is required"),
    ({'name': 'X', 'start_time': '2026-06-07', 'max_players': 10}, "buy_in is required"),
    ({'name': 'X', 'buy_in': -1, 'start_time': '2026-06-07', 'max_players': 10}, "non-negative"),
    ({'name': 'X', 'buy_in': 100, 'max_players': 10}, "Start time is required"),
    ({'name': 'X', 'buy_in': 100, 'start_time': 'soon', 'max_players': 10}, "Invalid start time"),
    ({'name': 'X', 'buy_in': 100, 'start_time': '2026-06-07', 'max_players': 1}, "at least 2"),
    ({'name': 'X', 'buy_in': 100, 'start_time': '2026-06-07', 'max_players': 10,
      'registered_players': 11}, "cannot exceed"),
    ({'name': 'X', 'buy_in': 100, 'start_time': '2026-06-07', 'max_players': 10,
      'status': 'paused'}, "Invalid status"),
])
def test_invalid_tournament(app_context, data, message):
    with pytest.raises(TournamentError, match=message):
        TournamentService.create_tournament(data)
    assert Tournament.query.count() == 0


def test_update_tournament(app_context):
    tournament = _create("Deepstack", "2026-06-07T14:00:00")

    updated = TournamentService.update_tournament(
        tournament.id, {'status': Tournament.STATUS_REGISTERING, 'registered_players': 12}
    )
    assert updated.status == Tournament.STATUS_REGISTERING
    assert updated.registered_players == 12

    with pytest.raises(TournamentError, match="Unknown field: venue"):
        TournamentService.update_tournament(tournament.id, {'venue': 'Hall B'})
    with pytest.raises(TournamentError, match="cannot exceed"):
        TournamentService.update_tournament(tournament.id, {'registered_players': 500})
    assert db.session.get(Tournament, tournament.id).registered_players == 12
    with pytest.raises(TournamentError, match="Tournament not found"):
        TournamentService.update_tournament(999, {'status': Tournament.STATUS_CANCELLED})
