"""Unit tests for WaitlistService."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from poker_portal.database import db
from poker_portal.models.notification import PushNotification
from poker_portal.models.seat_request import SeatRequest
from poker_portal.models.table import PokerTable
from poker_portal.services.player_manager import PlayerManager
from poker_portal.services.table_service import TableService
from poker_portal.services.waitlist_service import WaitlistError, WaitlistService
from tests.test_helpers import create_test_app, create_test_player, create_test_staff, create_test_table


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


@pytest.fixture
def table(app_context):
    return create_test_table(max_players=6)


@pytest.fixture
def players(app_context):
    return [create_test_player(f"p{i}@example.com") for i in range(3)]


def positions(table_id):
    return [(r.player_id, r.position) for r in WaitlistService._waiting(table_id)]


class TestJoinWaitlist:

    def test_join_assigns_positions_in_order(self, table, players):
        for player in players:
            request, created = WaitlistService.join_waitlist(player.id, table.id)
            assert created is True

        assert positions(table.id) == [(p.id, i) for i, p in enumerate(players, start=1)]

    def test_repeat_join_is_idempotent(self, table, players):
        first, _ = WaitlistService.join_waitlist(players[0].id, table.id, seat_number=3)
        again, created = WaitlistService.join_waitlist(players[0].id, table.id, seat_number=3)

        assert created is False
        assert again.id == first.id
        assert SeatRequest.query.count() == 1

    def test_changing_seat_keeps_position(self, table, players):
        WaitlistService.join_waitlist(players[0].id, table.id)
        WaitlistService.join_waitlist(players[1].id, table.id)

        request, created = WaitlistService.join_waitlist(players[0].id, table.id, seat_number=2)
        assert created is False
        assert request.seat_number == 2
        assert request.position == 1

    def test_switching_tables_leaves_old_queue(self, table, players):
        other = create_test_table("Table 2")
        WaitlistService.join_waitlist(players[0].id, table.id)
        WaitlistService.join_waitlist(players[1].id, table.id)

        request, created = WaitlistService.join_waitlist(players[0].id, other.id)

        assert created is True
        assert request.table_id == other.id
        assert positions(table.id) == [(players[1].id, 1)]
        assert SeatRequest.query.filter_by(player_id=players[0].id, status=SeatRequest.STATUS_WAITING).count() == 1

    def test_database_allows_one_waiting_request_per_player(self, table, players):
        other = create_test_table("Table 2")
        db.session.add_all([
            SeatRequest(player_id=players[0].id, table_id=table.id, status=SeatRequest.STATUS_WAITING, position=1),
            SeatRequest(player_id=players[0].id, table_id=other.id, status=SeatRequest.STATUS_WAITING, position=1),
        ])
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_colliding_join_is_retried(self, table, players):
        join = WaitlistService._join
        attempts = []

        def collide_once(*args):
            attempts.append(args)
            if len(attempts) == 1:
                raise IntegrityError("INSERT INTO seat_requests", {}, Exception("UNIQUE constraint failed"))
            return join(*args)

        with patch.object(WaitlistService, '_join', side_effect=collide_once):
            request, created = WaitlistService.join_waitlist(players[0].id, table.id)

        assert created is True
        assert len(attempts) == 2
        assert positions(table.id) == [(players[0].id, 1)]

    def test_gives_up_after_configured_retries(self, app, table, players):
        app.config['WAITLIST_JOIN_RETRIES'] = 3
        error = IntegrityError("INSERT INTO seat_requests", {}, Exception("UNIQUE constraint failed"))
        with patch.object(WaitlistService, '_join', side_effect=error) as join:
            with pytest.raises(WaitlistError, match="try again"):
                WaitlistService.join_waitlist(players[0].id, table.id)
        assert join.call_count == 3

    def test_invalid_seat_number(self, table, players):
        with pytest.raises(WaitlistError, match="between 1 and 6"):
            WaitlistService.join_waitlist(players[0].id, table.id, seat_number=7)

    def test_requires_kyc(self, table):
        unverified = create_test_player("new@example.com", kyc_approved=False)
        with pytest.raises(WaitlistError, match="KYC verification is required"):
            WaitlistService.join_waitlist(unverified.id, table.id)

    def test_kyc_requirement_can_be_disabled(self, app, table):
        app.config['REQUIRE_KYC_FOR_WAITLIST'] = False
        unverified = create_test_player("new@example.com", kyc_approved=False)
        _, created = WaitlistService.join_waitlist(unverified.id, table.id)
        assert created is True

    def test_closed_table(self, players):
        closed = create_test_table("Closed", is_active=False)
        with pytest.raises(WaitlistError, match="Table is not open"):
            WaitlistService.join_waitlist(players[0].id, closed.id)

    def test_unknown_table(self, players):
        with pytest.raises(WaitlistError, match="Table not found"):
            WaitlistService.join_waitlist(players[0].id, 999)


class TestLeavingAndSeating:

    def test_cancel_compacts_positions(self, table, players):
        requests = [WaitlistService.join_waitlist(p.id, table.id)[0] for p in players]

        WaitlistService.cancel_request(players[0].id, requests[0].id)

        assert positions(table.id) == [(players[1].id, 1), (players[2].id, 2)]
        assert db.session.get(SeatRequest, requests[0].id).status == SeatRequest.STATUS_CANCELLED

    def test_cannot_cancel_someone_elses_request(self, table, players):
        request, _ = WaitlistService.join_waitlist(players[0].id, table.id)
        with pytest.raises(WaitlistError, match="Seat request not found"):
            WaitlistService.cancel_request(players[1].id, request.id)

    def test_seat_player_notifies_and_compacts(self, table, players):
        staff = create_test_staff()
        requests = [WaitlistService.join_waitlist(p.id, table.id)[0] for p in players]

        with patch('poker_portal.services.waitlist_service.notify_player') as notify_player:
            seated = WaitlistService.seat_player(requests[1].id, staff.id, seat_number=4)

        assert seated.status == SeatRequest.STATUS_SEATED
        assert seated.seat_number == 4
        assert seated.seated_by == staff.id
        assert db.session.get(PokerTable, table.id).current_players == 1
        assert positions(table.id) == [(players[0].id, 1), (players[2].id, 2)]
        assert notify_player.call_args[0][1] == "seat_assigned"

        notification = PushNotification.query.filter_by(player_id=players[1].id).one()
        assert notification.notification_type == PushNotification.TYPE_SEAT
        assert notification.message == "Please report to Table 1 seat 4."

    def test_seat_player_respects_preference(self, table, players):
        staff = create_test_staff()
        PlayerManager.update_preferences(players[0].id, {'seat_available': False})
        request, _ = WaitlistService.join_waitlist(players[0].id, table.id)

        WaitlistService.seat_player(request.id, staff.id)
        assert PushNotification.query.count() == 0

    def test_full_table(self, players):
        staff = create_test_staff()
        full = create_test_table("Full", max_players=2, current_players=2)
        request, _ = WaitlistService.join_waitlist(players[0].id, full.id)

        with pytest.raises(WaitlistError, match="Table is full"):
            WaitlistService.seat_player(request.id, staff.id)

    def test_player_requests_include_estimate(self, table, players):
        for player in players:
            WaitlistService.join_waitlist(player.id, table.id)

        mine = WaitlistService.get_player_requests(players[2].id)
        assert mine[0]['position'] == 3
        assert mine[0]['estimated_wait'] == 45

    def test_table_waitlist_has_names(self, table, players):
        WaitlistService.join_waitlist(players[0].id, table.id)
        entries = WaitlistService.get_table_waitlist(table.id)
        assert entries[0]['player_name'] == "Test Player"

    def test_deactivating_table_cancels_queue(self, table, players):
        for player in players:
            WaitlistService.join_waitlist(player.id, table.id)

        assert TableService.deactivate_table(table.id) == 3
        assert WaitlistService._waiting(table.id) == []
