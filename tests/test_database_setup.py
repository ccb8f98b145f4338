"""Test database setup, sample data and the maintenance CLI."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from poker_portal.cli import cli
from poker_portal.database import db
from poker_portal.db_utils import get_database_health
from poker_portal.migrations import create_sample_data_if_needed, get_database_info, reset_database
from poker_portal.models import ChatMessage, OfferBanner, Player, PokerTable
from poker_portal.services.transaction_manager import TransactionManager
from tests.test_helpers import create_test_app, create_test_player, reload


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
def runner(app):
    """CLI runner whose commands all share the test app."""
    with patch('poker_portal.cli.create_app', return_value=app):
        yield CliRunner()


def test_sample_data(app):
    assert create_sample_data_if_needed() is True

    staff = Player.query.filter_by(role=Player.ROLE_STAFF).one()
    assert staff.email == "floor@example.com"
    players = Player.query.filter_by(role=Player.ROLE_PLAYER).all()
    assert len(players) == 3
    assert all(p.kyc_status == Player.KYC_APPROVED for p in players)
    assert PokerTable.query.count() == 3
    assert OfferBanner.query.count() == 1
    # Opening balances go through the ledger
    assert TransactionManager.audit_balances() == []

    assert create_sample_data_if_needed() is False


def test_database_info_and_reset(app):
    create_test_player()
    info = get_database_info(app)
    assert info['player_count'] == 1
    assert 'chat_messages' in info['tables']

    reset_database(app)
    assert get_database_info(app)['player_count'] == 0


def test_health(app):
    create_test_player()
    health = get_database_health()
    assert health['status'] == 'healthy'
    assert health['player_count'] == 1
    assert health['active_tables'] == 0


class TestCli:

    def test_health_check(self, runner):
        result = runner.invoke(cli, ['health-check'])
        assert result.exit_code == 0
        assert "Status: healthy" in result.output

    def test_make_staff(self, runner, app):
        player = create_test_player()

        result = runner.invoke(cli, ['make-staff', 'player@example.com'])
        assert result.exit_code == 0
        assert reload(Player, player.id).is_staff

        result = runner.invoke(cli, ['make-staff', 'player@example.com', '--revoke'])
        assert result.exit_code == 0
        assert not reload(Player, player.id).is_staff

    def test_make_staff_unknown_email(self, runner):
        result = runner.invoke(cli, ['make-staff', 'nobody@example.com'])
        assert result.exit_code != 0
        assert "not found" in result.output

    def test_import_legacy_chat(self, runner, app, tmp_path):
        player = create_test_player()
        path = tmp_path / "gre.json"
        path.write_text(json.dumps([
            {"id": 1, "playerId": str(player.id), "message": "Any seats?", "sender": "player",
             "createdAt": "2024-03-01T10:00:00"},
            {"id": 2, "playerId": str(player.id), "message": "Table 3 has one", "sender": "gre",
             "createdAt": "2024-03-01T10:01:00"},
        ]))

        result = runner.invoke(cli, ['import-legacy-chat', str(path), '--source', 'gre_chat_messages'])
        assert result.exit_code == 0
        assert "Imported 2 messages (0 duplicates, 0 skipped)" in result.output

        result = runner.invoke(cli, ['import-legacy-chat', str(path), '--source', 'gre_chat_messages'])
        assert "Imported 0 messages (2 duplicates, 0 skipped)" in result.output
        assert ChatMessage.query.count() == 2

    def test_import_rejects_non_array(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"id": 1}))
        result = runner.invoke(cli, ['import-legacy-chat', str(path), '--source', 'chat_messages'])
        assert result.exit_code != 0

    def test_balance_audit(self, runner, app):
        player = create_test_player(balance=1000)

        result = runner.invoke(cli, ['balance-audit'])
        assert result.exit_code == 0
        assert "All balances match" in result.output

        player.balance = 999
        db.session.commit()
        result = runner.invoke(cli, ['balance-audit'])
        assert result.exit_code == 1
        assert "ledger 1000" in result.output
