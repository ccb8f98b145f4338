"""Integration tests for the player-facing portal features."""

import io

import pytest

from app import create_app
from poker_portal.config import TestingConfig
from poker_portal.database import db
from poker_portal.models.player import Player
from poker_portal.services.notification_service import NotificationService
from poker_portal.services.offer_service import OfferService
from tests.test_helpers import PortalTestClient, create_test_player, create_test_table, login, reload


@pytest.fixture
def app(tmp_path):
    """Create the full portal app with uploads in a temporary folder."""
    app, _ = create_app(TestingConfig)
    app.test_client_class = PortalTestClient
    app.config['UPLOAD_FOLDER'] = str(tmp_path / "kyc")
    app.config['KYC_REQUIRED_DOCUMENTS'] = ['id']
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def player(app):
    return create_test_player(balance=5000)


@pytest.fixture
def client(app, player):
    client = app.test_client()
    login(client, 'player@example.com')
    return client


class TestBalances:

    def test_balance_and_transactions(self, client):
        balance = client.get('/api/players/balance').get_json()['balance']
        assert balance['cash_balance'] == 5000
        assert balance['total_balance'] == 5000

        transactions = client.get('/api/players/transactions').get_json()['transactions']
        assert [t['description'] for t in transactions] == ["Opening balance"]

    def test_credit_transfer_requires_approval(self, client):
        response = client.post('/api/players/credit-transfer', json={'amount': 100})
        assert response.status_code == 400
        assert "not approved" in response.get_json()['error']

    def test_credit_transfer(self, client, player):
        row = reload(Player, player.id)
        row.credit_approved = True
        row.credit_limit = 2000
        row.current_credit = 2000
        db.session.commit()

        response = client.post('/api/players/credit-transfer', json={'amount': "500"})
        assert response.status_code == 200
        balance = response.get_json()['balance']
        assert balance['cash_balance'] == 5500
        assert balance['credit_balance'] == 1500

    def test_cash_out_request(self, client):
        response = client.post('/api/players/cash-out-requests', json={'amount': 1000})
        assert response.status_code == 201
        requests = client.get('/api/players/cash-out-requests').get_json()['requests']
        assert requests[0]['status'] == 'pending'

    def test_credit_request_validation(self, client):
        response = client.post('/api/players/credit-requests', json={'amount': -5})
        assert response.status_code == 400


class TestKyc:

    def test_upload_and_submit(self, app):
        create_test_player("new@example.com", kyc_approved=False)
        client = app.test_client()
        login(client, "new@example.com")

        response = client.post('/api/kyc/documents', data={
            'document_type': 'id',
            'file': (io.BytesIO(b"%PDF-1.4 scan"), "passport.pdf"),
        }, content_type='multipart/form-data')
        assert response.status_code == 201
        document_id = response.get_json()['document']['id']

        download = client.get(f'/api/kyc/documents/{document_id}/file')
        assert download.status_code == 200
        assert download.data == b"%PDF-1.4 scan"

        response = client.post('/api/kyc/submit', json={
            'first_name': 'Nisha',
            'last_name': 'Rao',
            'phone': '+91 98450 12345',
            'pan_card_number': 'ABCDE1234F',
            'address': '5 Church Street, Bengaluru',
        })
        assert response.status_code == 200
        assert response.get_json()['kyc_status'] == Player.KYC_SUBMITTED
        assert client.get('/api/kyc/status').get_json()['kyc_status'] == Player.KYC_SUBMITTED

    def test_other_players_cannot_download(self, app, client):
        create_test_player("owner@example.com", kyc_approved=False)
        owner_client = app.test_client()
        login(owner_client, "owner@example.com")
        document_id = owner_client.post('/api/kyc/documents', data={
            'document_type': 'id',
            'file': (io.BytesIO(b"image"), "id.png"),
        }, content_type='multipart/form-data').get_json()['document']['id']

        assert client.get(f'/api/kyc/documents/{document_id}/file').status_code == 404

    def test_missing_file(self, app):
        create_test_player("new@example.com", kyc_approved=False)
        client = app.test_client()
        login(client, "new@example.com")
        response = client.post('/api/kyc/documents', data={'document_type': 'id'},
                               content_type='multipart/form-data')
        assert response.status_code == 400


class TestTablesAndWaitlist:

    def test_join_and_cancel(self, client):
        table = create_test_table()

        tables = client.get('/api/tables/').get_json()['tables']
        assert tables[0]['name'] == "Table 1"

        response = client.post('/api/waitlist/join', json={'table_id': str(table.id)})
        assert response.status_code == 201
        seat_request = response.get_json()['request']
        assert seat_request['position'] == 1
        assert seat_request['estimated_wait'] == 15

        again = client.post('/api/waitlist/join', json={'table_id': table.id})
        assert again.status_code == 200
        assert again.get_json()['created'] is False

        assert client.get(f'/api/tables/{table.id}').get_json()['table']['waiting_list'] == 1

        response = client.delete(f"/api/waitlist/{seat_request['id']}")
        assert response.get_json()['request']['status'] == 'cancelled'
        assert client.get('/api/waitlist/').get_json()['requests'] == []

    def test_join_requires_table(self, client):
        assert client.post('/api/waitlist/join', json={}).status_code == 400

    def test_unknown_table(self, client):
        assert client.get('/api/tables/999').status_code == 404


class TestInbox:

    def test_notifications(self, client, player):
        NotificationService.create_notification("Welcome", "Enjoy your game", player_id=player.id)
        NotificationService.create_notification("Open late", "Tables run till 4am")

        body = client.get('/api/notifications/').get_json()
        assert [n['title'] for n in body['notifications']] == ["Open late", "Welcome"]
        assert client.get('/api/notifications/unread-count').get_json()['unread_count'] == 2

        broadcast_id = body['notifications'][0]['id']
        assert client.post(f'/api/notifications/{broadcast_id}/read').status_code == 200
        unread = client.get('/api/notifications/?unread_only=true').get_json()['notifications']
        assert [n['title'] for n in unread] == ["Welcome"]

        assert client.post('/api/notifications/read-all').get_json()['updated'] == 1
        assert client.post('/api/notifications/999/read').status_code == 404

    def test_offers(self, client):
        offer = OfferService.create_offer({'title': 'Happy hour', 'description': 'Half rake'})

        offers = client.get('/api/offers/').get_json()['offers']
        assert [o['title'] for o in offers] == ['Happy hour']
        assert client.post(f'/api/offers/{offer.id}/views').status_code == 201
        assert client.post('/api/offers/999/views').status_code == 404
