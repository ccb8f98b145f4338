"""Unit tests for OfferService."""

from datetime import datetime, timedelta

import pytest

from poker_portal.database import db
from poker_portal.models.notification import PushNotification
from poker_portal.models.offer import OfferView
from poker_portal.services.offer_service import OfferError, OfferService
from tests.test_helpers import create_test_app, create_test_player, create_test_staff


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


def test_active_offers_respect_dates_and_order(app_context):
    now = datetime(2024, 6, 1, 12, 0)
    OfferService.create_offer({'title': 'Later', 'display_order': 2})
    OfferService.create_offer({'title': 'First', 'display_order': 1})
    OfferService.create_offer({'title': 'Expired', 'end_date': (now - timedelta(days=1)).isoformat()})
    OfferService.create_offer({'title': 'Upcoming', 'start_date': (now + timedelta(days=1)).isoformat()})

    assert [o.title for o in OfferService.get_active_offers(now)] == ['First', 'Later']


def test_create_with_announcement(app_context):
    staff = create_test_staff()
    offer = OfferService.create_offer(
        {'title': 'Freeroll', 'description': 'Sunday 2pm'}, staff.id, announce=True
    )

    notification = PushNotification.query.one()
    assert notification.is_broadcast
    assert notification.notification_type == PushNotification.TYPE_OFFER
    assert notification.data == {'offer_id': offer.id}
    assert notification.message == 'Sunday 2pm'


@pytest.mark.parametrize("data,message", [
    ({}, "Offer title is required"),
    ({'title': 5}, "Offer title must be text"),
    ({'title': 'X', 'start_date': 'tomorrow'}, "Invalid start date"),
    ({'title': 'X', 'start_date': '2024-06-02', 'end_date': '2024-06-01'}, "cannot end before it starts"),
    ({'title': 'X', 'display_order': '1'}, "display_order must be a whole number"),
])
def test_invalid_offer(app_context, data, message):
    with pytest.raises(OfferError, match=message):
        OfferService.create_offer(data)


def test_offset_dates_are_stored_as_utc(app_context):
    offer = OfferService.create_offer({
        'title': 'Diwali freeroll',
        'start_date': '2026-01-01T00:00:00+05:30',
        'end_date': '2026-02-01T00:00:00',
    })

    assert offer.start_date == datetime(2025, 12, 31, 18, 30)
    assert offer.end_date == datetime(2026, 2, 1)
    assert [o.title for o in OfferService.get_active_offers(datetime(2026, 1, 15))] == ['Diwali freeroll']


def test_record_view_and_deactivate(app_context):
    player = create_test_player()
    offer = OfferService.create_offer({'title': 'Deal'})

    OfferService.record_view(offer.id, player.id)
    assert OfferView.query.filter_by(offer_id=offer.id).count() == 1

    OfferService.deactivate_offer(offer.id)
    assert OfferService.get_active_offers() == []

    with pytest.raises(OfferError, match="Offer not found"):
        OfferService.record_view(999, player.id)
