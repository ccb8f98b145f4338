"""Unit tests for FoodService."""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from poker_portal.database import db
from poker_portal.models.food_beverage import FoodOrder, MenuItem
from poker_portal.models.notification import PushNotification
from poker_portal.services.food_service import FoodService, FoodServiceError
from poker_portal.services.push_client import PushResult
from poker_portal.services.websocket_manager import PortalEvent
from tests.test_helpers import create_test_app, create_test_player, create_test_staff


@pytest.fixture
def app():
    """Create test Flask app."""
    app = create_test_app(FOOD_ORDER_MAX_QUANTITY=5, STAFF_PUSH_SEGMENT='Floor Staff')
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
def menu(app_context):
    chai = FoodService.create_menu_item({'name': 'Masala Chai', 'price': 80, 'category': 'beverage',
                                         'display_order': 2})
    biryani = FoodService.create_menu_item({'name': 'Biryani', 'price': 400, 'display_order': 1})
    sold_out = FoodService.create_menu_item({'name': 'Lassi', 'price': 120, 'is_available': False})
    return chai, biryani, sold_out


class TestMenu:

    def test_players_see_available_items_in_display_order(self, menu):
        assert [item.name for item in FoodService.get_menu()] == ['Biryani', 'Masala Chai']
        assert len(FoodService.get_menu(include_unavailable=True)) == 3

    def test_update_menu_item(self, menu):
        chai, _, _ = menu

        item = FoodService.update_menu_item(chai.id, {'price': 90, 'is_available': False})

        assert item.price == 90
        assert item.is_available is False

    @pytest.mark.parametrize("data,message", [
        ({'name': 'Soda'}, "name and price are required"),
        ({'name': '  ', 'price': 10}, "Item name is required"),
        ({'name': 'Soda', 'price': -5}, "Price must be a whole number"),
        ({'name': 'Soda', 'price': 9.5}, "Price must be a whole number"),
        ({'name': 'Soda', 'price': 10, 'is_available': 'yes'}, "true or false"),
    ])
    def test_invalid_menu_item(self, app_context, data, message):
        with pytest.raises(FoodServiceError, match=message):
            FoodService.create_menu_item(data)

    def test_update_rejects_unknown_fields(self, menu):
        chai, _, _ = menu
        with pytest.raises(FoodServiceError, match="Unknown field: spicy"):
            FoodService.update_menu_item(chai.id, {'spicy': True})
        with pytest.raises(FoodServiceError, match="Menu item not found"):
            FoodService.update_menu_item(999, {'price': 1})


class TestAds:

    def test_active_ads_respect_dates(self, app_context):
        now = datetime(2026, 3, 1, 12, 0)
        FoodService.create_ad({'title': 'Happy Hour', 'video_url': 'https://cdn.example.com/hh.mp4'})
        FoodService.create_ad({'title': 'Expired', 'end_date': (now - timedelta(days=1)).isoformat()})
        FoodService.create_ad({'title': 'Next week', 'start_date': (now + timedelta(days=7)).isoformat()})

        ads = FoodService.get_active_ads(now)

        assert [ad.title for ad in ads] == ['Happy Hour']
        assert ads[0].ad_type == 'video'

    def test_invalid_ads(self, app_context):
        with pytest.raises(FoodServiceError, match="Ad title is required"):
            FoodService.create_ad({})
        with pytest.raises(FoodServiceError, match="Invalid start date"):
            FoodService.create_ad({'title': 'X', 'start_date': 'someday'})
        with pytest.raises(FoodServiceError, match="cannot end before it starts"):
            FoodService.create_ad({'title': 'X', 'start_date': '2026-03-02', 'end_date': '2026-03-01'})


class TestPlaceOrder:

    def test_total_comes_from_menu_prices(self, menu):
        chai, biryani, _ = menu
        player = create_test_player()

        with patch('poker_portal.services.food_service.notify_staff') as notify_staff, \
                patch('poker_portal.services.food_service.PushClient.send',
                      return_value=PushResult(success=True)) as send:
            order = FoodService.place_order(
                player.id,
                [{'item_id': chai.id, 'quantity': 2, 'price': 1}, {'item_id': biryani.id},
                 {'item_id': chai.id, 'quantity': 1}],
                notes='Less sugar',
                table_number=3,
            )

        assert order.total_amount == 3 * 80 + 400
        assert order.status == FoodOrder.STATUS_PENDING
        assert order.table_number == '3'
        assert {line['name']: line['quantity'] for line in order.items} == {'Masala Chai': 3, 'Biryani': 1}

        notify_staff.assert_called_once()
        assert notify_staff.call_args[0][0] == PortalEvent.FOOD_ORDER
        assert notify_staff.call_args[0][1]['item_count'] == 4

        send.assert_called_once()
        kwargs = send.call_args.kwargs
        assert kwargs['title'] == 'New Food Order'
        assert kwargs['message'] == 'Test Player ordered 4 items for table 3'
        assert kwargs['segments'] == ['Floor Staff']
        assert kwargs['data']['order_id'] == order.id

    def test_menu_changes_do_not_rewrite_past_orders(self, menu):
        chai, _, _ = menu
        player = create_test_player()
        order = FoodService.place_order(player.id, [{'item_id': chai.id, 'quantity': 1}])

        FoodService.update_menu_item(chai.id, {'price': 200, 'name': 'Chai'})

        saved = db.session.get(FoodOrder, order.id)
        assert saved.items == [{'item_id': chai.id, 'name': 'Masala Chai', 'price': 80, 'quantity': 1}]
        assert saved.total_amount == 80

    @pytest.mark.parametrize("items,message", [
        ([], "at least one item"),
        (None, "at least one item"),
        (["chai"], "item_id and quantity"),
        ([{'item_id': 'chai'}], "item_id must be a whole number"),
        ([{'item_id': 1, 'quantity': 0}], "Quantity must be a whole number of at least 1"),
        ([{'item_id': 1, 'quantity': 6}], "No more than 5"),
        ([{'item_id': 1, 'quantity': 3}, {'item_id': 1, 'quantity': 3}], "No more than 5"),
        ([{'item_id': 999}], "Menu item 999 is not available"),
    ])
    def test_invalid_orders(self, menu, items, message):
        player = create_test_player()
        with pytest.raises(FoodServiceError, match=message):
            FoodService.place_order(player.id, items)
        assert FoodOrder.query.count() == 0

    def test_unavailable_item_is_refused(self, menu):
        _, _, sold_out = menu
        player = create_test_player()
        with pytest.raises(FoodServiceError, match="not available"):
            FoodService.place_order(player.id, [{'item_id': sold_out.id}])

    def test_push_failure_does_not_lose_the_order(self, menu):
        chai, _, _ = menu
        player = create_test_player()

        with patch('poker_portal.services.food_service.PushClient.send',
                   return_value=PushResult(success=False, error='timeout')):
            order = FoodService.place_order(player.id, [{'item_id': chai.id}])

        assert db.session.get(FoodOrder, order.id) is not None


class TestOrderStatus:

    def test_players_see_their_own_orders_newest_first(self, menu):
        chai, biryani, _ = menu
        player = create_test_player()
        other = create_test_player("other@example.com")
        first = FoodService.place_order(player.id, [{'item_id': chai.id}])
        second = FoodService.place_order(player.id, [{'item_id': biryani.id}])
        FoodService.place_order(other.id, [{'item_id': chai.id}])

        assert [o.id for o in FoodService.get_player_orders(player.id)] == [second.id, first.id]

    def test_staff_move_order_to_delivered(self, menu):
        chai, _, _ = menu
        player = create_test_player()
        staff = create_test_staff()
        order = FoodService.place_order(player.id, [{'item_id': chai.id}])

        with patch('poker_portal.services.food_service.notify_player') as notify_player:
            FoodService.update_order_status(order.id, FoodOrder.STATUS_PREPARING, staff.id)
            delivered = FoodService.update_order_status(order.id, FoodOrder.STATUS_DELIVERED, staff.id)

        assert delivered.handled_by == staff.id
        assert notify_player.call_count == 2
        assert notify_player.call_args[0][:2] == (player.id, PortalEvent.FOOD_ORDER_UPDATE)
        notification = PushNotification.query.one()
        assert notification.notification_type == PushNotification.TYPE_FOOD_ORDER
        assert [o.id for o in FoodService.list_orders(FoodOrder.STATUS_DELIVERED)] == [order.id]

    def test_closed_orders_cannot_move(self, menu):
        chai, _, _ = menu
        player = create_test_player()
        staff = create_test_staff()
        order = FoodService.place_order(player.id, [{'item_id': chai.id}])
        FoodService.update_order_status(order.id, FoodOrder.STATUS_CANCELLED, staff.id)

        with pytest.raises(FoodServiceError, match="from cancelled to preparing"):
            FoodService.update_order_status(order.id, FoodOrder.STATUS_PREPARING, staff.id)
        with pytest.raises(FoodServiceError, match="Order not found"):
            FoodService.update_order_status(999, FoodOrder.STATUS_DELIVERED, staff.id)
        with pytest.raises(FoodServiceError, match="Invalid status"):
            FoodService.list_orders("eaten")
