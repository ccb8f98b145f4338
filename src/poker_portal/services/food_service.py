"""Food and beverage: menu, ads and orders placed from the portal."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import current_app

from ..database import db
from ..models.food_beverage import FoodAd, FoodOrder, MenuItem
from ..models.notification import PushNotification
from ..models.player import Player
from .notification_service import NotificationService
from .offer_service import OfferError, _parse_date
from .push_client import PushClient
from .websocket_manager import PortalEvent, notify_player, notify_staff


class FoodServiceError(Exception):
    """Exception raised for food and beverage errors."""
    pass


MENU_FIELDS = ('name', 'description', 'price', 'category', 'image_url', 'is_available', 'display_order')

# Staff may move an order forward, or cancel it while it is still open
ORDER_TRANSITIONS = {
    FoodOrder.STATUS_PENDING: (FoodOrder.STATUS_PREPARING, FoodOrder.STATUS_DELIVERED, FoodOrder.STATUS_CANCELLED),
    FoodOrder.STATUS_PREPARING: (FoodOrder.STATUS_DELIVERED, FoodOrder.STATUS_CANCELLED),
}


def _whole_number(value: Any, label: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise FoodServiceError(f"{label} must be a whole number of at least {minimum}")
    return value


def _optional_text(value: Any, label: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise FoodServiceError(f"{label} must be text")
    return value.strip() or None


class FoodService:
    """Service class for the food and beverage tab."""

    # Menu

    @staticmethod
    def get_menu(include_unavailable: bool = False) -> List[MenuItem]:
        query = MenuItem.query
        if not include_unavailable:
            query = query.filter_by(is_available=True)
        return query.order_by(MenuItem.display_order, MenuItem.id).all()

    @staticmethod
    def _apply_menu_fields(item: MenuItem, data: Dict[str, Any]) -> None:
        if 'name' in data:
            name = _optional_text(data['name'], "Name")
            if not name:
                raise FoodServiceError("Item name is required")
            item.name = name
        if 'price' in data:
            item.price = _whole_number(data['price'], "Price")
        if 'display_order' in data:
            item.display_order = _whole_number(data['display_order'], "display_order")
        if 'is_available' in data:
            if not isinstance(data['is_available'], bool):
                raise FoodServiceError("is_available must be true or false")
            item.is_available = data['is_available']
        for key in ('description', 'image_url'):
            if key in data:
                setattr(item, key, _optional_text(data[key], key.replace('_', ' ').capitalize()))
        if 'category' in data:
            item.category = _optional_text(data['category'], "Category") or 'food'

    @staticmethod
    def create_menu_item(data: Dict[str, Any]) -> MenuItem:
        if 'name' not in data or 'price' not in data:
            raise FoodServiceError("Item name and price are required")
        item = MenuItem(is_available=True, display_order=0, category='food')
        FoodService._apply_menu_fields(item, data)
        db.session.add(item)
        db.session.commit()
        current_app.logger.info(f"Added menu item {item.id}: {item.name} at {item.price}")
        return item

    @staticmethod
    def update_menu_item(item_id: int, data: Dict[str, Any]) -> MenuItem:
        item = db.session.get(MenuItem, item_id)
        if not item:
            raise FoodServiceError("Menu item not found")
        unknown = set(data) - set(MENU_FIELDS)
        if unknown:
            raise FoodServiceError(f"Unknown field: {', '.join(sorted(unknown))}")
        FoodService._apply_menu_fields(item, data)
        db.session.commit()
        current_app.logger.info(f"Updated menu item {item.id}: {sorted(data)}")
        return item

    # Ads

    @staticmethod
    def get_active_ads(now: Optional[datetime] = None) -> List[FoodAd]:
        now = now or datetime.utcnow()
        ads = FoodAd.query.filter_by(is_active=True).order_by(FoodAd.display_order, FoodAd.id).all()
        return [ad for ad in ads if ad.is_live(now)]

    @staticmethod
    def create_ad(data: Dict[str, Any]) -> FoodAd:
        title = _optional_text(data.get('title'), "Title")
        if not title:
            raise FoodServiceError("Ad title is required")
        try:
            start_date = _parse_date(data.get('start_date'), 'start date')
            end_date = _parse_date(data.get('end_date'), 'end date')
        except OfferError as e:
            raise FoodServiceError(str(e))
        if start_date and end_date and end_date < start_date:
            raise FoodServiceError("Ad cannot end before it starts")

        video_url = _optional_text(data.get('video_url'), "Video URL")
        ad = FoodAd(
            title=title,
            description=_optional_text(data.get('description'), "Description"),
            image_url=_optional_text(data.get('image_url'), "Image URL"),
            video_url=video_url,
            target_url=_optional_text(data.get('target_url'), "Target URL"),
            ad_type='video' if video_url else 'image',
            start_date=start_date,
            end_date=end_date,
            display_order=_whole_number(data.get('display_order', 0), "display_order"),
            is_active=True,
        )
        db.session.add(ad)
        db.session.commit()
        current_app.logger.info(f"Created food ad {ad.id}: {ad.title}")
        return ad

    # Orders

    @staticmethod
    def place_order(player_id: int, items: Any, notes: Optional[str] = None,
                    table_number: Any = None) -> FoodOrder:
        """Place an order for the logged-in player.

        ``items`` is a list of ``{"item_id", "quantity"}``. Prices come from the
        menu, never from the client, and repeated items are merged.

        Raises:
            FoodServiceError: If the order is empty or names unavailable items
        """
        player = db.session.get(Player, player_id)
        if not player or not player.is_active:
            raise FoodServiceError("Player not found")
        if not isinstance(items, list) or not items:
            raise FoodServiceError("An order needs at least one item")

        max_quantity = current_app.config.get('FOOD_ORDER_MAX_QUANTITY', 20)
        quantities: Dict[int, int] = {}
        for line in items:
            if not isinstance(line, dict):
                raise FoodServiceError("Each order line needs an item_id and quantity")
            item_id = _whole_number(line.get('item_id'), "item_id", minimum=1)
            quantity = _whole_number(line.get('quantity', 1), "Quantity", minimum=1)
            quantities[item_id] = quantities.get(item_id, 0) + quantity
            if quantities[item_id] > max_quantity:
                raise FoodServiceError(f"No more than {max_quantity} of one item per order")

        menu = {item.id: item for item in MenuItem.query.filter(MenuItem.id.in_(list(quantities))).all()}
        lines = []
        for item_id, quantity in quantities.items():
            item = menu.get(item_id)
            if not item or not item.is_available:
                raise FoodServiceError(f"Menu item {item_id} is not available")
            lines.append({'item_id': item.id, 'name': item.name, 'price': item.price, 'quantity': quantity})

        if table_number is not None and not isinstance(table_number, str):
            table_number = str(table_number)

        order = FoodOrder(
            player_id=player.id,
            items=lines,
            total_amount=sum(line['price'] * line['quantity'] for line in lines),
            notes=_optional_text(notes, "Notes"),
            table_number=(table_number or '').strip() or None,
            status=FoodOrder.STATUS_PENDING,
            order_source='player_portal',
        )
        db.session.add(order)
        db.session.commit()

        current_app.logger.info(f"Food order {order.id}: player {player.id}, total {order.total_amount}")
        payload = order.to_dict()
        notify_staff(PortalEvent.FOOD_ORDER, payload)
        FoodService._push_to_staff(order, player)
        return order

    @staticmethod
    def _push_to_staff(order: FoodOrder, player: Player) -> None:
        count = sum(line['quantity'] for line in order.items)
        message = f"{player.full_name} ordered {count} item{'s' if count != 1 else ''}"
        if order.table_number:
            message += f" for table {order.table_number}"
        result = PushClient.from_config().send(
            title="New Food Order",
            message=message,
            data={'type': PushNotification.TYPE_FOOD_ORDER, 'order_id': order.id, 'player_id': player.id},
            segments=[current_app.config.get('STAFF_PUSH_SEGMENT', 'Staff')],
        )
        if not result.success and not result.skipped:
            current_app.logger.warning(f"Staff push for food order {order.id} failed: {result.error}")

    @staticmethod
    def get_player_orders(player_id: int) -> List[FoodOrder]:
        return FoodOrder.query.filter_by(player_id=player_id).order_by(
            FoodOrder.created_at.desc(), FoodOrder.id.desc()
        ).all()

    @staticmethod
    def list_orders(status: Optional[str] = None) -> List[FoodOrder]:
        query = FoodOrder.query
        if status:
            if status not in FoodOrder.STATUSES:
                raise FoodServiceError(f"Invalid status: {status}")
            query = query.filter_by(status=status)
        return query.order_by(FoodOrder.created_at, FoodOrder.id).all()

    @staticmethod
    def update_order_status(order_id: int, status: str, staff_id: int) -> FoodOrder:
        order = db.session.query(FoodOrder).filter_by(id=order_id).with_for_update().first()
        if not order:
            db.session.rollback()
            raise FoodServiceError("Order not found")
        current = order.status
        if status not in ORDER_TRANSITIONS.get(current, ()):
            db.session.rollback()
            raise FoodServiceError(f"Cannot move an order from {current} to {status}")

        order.status = status
        order.handled_by = staff_id
        db.session.commit()
        current_app.logger.info(f"Food order {order.id} {status} by staff {staff_id}")

        payload = order.to_dict()
        notify_player(order.player_id, PortalEvent.FOOD_ORDER_UPDATE, payload)
        notify_staff(PortalEvent.FOOD_ORDER_UPDATE, payload)
        if status in (FoodOrder.STATUS_DELIVERED, FoodOrder.STATUS_CANCELLED):
            NotificationService.create_notification(
                title="Food order update",
                message=f"Your order #{order.id} has been {status}.",
                player_id=order.player_id,
                notification_type=PushNotification.TYPE_FOOD_ORDER,
                data={'order_id': order.id, 'status': status},
                created_by=staff_id,
            )
        return order
