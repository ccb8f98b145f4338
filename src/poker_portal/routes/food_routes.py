"""Food and beverage routes: menu, ads and the player's orders."""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from ..services.food_service import FoodService, FoodServiceError
from .utils import as_int, error_response, json_body

food_bp = Blueprint("food_beverage", __name__)


@food_bp.route("/items", methods=["GET"])
@login_required
def menu():
    return jsonify({"success": True, "items": [item.to_dict() for item in FoodService.get_menu()]})


@food_bp.route("/ads", methods=["GET"])
@login_required
def ads():
    return jsonify({"success": True, "ads": [ad.to_dict() for ad in FoodService.get_active_ads()]})


@food_bp.route("/orders", methods=["POST"])
@login_required
def place_order():
    data = json_body()
    items = data.get("items")
    if isinstance(items, list):
        items = [
            {**line, "item_id": as_int(line.get("item_id")), "quantity": as_int(line.get("quantity", 1))}
            if isinstance(line, dict) else line
            for line in items
        ]
    try:
        order = FoodService.place_order(
            current_user.id, items, notes=data.get("notes"), table_number=data.get("table_number")
        )
    except FoodServiceError as e:
        return error_response(str(e))
    return jsonify({"success": True, "order": order.to_dict()}), 201


@food_bp.route("/orders", methods=["GET"])
@login_required
def my_orders():
    orders = FoodService.get_player_orders(current_user.id)
    return jsonify({"success": True, "orders": [o.to_dict() for o in orders]})
