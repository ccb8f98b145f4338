"""Player self-service routes: profile, preferences, balances and cashier requests.

Every route acts on the logged-in player; player IDs never come from the URL.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from ..services.cashier_service import CashierError, CashierService
from ..services.player_manager import PlayerManager, PlayerValidationError
from ..services.transaction_manager import TransactionError, TransactionManager
from .utils import as_int, error_response, json_body

players_bp = Blueprint("players", __name__)


@players_bp.route("/profile", methods=["GET"])
@login_required
def get_profile():
    return jsonify({"success": True, "player": current_user.to_dict()})


@players_bp.route("/profile", methods=["PATCH"])
@login_required
def update_profile():
    try:
        player = PlayerManager.update_profile(current_user.id, json_body())
        return jsonify({"success": True, "player": player.to_dict()})
    except PlayerValidationError as e:
        return error_response(str(e))


@players_bp.route("/preferences", methods=["GET"])
@login_required
def get_preferences():
    prefs = PlayerManager.get_preferences(current_user.id)
    return jsonify({"success": True, "preferences": prefs.to_dict()})


@players_bp.route("/preferences", methods=["PUT"])
@login_required
def update_preferences():
    try:
        prefs = PlayerManager.update_preferences(current_user.id, json_body())
        return jsonify({"success": True, "preferences": prefs.to_dict()})
    except PlayerValidationError as e:
        return error_response(str(e))


@players_bp.route("/balance", methods=["GET"])
@login_required
def get_balance():
    return jsonify({"success": True, "balance": TransactionManager.get_balance(current_user.id)})


@players_bp.route("/transactions", methods=["GET"])
@login_required
def get_transactions():
    """Transaction history, newest first."""
    limit = request.args.get("limit", type=int)
    offset = request.args.get("offset", default=0, type=int)
    transaction_type = request.args.get("type")

    transactions = TransactionManager.get_player_transactions(
        current_user.id, limit=limit, offset=offset, transaction_type=transaction_type
    )
    return jsonify({"success": True, "transactions": [t.to_dict() for t in transactions]})


@players_bp.route("/transactions/summary", methods=["GET"])
@login_required
def get_transaction_summary():
    days = request.args.get("days", default=30, type=int)
    if days <= 0:
        return error_response("days must be positive")
    return jsonify({"success": True, "summary": TransactionManager.get_transaction_summary(current_user.id, days)})


@players_bp.route("/credit-transfer", methods=["POST"])
@login_required
def credit_transfer():
    """Move approved credit into the cash balance."""
    amount = as_int(json_body().get("amount"))
    try:
        TransactionManager.credit_transfer(current_user.id, amount)
        return jsonify({
            "success": True,
            "message": f"Transferred ₹{amount} from credit to cash",
            "balance": TransactionManager.get_balance(current_user.id),
        })
    except TransactionError as e:
        return error_response(str(e))
    except Exception as e:
        current_app.logger.error(f"Credit transfer error for player {current_user.id}: {e}")
        return error_response("Credit transfer failed", 500)


@players_bp.route("/cash-out-requests", methods=["GET"])
@login_required
def list_cash_out_requests():
    requests = CashierService.get_player_cash_outs(current_user.id)
    return jsonify({"success": True, "requests": [r.to_dict() for r in requests]})


@players_bp.route("/cash-out-requests", methods=["POST"])
@login_required
def create_cash_out_request():
    data = json_body()
    try:
        cash_out = CashierService.submit_cash_out(current_user.id, as_int(data.get("amount")), data.get("notes"))
        return jsonify({"success": True, "request": cash_out.to_dict()}), 201
    except CashierError as e:
        return error_response(str(e))


@players_bp.route("/credit-requests", methods=["GET"])
@login_required
def list_credit_requests():
    requests = CashierService.get_player_credit_requests(current_user.id)
    return jsonify({"success": True, "requests": [r.to_dict() for r in requests]})


@players_bp.route("/credit-requests", methods=["POST"])
@login_required
def create_credit_request():
    data = json_body()
    try:
        credit = CashierService.submit_credit_request(current_user.id, as_int(data.get("amount")), data.get("reason"))
        return jsonify({"success": True, "request": credit.to_dict()}), 201
    except CashierError as e:
        return error_response(str(e))
