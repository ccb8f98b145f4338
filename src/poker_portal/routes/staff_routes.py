"""Staff portal routes: the GRE chat desk, KYC review, tables, waitlists, the cashier
and the food and beverage desk, plus feedback review and the tournament schedule.

Every route requires a staff account. Staff act on other players'
records, so player and request IDs come from the URL or body here.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from ..auth import staff_required
from ..models.chat import ChatMessage
from ..services.cashier_service import CashierError, CashierService
from ..services.chat_service import ChatError, ChatService
from ..services.feedback_service import FeedbackError, FeedbackService
from ..services.food_service import FoodService, FoodServiceError
from ..services.kyc_service import KycError, KycService
from ..services.notification_service import NotificationError, NotificationService
from ..services.offer_service import OfferError, OfferService
from ..services.table_service import TableService, TableValidationError
from ..services.tournament_service import TournamentError, TournamentService
from ..services.transaction_manager import TransactionError, TransactionManager
from ..services.waitlist_service import WaitlistError, WaitlistService
from .utils import as_int, error_response, json_body

staff_bp = Blueprint("staff", __name__)


def _error_status(error):
    return 404 if str(error).endswith("not found") else 400


def _approve_flag(data):
    """Read the approve/reject decision from a review body."""
    approve = data.get("approve")
    if not isinstance(approve, bool):
        return None
    return approve


# Chat desk

@staff_bp.route("/chat/sessions", methods=["GET"])
@staff_required
def list_chat_sessions():
    assigned = request.args.get("assigned_to")
    assigned_staff_id = current_user.id if assigned == "me" else as_int(assigned)
    if assigned is not None and not isinstance(assigned_staff_id, int):
        return error_response("assigned_to must be 'me' or a staff ID")

    sessions = ChatService.list_sessions(status=request.args.get("status"), assigned_staff_id=assigned_staff_id)
    return jsonify({"success": True, "sessions": sessions})


@staff_bp.route("/chat/sessions/<session_id>", methods=["GET"])
@staff_required
def get_chat_session(session_id):
    try:
        session = ChatService.get_session(session_id)
    except ChatError as e:
        return error_response(str(e), 404)
    return jsonify({"success": True, "session": session.to_dict(include_messages=True)})


@staff_bp.route("/chat/sessions/<session_id>/messages", methods=["POST"])
@staff_required
def reply(session_id):
    data = json_body()
    try:
        message, created = ChatService.send_staff_message(
            session_id, current_user.id, data.get("message", ""), data.get("client_message_id")
        )
    except ChatError as e:
        return error_response(str(e))
    return jsonify({"success": True, "created": created, "message": message.to_dict()}), 201 if created else 200


@staff_bp.route("/chat/sessions/<session_id>/accept", methods=["POST"])
@staff_required
def accept_chat(session_id):
    try:
        session = ChatService.accept_session(session_id, current_user.id)
    except ChatError as e:
        return error_response(str(e))
    return jsonify({"success": True, "session": session.to_dict()})


@staff_bp.route("/chat/sessions/<session_id>/resolve", methods=["POST"])
@staff_required
def resolve_chat(session_id):
    try:
        session = ChatService.resolve_session(session_id, current_user.id)
    except ChatError as e:
        return error_response(str(e))
    return jsonify({"success": True, "session": session.to_dict()})


@staff_bp.route("/chat/sessions/<session_id>/read", methods=["POST"])
@staff_required
def mark_chat_read(session_id):
    try:
        session = ChatService.mark_read(session_id, ChatMessage.SENDER_STAFF, json_body().get("sequence"))
    except ChatError as e:
        return error_response(str(e))
    return jsonify({"success": True, "session": session.to_dict()})


# KYC

@staff_bp.route("/kyc/pending", methods=["GET"])
@staff_required
def pending_kyc():
    return jsonify({"success": True, "players": KycService.get_pending_reviews()})


@staff_bp.route("/kyc/documents/<int:document_id>/review", methods=["POST"])
@staff_required
def review_document(document_id):
    data = json_body()
    approve = _approve_flag(data)
    if approve is None:
        return error_response("approve must be true or false")

    try:
        document = KycService.review_document(document_id, current_user.id, approve, data.get("notes"))
    except KycError as e:
        return error_response(str(e))
    return jsonify({"success": True, "document": document.to_dict(), "kyc_status": document.player.kyc_status})


# Tables

@staff_bp.route("/tables", methods=["POST"])
@staff_required
def create_table():
    try:
        table = TableService.create_table(json_body())
    except TableValidationError as e:
        return error_response(str(e))
    return jsonify({"success": True, "table": TableService.serialize(table)}), 201


@staff_bp.route("/tables/<int:table_id>", methods=["PATCH"])
@staff_required
def update_table(table_id):
    try:
        table = TableService.update_table(table_id, json_body())
    except TableValidationError as e:
        return error_response(str(e))
    return jsonify({"success": True, "table": TableService.serialize(table)})


@staff_bp.route("/tables/<int:table_id>/stats", methods=["POST"])
@staff_required
def update_table_stats(table_id):
    data = json_body()
    try:
        table = TableService.update_live_stats(
            table_id,
            current_players=as_int(data.get("current_players")),
            pot=as_int(data.get("pot")),
            avg_stack=as_int(data.get("avg_stack")),
        )
    except TableValidationError as e:
        return error_response(str(e))
    return jsonify({"success": True, "table": TableService.serialize(table)})


@staff_bp.route("/tables/<int:table_id>", methods=["DELETE"])
@staff_required
def deactivate_table(table_id):
    try:
        cancelled = TableService.deactivate_table(table_id)
    except TableValidationError as e:
        return error_response(str(e), 404)
    return jsonify({"success": True, "cancelled_requests": cancelled})


@staff_bp.route("/tables/<int:table_id>/waitlist", methods=["GET"])
@staff_required
def table_waitlist(table_id):
    try:
        waitlist = WaitlistService.get_table_waitlist(table_id)
    except WaitlistError as e:
        return error_response(str(e), 404)
    return jsonify({"success": True, "waitlist": waitlist})


@staff_bp.route("/tables/<int:table_id>/buy-in", methods=["POST"])
@staff_required
def table_buy_in(table_id):
    data = json_body()
    try:
        transaction = TransactionManager.table_buy_in(
            as_int(data.get("player_id")), table_id, as_int(data.get("amount")), current_user.id
        )
    except TransactionError as e:
        return error_response(str(e))
    return jsonify({"success": True, "transaction": transaction.to_dict()}), 201


@staff_bp.route("/tables/<int:table_id>/cash-out", methods=["POST"])
@staff_required
def table_cash_out(table_id):
    data = json_body()
    try:
        transaction = TransactionManager.table_cash_out(
            as_int(data.get("player_id")), table_id, as_int(data.get("amount")), current_user.id
        )
    except TransactionError as e:
        return error_response(str(e))
    return jsonify({"success": True, "transaction": transaction.to_dict()}), 201


@staff_bp.route("/waitlist/<int:request_id>/seat", methods=["POST"])
@staff_required
def seat_player(request_id):
    try:
        seat_request = WaitlistService.seat_player(
            request_id, current_user.id, as_int(json_body().get("seat_number"))
        )
    except WaitlistError as e:
        return error_response(str(e))
    return jsonify({"success": True, "request": seat_request.to_dict()})


# Cashier

@staff_bp.route("/cash-out-requests", methods=["GET"])
@staff_required
def pending_cash_outs():
    requests = CashierService.get_pending_cash_outs()
    return jsonify({"success": True, "requests": [r.to_dict() for r in requests]})


@staff_bp.route("/cash-out-requests/<int:request_id>/process", methods=["POST"])
@staff_required
def process_cash_out(request_id):
    data = json_body()
    approve = _approve_flag(data)
    if approve is None:
        return error_response("approve must be true or false")

    try:
        cash_out = CashierService.process_cash_out(request_id, current_user.id, approve, data.get("notes"))
    except CashierError as e:
        return error_response(str(e))
    return jsonify({"success": True, "request": cash_out.to_dict()})


@staff_bp.route("/credit-requests", methods=["GET"])
@staff_required
def pending_credit_requests():
    requests = CashierService.get_pending_credit_requests()
    return jsonify({"success": True, "requests": [r.to_dict() for r in requests]})


@staff_bp.route("/credit-requests/<int:request_id>/process", methods=["POST"])
@staff_required
def process_credit_request(request_id):
    data = json_body()
    approve = _approve_flag(data)
    if approve is None:
        return error_response("approve must be true or false")

    try:
        credit = CashierService.process_credit_request(request_id, current_user.id, approve, data.get("notes"))
    except CashierError as e:
        return error_response(str(e))
    return jsonify({"success": True, "request": credit.to_dict()})


@staff_bp.route("/players/<int:player_id>/adjustments", methods=["POST"])
@staff_required
def create_adjustment(player_id):
    data = json_body()
    amount = as_int(data.get("amount"))
    if isinstance(amount, bool) or not isinstance(amount, int):
        return error_response("Amount must be a whole number")

    try:
        transaction = TransactionManager.create_adjustment(
            player_id, amount, data.get("description") or "", current_user.id,
            data.get("balance_type") or "cash",
        )
    except TransactionError as e:
        return error_response(str(e))

    current_app.logger.info(f"Staff {current_user.id} adjusted player {player_id} by {amount}")
    return jsonify({"success": True, "transaction": transaction.to_dict()}), 201


@staff_bp.route("/balance-audit", methods=["GET"])
@staff_required
def balance_audit():
    mismatches = TransactionManager.audit_balances()
    return jsonify({"success": True, "consistent": not mismatches, "mismatches": mismatches})


# Notifications and offers

@staff_bp.route("/notifications", methods=["POST"])
@staff_required
def send_notification():
    data = json_body()
    player_id = data.get("player_id")
    if player_id is not None:
        player_id = as_int(player_id)
        if isinstance(player_id, bool) or not isinstance(player_id, int):
            return error_response("player_id must be a whole number")

    try:
        notification = NotificationService.create_notification(
            title=data.get("title", ""),
            message=data.get("message", ""),
            player_id=player_id,
            notification_type=data.get("notification_type") or "general",
            priority=data.get("priority") or "normal",
            data=data.get("data"),
            created_by=current_user.id,
        )
    except NotificationError as e:
        return error_response(str(e))
    return jsonify({"success": True, "notification": notification.to_dict()}), 201


@staff_bp.route("/offers", methods=["POST"])
@staff_required
def create_offer():
    data = json_body()
    try:
        offer = OfferService.create_offer(data, current_user.id, announce=bool(data.get("announce", False)))
    except OfferError as e:
        return error_response(str(e))
    return jsonify({"success": True, "offer": offer.to_dict()}), 201


@staff_bp.route("/offers/<int:offer_id>", methods=["DELETE"])
@staff_required
def deactivate_offer(offer_id):
    try:
        offer = OfferService.deactivate_offer(offer_id)
    except OfferError as e:
        return error_response(str(e), 404)
    return jsonify({"success": True, "offer": offer.to_dict()})


# Food and beverage

@staff_bp.route("/food-beverage/items", methods=["GET"])
@staff_required
def list_menu_items():
    items = FoodService.get_menu(include_unavailable=True)
    return jsonify({"success": True, "items": [item.to_dict() for item in items]})


@staff_bp.route("/food-beverage/items", methods=["POST"])
@staff_required
def create_menu_item():
    data = json_body()
    for key in ("price", "display_order"):
        if key in data:
            data[key] = as_int(data[key])
    try:
        item = FoodService.create_menu_item(data)
    except FoodServiceError as e:
        return error_response(str(e))
    return jsonify({"success": True, "item": item.to_dict()}), 201


@staff_bp.route("/food-beverage/items/<int:item_id>", methods=["PATCH"])
@staff_required
def update_menu_item(item_id):
    data = json_body()
    for key in ("price", "display_order"):
        if key in data:
            data[key] = as_int(data[key])
    try:
        item = FoodService.update_menu_item(item_id, data)
    except FoodServiceError as e:
        return error_response(str(e), _error_status(e))
    return jsonify({"success": True, "item": item.to_dict()})


@staff_bp.route("/food-beverage/ads", methods=["POST"])
@staff_required
def create_food_ad():
    data = json_body()
    if "display_order" in data:
        data["display_order"] = as_int(data["display_order"])
    try:
        ad = FoodService.create_ad(data)
    except FoodServiceError as e:
        return error_response(str(e))
    return jsonify({"success": True, "ad": ad.to_dict()}), 201


@staff_bp.route("/food-beverage/orders", methods=["GET"])
@staff_required
def list_food_orders():
    try:
        orders = FoodService.list_orders(status=request.args.get("status"))
    except FoodServiceError as e:
        return error_response(str(e))
    return jsonify({"success": True, "orders": [o.to_dict() for o in orders]})


@staff_bp.route("/food-beverage/orders/<int:order_id>/status", methods=["POST"])
@staff_required
def update_food_order(order_id):
    status = json_body().get("status")
    try:
        order = FoodService.update_order_status(order_id, status, current_user.id)
    except FoodServiceError as e:
        return error_response(str(e), _error_status(e))
    return jsonify({"success": True, "order": order.to_dict()})


# Feedback

@staff_bp.route("/feedback", methods=["GET"])
@staff_required
def list_feedback():
    try:
        feedback = FeedbackService.list_feedback(status=request.args.get("status"))
    except FeedbackError as e:
        return error_response(str(e))
    return jsonify({"success": True, "feedback": [f.to_dict() for f in feedback]})


@staff_bp.route("/feedback/<int:feedback_id>/status", methods=["POST"])
@staff_required
def update_feedback(feedback_id):
    data = json_body()
    try:
        feedback = FeedbackService.update_status(feedback_id, data.get("status"), current_user.id,
                                                 response=data.get("response"))
    except FeedbackError as e:
        return error_response(str(e), _error_status(e))
    return jsonify({"success": True, "feedback": feedback.to_dict()})


# Tournaments

def _tournament_body():
    data = json_body()
    for key in ("buy_in", "prize_pool", "registered_players", "max_players"):
        if key in data:
            data[key] = as_int(data[key])
    return data


@staff_bp.route("/tournaments", methods=["POST"])
@staff_required
def create_tournament():
    try:
        tournament = TournamentService.create_tournament(_tournament_body())
    except TournamentError as e:
        return error_response(str(e))
    return jsonify({"success": True, "tournament": tournament.to_dict()}), 201


@staff_bp.route("/tournaments/<int:tournament_id>", methods=["PATCH"])
@staff_required
def update_tournament(tournament_id):
    try:
        tournament = TournamentService.update_tournament(tournament_id, _tournament_body())
    except TournamentError as e:
        return error_response(str(e), _error_status(e))
    return jsonify({"success": True, "tournament": tournament.to_dict()})
