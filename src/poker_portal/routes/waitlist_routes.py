"""Waitlist routes for players."""

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from ..services.waitlist_service import WaitlistError, WaitlistService
from .utils import as_int, error_response, json_body

waitlist_bp = Blueprint("waitlist", __name__)


@waitlist_bp.route("/join", methods=["POST"])
@login_required
def join():
    data = json_body()
    table_id = as_int(data.get("table_id"))
    if not isinstance(table_id, int):
        return error_response("Table ID required")

    try:
        seat_request, created = WaitlistService.join_waitlist(
            current_user.id, table_id, as_int(data.get("seat_number")), data.get("notes")
        )
    except WaitlistError as e:
        return error_response(str(e))

    minutes = current_app.config.get("SEAT_WAIT_MINUTES_PER_POSITION", 15)
    return jsonify({
        "success": True,
        "created": created,
        "request": seat_request.to_dict(minutes_per_position=minutes),
    }), 201 if created else 200


@waitlist_bp.route("/", methods=["GET"])
@login_required
def my_requests():
    return jsonify({"success": True, "requests": WaitlistService.get_player_requests(current_user.id)})


@waitlist_bp.route("/<int:request_id>", methods=["DELETE"])
@login_required
def cancel(request_id):
    try:
        seat_request = WaitlistService.cancel_request(current_user.id, request_id)
        return jsonify({"success": True, "request": seat_request.to_dict()})
    except WaitlistError as e:
        return error_response(str(e))
