"""Player chat routes for the GRE support desk.

The Socket.IO ``send_chat`` handler and ``POST /messages`` share
``ChatService``, so a message sent through either path gets the same
sequence, idempotency and delivery behaviour.
"""

import json

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from ..extensions import limiter
from ..models.chat import ChatMessage
from ..services.chat_service import ChatError, ChatService
from .utils import error_response, json_body

chat_bp = Blueprint("chat", __name__)


@chat_bp.route("/messages", methods=["POST"])
@login_required
@limiter.limit(lambda: current_app.config["RATELIMIT_CHAT_SEND"])
def send_message():
    """Send a message. Resending the same ``client_message_id`` returns the stored message."""
    data = json_body()
    try:
        message, created = ChatService.send_player_message(
            current_user.id, data.get("message", ""), data.get("client_message_id")
        )
    except ChatError as e:
        return error_response(str(e))
    except Exception as e:
        current_app.logger.error(f"Chat send error for player {current_user.id}: {e}")
        return error_response("Failed to send message", 500)

    return jsonify({"success": True, "created": created, "message": message.to_dict()}), 201 if created else 200


@chat_bp.route("/history", methods=["GET"])
@login_required
def history():
    limit = request.args.get("limit", type=int)
    sessions = ChatService.get_history(current_user.id, limit=limit)
    return jsonify({"success": True, "sessions": sessions})


@chat_bp.route("/sync", methods=["GET"])
@login_required
def sync():
    """Catch up after a reconnect.

    ``since`` is a JSON object mapping session IDs to the last sequence
    number the client holds.
    """
    raw = request.args.get("since")
    try:
        since = json.loads(raw) if raw else None
    except ValueError:
        return error_response("since must be a JSON object")

    try:
        return jsonify({"success": True, **ChatService.sync_messages(current_user.id, since)})
    except ChatError as e:
        return error_response(str(e))


@chat_bp.route("/sessions/<session_id>/read", methods=["POST"])
@login_required
def mark_read(session_id):
    try:
        session = ChatService.get_session(session_id)
        if session.player_id != current_user.id:
            return error_response("Chat session not found", 404)
        session = ChatService.mark_read(session_id, ChatMessage.SENDER_PLAYER, json_body().get("sequence"))
    except ChatError as e:
        return error_response(str(e))
    return jsonify({"success": True, "session": session.to_dict()})


@chat_bp.route("/unread-count", methods=["GET"])
@login_required
def unread_count():
    return jsonify({"success": True, "unread_count": ChatService.get_unread_count(current_user.id)})


@chat_bp.route("/history", methods=["DELETE"])
@login_required
def clear_history():
    """Archive the player's sessions. Messages stay in the database."""
    archived = ChatService.archive_player_chat(current_user.id)
    return jsonify({"success": True, "archived": archived})
