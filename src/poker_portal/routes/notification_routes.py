"""Notification inbox routes."""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ..services.notification_service import NotificationError, NotificationService
from .utils import error_response

notifications_bp = Blueprint("notifications", __name__)


@notifications_bp.route("/", methods=["GET"])
@login_required
def list_notifications():
    unread_only = request.args.get("unread_only", "false").lower() in ("1", "true", "yes")
    limit = request.args.get("limit", type=int)
    notifications = NotificationService.get_player_notifications(
        current_user.id, limit=limit, unread_only=unread_only
    )
    return jsonify({"success": True, "notifications": notifications})


@notifications_bp.route("/unread-count", methods=["GET"])
@login_required
def unread_count():
    return jsonify({"success": True, "unread_count": NotificationService.get_unread_count(current_user.id)})


@notifications_bp.route("/<int:notification_id>/read", methods=["POST"])
@login_required
def mark_read(notification_id):
    try:
        NotificationService.mark_read(current_user.id, notification_id)
    except NotificationError as e:
        return error_response(str(e), 404)
    return jsonify({"success": True})


@notifications_bp.route("/read-all", methods=["POST"])
@login_required
def mark_all_read():
    return jsonify({"success": True, "updated": NotificationService.mark_all_read(current_user.id)})
