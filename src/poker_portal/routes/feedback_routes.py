"""Player feedback routes."""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from ..services.feedback_service import FeedbackError, FeedbackService
from .utils import error_response, json_body

feedback_bp = Blueprint("feedback", __name__)


@feedback_bp.route("/", methods=["POST"])
@login_required
def submit_feedback():
    data = json_body()
    try:
        feedback = FeedbackService.submit_feedback(
            current_user.id,
            data.get("message"),
            feedback_type=data.get("type"),
            target_role=data.get("target_role"),
        )
    except FeedbackError as e:
        return error_response(str(e))
    return jsonify({"success": True, "feedback": feedback.to_dict()}), 201


@feedback_bp.route("/", methods=["GET"])
@login_required
def my_feedback():
    feedback = FeedbackService.get_player_feedback(current_user.id)
    return jsonify({"success": True, "feedback": [f.to_dict() for f in feedback]})
