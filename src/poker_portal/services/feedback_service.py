"""Player feedback routed to club staff."""

from typing import List, Optional

from flask import current_app

from ..database import db
from ..models.feedback import PlayerFeedback
from ..models.notification import PushNotification
from ..models.player import Player
from .notification_service import NotificationService
from .websocket_manager import PortalEvent, notify_staff


class FeedbackError(Exception):
    """Exception raised for feedback errors."""
    pass


def _optional_label(value, default: str, label: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise FeedbackError(f"{label} must be text")
    return value.strip().lower() or default


class FeedbackService:
    """Service class for player feedback."""

    @staticmethod
    def submit_feedback(player_id: int, message: str, feedback_type: Optional[str] = None,
                        target_role: Optional[str] = None) -> PlayerFeedback:
        """Store a player's feedback and alert the staff portal.

        Raises:
            FeedbackError: If the message is empty or too long
        """
        if not isinstance(message, str) or not message.strip():
            raise FeedbackError("Feedback message is required")
        max_length = current_app.config.get('FEEDBACK_MAX_LENGTH', 2000)
        if len(message) > max_length:
            raise FeedbackError(f"Feedback message is too long (max {max_length} characters)")

        player = db.session.get(Player, player_id)
        if not player:
            raise FeedbackError("Player not found")

        feedback = PlayerFeedback(
            player_id=player.id,
            message=message.strip(),
            feedback_type=_optional_label(feedback_type, PlayerFeedback.TYPE_DEFAULT, "Feedback type"),
            target_role=_optional_label(target_role, PlayerFeedback.TARGET_DEFAULT, "Target role"),
            status=PlayerFeedback.STATUS_RECEIVED,
        )
        db.session.add(feedback)
        db.session.commit()

        current_app.logger.info(f"Feedback {feedback.id} from player {player.id} for {feedback.target_role}")
        notify_staff(PortalEvent.FEEDBACK_RECEIVED, feedback.to_dict())
        return feedback

    @staticmethod
    def get_player_feedback(player_id: int) -> List[PlayerFeedback]:
        """A player's own feedback, newest first."""
        return PlayerFeedback.query.filter_by(player_id=player_id).order_by(
            PlayerFeedback.created_at.desc(), PlayerFeedback.id.desc()
        ).limit(current_app.config.get('FEEDBACK_HISTORY_LIMIT', 50)).all()

    @staticmethod
    def list_feedback(status: Optional[str] = None) -> List[PlayerFeedback]:
        query = PlayerFeedback.query
        if status:
            if status not in PlayerFeedback.STATUSES:
                raise FeedbackError(f"Invalid status: {status}")
            query = query.filter_by(status=status)
        return query.order_by(PlayerFeedback.created_at.desc(), PlayerFeedback.id.desc()).all()

    @staticmethod
    def update_status(feedback_id: int, status: str, staff_id: int,
                      response: Optional[str] = None) -> PlayerFeedback:
        """Move feedback through review. Resolving or rejecting with a response notifies the player."""
        feedback = db.session.get(PlayerFeedback, feedback_id)
        if not feedback:
            raise FeedbackError("Feedback not found")
        if status not in PlayerFeedback.STATUSES:
            raise FeedbackError(f"Invalid status: {status}")
        if response is not None and not isinstance(response, str):
            raise FeedbackError("Response must be text")

        feedback.status = status
        feedback.reviewed_by = staff_id
        if response and response.strip():
            feedback.response = response.strip()
        db.session.commit()
        current_app.logger.info(f"Feedback {feedback.id} marked {status} by staff {staff_id}")

        if feedback.response and status in (PlayerFeedback.STATUS_RESOLVED, PlayerFeedback.STATUS_REJECTED):
            NotificationService.create_notification(
                title="Reply to your feedback",
                message=feedback.response,
                player_id=feedback.player_id,
                notification_type=PushNotification.TYPE_FEEDBACK,
                data={'feedback_id': feedback.id, 'status': status},
                created_by=staff_id,
            )
        return feedback
