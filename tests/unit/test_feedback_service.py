"""Unit tests for FeedbackService."""

from unittest.mock import patch

import pytest

from poker_portal.database import db
from poker_portal.models.feedback import PlayerFeedback
from poker_portal.models.notification import PushNotification
from poker_portal.services.feedback_service import FeedbackError, FeedbackService
from poker_portal.services.websocket_manager import PortalEvent
from tests.test_helpers import create_test_app, create_test_player, create_test_staff


@pytest.fixture
def app():
    """Create test Flask app."""
    app = create_test_app(FEEDBACK_MAX_LENGTH=50, FEEDBACK_HISTORY_LIMIT=3)
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
def player(app_context):
    return create_test_player()


class TestSubmitFeedback:

    def test_defaults_and_staff_alert(self, player):
        with patch('poker_portal.services.feedback_service.notify_staff') as notify_staff:
            feedback = FeedbackService.submit_feedback(player.id, "  The chai was cold  ")

        assert feedback.message == "The chai was cold"
        assert feedback.feedback_type == PlayerFeedback.TYPE_DEFAULT
        assert feedback.target_role == PlayerFeedback.TARGET_DEFAULT
        assert feedback.status == PlayerFeedback.STATUS_RECEIVED
        notify_staff.assert_called_once()
        assert notify_staff.call_args[0][0] == PortalEvent.FEEDBACK_RECEIVED
        assert notify_staff.call_args[0][1]['player_name'] == player.full_name

    def test_type_and_target_are_normalised(self, player):
        feedback = FeedbackService.submit_feedback(player.id, "Great dealers", "Compliment", " Club_Manager ")

        assert feedback.feedback_type == "compliment"
        assert feedback.target_role == "club_manager"

    @pytest.mark.parametrize("message,error", [
        ("", "Feedback message is required"),
        ("   ", "Feedback message is required"),
        (None, "Feedback message is required"),
        (42, "Feedback message is required"),
        ("x" * 51, "too long"),
    ])
    def test_invalid_message(self, player, message, error):
        with pytest.raises(FeedbackError, match=error):
            FeedbackService.submit_feedback(player.id, message)
        assert PlayerFeedback.query.count() == 0

    def test_non_text_type_is_rejected(self, player):
        with pytest.raises(FeedbackError, match="Feedback type must be text"):
            FeedbackService.submit_feedback(player.id, "Hello", feedback_type=["bug"])

    def test_unknown_player(self, app_context):
        with pytest.raises(FeedbackError, match="Player not found"):
            FeedbackService.submit_feedback(999, "Hello")


class TestFeedbackHistory:

    def test_only_own_feedback_newest_first_and_capped(self, player):
        other = create_test_player("other@example.com")
        for n in range(4):
            FeedbackService.submit_feedback(player.id, f"Note {n}")
        FeedbackService.submit_feedback(other.id, "Not mine")

        history = FeedbackService.get_player_feedback(player.id)

        assert [f.message for f in history] == ["Note 3", "Note 2", "Note 1"]

    def test_staff_list_filters_by_status(self, player):
        staff = create_test_staff()
        first = FeedbackService.submit_feedback(player.id, "First")
        FeedbackService.submit_feedback(player.id, "Second")
        FeedbackService.update_status(first.id, PlayerFeedback.STATUS_IN_REVIEW, staff.id)

        assert [f.message for f in FeedbackService.list_feedback(PlayerFeedback.STATUS_RECEIVED)] == ["Second"]
        assert len(FeedbackService.list_feedback()) == 2
        with pytest.raises(FeedbackError, match="Invalid status"):
            FeedbackService.list_feedback("archived")


class TestUpdateStatus:

    def test_resolving_with_response_notifies_player(self, player):
        staff = create_test_staff()
        feedback = FeedbackService.submit_feedback(player.id, "Music too loud")

        updated = FeedbackService.update_status(feedback.id, PlayerFeedback.STATUS_RESOLVED, staff.id,
                                                response="Turned it down, thanks!")

        assert updated.reviewed_by == staff.id
        assert updated.response == "Turned it down, thanks!"
        notification = PushNotification.query.one()
        assert notification.player_id == player.id
        assert notification.notification_type == PushNotification.TYPE_FEEDBACK
        assert notification.data == {'feedback_id': feedback.id, 'status': 'resolved'}

    def test_review_without_response_is_silent(self, player):
        staff = create_test_staff()
        feedback = FeedbackService.submit_feedback(player.id, "Music too loud")

        FeedbackService.update_status(feedback.id, PlayerFeedback.STATUS_IN_REVIEW, staff.id)
        FeedbackService.update_status(feedback.id, PlayerFeedback.STATUS_RESOLVED, staff.id)

        assert PushNotification.query.count() == 0

    def test_invalid_updates(self, player):
        staff = create_test_staff()
        feedback = FeedbackService.submit_feedback(player.id, "Hi")

        with pytest.raises(FeedbackError, match="Feedback not found"):
            FeedbackService.update_status(999, PlayerFeedback.STATUS_RESOLVED, staff.id)
        with pytest.raises(FeedbackError, match="Invalid status"):
            FeedbackService.update_status(feedback.id, "done", staff.id)
        with pytest.raises(FeedbackError, match="Response must be text"):
            FeedbackService.update_status(feedback.id, PlayerFeedback.STATUS_RESOLVED, staff.id, response=5)
