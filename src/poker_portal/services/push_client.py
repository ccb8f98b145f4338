"""OneSignal push notification client."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://onesignal.com/api/v1/notifications"


@dataclass
class PushResult:
    """Outcome of a push delivery attempt."""
    success: bool
    skipped: bool = False
    response: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'skipped': self.skipped,
            'response': self.response,
            'error': self.error,
        }


class PushClient:
    """Thin binding to the OneSignal REST API.

    Players are addressed by their portal id as an OneSignal external user id.
    Sending never raises; failures are logged and reported in the result.
    """

    def __init__(self, app_id: Optional[str], api_key: Optional[str], api_url: str = DEFAULT_API_URL,
                 enabled: bool = True, timeout: int = 10):
        self.app_id = app_id
        self.api_key = api_key
        self.api_url = api_url
        self.enabled = enabled
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "PushClient":
        """Build a client from Flask config (the current app's when not given)."""
        if config is None:
            config = current_app.config if has_app_context() else {}
        return cls(
            app_id=config.get('ONESIGNAL_APP_ID'),
            api_key=config.get('ONESIGNAL_REST_API_KEY'),
            api_url=config.get('ONESIGNAL_API_URL') or DEFAULT_API_URL,
            enabled=config.get('PUSH_NOTIFICATIONS_ENABLED', True),
            timeout=config.get('PUSH_TIMEOUT_SECONDS', 10),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id and self.api_key)

    def build_payload(self, title: str, message: str, player_ids: Optional[List[int]] = None,
                      data: Optional[Dict[str, Any]] = None, url: Optional[str] = None,
                      segments: Optional[List[str]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'app_id': self.app_id,
            'headings': {'en': title},
            'contents': {'en': message},
            'data': data or {},
        }
        if url:
            payload['url'] = url
        if player_ids:
            payload['include_external_user_ids'] = [str(player_id) for player_id in player_ids]
        else:
            payload['included_segments'] = list(segments or ['All'])
        return payload

    def send(self, title: str, message: str, player_ids: Optional[List[int]] = None,
             data: Optional[Dict[str, Any]] = None, url: Optional[str] = None,
             segments: Optional[List[str]] = None) -> PushResult:
        """Send a push notification.

        Args:
            title: Notification heading
            message: Notification body
            player_ids: Target players; all subscribers when empty
            data: Extra payload delivered to the client
            url: Link opened when the notification is tapped
            segments: OneSignal segments to target when no players are given

        Returns:
            PushResult describing the outcome
        """
        if not self.enabled:
            return PushResult(success=False, skipped=True, error='Push notifications disabled')
        if not self.is_configured:
            logger.warning("OneSignal credentials missing, skipping push notification")
            return PushResult(success=False, skipped=True, error='Push notifications not configured')

        headers = {
            'Authorization': f'Basic {self.api_key}',
            'Content-Type': 'application/json',
        }
        payload = self.build_payload(title, message, player_ids, data, url, segments)

        try:
            response = requests.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"OneSignal request failed: {e}")
            return PushResult(success=False, error=str(e))
        except ValueError as e:
            logger.error(f"OneSignal returned an invalid response: {e}")
            return PushResult(success=False, error='Invalid response from push service')

        if result.get('errors'):
            logger.warning(f"OneSignal reported errors: {result['errors']}")
            return PushResult(success=False, response=result, error=str(result['errors']))

        logger.info(f"Push notification sent: {title} -> {player_ids or 'All'}")
        return PushResult(success=True, response=result)


def truncate_preview(message: str, length: int = 100) -> str:
    """Shorten a chat message for a push preview."""
    return message if len(message) <= length else message[:length] + '...'
