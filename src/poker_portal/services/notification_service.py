"""Portal notifications: persisted inbox, realtime event and push delivery."""

from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import and_, exists, or_

from ..database import db
from ..models.notification import NotificationReceipt, PushNotification
from ..models.player import Player
from .push_client import PushClient
from .websocket_manager import PortalEvent, broadcast_event, notify_player


class NotificationError(Exception):
    """Exception raised for notification errors."""
    pass


class NotificationService:
    """Service class for player notifications.

    A notification with no ``player_id`` is a broadcast. Broadcast reads are
    tracked per player in ``NotificationReceipt`` so one player reading it
    does not mark it read for everyone.
    """

    @staticmethod
    def create_notification(title: str, message: str, player_id: Optional[int] = None,
                            notification_type: str = PushNotification.TYPE_GENERAL,
                            priority: str = 'normal', data: Optional[Dict[str, Any]] = None,
                            created_by: Optional[int] = None, send_push: bool = True) -> PushNotification:
        """Persist a notification and deliver it.

        Args:
            title: Notification heading
            message: Notification body
            player_id: Target player, or None to broadcast
            notification_type: Category used by the client to route taps
            priority: low, normal, high or urgent
            data: Extra payload for the client
            created_by: Staff member who sent it, if any
            send_push: Whether to also send through OneSignal

        Returns:
            PushNotification: The stored notification

        Raises:
            NotificationError: If the input is invalid or the target is unknown
        """
        title = '' if title is None else title
        message = '' if message is None else message
        if not isinstance(title, str) or not isinstance(message, str):
            raise NotificationError("Title and message must be text")
        title = title.strip()
        message = message.strip()
        if not title or not message:
            raise NotificationError("Title and message are required")
        if data is not None and not isinstance(data, dict):
            raise NotificationError("Notification data must be an object")
        if priority not in PushNotification.PRIORITIES:
            raise NotificationError(f"Invalid priority: {priority}")

        player = None
        if player_id is not None:
            player = db.session.get(Player, player_id)
            if not player:
                raise NotificationError(f"Player {player_id} not found")

        notification = PushNotification(
            player_id=player_id,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            data=data or {},
            created_by=created_by,
            is_read=False,
        )
        db.session.add(notification)
        db.session.commit()

        current_app.logger.info(
            f"Notification {notification.id} created for {player_id if player_id is not None else 'all players'}"
        )

        payload = notification.to_dict()
        if player_id is None:
            broadcast_event(PortalEvent.NOTIFICATION, payload)
        else:
            notify_player(player_id, PortalEvent.NOTIFICATION, payload)

        if send_push:
            NotificationService._push(notification, player)

        return notification

    @staticmethod
    def _push(notification: PushNotification, player: Optional[Player]) -> None:
        if player is not None and player.preferences is not None and not player.preferences.push_enabled:
            current_app.logger.debug(f"Player {player.id} has push disabled, skipping push")
            return

        data = dict(notification.data or {})
        data.setdefault('type', notification.notification_type)
        data['notification_id'] = notification.id

        result = PushClient.from_config().send(
            title=notification.title,
            message=notification.message,
            player_ids=[player.id] if player is not None else None,
            data=data,
        )
        if not result.success and not result.skipped:
            current_app.logger.warning(f"Push delivery failed for notification {notification.id}: {result.error}")

    @staticmethod
    def _visible_to(player_id: int):
        return or_(PushNotification.player_id == player_id, PushNotification.player_id.is_(None))

    @staticmethod
    def _unread_clause(player_id: int):
        receipt_exists = exists().where(and_(
            NotificationReceipt.notification_id == PushNotification.id,
            NotificationReceipt.player_id == player_id,
        ))
        return or_(
            and_(PushNotification.player_id == player_id, PushNotification.is_read == False),  # noqa: E712
            and_(PushNotification.player_id.is_(None), ~receipt_exists),
        )

    @staticmethod
    def get_player_notifications(player_id: int, limit: Optional[int] = None,
                                 unread_only: bool = False) -> List[Dict[str, Any]]:
        """Targeted and broadcast notifications for a player, newest first."""
        if limit is None:
            limit = current_app.config.get('NOTIFICATION_HISTORY_LIMIT', 20)
        limit = max(1, min(limit, current_app.config.get('NOTIFICATION_HISTORY_MAX_LIMIT', 100)))

        query = PushNotification.query.filter(NotificationService._visible_to(player_id))
        if unread_only:
            query = query.filter(NotificationService._unread_clause(player_id))
        notifications = query.order_by(
            PushNotification.created_at.desc(), PushNotification.id.desc()
        ).limit(limit).all()

        broadcast_ids = [n.id for n in notifications if n.is_broadcast]
        read_broadcasts = set()
        if broadcast_ids:
            read_broadcasts = {
                row[0] for row in db.session.query(NotificationReceipt.notification_id).filter(
                    NotificationReceipt.player_id == player_id,
                    NotificationReceipt.notification_id.in_(broadcast_ids),
                )
            }

        return [
            n.to_dict(is_read=(n.id in read_broadcasts) if n.is_broadcast else n.is_read)
            for n in notifications
        ]

    @staticmethod
    def mark_read(player_id: int, notification_id: int) -> None:
        notification = db.session.get(PushNotification, notification_id)
        if not notification or (not notification.is_broadcast and notification.player_id != player_id):
            raise NotificationError("Notification not found")

        if notification.is_broadcast:
            receipt = NotificationReceipt.query.filter_by(
                notification_id=notification.id, player_id=player_id
            ).first()
            if receipt is None:
                db.session.add(NotificationReceipt(notification_id=notification.id, player_id=player_id))
        else:
            notification.is_read = True

        db.session.commit()

    @staticmethod
    def mark_all_read(player_id: int) -> int:
        """Mark every visible notification read. Returns how many changed."""
        unread = PushNotification.query.filter(
            NotificationService._visible_to(player_id),
            NotificationService._unread_clause(player_id),
        ).all()

        for notification in unread:
            if notification.is_broadcast:
                db.session.add(NotificationReceipt(notification_id=notification.id, player_id=player_id))
            else:
                notification.is_read = True

        db.session.commit()
        return len(unread)

    @staticmethod
    def get_unread_count(player_id: int) -> int:
        return PushNotification.query.filter(
            NotificationService._visible_to(player_id),
            NotificationService._unread_clause(player_id),
        ).count()
