"""Realtime delivery over Flask-SocketIO.

Every authenticated connection joins the room ``player_<id>``; staff
connections also join ``staff_portal``. The database stays the source of
truth: events are a delivery hint and clients recover missed messages with
``chat_sync``.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Set

from flask import request
from flask_login import current_user
from flask_socketio import SocketIO, disconnect, emit, join_room

logger = logging.getLogger(__name__)

STAFF_ROOM = "staff_portal"


def player_room(player_id: int) -> str:
    return f"player_{player_id}"


class PortalEvent:
    """Event types for real-time communication."""
    CONNECTED = "connected"
    CHAT_MESSAGE = "chat_message"
    CHAT_ACK = "chat_ack"
    CHAT_SYNC = "chat_sync"
    CHAT_READ = "chat_read"
    CHAT_SESSION_UPDATE = "chat_session_update"
    NOTIFICATION = "notification"
    BALANCE_UPDATED = "balance_updated"
    PLAYER_BALANCE_UPDATE = "player_balance_update"
    KYC_STATUS_UPDATE = "kyc_status_update"
    KYC_SUBMITTED = "kyc_submitted"
    WAITLIST_UPDATE = "waitlist_update"
    SEAT_ASSIGNED = "seat_assigned"
    TABLE_UPDATE = "table_update"
    CASHIER_UPDATE = "cashier_update"
    FOOD_ORDER = "new_food_order"
    FOOD_ORDER_UPDATE = "food_order_update"
    FEEDBACK_RECEIVED = "feedback_received"
    PONG = "pong_portal"
    ERROR = "error"


class RealtimeManager:
    """Manager for Socket.IO connections and portal events."""

    def __init__(self, socketio: SocketIO):
        """Initialize the realtime manager.

        Args:
            socketio: Flask-SocketIO instance
        """
        self.socketio = socketio
        self.player_sessions: Dict[int, Set[str]] = {}  # player_id -> session ids
        self.session_players: Dict[str, int] = {}  # session_id -> player_id
        self.staff_sessions: Set[str] = set()

        self._register_handlers()

        logger.info("Realtime manager initialized")

    def _register_handlers(self):
        """Register Socket.IO event handlers."""

        @self.socketio.on('connect')
        def handle_connect(auth=None):
            """Handle client connection."""
            if not current_user.is_authenticated:
                logger.warning("Unauthenticated connection attempt")
                disconnect()
                return False

            self.register_session(request.sid, current_user.id, current_user.is_staff)

            emit(PortalEvent.CONNECTED, {
                'player_id': current_user.id,
                'is_staff': current_user.is_staff,
                'timestamp': datetime.utcnow().isoformat()
            })
            return True

        @self.socketio.on('disconnect')
        def handle_disconnect(*args):
            """Handle client disconnection."""
            player_id = self.unregister_session(request.sid)
            if player_id is not None:
                logger.info(f"Player {player_id} disconnected")

        @self.socketio.on('send_chat')
        def handle_send_chat(data):
            """Send a chat message through the same path as the REST API."""
            from .chat_service import ChatError, ChatService

            data = data or {}
            body = data.get('message', '')
            client_message_id = data.get('client_message_id')

            try:
                if current_user.is_staff:
                    session_id = data.get('session_id')
                    if not session_id:
                        emit(PortalEvent.ERROR, {'message': 'Session ID required'})
                        return {'success': False, 'error': 'Session ID required'}
                    message, created = ChatService.send_staff_message(
                        session_id, current_user.id, body, client_message_id
                    )
                else:
                    message, created = ChatService.send_player_message(
                        current_user.id, body, client_message_id
                    )
            except ChatError as e:
                emit(PortalEvent.ERROR, {'message': str(e)})
                return {'success': False, 'error': str(e)}

            ack = {'success': True, 'created': created, 'message': message.to_dict()}
            emit(PortalEvent.CHAT_ACK, ack)
            return ack

        @self.socketio.on('chat_sync')
        def handle_chat_sync(data):
            """Return messages newer than the client's per-session cursors."""
            from .chat_service import ChatError, ChatService

            data = data or {}
            try:
                if current_user.is_staff:
                    player_id = data.get('player_id')
                    if player_id is None:
                        emit(PortalEvent.ERROR, {'message': 'Player ID required'})
                        return {'success': False, 'error': 'Player ID required'}
                else:
                    player_id = current_user.id
                result = ChatService.sync_messages(player_id, data.get('since'))
            except ChatError as e:
                emit(PortalEvent.ERROR, {'message': str(e)})
                return {'success': False, 'error': str(e)}

            emit(PortalEvent.CHAT_SYNC, result)
            return result

        @self.socketio.on('mark_chat_read')
        def handle_mark_chat_read(data):
            """Advance the reader's cursor for a session."""
            from .chat_service import ChatError, ChatService

            data = data or {}
            session_id = data.get('session_id')
            reader_type = 'staff' if current_user.is_staff else 'player'
            try:
                session = ChatService.get_session(session_id)
                if not current_user.is_staff and session.player_id != current_user.id:
                    raise ChatError("Chat session not found")
                session = ChatService.mark_read(session_id, reader_type, data.get('sequence'))
            except ChatError as e:
                emit(PortalEvent.ERROR, {'message': str(e)})
                return {'success': False, 'error': str(e)}

            return {'success': True, 'session': session.to_dict()}

        @self.socketio.on('ping_portal')
        def handle_ping(data=None):
            emit(PortalEvent.PONG, {'timestamp': datetime.utcnow().isoformat()})

    def register_session(self, session_id: str, player_id: int, is_staff: bool = False) -> None:
        """Track a connection and put it in its rooms."""
        self.player_sessions.setdefault(player_id, set()).add(session_id)
        self.session_players[session_id] = player_id
        join_room(player_room(player_id))
        if is_staff:
            self.staff_sessions.add(session_id)
            join_room(STAFF_ROOM)

        logger.info(f"Player {player_id} connected with session {session_id} (staff={is_staff})")

    def unregister_session(self, session_id: str) -> Optional[int]:
        """Forget a connection. Returns the player it belonged to."""
        player_id = self.session_players.pop(session_id, None)
        self.staff_sessions.discard(session_id)
        if player_id is not None:
            sessions = self.player_sessions.get(player_id, set())
            sessions.discard(session_id)
            if not sessions:
                self.player_sessions.pop(player_id, None)
        return player_id

    def send_to_player(self, player_id: int, event: str, data: Dict[str, Any]) -> bool:
        """Send an event to every connection of a player.

        Args:
            player_id: ID of the player
            event: Event name
            data: Event data

        Returns:
            True if the emit was issued, False otherwise
        """
        try:
            self.socketio.emit(event, data, to=player_room(player_id))
            logger.debug(f"Sent {event} to player {player_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to send {event} to player {player_id}: {e}")
            return False

    def send_to_staff(self, event: str, data: Dict[str, Any]) -> bool:
        """Send an event to the staff portal room."""
        try:
            self.socketio.emit(event, data, to=STAFF_ROOM)
            logger.debug(f"Sent {event} to staff")
            return True
        except Exception as e:
            logger.error(f"Failed to send {event} to staff: {e}")
            return False

    def broadcast(self, event: str, data: Dict[str, Any]) -> bool:
        """Send an event to every connected client."""
        try:
            self.socketio.emit(event, data)
            logger.debug(f"Broadcasted {event}")
            return True
        except Exception as e:
            logger.error(f"Failed to broadcast {event}: {e}")
            return False

    def is_player_connected(self, player_id: int) -> bool:
        return player_id in self.player_sessions

    def get_connection_stats(self) -> Dict[str, Any]:
        """Get connection statistics.

        Returns:
            Dictionary with connection statistics
        """
        return {
            'connected_players': len(self.player_sessions),
            'total_sessions': len(self.session_players),
            'staff_sessions': len(self.staff_sessions),
        }


# Global realtime manager instance (initialized in the app factory)
realtime_manager: Optional[RealtimeManager] = None


def init_realtime_manager(socketio: SocketIO) -> RealtimeManager:
    """Initialize the global realtime manager.

    Args:
        socketio: Flask-SocketIO instance

    Returns:
        RealtimeManager instance
    """
    global realtime_manager
    realtime_manager = RealtimeManager(socketio)
    return realtime_manager


def get_realtime_manager() -> Optional[RealtimeManager]:
    """Get the global realtime manager instance, or None if not initialized."""
    return realtime_manager


def notify_player(player_id: int, event: str, data: Dict[str, Any]) -> bool:
    """Emit to a player's room if a realtime manager is running."""
    manager = get_realtime_manager()
    if manager is None:
        return False
    return manager.send_to_player(player_id, event, data)


def notify_staff(event: str, data: Dict[str, Any]) -> bool:
    """Emit to the staff room if a realtime manager is running."""
    manager = get_realtime_manager()
    if manager is None:
        return False
    return manager.send_to_staff(event, data)


def broadcast_event(event: str, data: Dict[str, Any]) -> bool:
    """Emit to everyone if a realtime manager is running."""
    manager = get_realtime_manager()
    if manager is None:
        return False
    return manager.broadcast(event, data)
