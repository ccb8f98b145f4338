"""Player/GRE support chat.

The ``chat_sessions``/``chat_messages`` tables are the single record of every
conversation. Each message is numbered within its session by
``ChatSession.last_sequence`` while the session row is locked, so
``(session_id, sequence)`` gives a total order and clients detect gaps by
sequence. A message may carry a ``client_message_id``; resending the same id
returns the stored message instead of creating a second one. Sends that
collide on a unique constraint roll back and retry.
"""

import hashlib
import re
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..database import db
from ..models.chat import ChatMessage, ChatSession
from ..models.notification import PushNotification
from ..models.player import Player
from .notification_service import NotificationService
from .player_manager import PlayerManager, PlayerValidationError
from .push_client import truncate_preview
from .websocket_manager import PortalEvent, notify_player, notify_staff


class ChatError(Exception):
    """Exception raised for chat errors."""
    pass


class ChatSessionClosedError(ChatError):
    """Exception raised when writing to a resolved or archived session."""
    pass


PROFANITY_PATTERNS = [
    r'\b(damn|hell|crap)\b',  # Mild profanity
    r'\b(shit|fuck|bitch|ass)\b',  # Strong profanity
    r'\b(nigger|faggot|retard)\b',  # Slurs
]

DEFAULT_SUBJECT = 'Player support'

LEGACY_STAFF_SENDERS = {'gre', 'staff', 'admin', 'manager', 'cashier', 'super_admin'}


def _snake_case(key: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Naive UTC datetime from a datetime or ISO string, or None."""
    if isinstance(value, datetime):
        parsed = value
    elif not value:
        return None
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


class ChatService:
    """Service class for player support conversations."""

    @staticmethod
    def filter_message(message: str) -> Optional[str]:
        """Mask profanity. Returns the masked text, or None if nothing was masked."""
        filtered_message = message
        for pattern in PROFANITY_PATTERNS:
            filtered_message = re.sub(pattern, lambda m: '*' * len(m.group()),
                                      filtered_message, flags=re.IGNORECASE)
        return filtered_message if filtered_message != message else None

    @staticmethod
    def _clean_body(body: Any) -> str:
        if not isinstance(body, str):
            raise ChatError("Message must be text")
        body = body.strip()
        if not body:
            raise ChatError("Message cannot be empty")
        max_length = current_app.config.get('CHAT_MAX_MESSAGE_LENGTH', 1000)
        if len(body) > max_length:
            raise ChatError(f"Message must be no more than {max_length} characters long")
        return body

    @staticmethod
    def _clean_client_id(client_message_id: Any) -> Optional[str]:
        if client_message_id is None:
            return None
        client_message_id = str(client_message_id).strip()
        if not client_message_id:
            return None
        if len(client_message_id) > 120 or client_message_id.startswith('legacy:'):
            raise ChatError("Invalid client message ID")
        return client_message_id

    @staticmethod
    def _find_existing(sender_type: str, sender_id: Optional[int],
                       client_message_id: Optional[str]) -> Optional[ChatMessage]:
        if client_message_id is None:
            return None
        return ChatMessage.query.filter_by(
            sender_type=sender_type, sender_id=sender_id, client_message_id=client_message_id
        ).first()

    @staticmethod
    def _append(session: ChatSession, sender_type: str, sender_id: Optional[int], sender_name: str,
                body: str, client_message_id: Optional[str] = None, source: str = 'portal',
                created_at: Optional[datetime] = None) -> ChatMessage:
        """Add a message to a locked session without committing."""
        stamp = created_at or datetime.utcnow()
        session.last_sequence += 1
        session.updated_at = stamp

        message = ChatMessage(
            session_id=session.id,
            player_id=session.player_id,
            sequence=session.last_sequence,
            sender_type=sender_type,
            sender_id=sender_id,
            sender_name=sender_name,
            body=body,
            filtered_body=ChatService.filter_message(body),
            client_message_id=client_message_id,
            source=source,
            created_at=stamp,
        )
        db.session.add(message)

        # Writing a message means the writer has seen everything before it
        if sender_type == ChatMessage.SENDER_PLAYER:
            session.player_last_read = session.last_sequence
        elif sender_type == ChatMessage.SENDER_STAFF:
            session.staff_last_read = session.last_sequence
        return message

    @staticmethod
    def _send(sender_type: str, sender_id: Optional[int], client_message_id: Optional[str],
              build: Callable[[], ChatMessage]) -> Tuple[ChatMessage, bool]:
        """Run ``build`` in a transaction, retrying on unique-constraint collisions."""
        retries = max(1, current_app.config.get('CHAT_SEND_RETRIES', 3))

        for attempt in range(1, retries + 1):
            existing = ChatService._find_existing(sender_type, sender_id, client_message_id)
            if existing:
                return existing, False

            try:
                message = build()
                db.session.commit()
            except IntegrityError as e:
                db.session.rollback()
                current_app.logger.warning(f"Chat send collided (attempt {attempt}/{retries}): {e.orig}")
                continue
            except ChatError:
                db.session.rollback()
                raise

            return message, True

        existing = ChatService._find_existing(sender_type, sender_id, client_message_id)
        if existing:
            return existing, False
        raise ChatError("Could not send message, please try again")

    @staticmethod
    def _deliver(message: ChatMessage) -> None:
        payload = {'session': message.session.to_dict(), 'message': message.to_dict()}
        notify_player(message.player_id, PortalEvent.CHAT_MESSAGE, payload)
        notify_staff(PortalEvent.CHAT_MESSAGE, payload)

    @staticmethod
    def _announce_session(session: ChatSession) -> None:
        payload = session.to_dict()
        notify_player(session.player_id, PortalEvent.CHAT_SESSION_UPDATE, payload)
        notify_staff(PortalEvent.CHAT_SESSION_UPDATE, payload)

    @staticmethod
    def _lock_session(session_id: str) -> ChatSession:
        session = db.session.query(ChatSession).filter_by(id=session_id).with_for_update().first()
        if not session:
            raise ChatError("Chat session not found")
        return session

    @staticmethod
    def _get_staff(staff_id: int) -> Player:
        staff = db.session.get(Player, staff_id)
        if not staff or not staff.is_active or not staff.is_staff:
            raise ChatError("Staff member not found")
        return staff

    @staticmethod
    def get_open_session(player_id: int) -> Optional[ChatSession]:
        return ChatSession.query.filter(
            ChatSession.player_id == player_id,
            ChatSession.status.in_(ChatSession.OPEN_STATUSES),
        ).first()

    @staticmethod
    def send_player_message(player_id: int, body: str,
                            client_message_id: Optional[str] = None) -> Tuple[ChatMessage, bool]:
        """Send a message from a player to the GRE desk.

        Opens a pending session when the player has no open one.

        Returns:
            Tuple of (message, created)
        """
        body = ChatService._clean_body(body)
        client_message_id = ChatService._clean_client_id(client_message_id)
        player = db.session.get(Player, player_id)
        if not player or not player.is_active:
            raise ChatError("Player not found")
        sender_name = player.full_name

        def build() -> ChatMessage:
            session = db.session.query(ChatSession).filter(
                ChatSession.player_id == player_id,
                ChatSession.status.in_(ChatSession.OPEN_STATUSES),
            ).with_for_update().first()
            if session is None:
                now = datetime.utcnow()
                session = ChatSession(
                    player_id=player_id,
                    subject=DEFAULT_SUBJECT,
                    status=ChatSession.STATUS_PENDING,
                    priority='medium',
                    last_sequence=0,
                    player_last_read=0,
                    staff_last_read=0,
                    created_at=now,
                    updated_at=now,
                )
                db.session.add(session)
                db.session.flush()
            return ChatService._append(
                session, ChatMessage.SENDER_PLAYER, player_id, sender_name, body, client_message_id
            )

        message, created = ChatService._send(ChatMessage.SENDER_PLAYER, player_id, client_message_id, build)
        if created:
            current_app.logger.info(
                f"Chat message {message.session_id}#{message.sequence} from player {player_id}"
            )
            ChatService._deliver(message)
        return message, created

    @staticmethod
    def send_staff_message(session_id: str, staff_id: int, body: str,
                           client_message_id: Optional[str] = None) -> Tuple[ChatMessage, bool]:
        """Reply to a player. A reply to a pending session activates it and assigns the sender.

        Returns:
            Tuple of (message, created)

        Raises:
            ChatSessionClosedError: If the session is resolved or archived
        """
        body = ChatService._clean_body(body)
        client_message_id = ChatService._clean_client_id(client_message_id)
        staff = ChatService._get_staff(staff_id)
        sender_name = staff.full_name

        def build() -> ChatMessage:
            session = ChatService._lock_session(session_id)
            if not session.is_open:
                raise ChatSessionClosedError(f"Chat session is {session.status}")
            if session.status == ChatSession.STATUS_PENDING:
                session.status = ChatSession.STATUS_ACTIVE
            if session.assigned_staff_id is None:
                session.assigned_staff_id = staff_id
            return ChatService._append(
                session, ChatMessage.SENDER_STAFF, staff_id, sender_name, body, client_message_id
            )

        message, created = ChatService._send(ChatMessage.SENDER_STAFF, staff_id, client_message_id, build)
        if created:
            current_app.logger.info(
                f"Chat message {message.session_id}#{message.sequence} from staff {staff_id}"
            )
            ChatService._deliver(message)
            NotificationService.create_notification(
                title=f"New message from {sender_name}",
                message=truncate_preview(message.display_body),
                player_id=message.player_id,
                notification_type=PushNotification.TYPE_CHAT,
                data={'session_id': message.session_id, 'sequence': message.sequence},
                created_by=staff_id,
            )
        return message, created

    @staticmethod
    def add_system_message(session_id: str, body: str) -> ChatMessage:
        body = ChatService._clean_body(body)

        def build() -> ChatMessage:
            session = ChatService._lock_session(session_id)
            if not session.is_open:
                raise ChatSessionClosedError(f"Chat session is {session.status}")
            return ChatService._append(session, ChatMessage.SENDER_SYSTEM, None, 'System', body)

        message, _ = ChatService._send(ChatMessage.SENDER_SYSTEM, None, None, build)
        ChatService._deliver(message)
        return message

    @staticmethod
    def get_session(session_id: str) -> ChatSession:
        session = db.session.get(ChatSession, session_id)
        if not session:
            raise ChatError("Chat session not found")
        return session

    @staticmethod
    def _session_messages(session: ChatSession, after: int = 0, limit: Optional[int] = None) -> List[ChatMessage]:
        query = ChatMessage.query.filter(
            ChatMessage.session_id == session.id, ChatMessage.sequence > after
        )
        if limit is None:
            return query.order_by(ChatMessage.sequence).all()
        latest = query.order_by(ChatMessage.sequence.desc()).limit(limit).all()
        return list(reversed(latest))

    @staticmethod
    def get_history(player_id: int, include_archived: bool = False,
                    limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """A player's sessions, oldest first, each with its latest messages in sequence order."""
        if limit is None:
            limit = current_app.config.get('CHAT_HISTORY_LIMIT', 200)
        limit = max(1, min(limit, current_app.config.get('CHAT_HISTORY_LIMIT', 200)))

        query = ChatSession.query.filter(ChatSession.player_id == player_id)
        if not include_archived:
            query = query.filter(ChatSession.status != ChatSession.STATUS_ARCHIVED)

        history = []
        for session in query.order_by(ChatSession.created_at, ChatSession.id).all():
            entry = session.to_dict()
            entry['messages'] = [m.to_dict() for m in ChatService._session_messages(session, limit=limit)]
            history.append(entry)
        return history

    @staticmethod
    def _normalize_since(since: Any) -> Dict[str, int]:
        if not since:
            return {}
        if not isinstance(since, dict):
            raise ChatError("since must map session IDs to sequence numbers")

        cursors = {}
        for session_id, sequence in since.items():
            try:
                sequence = int(sequence)
            except (TypeError, ValueError):
                raise ChatError(f"Invalid sequence for session {session_id}")
            cursors[str(session_id)] = max(sequence, 0)
        return cursors

    @staticmethod
    def sync_messages(player_id: Any, since: Any = None) -> Dict[str, Any]:
        """Messages a client has not seen yet.

        Args:
            player_id: Player whose conversations to sync
            since: Mapping of session ID to the last sequence the client holds

        Returns:
            Dict with the relevant sessions and the newer messages in order
        """
        try:
            player_id = PlayerManager.normalize_player_id(player_id)
        except PlayerValidationError as e:
            raise ChatError(str(e))
        cursors = ChatService._normalize_since(since)

        sessions = ChatSession.query.filter(
            ChatSession.player_id == player_id,
            ChatSession.status.in_(ChatSession.OPEN_STATUSES) | ChatSession.id.in_(list(cursors)),
        ).order_by(ChatSession.created_at, ChatSession.id).all()

        messages = []
        for session in sessions:
            messages.extend(
                m.to_dict() for m in ChatService._session_messages(session, after=cursors.get(session.id, 0))
            )

        return {
            'sessions': [session.to_dict() for session in sessions],
            'messages': messages,
            'server_time': datetime.utcnow().isoformat(),
        }

    @staticmethod
    def mark_read(session_id: str, reader_type: str, up_to_sequence: Optional[int] = None) -> ChatSession:
        """Advance a read cursor. Cursors never move backwards or past the last message."""
        if reader_type not in (ChatMessage.SENDER_PLAYER, ChatMessage.SENDER_STAFF):
            raise ChatError(f"Invalid reader type: {reader_type}")

        target = None
        if up_to_sequence is not None:
            try:
                target = int(up_to_sequence)
            except (TypeError, ValueError):
                raise ChatError("Invalid sequence")

        session = ChatService._lock_session(session_id)
        if target is None:
            target = session.last_sequence
        target = min(max(target, 0), session.last_sequence)

        attr = 'player_last_read' if reader_type == ChatMessage.SENDER_PLAYER else 'staff_last_read'
        setattr(session, attr, max(getattr(session, attr), target))
        db.session.commit()

        payload = {'session_id': session.id, 'reader_type': reader_type, 'sequence': getattr(session, attr)}
        notify_player(session.player_id, PortalEvent.CHAT_READ, payload)
        notify_staff(PortalEvent.CHAT_READ, payload)
        return session

    @staticmethod
    def get_unread_count(player_id: int) -> int:
        """Staff and system messages the player has not read yet."""
        return db.session.query(func.count(ChatMessage.id)).join(
            ChatSession, ChatMessage.session_id == ChatSession.id
        ).filter(
            ChatSession.player_id == player_id,
            ChatSession.status != ChatSession.STATUS_ARCHIVED,
            ChatMessage.sequence > ChatSession.player_last_read,
            ChatMessage.sender_type != ChatMessage.SENDER_PLAYER,
        ).scalar() or 0

    @staticmethod
    def accept_session(session_id: str, staff_id: int) -> ChatSession:
        """Take ownership of a session and mark it active."""
        staff = ChatService._get_staff(staff_id)
        session = ChatService._lock_session(session_id)
        if not session.is_open:
            db.session.rollback()
            raise ChatSessionClosedError(f"Chat session is {session.status}")

        session.status = ChatSession.STATUS_ACTIVE
        session.assigned_staff_id = staff.id
        message = ChatService._append(
            session, ChatMessage.SENDER_SYSTEM, None, 'System', f"{staff.full_name} joined the chat"
        )
        db.session.commit()

        current_app.logger.info(f"Chat session {session.id} accepted by staff {staff.id}")
        ChatService._deliver(message)
        ChatService._announce_session(session)
        return session

    @staticmethod
    def resolve_session(session_id: str, staff_id: int) -> ChatSession:
        staff = ChatService._get_staff(staff_id)
        session = ChatService._lock_session(session_id)
        if not session.is_open:
            db.session.rollback()
            raise ChatSessionClosedError(f"Chat session is {session.status}")

        message = ChatService._append(
            session, ChatMessage.SENDER_SYSTEM, None, 'System', f"Chat resolved by {staff.full_name}"
        )
        session.status = ChatSession.STATUS_RESOLVED
        session.resolved_at = datetime.utcnow()
        if session.assigned_staff_id is None:
            session.assigned_staff_id = staff.id
        db.session.commit()

        current_app.logger.info(f"Chat session {session.id} resolved by staff {staff.id}")
        ChatService._deliver(message)
        ChatService._announce_session(session)
        return session

    @staticmethod
    def _archive(sessions: Iterable[ChatSession]) -> int:
        now = datetime.utcnow()
        archived = []
        for session in sessions:
            session.status = ChatSession.STATUS_ARCHIVED
            session.archived_at = now
            archived.append(session)
        db.session.commit()

        for session in archived:
            ChatService._announce_session(session)
        return len(archived)

    @staticmethod
    def archive_player_chat(player_id: int) -> int:
        """Clear a player's chat view. Messages are kept; sessions are archived."""
        sessions = ChatSession.query.filter(
            ChatSession.player_id == player_id,
            ChatSession.status != ChatSession.STATUS_ARCHIVED,
        ).all()
        count = ChatService._archive(sessions)
        current_app.logger.info(f"Archived {count} chat sessions for player {player_id}")
        return count

    @staticmethod
    def archive_stale_sessions(days: Optional[int] = None) -> int:
        """Archive sessions with no activity for ``days`` days."""
        if days is None:
            days = current_app.config.get('CHAT_STALE_SESSION_DAYS', 30)
        cutoff = datetime.utcnow() - timedelta(days=days)

        sessions = ChatSession.query.filter(
            ChatSession.status != ChatSession.STATUS_ARCHIVED,
            ChatSession.updated_at < cutoff,
        ).all()
        count = ChatService._archive(sessions)
        current_app.logger.info(f"Archived {count} chat sessions idle for more than {days} days")
        return count

    @staticmethod
    def list_sessions(status: Optional[str] = None, assigned_staff_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Sessions for the staff portal, most recently active first.

        Without a status filter, open sessions are listed.
        """
        query = ChatSession.query
        if status:
            query = query.filter(ChatSession.status == status)
        else:
            query = query.filter(ChatSession.status.in_(ChatSession.OPEN_STATUSES))
        if assigned_staff_id is not None:
            query = query.filter(ChatSession.assigned_staff_id == assigned_staff_id)
        sessions = query.order_by(ChatSession.updated_at.desc()).all()

        unread = dict(
            db.session.query(ChatMessage.session_id, func.count(ChatMessage.id)).join(
                ChatSession, ChatMessage.session_id == ChatSession.id
            ).filter(
                ChatSession.id.in_([s.id for s in sessions]),
                ChatMessage.sequence > ChatSession.staff_last_read,
                ChatMessage.sender_type == ChatMessage.SENDER_PLAYER,
            ).group_by(ChatMessage.session_id).all()
        ) if sessions else {}

        result = []
        for session in sessions:
            entry = session.to_dict()
            last = ChatService._session_messages(session, limit=1)
            entry['last_message'] = last[0].to_dict() if last else None
            entry['unread_count'] = unread.get(session.id, 0)
            result.append(entry)
        return result

    @staticmethod
    def _legacy_fields(record: Dict[str, Any]) -> Dict[str, Any]:
        return {_snake_case(str(key)): value for key, value in record.items()}

    @staticmethod
    def import_legacy_messages(records: List[Dict[str, Any]], source: str) -> Dict[str, int]:
        """Reconcile rows from the legacy chat tables into the unified history.

        Records may use camelCase or snake_case keys and string or integer
        player IDs. Each record is keyed by its legacy ID (or a content hash
        when it has none), so running an import twice adds nothing the
        second time. Messages land in one resolved session per player and
        source, in timestamp order, with fresh sequences.

        Returns:
            Dict with counts of imported, duplicate and skipped records
        """
        source = (source or '').strip()
        if not source:
            raise ChatError("Import source is required")

        stats = {'imported': 0, 'duplicates': 0, 'skipped': 0}
        prepared = []
        for record in records:
            fields = ChatService._legacy_fields(record)
            try:
                player_id = PlayerManager.normalize_player_id(fields.get('player_id'))
            except PlayerValidationError:
                stats['skipped'] += 1
                continue

            body = fields.get('message') or fields.get('message_text') or fields.get('content') or fields.get('body')
            if not isinstance(body, str) or not body.strip():
                stats['skipped'] += 1
                continue
            body = body.strip()

            created_at = _parse_timestamp(fields.get('created_at') or fields.get('timestamp'))
            legacy_id = fields.get('id')
            if legacy_id in (None, ''):
                digest = hashlib.sha1(f"{player_id}|{created_at}|{body}".encode('utf-8')).hexdigest()
                legacy_id = f"sha1-{digest}"

            sender = str(fields.get('sender_type') or fields.get('sender') or 'player').lower()
            if sender in LEGACY_STAFF_SENDERS:
                sender_type = ChatMessage.SENDER_STAFF
            elif sender == 'system':
                sender_type = ChatMessage.SENDER_SYSTEM
            else:
                sender_type = ChatMessage.SENDER_PLAYER

            prepared.append({
                'key': f"legacy:{source}:{legacy_id}",
                'player_id': player_id,
                'body': body,
                'created_at': created_at,
                'sender_type': sender_type,
                'sender_name': fields.get('sender_name'),
            })

        prepared.sort(key=lambda item: (item['created_at'] or datetime.max, item['key']))

        sessions: Dict[int, ChatSession] = {}
        seen = set()
        subject = f"Imported from {source}"[:200]
        for item in prepared:
            if item['key'] in seen or ChatMessage.query.filter_by(client_message_id=item['key']).first():
                stats['duplicates'] += 1
                continue
            seen.add(item['key'])

            player = db.session.get(Player, item['player_id'])
            if not player:
                stats['skipped'] += 1
                continue

            session = sessions.get(player.id)
            if session is None:
                session = ChatSession.query.filter_by(player_id=player.id, subject=subject).first()
                if session is None:
                    started = item['created_at'] or datetime.utcnow()
                    session = ChatSession(
                        player_id=player.id,
                        subject=subject,
                        status=ChatSession.STATUS_RESOLVED,
                        priority='medium',
                        last_sequence=0,
                        player_last_read=0,
                        staff_last_read=0,
                        created_at=started,
                        updated_at=started,
                        resolved_at=started,
                    )
                    db.session.add(session)
                    db.session.flush()
                sessions[player.id] = session

            if item['sender_type'] == ChatMessage.SENDER_PLAYER:
                sender_id, sender_name = player.id, item['sender_name'] or player.full_name
            else:
                sender_id, sender_name = None, item['sender_name'] or 'Guest Relations'

            ChatService._append(
                session, item['sender_type'], sender_id, sender_name, item['body'],
                client_message_id=item['key'], source=source, created_at=item['created_at'],
            )
            # Imported history counts as read on both sides
            session.player_last_read = session.last_sequence
            session.staff_last_read = session.last_sequence
            stats['imported'] += 1

        db.session.commit()
        current_app.logger.info(f"Legacy chat import from {source}: {stats}")
        return stats
