"""Database health reporting."""

import logging
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .database import db
from .models import ChatSession, Player, PokerTable, SeatRequest

logger = logging.getLogger(__name__)


def get_database_health() -> Dict[str, Any]:
    """Connection check plus the live counts the floor cares about."""
    try:
        db.session.execute(text('SELECT 1'))

        return {
            'status': 'healthy',
            'player_count': Player.query.filter_by(role=Player.ROLE_PLAYER).count(),
            'active_tables': PokerTable.query.filter_by(is_active=True).count(),
            'open_chat_sessions': ChatSession.query.filter(
                ChatSession.status.in_(ChatSession.OPEN_STATUSES)
            ).count(),
            'waiting_requests': SeatRequest.query.filter_by(status=SeatRequest.STATUS_WAITING).count(),
        }

    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database health check failed: {e}")
        return {
            'status': 'unhealthy',
            'error': str(e)
        }
