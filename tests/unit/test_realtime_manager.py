"""Unit tests for the realtime manager."""

from unittest.mock import MagicMock, patch

import pytest
from flask_socketio import SocketIO

from poker_portal.services import websocket_manager
from poker_portal.services.websocket_manager import (
    STAFF_ROOM,
    PortalEvent,
    RealtimeManager,
    broadcast_event,
    init_realtime_manager,
    notify_player,
    notify_staff,
    player_room,
)


@pytest.fixture
def socketio():
    return MagicMock(spec=SocketIO)


@pytest.fixture
def manager(socketio):
    return RealtimeManager(socketio)


@pytest.fixture(autouse=True)
def reset_global_manager():
    websocket_manager.realtime_manager = None
    yield
    websocket_manager.realtime_manager = None


class TestSessions:

    def test_handlers_registered(self, socketio, manager):
        registered = {call.args[0] for call in socketio.on.call_args_list}
        assert {'connect', 'disconnect', 'send_chat', 'chat_sync', 'mark_chat_read', 'ping_portal'} <= registered

    @patch('poker_portal.services.websocket_manager.join_room')
    def test_register_player(self, join_room, manager):
        manager.register_session("sid-1", 5)

        join_room.assert_called_once_with("player_5")
        assert manager.is_player_connected(5)
        assert manager.get_connection_stats() == {'connected_players': 1, 'total_sessions': 1, 'staff_sessions': 0}

    @patch('poker_portal.services.websocket_manager.join_room')
    def test_register_staff_joins_staff_room(self, join_room, manager):
        manager.register_session("sid-1", 2, is_staff=True)

        rooms = [call.args[0] for call in join_room.call_args_list]
        assert rooms == ["player_2", STAFF_ROOM]
        assert manager.get_connection_stats()['staff_sessions'] == 1

    @patch('poker_portal.services.websocket_manager.join_room')
    def test_multiple_tabs(self, join_room, manager):
        manager.register_session("sid-1", 5)
        manager.register_session("sid-2", 5)

        assert manager.unregister_session("sid-1") == 5
        assert manager.is_player_connected(5)
        assert manager.unregister_session("sid-2") == 5
        assert not manager.is_player_connected(5)

    def test_unregister_unknown_session(self, manager):
        assert manager.unregister_session("missing") is None


class TestEmit:

    def test_send_to_player(self, socketio, manager):
        assert manager.send_to_player(5, PortalEvent.CHAT_MESSAGE, {'id': 1}) is True
        socketio.emit.assert_called_once_with(PortalEvent.CHAT_MESSAGE, {'id': 1}, to=player_room(5))

    def test_send_to_staff(self, socketio, manager):
        manager.send_to_staff(PortalEvent.KYC_SUBMITTED, {'player_id': 5})
        socketio.emit.assert_called_once_with(PortalEvent.KYC_SUBMITTED, {'player_id': 5}, to=STAFF_ROOM)

    def test_emit_failure_returns_false(self, socketio, manager):
        socketio.emit.side_effect = RuntimeError("server gone")
        assert manager.send_to_player(5, PortalEvent.NOTIFICATION, {}) is False
        assert manager.broadcast(PortalEvent.TABLE_UPDATE, {}) is False


class TestModuleHelpers:

    def test_helpers_are_noops_without_manager(self):
        assert notify_player(1, PortalEvent.NOTIFICATION, {}) is False
        assert notify_staff(PortalEvent.CHAT_MESSAGE, {}) is False
        assert broadcast_event(PortalEvent.TABLE_UPDATE, {}) is False

    def test_helpers_use_global_manager(self, socketio):
        manager = init_realtime_manager(socketio)
        assert websocket_manager.get_realtime_manager() is manager

        assert notify_player(1, PortalEvent.NOTIFICATION, {'id': 3}) is True
        assert broadcast_event(PortalEvent.TABLE_UPDATE, {'action': 'created'}) is True
        socketio.emit.assert_any_call(PortalEvent.NOTIFICATION, {'id': 3}, to="player_1")
        socketio.emit.assert_any_call(PortalEvent.TABLE_UPDATE, {'action': 'created'})
