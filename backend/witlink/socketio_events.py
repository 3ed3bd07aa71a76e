from functools import wraps

from flask import current_app, request
from flask_socketio import ConnectionRefusedError, emit

from witlink import socketio
from witlink.errors import AuthenticationError, RoomError


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _coordinator():
    return current_app.extensions['witlink']


def _room_id(data):
    """Room actions accept either the bare room code or an object with roomId/id."""
    if isinstance(data, dict):
        return data.get('roomId') or data.get('id')
    return data


def _field(data, key, default=None):
    return data.get(key, default) if isinstance(data, dict) else default


def room_action(handler):
    """Run a handler with the coordinator and caller sid, reporting failures
    privately to the caller as ``room-error``."""
    @wraps(handler)
    def wrapper(data=None):
        coordinator = _coordinator()
        sid = _get_sid()
        try:
            return handler(coordinator, sid, data)
        except RoomError as exc:
            current_app.logger.info(
                f"[room-error] sid={sid} action={handler.__name__} kind={exc.kind} message={exc.message}"
            )
            coordinator.broadcaster.error(sid, exc)
        except Exception:
            current_app.logger.exception(f"[room-error] sid={sid} action={handler.__name__} unexpected failure")
            coordinator.broadcaster.error(sid, RoomError())
    return wrapper


def handle_connect(auth=None):
    try:
        name = _coordinator().connect(_get_sid(), auth)
    except AuthenticationError as exc:
        raise ConnectionRefusedError(exc.message)
    emit('connected', {'id': _get_sid(), 'name': name})


def handle_disconnect(reason=None):
    _coordinator().disconnect(_get_sid())


@room_action
def handle_create_room(coordinator, sid, data):
    # Ack value is the new room code
    return coordinator.create_room(sid, is_private=_field(data, 'isPrivate', True))


@room_action
def handle_join_room(coordinator, sid, data):
    coordinator.join_room(sid, _room_id(data))


@room_action
def handle_get_room_users(coordinator, sid, data):
    coordinator.get_room_users(sid, _room_id(data))


@room_action
def handle_room_update(coordinator, sid, data):
    coordinator.update_settings(
        sid,
        _room_id(data),
        topic=_field(data, 'topic'),
        difficulty=_field(data, 'difficulty'),
        max_players=_field(data, 'maxPlayers'),
    )


@room_action
def handle_start_game(coordinator, sid, data):
    coordinator.start_game(sid, _room_id(data))


@room_action
def handle_submit_answer(coordinator, sid, data):
    coordinator.submit_answer(sid, _room_id(data), _field(data, 'isCorrect', False))


@room_action
def handle_player_finished(coordinator, sid, data):
    coordinator.player_finished(sid, _room_id(data))


@room_action
def handle_game_over(coordinator, sid, data):
    coordinator.game_over(sid, _room_id(data))


@room_action
def handle_leave_room(coordinator, sid, data):
    coordinator.leave_room(sid, _room_id(data))


@room_action
def handle_message(coordinator, sid, data):
    coordinator.message(sid, _room_id(data), _field(data, 'message'))


ROOM_EVENTS = {
    'create-room': handle_create_room,
    # Name used by older clients
    'make-room': handle_create_room,
    'join-room': handle_join_room,
    'get-room-users': handle_get_room_users,
    'room-update': handle_room_update,
    'start-game': handle_start_game,
    'submit-answer': handle_submit_answer,
    'player-finished': handle_player_finished,
    'game-over': handle_game_over,
    'leave-room': handle_leave_room,
    'message': handle_message,
}


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register connection and room event handlers on the given namespace."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    for event, handler in ROOM_EVENTS.items():
        socketio.on_event(event, handler, namespace=namespace)
