from flask_socketio import join_room, emit
from flask_login import current_user
from clicker import socketio
from clicker.services.session.registry import get_registry, room_for


def handle_connect(auth=None):
    # Anonymous sockets are refused; the session cookie identifies the player
    if not current_user.is_authenticated:
        return False
    room = room_for(current_user.id)
    join_room(room)
    emit('connected', {'message': 'Connected to /ws', 'room': room})


def handle_tap(data=None):
    controller = get_registry().for_user(current_user.id)
    if controller.tap():
        emit('score', {'score': controller.score, 'remaining_seconds': controller.remaining_seconds})
    else:
        emit('tap_rejected', {'state': controller.state.value})


def handle_get_state(data=None):
    emit('state_update', get_registry().snapshot(current_user.id))


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('tap', handle_tap, namespace=namespace)
        socketio.on_event('get_state', handle_get_state, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
