from flask_socketio import join_room, leave_room, emit
from squares import socketio, db
from squares.models import Game


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect():
    # Rooms are cleaned up by Socket.IO itself
    pass


def _game_id_from(data):
    raw = (data or {}).get('game_id')
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def handle_join_game(data):
    """Subscribe to score updates for one game.

    The joining client gets the game's current state right away so it does
    not have to wait for the next scoring change.
    """
    game_id = _game_id_from(data)
    if game_id is None:
        emit('error', {'message': 'game_id is required'})
        return
    room = f"game:{game_id}"
    join_room(room)
    emit('joined', {'room': room})
    game = db.session.get(Game, game_id)
    if game is not None:
        emit('game_state', game.to_dict())


def handle_leave_game(data):
    game_id = _game_id_from(data)
    if game_id is None:
        emit('error', {'message': 'game_id is required'})
        return
    room = f"game:{game_id}"
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('join_game', handle_join_game, namespace='/ws')
    socketio.on_event('leave_game', handle_leave_game, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('join_game', handle_join_game, namespace='/')
        socketio.on_event('leave_game', handle_leave_game, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
