from flask import current_app, request
from flask_socketio import join_room, leave_room, emit
from poker.services.sessions import records
from poker.services.sessions.codes import normalize_session_code
from poker.services.sessions.feed import SNAPSHOT_EVENT, room_for_session


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _presence():
    return current_app.extensions['presence']


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # The connection dropped without an explicit leave: remove every
    # participant this socket registered for cleanup
    removed = _presence().disconnect(_get_sid())
    if removed:
        current_app.logger.info(f"[disconnect] sid={_get_sid()} removed={removed} reason={reason}")


def handle_subscribe(data):
    session_id = normalize_session_code((data or {}).get('session_id'))
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    session = records.get_session(session_id)
    if session is None:
        emit('error', {'message': 'Session not found', 'session_id': session_id})
        return
    room = room_for_session(session_id)
    join_room(room)
    participant_id = (data or {}).get('participant_id')
    if participant_id:
        _presence().register(_get_sid(), session_id, participant_id)
    emit('subscribed', {'session_id': session_id, 'room': room})
    # Subscribers always start from the current value
    emit(SNAPSHOT_EVENT, {'session_id': session_id, 'session': session})


def handle_unsubscribe(data):
    session_id = normalize_session_code((data or {}).get('session_id'))
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    room = room_for_session(session_id)
    leave_room(room)
    emit('unsubscribed', {'session_id': session_id, 'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from poker import socketio

    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('subscribe', handle_subscribe, namespace=namespace)
        socketio.on_event('unsubscribe', handle_unsubscribe, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
