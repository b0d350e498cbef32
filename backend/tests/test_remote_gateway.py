from unittest import mock

import pytest

from poker.client import RemoteGateway, SessionStore
from poker.errors import InvalidRecord, ParticipantNotFound, SessionError, SessionNotFound


def _response(status_code, payload=None):
    resp = mock.Mock()
    resp.status_code = status_code
    resp.content = b'{}' if payload is not None else b''
    resp.json.return_value = payload
    return resp


class FakeSocket:
    def __init__(self):
        self.connected = False
        self.handlers = {}
        self.emitted = []

    def on(self, event, handler=None, namespace=None):
        self.handlers[(event, namespace)] = handler

    def connect(self, url, namespaces=None):
        self.connected = True

    def disconnect(self):
        self.connected = False

    def emit(self, event, data=None, namespace=None):
        self.emitted.append((event, data, namespace))

    def push(self, event, data):
        self.handlers[(event, '/ws')](data)

    def reconnect(self):
        self.connected = True
        self.handlers[('connect', '/ws')]()


@pytest.fixture()
def remote():
    http = mock.Mock()
    sio = FakeSocket()
    return RemoteGateway('http://poker.test/', http=http, sio=sio), http, sio


def test_get_session_maps_404_to_none(remote):
    gateway, http, _ = remote
    http.request.return_value = _response(404, {'error': 'Session not found'})
    assert gateway.get_session('ABCD1234') is None
    http.request.assert_called_with('GET', 'http://poker.test/api/sessions/ABCD1234', json=None, timeout=10)


def test_writes_use_path_resources(remote):
    gateway, http, _ = remote
    http.request.return_value = _response(200, {'vote': '5'})
    assert gateway.update_participant('ABCD1234', 'p1', {'vote': '5'}) == {'vote': '5'}
    http.request.assert_called_with(
        'PATCH', 'http://poker.test/api/sessions/ABCD1234/participants/p1', json={'vote': '5'}, timeout=10
    )
    http.request.return_value = _response(204)
    assert gateway.remove_participant('ABCD1234', 'p1') is None
    http.request.assert_called_with(
        'DELETE', 'http://poker.test/api/sessions/ABCD1234/participants/p1', json=None, timeout=10
    )


def test_error_statuses_raise_domain_errors(remote):
    gateway, http, _ = remote
    http.request.return_value = _response(404, {'error': 'Participant not found'})
    with pytest.raises(ParticipantNotFound):
        gateway.update_participant('ABCD1234', 'ghost', {'vote': '1'})
    http.request.return_value = _response(404, {'error': 'Session not found'})
    with pytest.raises(SessionNotFound):
        gateway.update_session('ABCD1234', {'is_revealed': True})
    http.request.return_value = _response(400, {'error': 'vote must be a string or null'})
    with pytest.raises(InvalidRecord, match='vote must be a string'):
        gateway.update_participant('ABCD1234', 'p1', {'vote': 5})
    http.request.return_value = _response(503, {'error': 'database unavailable'})
    with pytest.raises(SessionError, match='database unavailable'):
        gateway.update_session('ABCD1234', {'is_revealed': True})


def test_subscription_receives_pushed_snapshots(remote):
    gateway, _, sio = remote
    sub = gateway.subscribe('ABCD1234')
    assert sio.connected
    assert sio.emitted == [('subscribe', {'session_id': 'ABCD1234'}, '/ws')]

    sio.push('session_snapshot', {'session_id': 'ABCD1234', 'session': {'id': 'ABCD1234'}})
    sio.push('session_snapshot', {'session_id': 'OTHER000', 'session': {'id': 'OTHER000'}})
    snapshots = sub.drain()
    assert [s.session for s in snapshots] == [{'id': 'ABCD1234'}]

    sub.close()
    assert sio.emitted[-1] == ('unsubscribe', {'session_id': 'ABCD1234'}, '/ws')


def test_presence_registration_goes_over_the_socket(remote):
    gateway, _, sio = remote
    gateway.on_disconnect_remove('ABCD1234', 'p1')
    assert sio.emitted == [('subscribe', {'session_id': 'ABCD1234', 'participant_id': 'p1'}, '/ws')]
    gateway.close()
    assert not sio.connected


def test_store_over_remote_gateway_join_not_found(remote):
    gateway, http, _ = remote
    http.request.return_value = _response(404, {'error': 'Session not found'})
    store = SessionStore(gateway)
    with pytest.raises(SessionNotFound):
        store.join_session('abcd1234', 'Bob')
    assert store.state.error == 'Session not found'
    assert store.state.current_session is None


BOB = {'id': 'p-bob', 'name': 'Bob', 'vote': '5', 'is_revealed': False, 'avatar': 'owl'}
ALICE = {'id': 'p-alice', 'name': 'Alice', 'vote': None, 'is_revealed': False, 'avatar': 'fox'}


def _joined(remote):
    gateway, http, sio = remote
    http.request.return_value = _response(200, BOB)
    gateway.set_participant('ABCD1234', 'p-bob', BOB)
    gateway.on_disconnect_remove('ABCD1234', 'p-bob')
    sub = gateway.subscribe('ABCD1234')
    sio.emitted.clear()
    http.request.reset_mock()
    return sub


def test_reconnect_restores_participant_and_rejoins_room(remote):
    gateway, http, sio = remote
    sub = _joined(remote)

    # The old connection's cleanup removed Bob before the new sid came up
    http.request.side_effect = [
        _response(200, {'id': 'ABCD1234', 'participants': {'p-alice': ALICE}}),
        _response(200, {**BOB, 'vote': None}),
    ]
    sio.reconnect()
    assert http.request.call_args_list == [
        mock.call('GET', 'http://poker.test/api/sessions/ABCD1234', json=None, timeout=10),
        mock.call('PUT', 'http://poker.test/api/sessions/ABCD1234/participants/p-bob',
                  json={**BOB, 'vote': None}, timeout=10),
    ]
    assert sio.emitted == [
        ('subscribe', {'session_id': 'ABCD1234', 'participant_id': 'p-bob'}, '/ws'),
        ('subscribe', {'session_id': 'ABCD1234'}, '/ws'),
    ]

    sio.push('session_snapshot', {'session_id': 'ABCD1234', 'session': {'id': 'ABCD1234'}})
    assert [s.session for s in sub.drain()] == [{'id': 'ABCD1234'}]


def test_reconnect_keeps_surviving_participant(remote):
    gateway, http, sio = remote
    _joined(remote)
    http.request.return_value = _response(200, {'id': 'ABCD1234', 'participants': {'p-bob': BOB}})
    sio.reconnect()
    assert [c.args[0] for c in http.request.call_args_list] == ['GET']
    assert ('subscribe', {'session_id': 'ABCD1234', 'participant_id': 'p-bob'}, '/ws') in sio.emitted


def test_reconnect_after_leave_only_rejoins_room(remote):
    gateway, http, sio = remote
    _joined(remote)
    http.request.return_value = _response(204)
    gateway.remove_participant('ABCD1234', 'p-bob')
    http.request.reset_mock()
    sio.reconnect()
    http.request.assert_not_called()
    assert sio.emitted == [('subscribe', {'session_id': 'ABCD1234'}, '/ws')]
