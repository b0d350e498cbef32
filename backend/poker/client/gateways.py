"""Gateways between a ``SessionStore`` and the realtime store.

A gateway offers the realtime-store primitives the session store needs:

* ``get_session`` / ``set_session`` / ``update_session`` / ``remove_session``
  on ``sessions/{session_id}``
* ``set_participant`` / ``update_participant`` / ``remove_participant`` on
  ``sessions/{session_id}/participants/{participant_id}``
* ``subscribe(session_id)`` returning a snapshot channel
* ``on_disconnect_remove(session_id, participant_id)``, the cleanup hook
  that fires when the gateway's connection drops
"""

import logging
import threading
import uuid
from collections import defaultdict

from flask import current_app, has_app_context
import requests
import socketio

from poker.errors import InvalidRecord, ParticipantNotFound, SessionError, SessionExists, SessionNotFound
from poker.services.sessions import records
from poker.services.sessions.feed import NAMESPACE, SNAPSHOT_EVENT, SessionSnapshot, Subscription

logger = logging.getLogger(__name__)


class LocalGateway:
    """Drives the realtime store of a Flask app in-process."""

    def __init__(self, app, connection_id=None):
        self.app = app
        self.connection_id = connection_id or f"local-{uuid.uuid4().hex}"

    def _call(self, fn, *args):
        # Reuse the active context so callers share one database session
        if has_app_context() and current_app._get_current_object() is self.app:
            return fn(*args)
        with self.app.app_context():
            return fn(*args)

    def get_session(self, session_id):
        return self._call(records.get_session, session_id)

    def set_session(self, session_id, record):
        return self._call(records.set_session, session_id, record)

    def update_session(self, session_id, fields):
        return self._call(records.update_session, session_id, fields)

    def remove_session(self, session_id):
        return self._call(records.remove_session, session_id)

    def set_participant(self, session_id, participant_id, record):
        return self._call(records.set_participant, session_id, participant_id, record)

    def update_participant(self, session_id, participant_id, fields):
        return self._call(records.update_participant, session_id, participant_id, fields)

    def remove_participant(self, session_id, participant_id):
        return self._call(records.remove_participant, session_id, participant_id)

    def subscribe(self, session_id):
        return self.app.extensions['snapshot_feed'].subscribe(session_id)

    def on_disconnect_remove(self, session_id, participant_id):
        self.app.extensions['presence'].register(self.connection_id, session_id, participant_id)

    def disconnect(self):
        """Simulate the client connection dropping."""
        return self._call(self.app.extensions['presence'].disconnect, self.connection_id)


_STATUS_ERRORS = {
    400: InvalidRecord,
    404: SessionNotFound,
    409: SessionExists,
}


class RemoteGateway:
    """Talks to a running server over HTTP and Socket.IO."""

    def __init__(self, base_url, http=None, sio=None, timeout=10):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.http = http or requests.Session()
        self.sio = sio or socketio.Client()
        self._subscriptions = defaultdict(list)
        # (session_id, participant_id) -> participant record to restore
        self._presence = {}
        self._written = {}
        self._lock = threading.Lock()
        self.sio.on('connect', self._on_connect, namespace=NAMESPACE)
        self.sio.on(SNAPSHOT_EVENT, self._on_snapshot, namespace=NAMESPACE)

    # ---- transport ----

    def _url(self, *parts):
        return '/'.join([self.base_url, 'api', 'sessions', *parts])

    def _request(self, method, url, payload=None):
        resp = self.http.request(method, url, json=payload, timeout=self.timeout)
        if resp.status_code < 400:
            return resp.json() if resp.content else None
        try:
            message = (resp.json() or {}).get('error')
        except ValueError:
            message = None
        if resp.status_code == 404 and message == ParticipantNotFound.default_message:
            raise ParticipantNotFound(message)
        error_cls = _STATUS_ERRORS.get(resp.status_code, SessionError)
        raise error_cls(message or f"HTTP {resp.status_code} from {url}")

    def _ensure_connected(self):
        if not self.sio.connected:
            self.sio.connect(self.base_url, namespaces=[NAMESPACE])

    def _on_connect(self):
        """Rejoin rooms and re-register cleanup after a (re)connect.

        An automatic reconnect comes back under a new sid, which belongs to
        no room and carries no presence registrations. The old sid's
        cleanup may already have removed our participants; those are put
        back (without their vote) while the session still exists.
        """
        with self._lock:
            session_ids = list(self._subscriptions)
            presence = sorted(self._presence.items())
        for (session_id, participant_id), record in presence:
            self._restore_participant(session_id, participant_id, record)
            self.sio.emit('subscribe', {'session_id': session_id, 'participant_id': participant_id}, namespace=NAMESPACE)
        for session_id in session_ids:
            self.sio.emit('subscribe', {'session_id': session_id}, namespace=NAMESPACE)

    def _restore_participant(self, session_id, participant_id, record):
        try:
            session = self.get_session(session_id)
            if session is None or participant_id in session.get('participants', {}):
                return
            self.set_participant(session_id, participant_id, {**record, 'vote': None})
        except (requests.RequestException, SessionError):
            logger.exception(f"[gateway-restore-error] session={session_id} participant={participant_id}")
            return
        logger.info(f"[gateway-restore] session={session_id} participant={participant_id}")

    def _on_snapshot(self, data):
        session_id = (data or {}).get('session_id')
        snapshot = SessionSnapshot(session_id, (data or {}).get('session'))
        with self._lock:
            targets = list(self._subscriptions.get(session_id, []))
        for sub in targets:
            sub.put(snapshot)

    # ---- records ----

    def get_session(self, session_id):
        try:
            return self._request('GET', self._url(session_id))
        except SessionNotFound:
            return None

    def set_session(self, session_id, record):
        written = self._request('PUT', self._url(session_id), record)
        with self._lock:
            self._written.update({
                (session_id, pid): participant
                for pid, participant in ((written or record).get('participants') or {}).items()
            })
        return written

    def update_session(self, session_id, fields):
        return self._request('PATCH', self._url(session_id), fields)

    def remove_session(self, session_id):
        self._request('DELETE', self._url(session_id))
        with self._lock:
            for mapping in (self._presence, self._written):
                for key in [key for key in mapping if key[0] == session_id]:
                    del mapping[key]

    def set_participant(self, session_id, participant_id, record):
        written = self._request('PUT', self._url(session_id, 'participants', participant_id), record)
        with self._lock:
            self._written[(session_id, participant_id)] = written or record
        return written

    def update_participant(self, session_id, participant_id, fields):
        return self._request('PATCH', self._url(session_id, 'participants', participant_id), fields)

    def remove_participant(self, session_id, participant_id):
        self._request('DELETE', self._url(session_id, 'participants', participant_id))
        with self._lock:
            self._presence.pop((session_id, participant_id), None)
            self._written.pop((session_id, participant_id), None)

    # ---- subscriptions & presence ----

    def subscribe(self, session_id):
        self._ensure_connected()
        sub = Subscription(self, session_id)
        with self._lock:
            self._subscriptions[session_id].append(sub)
        self.sio.emit('subscribe', {'session_id': session_id}, namespace=NAMESPACE)
        return sub

    def discard(self, sub):
        with self._lock:
            subs = self._subscriptions.get(sub.session_id, [])
            if sub in subs:
                subs.remove(sub)
            last = not subs
            if last:
                self._subscriptions.pop(sub.session_id, None)
        if last and self.sio.connected:
            self.sio.emit('unsubscribe', {'session_id': sub.session_id}, namespace=NAMESPACE)

    def on_disconnect_remove(self, session_id, participant_id):
        # The server ties the registration to this socket's lifetime
        self._ensure_connected()
        with self._lock:
            record = self._written.get((session_id, participant_id)) or {'id': participant_id}
            self._presence[(session_id, participant_id)] = record
        self.sio.emit('subscribe', {'session_id': session_id, 'participant_id': participant_id}, namespace=NAMESPACE)

    def close(self):
        if self.sio.connected:
            self.sio.disconnect()
        self.http.close()
