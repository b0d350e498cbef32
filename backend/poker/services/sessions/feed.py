"""Session change feed.

Every write to a session record ends with ``publish``: the fresh snapshot
(or ``None`` once the session is gone) is pushed to in-process
subscriptions and to the Socket.IO room of that session. Consumers treat
each message as the complete, authoritative value and replace their copy.
"""

from collections import defaultdict, namedtuple
import queue
import threading

SessionSnapshot = namedtuple('SessionSnapshot', ['session_id', 'session'])

SNAPSHOT_EVENT = 'session_snapshot'
NAMESPACE = '/ws'


def room_for_session(session_id):
    return f"session:{session_id}"


class Subscription:
    """A channel of ``SessionSnapshot`` messages for one session."""

    def __init__(self, feed, session_id):
        self.session_id = session_id
        self._feed = feed
        self._queue = queue.Queue()
        self.closed = False

    def put(self, snapshot):
        if not self.closed:
            self._queue.put(snapshot)

    def get(self, timeout=None):
        """Block for the next snapshot; returns None on timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self):
        pending = []
        while True:
            try:
                pending.append(self._queue.get_nowait())
            except queue.Empty:
                return pending

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._feed.discard(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class SnapshotFeed:
    def __init__(self, socketio=None):
        self._socketio = socketio
        self._subscribers = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, session_id):
        sub = Subscription(self, session_id)
        with self._lock:
            self._subscribers[session_id].append(sub)
        return sub

    def discard(self, sub):
        with self._lock:
            subs = self._subscribers.get(sub.session_id, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subscribers.pop(sub.session_id, None)

    def subscriber_count(self, session_id):
        with self._lock:
            return len(self._subscribers.get(session_id, []))

    def publish(self, session_id, session):
        snapshot = SessionSnapshot(session_id, session)
        with self._lock:
            targets = list(self._subscribers.get(session_id, []))
        for sub in targets:
            sub.put(snapshot)
        if self._socketio is not None:
            self._socketio.emit(
                SNAPSHOT_EVENT,
                {'session_id': session_id, 'session': session},
                to=room_for_session(session_id),
                namespace=NAMESPACE,
            )
        return len(targets)
