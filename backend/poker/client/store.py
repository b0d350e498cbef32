"""Client-side session store.

The store mirrors one session of the realtime store locally. It never
edits its copy optimistically: after the initial value written by
``create_session`` / ``join_session``, the local session only changes when
a snapshot arrives on the subscription channel (``sync`` / ``listen``).

State lives in an explicit ``SessionState`` handed to the store, and all
remote access goes through the injected gateway, so screens and tests can
share or swap either one.
"""

from dataclasses import dataclass
import logging
from typing import Optional

from poker.errors import SessionNotFound
from poker.models import now_ms
from poker.services.sessions.codes import (
    DEFAULT_CODE_LENGTH,
    generate_participant_id,
    generate_session_code,
    normalize_session_code,
)
from poker.services.sessions.results import summarize_votes

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    current_session: Optional[dict] = None
    participant_id: Optional[str] = None
    loading: bool = False
    error: Optional[str] = None


def _participant_record(participant_id, name):
    return {'id': participant_id, 'name': name, 'vote': None, 'is_revealed': False}


class SessionStore:
    def __init__(self, gateway, state=None, code_length=DEFAULT_CODE_LENGTH, deck=None):
        self.gateway = gateway
        self.state = state if state is not None else SessionState()
        self.code_length = code_length
        self.deck = deck
        self._subscription = None

    # ---- derived views ----

    @property
    def session_id(self):
        session = self.state.current_session
        return session['id'] if session else None

    @property
    def current_participant(self):
        session = self.state.current_session
        if not session or not self.state.participant_id:
            return None
        return session.get('participants', {}).get(self.state.participant_id)

    @property
    def is_host(self):
        session = self.state.current_session
        return bool(session and self.state.participant_id and session.get('creator') == self.state.participant_id)

    @property
    def results(self):
        return summarize_votes(self.state.current_session, self.deck)

    # ---- bookkeeping ----

    def _begin(self):
        self.state.loading = True
        self.state.error = None

    def _fail(self, exc, action):
        self.state.error = str(exc) or f'Failed to {action}'
        self.state.loading = False
        logger.warning(f"[store-error] action={action} session={self.session_id} error={self.state.error}")

    def _undo(self, remove, *path):
        """Take back a write whose follow-up steps failed."""
        self._close_subscription()
        try:
            remove(*path)
        except Exception:
            logger.exception(f"[store-undo-error] path={'/'.join(path)}")
            return
        logger.info(f"[store-undo] path={'/'.join(path)}")

    def _open_subscription(self, session_id):
        self._close_subscription()
        self._subscription = self.gateway.subscribe(session_id)

    def _close_subscription(self):
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def _apply(self, snapshot):
        if snapshot.session_id != self.session_id:
            return
        if snapshot.session is None:
            logger.info(f"[store-deleted] session={snapshot.session_id}")
            self._close_subscription()
            self.state.current_session = None
            self.state.participant_id = None
            return
        self.state.current_session = snapshot.session

    def sync(self):
        """Apply every snapshot already waiting on the channel."""
        if self._subscription is None:
            return 0
        pending = self._subscription.drain()
        for snapshot in pending:
            self._apply(snapshot)
        return len(pending)

    def listen(self, timeout=None):
        """Block until the next snapshot arrives and apply it."""
        if self._subscription is None:
            return False
        snapshot = self._subscription.get(timeout=timeout)
        if snapshot is None:
            return False
        self._apply(snapshot)
        return True

    def close(self):
        self._close_subscription()

    # ---- session actions ----

    def create_session(self, creator_name):
        self._begin()
        try:
            session_id = generate_session_code(self.code_length)
            participant_id = generate_participant_id()
            record = {
                'id': session_id,
                'name': f"{creator_name}'s Session",
                'participants': {participant_id: _participant_record(participant_id, creator_name)},
                'creator': participant_id,
                'is_revealed': False,
                'created_at': now_ms(),
            }
            written = self.gateway.set_session(session_id, record)
            try:
                self.gateway.on_disconnect_remove(session_id, participant_id)
                self._open_subscription(session_id)
            except Exception:
                self._undo(self.gateway.remove_session, session_id)
                raise
        except Exception as exc:
            self._fail(exc, 'create session')
            raise
        self.state.current_session = written or record
        self.state.participant_id = participant_id
        self.state.loading = False
        logger.info(f"[store-create] session={session_id} participant={participant_id}")
        return session_id

    def join_session(self, session_id, participant_name):
        code = normalize_session_code(session_id)
        self._begin()
        try:
            session = self.gateway.get_session(code)
            if session is None:
                raise SessionNotFound()
            participant_id = generate_participant_id()
            participant = self.gateway.set_participant(
                code, participant_id, _participant_record(participant_id, participant_name)
            )
            try:
                self.gateway.on_disconnect_remove(code, participant_id)
                self._open_subscription(code)
            except Exception:
                self._undo(self.gateway.remove_participant, code, participant_id)
                raise
        except Exception as exc:
            self._fail(exc, 'join session')
            raise
        participants = dict(session.get('participants') or {})
        participants[participant_id] = participant
        self.state.current_session = {**session, 'participants': participants}
        self.state.participant_id = participant_id
        self.state.loading = False
        logger.info(f"[store-join] session={code} participant={participant_id}")

    def leave_session(self):
        session_id, participant_id = self.session_id, self.state.participant_id
        if not session_id or not participant_id:
            return
        self._begin()
        try:
            # The realtime store deletes the session once its last participant is removed
            self.gateway.remove_participant(session_id, participant_id)
        except Exception as exc:
            self._fail(exc, 'leave session')
            return
        self._close_subscription()
        self.state.current_session = None
        self.state.participant_id = None
        self.state.loading = False
        logger.info(f"[store-leave] session={session_id} participant={participant_id}")

    # ---- voting actions ----

    def cast_vote(self, vote):
        session_id, participant_id = self.session_id, self.state.participant_id
        if not session_id or not participant_id:
            return
        self._begin()
        try:
            self.gateway.update_participant(session_id, participant_id, {'vote': vote})
        except Exception as exc:
            self._fail(exc, 'cast vote')
            return
        self.state.loading = False
        self.sync()

    def reveal_votes(self):
        session_id = self.session_id
        if not session_id:
            return
        self._begin()
        try:
            self.gateway.update_session(session_id, {'is_revealed': True})
        except Exception as exc:
            self._fail(exc, 'reveal votes')
            return
        self.state.loading = False
        self.sync()

    def reset_votes(self):
        if not self.session_id:
            return
        # Pick up participants that joined since the last snapshot
        self.sync()
        session = self.state.current_session
        if not session:
            return
        self._begin()
        try:
            self.gateway.update_session(session['id'], {
                'is_revealed': False,
                'participants': {pid: {'vote': None} for pid in session.get('participants', {})},
            })
        except Exception as exc:
            self._fail(exc, 'reset votes')
            return
        self.state.loading = False
        self.sync()
