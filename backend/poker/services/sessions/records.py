"""Path-addressed session records.

The realtime store exposes two record paths, ``sessions/{session_id}`` and
``sessions/{session_id}/participants/{participant_id}``, each with get /
set / update / remove. Every successful write publishes the resulting
session snapshot to subscribers. A session whose participant map becomes
empty is deleted.
"""

import functools
import random

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from poker import db
from poker.errors import InvalidRecord, ParticipantNotFound, SessionError, SessionExists, SessionNotFound
from poker.models import PARTICIPANT_NAME_LENGTH, Participant, PlanningSession, now_ms
from .codes import normalize_session_code

SESSION_FIELDS = frozenset({'name', 'is_revealed', 'participants'})
PARTICIPANT_FIELDS = frozenset({'name', 'vote', 'is_revealed', 'avatar'})
MAX_SESSION_NAME_LENGTH = 128
MAX_VOTE_LENGTH = 16
MAX_AVATAR_LENGTH = 32


def _publish(session_id, row):
    feed = current_app.extensions['snapshot_feed']
    feed.publish(session_id, row.to_dict() if row is not None else None)


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


def _writes(fn):
    """Discard partially applied changes when a write is rejected."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SessionError:
            db.session.rollback()
            raise
    return wrapper


def _clean_name(value, field, limit):
    if not isinstance(value, str) or not value.strip():
        raise InvalidRecord(f'{field} must be a non-empty string')
    value = value.strip()
    if len(value) > limit:
        raise InvalidRecord(f'{field} must be at most {limit} characters')
    return value


def _clean_vote(value):
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise InvalidRecord('vote must be a string or null')
    if len(value) > MAX_VOTE_LENGTH:
        raise InvalidRecord(f'vote must be at most {MAX_VOTE_LENGTH} characters')
    return value


def _clean_flag(value, field):
    if not isinstance(value, bool):
        raise InvalidRecord(f'{field} must be a boolean')
    return value


def _clean_avatar(value):
    if value is None:
        return None
    if not isinstance(value, str) or len(value) > MAX_AVATAR_LENGTH:
        raise InvalidRecord(f'avatar must be a string of at most {MAX_AVATAR_LENGTH} characters')
    return value


def _check_fields(fields, allowed, kind):
    if not isinstance(fields, dict):
        raise InvalidRecord(f'{kind} update must be an object')
    unknown = sorted(set(fields) - allowed)
    if unknown:
        raise InvalidRecord(f"Unknown {kind} field(s): {', '.join(unknown)}")


def _apply_participant_fields(participant, fields):
    _check_fields(fields, PARTICIPANT_FIELDS, 'participant')
    if 'name' in fields:
        # Configured limit never exceeds the column width
        limit = min(int(current_app.config.get('MAX_NAME_LENGTH', PARTICIPANT_NAME_LENGTH)), PARTICIPANT_NAME_LENGTH)
        participant.name = _clean_name(fields['name'], 'name', limit)
    if 'vote' in fields:
        participant.vote = _clean_vote(fields['vote'])
    if 'is_revealed' in fields:
        participant.is_revealed = _clean_flag(fields['is_revealed'], 'is_revealed')
    if 'avatar' in fields:
        participant.avatar = _clean_avatar(fields['avatar'])


def _new_participant(participant_id, record):
    if not isinstance(record, dict):
        raise InvalidRecord('participant must be an object')
    if record.get('id', participant_id) != participant_id:
        raise InvalidRecord('participant id does not match its path')
    if not participant_id:
        raise InvalidRecord('participant id is required')
    fields = {k: v for k, v in record.items() if k != 'id'}
    if 'name' not in fields:
        raise InvalidRecord('name must be a non-empty string')
    participant = Participant(id=participant_id, vote=None, is_revealed=False)
    _apply_participant_fields(participant, fields)
    if participant.avatar is None:
        avatars = current_app.config.get('AVATAR_KEYS') or []
        participant.avatar = random.choice(avatars) if avatars else None
    return participant


def _require_session(session_id):
    row = db.session.get(PlanningSession, normalize_session_code(session_id))
    if row is None:
        raise SessionNotFound()
    return row


# ---- sessions/{session_id} ----

def get_session(session_id):
    code = normalize_session_code(session_id)
    if not code:
        return None
    row = db.session.get(PlanningSession, code)
    return row.to_dict() if row else None


@_writes
def set_session(session_id, record):
    """Write a complete session record under a new code."""
    code = normalize_session_code(session_id)
    if not code:
        raise InvalidRecord('session id is required')
    if not isinstance(record, dict):
        raise InvalidRecord('session must be an object')
    if normalize_session_code(record.get('id', code)) != code:
        raise InvalidRecord('session id does not match its path')
    if db.session.get(PlanningSession, code) is not None:
        raise SessionExists()

    participants = record.get('participants')
    if not isinstance(participants, dict) or not participants:
        raise InvalidRecord('A session needs at least one participant')
    creator = record.get('creator')
    if not isinstance(creator, str) or creator not in participants:
        raise InvalidRecord('creator must be one of the participants')
    created_at = record.get('created_at')
    if created_at is not None and (isinstance(created_at, bool) or not isinstance(created_at, int)):
        raise InvalidRecord('created_at must be an integer timestamp')

    row = PlanningSession(
        id=code,
        name=_clean_name(record.get('name'), 'name', MAX_SESSION_NAME_LENGTH),
        creator=creator,
        is_revealed=_clean_flag(record.get('is_revealed', False), 'is_revealed'),
        created_at=created_at or now_ms(),
    )
    for pid, prec in participants.items():
        row.participants.append(_new_participant(pid, prec))
    db.session.add(row)
    _commit()
    current_app.logger.info(f"[session-set] session={code} participants={len(participants)}")
    _publish(code, row)
    return row.to_dict()


@_writes
def update_session(session_id, fields):
    """Partially update a session; ``participants`` holds per-participant partial updates."""
    row = _require_session(session_id)
    _check_fields(fields, SESSION_FIELDS, 'session')
    if 'name' in fields:
        row.name = _clean_name(fields['name'], 'name', MAX_SESSION_NAME_LENGTH)
    if 'is_revealed' in fields:
        row.is_revealed = _clean_flag(fields['is_revealed'], 'is_revealed')
    if 'participants' in fields:
        partials = fields['participants']
        if not isinstance(partials, dict):
            raise InvalidRecord('participants must be an object')
        for pid, partial in partials.items():
            participant = row.participant(pid)
            # Participants that left in the meantime are skipped
            if participant is None:
                continue
            _apply_participant_fields(participant, partial)
    _commit()
    current_app.logger.info(f"[session-update] session={row.id} fields={','.join(sorted(fields))}")
    _publish(row.id, row)
    return row.to_dict()


def remove_session(session_id):
    code = normalize_session_code(session_id)
    row = db.session.get(PlanningSession, code) if code else None
    if row is None:
        return False
    db.session.delete(row)
    _commit()
    current_app.logger.info(f"[session-delete] session={code}")
    _publish(code, None)
    return True


# ---- sessions/{session_id}/participants/{participant_id} ----

@_writes
def set_participant(session_id, participant_id, record):
    row = _require_session(session_id)
    participant = _new_participant(participant_id, record)
    existing = row.participant(participant_id)
    if existing is not None:
        # Replace the subtree in place to keep the row identity
        for field in PARTICIPANT_FIELDS:
            setattr(existing, field, getattr(participant, field))
        participant = existing
    else:
        row.participants.append(participant)
    _commit()
    current_app.logger.info(f"[participant-set] session={row.id} participant={participant_id}")
    _publish(row.id, row)
    return participant.to_dict()


@_writes
def update_participant(session_id, participant_id, fields):
    row = _require_session(session_id)
    participant = row.participant(participant_id)
    if participant is None:
        raise ParticipantNotFound()
    _apply_participant_fields(participant, fields)
    _commit()
    current_app.logger.info(f"[participant-update] session={row.id} participant={participant_id} fields={','.join(sorted(fields))}")
    _publish(row.id, row)
    return participant.to_dict()


def remove_participant(session_id, participant_id):
    """Remove one participant; deletes the session once nobody is left.

    Returns False when the session or participant is already gone, so
    repeated removals (explicit leave followed by disconnect cleanup) are
    harmless.
    """
    code = normalize_session_code(session_id)
    row = db.session.get(PlanningSession, code) if code else None
    if row is None:
        return False
    participant = row.participant(participant_id)
    if participant is None:
        return False
    row.participants.remove(participant)
    if not row.participants:
        db.session.delete(row)
        _commit()
        current_app.logger.info(f"[session-delete] session={code} last participant={participant_id} left")
        _publish(code, None)
        return True
    _commit()
    current_app.logger.info(f"[participant-remove] session={code} participant={participant_id}")
    _publish(code, row)
    return True
