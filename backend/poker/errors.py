"""Errors raised by the session records and surfaced to clients.

Every error carries a human readable message; HTTP routes and socket
handlers send ``str(exc)`` back as-is, and the client store keeps the same
string in its ``error`` field.
"""


class SessionError(Exception):
    """Base class for planning session failures."""

    status_code = 400
    default_message = 'Session request failed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class SessionNotFound(SessionError):
    status_code = 404
    default_message = 'Session not found'


class ParticipantNotFound(SessionError):
    status_code = 404
    default_message = 'Participant not found'


class SessionExists(SessionError):
    status_code = 409
    default_message = 'Session already exists'


class InvalidRecord(SessionError):
    status_code = 400
    default_message = 'Invalid record'
