import uuid

DEFAULT_CODE_LENGTH = 8


def generate_session_code(length=DEFAULT_CODE_LENGTH):
    """Generate a short, shareable session code (upper-case hex)."""
    if not 1 <= length <= 32:
        raise ValueError('session code length must be between 1 and 32')
    return uuid.uuid4().hex[:length].upper()


def generate_participant_id():
    return str(uuid.uuid4())


def normalize_session_code(code):
    # Codes are typed by hand on the join screen
    return (code or '').strip().upper()
