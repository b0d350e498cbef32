import os
import sys
import pytest

# Ensure the backend root (containing the `poker` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from poker import create_app, db, socketio
from poker.client import LocalGateway, SessionStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_CODE_LENGTH = 8
    CARD_VALUES = ['0', '1', '2', '3', '5', '8', '13', '21', '?', '∞']
    AVATAR_KEYS = ['fox', 'owl', 'bear']
    MAX_NAME_LENGTH = 64
    CORS_ORIGINS = ['http://localhost:8081']


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import poker.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def make_store(flask_app):
    """Build stores that each own a separate simulated connection."""
    stores = []

    def _make():
        store = SessionStore(
            LocalGateway(flask_app),
            code_length=flask_app.config['SESSION_CODE_LENGTH'],
            deck=flask_app.config['CARD_VALUES'],
        )
        stores.append(store)
        return store

    yield _make
    for store in stores:
        store.close()


@pytest.fixture()
def make_record():
    return session_record


def session_record(session_id='ABCD1234', creator='p-alice', **extra):
    record = {
        'id': session_id,
        'name': "Alice's Session",
        'participants': {
            creator: {'id': creator, 'name': 'Alice', 'vote': None, 'is_revealed': False},
        },
        'creator': creator,
        'is_revealed': False,
        'created_at': 1700000000000,
    }
    record.update(extra)
    return record
