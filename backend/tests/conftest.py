import os
import sys
import pytest

# Ensure the backend root (containing the `clicker` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from clicker import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    DEFAULT_DURATION_SEC = 3.0
    MIN_DURATION_SEC = 1.0
    MAX_DURATION_SEC = 10.0
    TICK_INTERVAL_SEC = 0.01
    HISTORY_LIMIT = 10
    MIN_PASSWORD_LENGTH = 6
    TICK_CLOCK = 'manual'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    # No app context stays pushed during a test: Flask-Login caches the user
    # on `g`, which would otherwise leak between requests.
    with application.app_context():
        import clicker.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def registry(flask_app):
    return flask_app.extensions['clicker']


@pytest.fixture()
def clock(registry):
    return registry.clock


@pytest.fixture()
def auth_client(client):
    res = client.post('/signup', json={'email': 'player@example.com', 'password': 'secret1'})
    assert res.status_code == 201
    return client


@pytest.fixture()
def sio_client(flask_app, auth_client):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=auth_client,
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
