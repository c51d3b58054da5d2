import os
import sys
import pytest
from decimal import Decimal

# Ensure the backend root (containing the `casino` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from casino import create_app, db, socketio
from casino.services.games.crash import live_rounds

PASSWORD = 'Secret1!'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    APP_URL = 'http://casino.test'
    STARTING_BALANCE = '1000.00'
    ALLOWED_EMAIL_DOMAIN = '@gmail.com'
    RESET_TOKEN_TTL_SEC = 3600
    MAIL_SUPPRESS_SEND = True
    CRASH_TICK_MS = 50
    CRASH_TICK_STEP = '0.01'
    CORS_ORIGINS = ['http://localhost:5173']
    # Low bcrypt cost keeps the suite fast
    BCRYPT_LOG_ROUNDS = 4


def _build_app(config_class):
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import casino.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()
    live_rounds.clear()


@pytest.fixture()
def flask_app():
    yield from _build_app(TestConfig)


@pytest.fixture()
def file_app(tmp_path):
    """App backed by an on-disk SQLite file, for tests that use threads."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'casino.db'}"
    yield from _build_app(FileConfig)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_user(flask_app):
    """Create an account directly, verified unless told otherwise."""
    from casino.models import User

    def _make(username='alice', email=None, password=PASSWORD, verified=True, balance='1000.00', role='user'):
        user = User(
            username=username,
            email=email or f'{username}@gmail.com',
            email_verified=verified,
            balance=Decimal(balance),
            role=role,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def logged_in(client, make_user):
    user = make_user()
    res = client.post('/api/auth/login', json={'login': user.username, 'password': PASSWORD})
    assert res.status_code == 200
    return user


@pytest.fixture()
def sio_client(flask_app, client, logged_in):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=client,
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
