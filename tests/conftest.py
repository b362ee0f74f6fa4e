# tests/conftest.py
import pytest

from app import create_app
from models import db, User
from storage import MemoryStorage, StorageAdapter
from demo_clients import DEMO_CLIENT_COOKIE
from demo_transition import TransitionStore
from demo_session import DemoSession

START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now=START_MS):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
        return self.now


class ScopedMemoryStorage:
    """Storage factory handing out one MemoryStorage per scope."""

    def __init__(self, prefix='default'):
        self.prefix = prefix
        self.scopes = {}

    def __call__(self, scope):
        return self.scopes.setdefault(scope, MemoryStorage())

    def data_for(self, client):
        """Demo keys stored for the browser behind a test client."""
        cookie = client.get_cookie(DEMO_CLIENT_COOKIE)
        if cookie is None:
            return {}
        storage = self.scopes.get(f"{self.prefix}:{cookie.value}")
        return storage.data if storage else {}


class BrokenStorage(StorageAdapter):
    """Storage that fails every operation, like localStorage in private mode."""

    def _get(self, key):
        raise OSError("storage unavailable")

    def _set(self, key, value):
        raise OSError("storage unavailable")

    def _remove(self, key):
        raise OSError("storage unavailable")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage, clock):
    return TransitionStore(storage=storage, clock=clock)


@pytest.fixture
def demo_session(storage, clock, store):
    return DemoSession(storage, clock=clock, transitions=store)


@pytest.fixture
def storages():
    return ScopedMemoryStorage()


@pytest.fixture
def app(clock, storages):
    app = create_app('testing', clock=clock, storage_factory=storages)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def deactivate_user(app):
    def _deactivate(username):
        with app.app_context():
            user = User.query.filter_by(username=username).first()
            user.is_active = False
            db.session.commit()
    return _deactivate
