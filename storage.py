"""
Key/value storage adapters for demo session state.

Every adapter method returns a StorageResult instead of raising, so call
sites decide whether a failure is worth logging. Adapters hold no cached
values: each get() reads the backing store, so writes made by another
adapter or another worker process are seen on the next read.
"""
from dataclasses import dataclass
from typing import Any, Optional

from flask import session as flask_session

from models import db, DemoStateEntry


@dataclass(frozen=True)
class StorageResult:
    ok: bool
    value: Optional[str] = None
    error: Optional[Exception] = None

    @classmethod
    def success(cls, value=None):
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error):
        return cls(ok=False, error=error)


class StorageAdapter:
    """Base adapter. Subclasses implement _get, _set and _remove."""

    def get(self, key) -> StorageResult:
        try:
            return StorageResult.success(self._get(key))
        except Exception as e:
            return StorageResult.failure(e)

    def set(self, key, value) -> StorageResult:
        try:
            self._set(key, str(value))
        except Exception as e:
            return StorageResult.failure(e)
        return StorageResult.success(str(value))

    def remove(self, key) -> StorageResult:
        try:
            self._remove(key)
        except Exception as e:
            return StorageResult.failure(e)
        return StorageResult.success()

    def _get(self, key) -> Optional[str]:
        raise NotImplementedError

    def _set(self, key, value):
        raise NotImplementedError

    def _remove(self, key):
        raise NotImplementedError


class MemoryStorage(StorageAdapter):
    """Process-local storage. Used in tests and when no database is bound."""

    def __init__(self, initial=None):
        self.data = dict(initial or {})

    def _get(self, key):
        return self.data.get(key)

    def _set(self, key, value):
        self.data[key] = value

    def _remove(self, key):
        self.data.pop(key, None)


class DatabaseStorage(StorageAdapter):
    """Durable storage on the demo_state table, namespaced by scope."""

    def __init__(self, scope='default'):
        self.scope = scope

    def _entry(self, key):
        return DemoStateEntry.query.filter_by(scope=self.scope, key=key).first()

    def _get(self, key):
        entry = self._entry(key)
        return entry.value if entry else None

    def _set(self, key, value):
        try:
            entry = self._entry(key)
            if entry:
                entry.value = value
            else:
                db.session.add(DemoStateEntry(scope=self.scope, key=key, value=value))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def _remove(self, key):
        try:
            DemoStateEntry.query.filter_by(scope=self.scope, key=key).delete(synchronize_session=False)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise


class SessionStorage(StorageAdapter):
    """Session-lifetime storage over the Flask session cookie."""

    def __init__(self, session_source=None):
        self._session_source = session_source or (lambda: flask_session)

    @property
    def session(self) -> Any:
        return self._session_source()

    def _get(self, key):
        value = self.session.get(key)
        return None if value is None else str(value)

    def _set(self, key, value):
        self.session[key] = value

    def _remove(self, key):
        self.session.pop(key, None)
