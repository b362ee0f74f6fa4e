"""
DEV-ONLY: Reactive demo transition store.

Tracks whether a demo account switch is in progress so that views rendered
while a login is in flight show a loader instead of flashing "Access Denied".
Each client gets one store, created on first use and shared by reference
from then on; it must not affect production behavior.
"""
import threading
import time
from datetime import datetime, timezone

DEMO_TRANSITION_KEY = 'demo_transition_until'
DEFAULT_TRANSITION_MS = 2000


def now_ms():
    return int(time.time() * 1000)


def parse_deadline(raw):
    """Return the deadline as an int, or None when it is missing or malformed."""
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def _iso(ms):
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


class TransitionStore:

    def __init__(self, storage=None, clock=now_ms, enabled=True, default_duration_ms=DEFAULT_TRANSITION_MS):
        self.storage = storage
        self.default_duration_ms = default_duration_ms
        self.clock = clock
        self.enabled = enabled
        self.active_until = 0
        self.current_transition_id = 0
        self._listeners = set()
        self._lock = threading.RLock()

    def _log(self, message):
        if self.enabled:
            print(f"[DemoTransitionStore] {message}")

    def _notify(self):
        for listener in list(self._listeners):
            # Skip callbacks unsubscribed by an earlier listener in this pass
            if listener not in self._listeners:
                continue
            try:
                listener()
            except Exception as e:
                self._log(f"Listener error: {e}")

    def _persist(self, value):
        if self.storage is None:
            return
        result = self.storage.set(DEMO_TRANSITION_KEY, value)
        if not result.ok:
            self._log(f"Failed to persist transition: {result.error}")

    def _forget(self):
        if self.storage is None:
            return
        result = self.storage.remove(DEMO_TRANSITION_KEY)
        if not result.ok:
            self._log(f"Failed to remove transition: {result.error}")

    def start(self, duration_ms=None):
        """
        Start a demo transition window.

        Returns the transition id, which callers compare against
        get_current_transition_id() before applying late results.
        """
        if not self.enabled:
            return 0
        if duration_ms is None:
            duration_ms = self.default_duration_ms

        with self._lock:
            self.current_transition_id += 1
            transition_id = self.current_transition_id
            self.active_until = self.clock() + duration_ms
            self._persist(self.active_until)

        self._log(f"Started transition window until {_iso(self.active_until)} id: {transition_id}")
        self._notify()
        return transition_id

    def clear(self):
        """Clear the transition immediately once auth state has settled."""
        if not self.enabled:
            return

        with self._lock:
            self.active_until = 0
            self._forget()

        self._log("Cleared transition window")
        self._notify()

    def is_active(self):
        if not self.enabled:
            return False

        with self._lock:
            if self.active_until == 0:
                self._hydrate()

            now = self.clock()
            active = self.active_until > 0 and now < self.active_until

            if self.active_until > 0 and now >= self.active_until:
                self.active_until = 0
                self._forget()

            return active

    def _hydrate(self):
        if self.storage is None:
            return
        result = self.storage.get(DEMO_TRANSITION_KEY)
        if not result.ok or result.value is None:
            return
        until = parse_deadline(result.value)
        if until is not None and self.clock() < until:
            self.active_until = until
        else:
            # Expired or invalid, clean it up
            self._forget()

    def get_current_transition_id(self):
        if not self.enabled:
            return 0
        return self.current_transition_id

    def is_current(self, transition_id):
        return transition_id == self.get_current_transition_id()

    def subscribe(self, callback):
        """Register a zero-argument callback. Returns an unsubscribe callable."""
        if not self.enabled:
            return lambda: None

        self._listeners.add(callback)

        def unsubscribe():
            self._listeners.discard(callback)

        return unsubscribe

    def remaining_time(self):
        if self.active_until == 0:
            return 0
        return max(0, self.active_until - self.clock())

    def snapshot(self):
        return {
            'active': self.is_active(),
            'active_until': self.active_until,
            'transition_id': self.get_current_transition_id(),
            'remaining_ms': self.remaining_time(),
        }
