"""
DEV-ONLY: durable demo session markers.

Grace window, role-switch window, session-present marker and role override
all live in durable storage so they survive restarts. Every read goes to
storage, so a write made by another worker or by a maintenance script is
visible on the next evaluation.
"""
from dataclasses import asdict, dataclass

from demo_transition import DEMO_TRANSITION_KEY, now_ms, parse_deadline

DEMO_GRACE_WINDOW_KEY = 'demo_grace_window_end'
DEMO_ROLE_SWITCH_KEY = 'demo_role_switch_end'
DEMO_SESSION_PRESENT_KEY = 'demo_session_present'
DEMO_ROLE_OVERRIDE_KEY = 'demo_role_override'
DEMO_AUTO_LOGIN_DONE_KEY = 'demo_auto_login_done'

DEMO_KEYS = (
    DEMO_TRANSITION_KEY,
    DEMO_GRACE_WINDOW_KEY,
    DEMO_ROLE_SWITCH_KEY,
    DEMO_SESSION_PRESENT_KEY,
    DEMO_ROLE_OVERRIDE_KEY,
)


@dataclass(frozen=True)
class DemoSignals:
    in_grace_window: bool = False
    in_role_switch_window: bool = False
    demo_session_present: bool = False

    def to_dict(self):
        return asdict(self)


class DemoSession:

    def __init__(self, storage, clock=now_ms, transitions=None, enabled=True,
                 grace_window_ms=3000, role_switch_ms=2000):
        self.storage = storage
        self.clock = clock
        self.transitions = transitions
        self.enabled = enabled
        self.grace_window_ms = grace_window_ms
        self.role_switch_ms = role_switch_ms

    def _log(self, message):
        if self.enabled:
            print(f"[DemoSession] {message}")

    # --- Reads ---

    def _read(self, key):
        result = self.storage.get(key)
        if not result.ok:
            # Unreadable storage counts as inactive
            self._log(f"Failed to read {key}: {result.error}")
            return None
        return result.value

    def window_active(self, key):
        """True while now < stored deadline. Bad or expired deadlines are deleted."""
        raw = self._read(key)
        if raw is None:
            return False
        until = parse_deadline(raw)
        if until is not None and self.clock() < until:
            return True
        self.storage.remove(key)
        return False

    def session_present(self):
        return self._read(DEMO_SESSION_PRESENT_KEY) == '1'

    def role_override(self):
        return self._read(DEMO_ROLE_OVERRIDE_KEY)

    def signals(self):
        if not self.enabled:
            return DemoSignals()
        role_switch = self.window_active(DEMO_ROLE_SWITCH_KEY)
        if self.transitions is not None and self.transitions.is_active():
            role_switch = True
        return DemoSignals(
            in_grace_window=self.window_active(DEMO_GRACE_WINDOW_KEY),
            in_role_switch_window=role_switch,
            demo_session_present=self.session_present(),
        )

    # --- Writes (best effort) ---

    def _write(self, key, value):
        result = self.storage.set(key, value)
        if not result.ok:
            self._log(f"Failed to persist {key}: {result.error}")
        return result.ok

    def arm_window(self, key, duration_ms):
        until = self.clock() + duration_ms
        self._write(key, until)
        return until

    def mark_logged_in(self):
        """Set the session marker and open the post-login grace window."""
        self._write(DEMO_SESSION_PRESENT_KEY, '1')
        until = self.arm_window(DEMO_GRACE_WINDOW_KEY, self.grace_window_ms)
        self._log(f"Demo session present, grace window until {until}")
        return until

    def set_role_override(self, role):
        """
        Persist the demo role override.

        Returns True when the override changed from a previous value, in which
        case a role-switch window is started.
        """
        current = self.role_override()
        self._write(DEMO_ROLE_OVERRIDE_KEY, role)
        if self.enabled and current and current != role:
            until = self.arm_window(DEMO_ROLE_SWITCH_KEY, self.role_switch_ms)
            self._log(f"Role override changed {current} -> {role}, role switch window until {until}")
            return True
        return False

    def effective_role(self, user):
        if not user:
            return None
        if self.enabled:
            override = self.role_override()
            if override:
                return override
        return user.get('role')

    def reset(self):
        """Remove every demo key, as the debug overlay's reset does."""
        for key in DEMO_KEYS:
            result = self.storage.remove(key)
            if not result.ok:
                self._log(f"Failed to remove {key}: {result.error}")
        if self.transitions is not None:
            self.transitions.clear()
