"""
DEV-only: auto-login bootstrap.

Signs in as a demo user picked by the DEMO_AUTO_ROLE setting or the
?demo_role=... query parameter (farmer | field_officer | manager | supplier).

Runs at most once per browser session: the demo_auto_login_done flag in
session storage is set once an attempt has run, whether it succeeded or
failed, and is never cleared, so a failed attempt is not retried until the
session ends.
"""
from dataclasses import dataclass
from typing import Any, Optional

from markupsafe import escape

from demo_accounts import credentials_for, is_demo_role
from demo_session import DEMO_AUTO_LOGIN_DONE_KEY

IDLE = 'idle'
SKIPPED = 'skipped'
RUNNING = 'running'
SUCCESS = 'success'
ERROR = 'error'
STALE = 'stale'

FAILURE_PAGE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>Auto-login Failed</title></head>
<body style="margin:0">
<div style="min-height:100vh;display:flex;align-items:center;justify-content:center;padding:16px">
  <div style="text-align:center;max-width:28rem">
    <h2>Auto-login Failed</h2>
    <p>{message}</p>
    <a href="{login_path}">Go to login page</a>
  </div>
</div>
</body>
</html>
"""


def resolve_role(env_role=None, url_role=None):
    """Environment setting wins over the URL parameter; unknown roles are ignored."""
    if env_role and is_demo_role(env_role):
        return env_role
    if url_role and is_demo_role(url_role):
        return url_role
    return None


@dataclass
class AutoLoginConfig:
    role: Optional[str] = None
    enabled: bool = False
    already_attempted: bool = False

    @classmethod
    def from_sources(cls, env_role, url_role, enabled, session_storage):
        already_attempted = False
        result = session_storage.get(DEMO_AUTO_LOGIN_DONE_KEY)
        if result.ok:
            already_attempted = result.value == '1'
        return cls(
            role=resolve_role(env_role, url_role),
            enabled=enabled,
            already_attempted=already_attempted,
        )


@dataclass
class AutoLoginResult:
    state: str
    role: Optional[str] = None
    error: Optional[str] = None
    navigation: Any = None


class AutoLogin:

    def __init__(self, config, auth_cache, exchange, navigate, demo_session,
                 session_storage, transitions=None, landing_path='/dashboard'):
        self.config = config
        self.auth_cache = auth_cache
        self.exchange = exchange
        self.navigate = navigate
        self.demo_session = demo_session
        self.session_storage = session_storage
        self.transitions = transitions
        self.landing_path = landing_path
        self.state = IDLE
        self.error = None

    def should_run(self):
        if not self.config.enabled:
            return False
        # Already logged in - skip
        if self.auth_cache.read_current_user():
            return False
        # Already ran this session - skip
        if self.config.already_attempted:
            return False
        return self.config.role is not None

    def run(self):
        if self.state != IDLE:
            return AutoLoginResult(self.state, self.config.role, self.error)

        if not self.should_run():
            self.state = SKIPPED
            return AutoLoginResult(SKIPPED, self.config.role)

        role = self.config.role
        self.state = RUNNING
        transition_id = self.transitions.start() if self.transitions else 0
        print(f"[DEV] auto-login role={role} started")

        try:
            credentials = credentials_for(role)
            outcome = self.exchange(credentials['username'], credentials['password'], role)
            if not outcome or not outcome.get('success') or not outcome.get('user'):
                raise RuntimeError('Demo login returned success=false or no user')
        except Exception as e:
            self.error = getattr(e, 'message', None) or str(e)
            self.state = ERROR
            print(f"[DEV] auto-login role={role} failed: {self.error}")
            self._mark_attempted()
            self._finish(transition_id)
            return AutoLoginResult(ERROR, role, self.error)

        if self.transitions and not self.transitions.is_current(transition_id):
            # A newer transition owns the UI now
            self.state = STALE
            return AutoLoginResult(STALE, role)

        self.auth_cache.write_current_user(outcome['user'])
        self.demo_session.mark_logged_in()
        self._mark_attempted()

        self.auth_cache.refetch()
        print(f"[DEV] auto-login role={role} finished, navigating to {self.landing_path}")
        navigation = self.navigate(self.landing_path)
        self.state = SUCCESS
        self._finish(transition_id)
        return AutoLoginResult(SUCCESS, role, navigation=navigation)

    def _mark_attempted(self):
        result = self.session_storage.set(DEMO_AUTO_LOGIN_DONE_KEY, '1')
        if not result.ok:
            print(f"[DEV] auto-login could not persist one-shot flag: {result.error}")

    def _finish(self, transition_id):
        if self.transitions and self.transitions.is_current(transition_id):
            self.transitions.clear()


def render_failure(message, login_path='/login'):
    return FAILURE_PAGE.format(message=escape(message), login_path=escape(login_path))
