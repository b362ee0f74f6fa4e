"""
AuthGate: single place that decides whether a view may render.

Shows a loader while auth is resolving or during demo transitions.
Does NOT redirect - that is the route guard's job.
"""
from dataclasses import dataclass
from functools import wraps

from flask import current_app, make_response

from demo_session import DemoSignals

SPINNER_PAGE = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>MAGSASA-CARD</title>
<style>
  html, body { height: 100%; margin: 0; }
  .gate { min-height: 100vh; display: flex; align-items: center; justify-content: center; }
  .spinner { width: 32px; height: 32px; border: 3px solid #d1fae5; border-top-color: #059669;
             border-radius: 50%; animation: spin 0.8s linear infinite; }
  @keyframes spin { to { transform: rotate(360deg); } }
</style>
</head>
<body>
<div class="gate"><div class="spinner" role="status" aria-label="Loading"></div></div>
</body>
</html>
"""


@dataclass(frozen=True)
class AuthState:
    is_auth_ready: bool = False
    loading: bool = False
    in_grace_window: bool = False
    in_role_switch_window: bool = False
    demo_session_present: bool = False


def should_block(auth, signals, demo_mode):
    """
    Block while auth is not ready, while it is loading or refetching, and in
    demo mode while a grace or role-switch window is open or a demo session
    is marked present but the user has not been loaded yet.
    """
    in_grace = auth.in_grace_window or signals.in_grace_window
    in_role_switch = auth.in_role_switch_window or signals.in_role_switch_window
    has_demo_session = auth.demo_session_present or signals.demo_session_present

    if not auth.is_auth_ready or auth.loading:
        return True
    if not demo_mode:
        return False
    # The session-marker term can only hold while auth is not ready, which
    # already blocked above; it stays so the rule reads as a whole
    return in_grace or in_role_switch or (has_demo_session and not auth.loading and not auth.is_auth_ready)


class AuthGate:

    def __init__(self, demo_session, transitions=None, demo_mode=False):
        self.demo_session = demo_session
        self.demo_mode = demo_mode
        self.transitions = transitions
        self.transition_active = False
        self._unsubscribe = None
        if transitions is not None:
            self._unsubscribe = transitions.subscribe(
                lambda: self._on_transition_change(transitions)
            )

    def _on_transition_change(self, transitions):
        self.transition_active = transitions.is_active()

    def close(self):
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def signals(self):
        if not self.demo_mode:
            return DemoSignals()
        return self.demo_session.signals()

    def should_block(self, auth):
        # A window that lapsed without a clear() sends no notification
        if self.transition_active and not self.transitions.is_active():
            self.transition_active = False
        if self.transition_active and not auth.in_role_switch_window:
            auth = AuthState(
                is_auth_ready=auth.is_auth_ready,
                loading=auth.loading,
                in_grace_window=auth.in_grace_window,
                in_role_switch_window=True,
                demo_session_present=auth.demo_session_present,
            )
        return should_block(auth, self.signals(), self.demo_mode)

    def render(self, auth, view, *args, **kwargs):
        if self.should_block(auth):
            if self.demo_mode:
                print(f"[AuthGate] Blocking render (ready={auth.is_auth_ready}, loading={auth.loading})")
            response = make_response(SPINNER_PAGE, 200)
            response.headers['X-Auth-Gate'] = 'blocked'
            response.headers['Refresh'] = '1'
            return response
        return view(*args, **kwargs)


def gated(view):
    """Wrap a Flask view so it renders behind the requesting client's AuthGate."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        demo = current_app.extensions['demo']
        auth_cache = demo['auth_cache']()
        auth_cache.ensure_loaded()
        gate = demo['clients'].current().gate
        return gate.render(auth_cache.state(), view, *args, **kwargs)
    return wrapper
