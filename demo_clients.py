"""
DEV-ONLY: per-client demo coordination.

Browser storage belongs to a single browser, so every client gets its own
durable scope, transition store, demo session and gate. A client is named by
a random id kept in a long-lived cookie, which outlives the Flask session
just as localStorage outlives sessionStorage.
"""
import re
import threading
import uuid
from dataclasses import dataclass

from flask import g, request

from auth_gate import AuthGate
from demo_session import DemoSession
from demo_transition import DEFAULT_TRANSITION_MS, TransitionStore, now_ms
from storage import DatabaseStorage

DEMO_CLIENT_COOKIE = 'demo_client'
CLIENT_COOKIE_MAX_AGE = 365 * 24 * 60 * 60

_CLIENT_ID = re.compile(r'^[0-9a-f]{32}$')


@dataclass
class DemoClient:
    client_id: str
    storage: object
    transitions: TransitionStore
    session: DemoSession
    gate: AuthGate


class DemoClients:

    def __init__(self, storage_factory=None, clock=now_ms, enabled=True, scope_prefix='default',
                 transition_ms=DEFAULT_TRANSITION_MS, grace_window_ms=3000, role_switch_ms=2000):
        self.storage_factory = storage_factory or DatabaseStorage
        self.clock = clock
        self.enabled = enabled
        self.scope_prefix = scope_prefix
        self.transition_ms = transition_ms
        self.grace_window_ms = grace_window_ms
        self.role_switch_ms = role_switch_ms
        self._clients = {}
        self._lock = threading.Lock()

    def scope_for(self, client_id):
        return f"{self.scope_prefix}:{client_id}"

    def get(self, client_id):
        with self._lock:
            client = self._clients.get(client_id)
            if client is None:
                client = self._build(client_id)
                self._clients[client_id] = client
            return client

    def _build(self, client_id):
        storage = self.storage_factory(self.scope_for(client_id))
        transitions = TransitionStore(
            storage=storage,
            clock=self.clock,
            enabled=self.enabled,
            default_duration_ms=self.transition_ms,
        )
        session = DemoSession(
            storage,
            clock=self.clock,
            transitions=transitions,
            enabled=self.enabled,
            grace_window_ms=self.grace_window_ms,
            role_switch_ms=self.role_switch_ms,
        )
        gate = AuthGate(session, transitions=transitions, demo_mode=self.enabled)
        return DemoClient(client_id, storage, transitions, session, gate)

    def __len__(self):
        return len(self._clients)

    # --- Flask request binding ---

    def init_app(self, app):
        app.before_request(self._bind_request)
        app.after_request(self._remember_client)

    def _bind_request(self):
        client_id = request.cookies.get(DEMO_CLIENT_COOKIE, '')
        g.demo_client_is_new = not _CLIENT_ID.match(client_id)
        if g.demo_client_is_new:
            client_id = uuid.uuid4().hex
        g.demo_client = self.get(client_id)

    def _remember_client(self, response):
        if g.get('demo_client_is_new'):
            response.set_cookie(
                DEMO_CLIENT_COOKIE,
                g.demo_client.client_id,
                max_age=CLIENT_COOKIE_MAX_AGE,
                httponly=True,
                samesite='Lax'
            )
        return response

    def current(self):
        return g.demo_client
