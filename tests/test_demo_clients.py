# tests/test_demo_clients.py
from auth_gate import AuthState
from demo_clients import DemoClients
from demo_session import DEMO_GRACE_WINDOW_KEY

from conftest import ScopedMemoryStorage

ALICE = 'a' * 32
BOB = 'b' * 32


def test_each_client_gets_its_own_scope(clock):
    storages = ScopedMemoryStorage(prefix='qa')
    clients = DemoClients(storage_factory=storages, clock=clock, scope_prefix='qa')

    alice = clients.get(ALICE)
    bob = clients.get(BOB)

    assert set(storages.scopes) == {f'qa:{ALICE}', f'qa:{BOB}'}
    alice.session.mark_logged_in()
    alice.session.set_role_override('manager')

    assert bob.session.role_override() is None
    assert bob.session.window_active(DEMO_GRACE_WINDOW_KEY) is False
    assert bob.gate.should_block(AuthState(is_auth_ready=True)) is False


def test_same_client_reuses_its_stores(clock):
    clients = DemoClients(storage_factory=ScopedMemoryStorage(), clock=clock)

    first = clients.get(ALICE)
    assert clients.get(ALICE) is first
    assert len(clients) == 1


def test_settings_reach_every_client(clock):
    clients = DemoClients(storage_factory=ScopedMemoryStorage(), clock=clock,
                          transition_ms=900, grace_window_ms=100, role_switch_ms=50)
    client = clients.get(ALICE)

    client.transitions.start()
    assert client.transitions.remaining_time() == 900
    assert client.session.mark_logged_in() == clock.now + 100
