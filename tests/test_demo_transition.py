# tests/test_demo_transition.py
from demo_transition import DEMO_TRANSITION_KEY, TransitionStore, parse_deadline
from storage import MemoryStorage

from conftest import BrokenStorage


# ---------------------------------------------------------------------
# Window lifecycle
# ---------------------------------------------------------------------

def test_start_then_expire_clears_durable_key(store, storage, clock):
    store.start(1500)

    clock.advance(1000)
    assert store.is_active() is True
    assert storage.data[DEMO_TRANSITION_KEY] == str(clock.now + 500)

    clock.advance(600)
    assert store.is_active() is False
    assert DEMO_TRANSITION_KEY not in storage.data
    assert store.active_until == 0


def test_clear_always_leaves_store_inactive(store, storage):
    store.clear()
    assert store.is_active() is False

    store.start(5000)
    store.clear()
    assert store.is_active() is False
    assert DEMO_TRANSITION_KEY not in storage.data


def test_default_duration_is_two_seconds(store, clock):
    store.start()
    assert store.remaining_time() == 2000


def test_configured_default_duration(storage, clock):
    store = TransitionStore(storage=storage, clock=clock, default_duration_ms=750)

    store.start()
    assert store.remaining_time() == 750
    assert storage.data[DEMO_TRANSITION_KEY] == str(clock.now + 750)

    # An explicit duration still wins
    store.start(100)
    assert store.remaining_time() == 100


def test_ids_strictly_increase_across_clears(store, clock):
    ids = []
    for _ in range(4):
        ids.append(store.start())
        clock.advance(10)
        store.clear()
    assert ids == [1, 2, 3, 4]


def test_stale_result_detected_by_id(store, clock):
    first = store.start()
    clock.advance(10)
    second = store.start()

    assert (first, second) == (1, 2)
    assert store.get_current_transition_id() == 2
    assert store.is_current(first) is False
    assert store.is_current(second) is True


def test_remaining_time_non_increasing_and_never_negative(store, clock):
    store.start(300)
    readings = []
    for _ in range(5):
        readings.append(store.remaining_time())
        clock.advance(100)
    assert readings == [300, 200, 100, 0, 0]


def test_remaining_time_does_not_clean_up(store, storage, clock):
    store.start(100)
    clock.advance(500)
    assert store.remaining_time() == 0
    assert DEMO_TRANSITION_KEY in storage.data


# ---------------------------------------------------------------------
# Hydration from durable storage
# ---------------------------------------------------------------------

def test_hydrates_unexpired_deadline(storage, clock):
    storage.set(DEMO_TRANSITION_KEY, clock.now + 800)
    store = TransitionStore(storage=storage, clock=clock)

    assert store.is_active() is True
    assert store.active_until == clock.now + 800


def test_expired_persisted_deadline_is_removed(storage, clock):
    storage.set(DEMO_TRANSITION_KEY, clock.now - 1)
    store = TransitionStore(storage=storage, clock=clock)

    assert store.is_active() is False
    assert DEMO_TRANSITION_KEY not in storage.data


def test_malformed_persisted_deadline_is_removed(storage, clock):
    storage.set(DEMO_TRANSITION_KEY, "soon")
    store = TransitionStore(storage=storage, clock=clock)

    assert store.is_active() is False
    assert DEMO_TRANSITION_KEY not in storage.data


def test_parse_deadline():
    assert parse_deadline("1700") == 1700
    assert parse_deadline(" 42 ") == 42
    assert parse_deadline("12abc") is None
    assert parse_deadline(None) is None


# ---------------------------------------------------------------------
# Subscribers
# ---------------------------------------------------------------------

def test_subscribers_notified_synchronously(store):
    seen = []
    store.subscribe(lambda: seen.append(store.is_active()))

    store.start(1000)
    assert seen == [True]

    store.clear()
    assert seen == [True, False]


def test_duplicate_subscription_notified_once(store):
    calls = []

    def callback():
        calls.append(1)

    store.subscribe(callback)
    store.subscribe(callback)
    store.start()
    assert len(calls) == 1


def test_unsubscribed_callback_never_invoked_again(store):
    calls = []
    unsubscribe = store.subscribe(lambda: calls.append(1))

    store.start()
    unsubscribe()
    store.start()
    store.clear()

    assert calls == [1]


def test_callback_removed_during_notification_is_skipped(store):
    calls = []
    handles = {}

    def first():
        calls.append('first')
        handles['second']()
        handles['first']()

    def second():
        calls.append('second')

    handles['first'] = store.subscribe(first)
    handles['second'] = store.subscribe(second)

    store.start()
    # Set order is arbitrary: either second ran before first removed it, or not at all
    assert calls.count('first') == 1
    assert calls.count('second') <= 1

    store.start()
    assert calls.count('first') == 1


def test_failing_subscriber_does_not_stop_others(store):
    calls = []

    def broken():
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(lambda: calls.append('ok'))

    store.start()
    assert calls == ['ok']


# ---------------------------------------------------------------------
# Degraded and disabled modes
# ---------------------------------------------------------------------

def test_broken_storage_degrades_to_memory(clock):
    store = TransitionStore(storage=BrokenStorage(), clock=clock)

    assert store.start(1000) == 1
    assert store.is_active() is True
    store.clear()
    assert store.is_active() is False


def test_no_storage_is_memory_only(clock):
    store = TransitionStore(clock=clock)
    store.start(100)
    assert store.is_active() is True
    clock.advance(100)
    assert store.is_active() is False


def test_disabled_store_is_inert(clock):
    storage = MemoryStorage()
    store = TransitionStore(storage=storage, clock=clock, enabled=False)
    calls = []
    store.subscribe(lambda: calls.append(1))

    assert store.start(1000) == 0
    assert store.is_active() is False
    assert store.get_current_transition_id() == 0
    store.clear()

    assert calls == []
    assert storage.data == {}
