import pytest

from expiry_tracker.core.kv_store import InMemoryKVStore
from expiry_tracker.core.lease import InvocationLease, Lease
from expiry_tracker.core.snapshot import LEASE_KEY


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryKVStore(clock=clock)


class TestInvocationLease:
    """Test lease acquisition, refusal and release."""

    def test_acquire_release(self, store, clock):
        lease = InvocationLease(store, owner="first", ttl_seconds=60, clock=clock)
        assert lease.acquire() is True
        assert lease.held
        assert Lease.from_json(store.get(LEASE_KEY)).owner == "first"

        assert lease.release() is True
        assert store.get(LEASE_KEY) is None

    def test_live_lease_blocks_other_owner(self, store, clock):
        assert InvocationLease(store, owner="first", ttl_seconds=60, clock=clock).acquire()

        second = InvocationLease(store, owner="second", ttl_seconds=60, clock=clock)
        assert second.acquire() is False
        assert not second.held

    def test_expired_lease_can_be_taken(self, store, clock):
        InvocationLease(store, owner="first", ttl_seconds=60, clock=clock).acquire()
        clock.now += 61

        assert InvocationLease(store, owner="second", ttl_seconds=60, clock=clock).acquire() is True

    def test_stale_holder_cannot_release_new_lease(self, store, clock):
        first = InvocationLease(store, owner="first", ttl_seconds=60, clock=clock)
        first.acquire()
        clock.now += 61
        second = InvocationLease(store, owner="second", ttl_seconds=60, clock=clock)
        second.acquire()

        assert first.release() is False
        assert Lease.from_json(store.get(LEASE_KEY)).owner == "second"

    def test_lost_race_on_swap(self, store, clock, monkeypatch):
        lease = InvocationLease(store, owner="first", ttl_seconds=60, clock=clock)
        monkeypatch.setattr(store, "compare_and_swap", lambda *a, **kw: False)

        assert lease.acquire() is False

    def test_unreadable_lease_is_replaced(self, store, clock):
        store.put(LEASE_KEY, b"garbage")
        assert InvocationLease(store, owner="first", ttl_seconds=60, clock=clock).acquire() is True

    def test_context_manager_releases(self, store, clock):
        with InvocationLease(store, owner="first", ttl_seconds=60, clock=clock) as acquired:
            assert acquired is True
            assert store.get(LEASE_KEY) is not None
        assert store.get(LEASE_KEY) is None
