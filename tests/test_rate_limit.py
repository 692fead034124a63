"""
Tests for the admission limiter and rate store.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from src.shared.rate_limit.rate_limit_utils import (
    AdmissionLimiter,
    AdmissionRecord,
    InMemoryRateStore,
    get_client_ip,
)

T0 = datetime(2026, 3, 5, 14, 30, tzinfo=timezone.utc)
WINDOW = timedelta(minutes=15)


@pytest.fixture
def limiter():
    return AdmissionLimiter(window=WINDOW, capacity=5)


class TestAdmissionLimiter:
    """Test fixed-window admission decisions."""

    def test_first_five_admitted_sixth_denied(self, limiter):
        """Capacity 5: five calls pass, the sixth is denied."""
        decisions = [limiter.admit("1.2.3.4", T0 + timedelta(seconds=i)) for i in range(6)]

        assert decisions == [True, True, True, True, True, False]

    def test_denied_calls_do_not_grow_count(self, limiter):
        """The count stops at capacity while denying."""
        for i in range(10):
            limiter.admit("1.2.3.4", T0 + timedelta(seconds=i))

        assert limiter.store.get("1.2.3.4") == AdmissionRecord(window_start=T0, count=5)

    def test_window_end_is_inclusive(self, limiter):
        """At exactly window_start + window the old window still applies."""
        for _ in range(5):
            limiter.admit("1.2.3.4", T0)

        assert limiter.admit("1.2.3.4", T0 + WINDOW) is False

    def test_new_window_after_elapse(self, limiter):
        """After the window elapses the next call is admitted and the count resets."""
        for _ in range(6):
            limiter.admit("1.2.3.4", T0)
        later = T0 + WINDOW + timedelta(seconds=1)

        assert limiter.admit("1.2.3.4", later) is True
        assert limiter.store.get("1.2.3.4") == AdmissionRecord(window_start=later, count=1)

    def test_identities_are_independent(self, limiter):
        """One identity hitting its limit does not affect another."""
        for _ in range(6):
            limiter.admit("1.1.1.1", T0)

        assert limiter.admit("2.2.2.2", T0) is True

    def test_retry_after(self, limiter):
        """Retry-After counts down to the end of the window."""
        for _ in range(6):
            limiter.admit("1.2.3.4", T0)

        assert limiter.retry_after("1.2.3.4", T0 + timedelta(minutes=10)) == 300
        assert limiter.retry_after("1.2.3.4", T0 + timedelta(minutes=14, seconds=59, milliseconds=500)) == 1
        assert limiter.retry_after("unknown", T0) == 1

    def test_custom_capacity(self):
        limiter = AdmissionLimiter(window=timedelta(minutes=1), capacity=1)

        assert limiter.admit("a", T0) is True
        assert limiter.admit("a", T0) is False

    @pytest.mark.parametrize("kwargs", [
        {"capacity": 0},
        {"window": timedelta(0)},
    ])
    def test_rejects_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            AdmissionLimiter(**kwargs)

    def test_uses_injected_store(self):
        """The limiter reads and writes through the store it is given."""
        store = InMemoryRateStore()
        store.set("1.2.3.4", AdmissionRecord(window_start=T0, count=5))
        limiter = AdmissionLimiter(store=store, window=WINDOW, capacity=5)

        assert limiter.admit("1.2.3.4", T0 + timedelta(minutes=1)) is False
        assert len(store) == 1


class TestExpiredRecordSweep:
    """Test that elapsed windows are removed from the store."""

    def test_expired_identities_are_swept(self):
        """Thousands of one-off clients do not stay in memory forever."""
        store = InMemoryRateStore()
        limiter = AdmissionLimiter(store=store, window=WINDOW, capacity=5)
        for i in range(1000):
            limiter.admit(f"10.0.{i // 256}.{i % 256}", T0)
        assert len(store) == 1000

        later = T0 + timedelta(hours=5)
        assert limiter.admit("192.0.2.1", later) is True

        assert len(store) == 1
        assert store.get("192.0.2.1") == AdmissionRecord(window_start=later, count=1)
        assert list(store._locks) == ["192.0.2.1"]

    def test_active_windows_survive_sweep(self, limiter):
        """Records still inside their window keep their counts."""
        for _ in range(5):
            limiter.admit("old", T0)
        limiter.admit("recent", T0 + timedelta(minutes=10))

        removed = limiter.sweep(T0 + timedelta(minutes=20))

        assert removed == 1
        assert limiter.store.get("old") is None
        assert limiter.store.get("recent").count == 1

    def test_sweeps_at_most_once_per_window(self):
        """The store is pruned once a window has passed since the last sweep."""
        class CountingStore(InMemoryRateStore):
            prune_calls = 0

            def prune(self, is_expired):
                self.prune_calls += 1
                return super().prune(is_expired)

        store = CountingStore()
        limiter = AdmissionLimiter(store=store, window=WINDOW, capacity=5)
        for minutes in (0, 5, 16, 20, 30, 32):
            limiter.admit("1.2.3.4", T0 + timedelta(minutes=minutes))

        assert store.prune_calls == 2

    def test_prune_skips_identity_in_use(self):
        """A record whose lock is held is left for the holder."""
        store = InMemoryRateStore()
        store.set("busy", AdmissionRecord(window_start=T0, count=5))
        store.set("idle", AdmissionRecord(window_start=T0, count=5))

        with store.lock("busy"):
            removed = store.prune(lambda record: True)

        assert removed == 1
        assert store.get("busy") is not None
        assert store.get("idle") is None

    def test_swept_identity_starts_fresh(self, limiter):
        for _ in range(6):
            limiter.admit("1.2.3.4", T0)
        limiter.sweep(T0 + timedelta(hours=1))

        assert limiter.admit("1.2.3.4", T0 + timedelta(hours=1)) is True
        assert limiter.store.get("1.2.3.4").count == 1


class TestConcurrentAdmission:
    """Test admission under concurrent calls."""

    def test_same_identity_admits_exactly_capacity(self, limiter):
        """Concurrent calls for one identity never admit more than capacity."""
        barrier = threading.Barrier(20)

        def attempt(_):
            barrier.wait()
            return limiter.admit("1.2.3.4", T0)

        with ThreadPoolExecutor(max_workers=20) as pool:
            decisions = list(pool.map(attempt, range(20)))

        assert decisions.count(True) == 5
        assert limiter.store.get("1.2.3.4").count == 5

    def test_distinct_identities_never_deny_each_other(self, limiter):
        """Interleaved calls for two identities within capacity all pass."""
        identities = ["10.0.0.1", "10.0.0.2"] * 5
        barrier = threading.Barrier(len(identities))

        def attempt(identity):
            barrier.wait()
            return limiter.admit(identity, T0)

        with ThreadPoolExecutor(max_workers=len(identities)) as pool:
            decisions = list(pool.map(attempt, identities))

        assert all(decisions)

    def test_locked_identity_does_not_block_others(self):
        """Holding one identity's lock leaves other identities free."""
        store = InMemoryRateStore()
        limiter = AdmissionLimiter(store=store, window=WINDOW, capacity=5)

        with store.lock("busy"):
            with ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(limiter.admit, "free", T0)
                assert future.result(timeout=5) is True


class TestGetClientIp:
    """Test source identity extraction."""

    def make_request(self, host="203.0.113.9", forwarded=None):
        headers = {"X-Forwarded-For": forwarded} if forwarded else {}
        return SimpleNamespace(headers=headers, client=SimpleNamespace(host=host))

    def test_uses_client_host(self):
        assert get_client_ip(self.make_request()) == "203.0.113.9"

    def test_ignores_forwarded_header_by_default(self):
        request = self.make_request(forwarded="198.51.100.1")

        assert get_client_ip(request) == "203.0.113.9"

    def test_uses_first_forwarded_address_behind_proxy(self):
        request = self.make_request(forwarded="198.51.100.1, 10.0.0.1")

        assert get_client_ip(request, trust_proxy=True) == "198.51.100.1"

    def test_unknown_without_client(self):
        request = SimpleNamespace(headers={}, client=None)

        assert get_client_ip(request) == "unknown"
