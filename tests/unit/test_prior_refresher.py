import threading
import time
from unittest.mock import Mock

import pytest

from cinerate.core.exceptions import PriorRefreshError, RepositoryException, ValidationException
from cinerate.services.prior_refresher import PriorRefresher
from cinerate.services.ratings_config import GlobalPrior, RatingsConfig


class StubStore:
    def __init__(self, mean=3.0, error=None, gate=None):
        self.mean = mean
        self.error = error
        self.gate = gate
        self.calls = 0

    def global_mean(self, default=3.0):
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(5)
        if self.error is not None:
            raise self.error
        return self.mean


def _refresher(store, **kwargs) -> PriorRefresher:
    return PriorRefresher(
        RatingsConfig(default_global_mean=3.0, min_votes_threshold=10, confidence_constant=25.0),
        session_factory=Mock,
        repository_factory=lambda db: store,
        **kwargs,
    )


def test_initial_prior_comes_from_config():
    refresher = _refresher(StubStore(), synchronous=True)
    assert refresher.get() == GlobalPrior(global_mean=3.0, min_votes_threshold=10, confidence_constant=25.0)


def test_refresh_now_swaps_in_new_mean_only():
    refresher = _refresher(StubStore(mean=3.74), synchronous=True)
    before = refresher.get()

    after = refresher.refresh_now()

    assert after.global_mean == 3.74
    assert after.min_votes_threshold == before.min_votes_threshold
    assert after.confidence_constant == before.confidence_constant
    assert refresher.get() is after
    # Snapshots are immutable; the old one is untouched
    assert before.global_mean == 3.0


def test_refresh_failure_leaves_prior_unchanged():
    store = StubStore(mean=4.1)
    refresher = _refresher(store, synchronous=True)
    refresher.refresh_now()

    store.error = RepositoryException("connection refused")
    with pytest.raises(PriorRefreshError):
        refresher.refresh_now()

    assert refresher.get().global_mean == 4.1


def test_refresh_closes_session_on_failure():
    session = Mock()
    refresher = PriorRefresher(
        session_factory=lambda: session,
        repository_factory=lambda db: StubStore(error=RepositoryException("boom")),
        synchronous=True,
    )

    with pytest.raises(PriorRefreshError):
        refresher.refresh_now()

    session.rollback.assert_called()
    session.close.assert_called_once()


def test_schedule_refresh_synchronous_runs_inline_and_swallows_errors():
    store = StubStore(error=RepositoryException("down"))
    refresher = _refresher(store, synchronous=True)

    assert refresher.schedule_refresh() is None
    assert store.calls == 1
    assert refresher.get().global_mean == 3.0


def test_schedule_refresh_returns_before_refresh_completes():
    gate = threading.Event()
    store = StubStore(mean=4.4, gate=gate)
    refresher = _refresher(store, max_workers=1)
    try:
        future = refresher.schedule_refresh()

        assert future is not None
        assert not future.done()
        assert refresher.get().global_mean == 3.0

        gate.set()
        future.result(timeout=5)
        assert refresher.get().global_mean == 4.4
    finally:
        gate.set()
        refresher.shutdown(wait=True)


def test_background_failure_stays_on_the_future():
    refresher = _refresher(StubStore(error=RepositoryException("down")), max_workers=1)
    try:
        future = refresher.schedule_refresh()
        with pytest.raises(PriorRefreshError):
            future.result(timeout=5)
        assert refresher.get().global_mean == 3.0
    finally:
        refresher.shutdown(wait=True)


def test_initialize_times_out_and_keeps_default():
    gate = threading.Event()
    refresher = _refresher(StubStore(mean=4.9, gate=gate), max_workers=1)
    try:
        start = time.monotonic()
        prior = refresher.initialize(timeout=0.05)

        assert time.monotonic() - start < 2.0
        assert prior.global_mean == 3.0
    finally:
        gate.set()
        refresher.shutdown(wait=True)


def test_initialize_failure_keeps_default():
    refresher = _refresher(StubStore(error=RepositoryException("down")), max_workers=1)
    try:
        assert refresher.initialize(timeout=1.0).global_mean == 3.0
    finally:
        refresher.shutdown(wait=True)


def test_initialize_loads_mean():
    refresher = _refresher(StubStore(mean=3.62), max_workers=1)
    try:
        assert refresher.initialize(timeout=1.0).global_mean == 3.62
    finally:
        refresher.shutdown(wait=True)


def test_periodic_refresh_stops_promptly():
    store = StubStore(mean=3.3)
    refresher = _refresher(store, synchronous=True)
    stop = threading.Event()
    worker = threading.Thread(target=refresher.run_periodic_refresh, args=(stop, 0.01))
    worker.start()

    deadline = time.monotonic() + 5
    while store.calls < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    stop.set()
    worker.join(timeout=2)

    assert not worker.is_alive()
    assert store.calls >= 2
    assert refresher.get().global_mean == 3.3


def test_periodic_refresh_survives_failures():
    store = StubStore(error=RepositoryException("flaky"))
    refresher = _refresher(store, synchronous=True)
    stop = threading.Event()
    worker = threading.Thread(target=refresher.run_periodic_refresh, args=(stop, 0.01))
    worker.start()

    deadline = time.monotonic() + 5
    while store.calls < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    stop.set()
    worker.join(timeout=2)

    assert not worker.is_alive()
    assert store.calls >= 3


def test_reconfigure_keeps_mean():
    refresher = _refresher(StubStore(mean=3.8), synchronous=True)
    refresher.refresh_now()

    prior = refresher.reconfigure(min_votes_threshold=20, confidence_constant=5.0)

    assert prior == GlobalPrior(global_mean=3.8, min_votes_threshold=20, confidence_constant=5.0)
    assert refresher.get() is prior


def test_reconfigure_rejects_invalid_values():
    refresher = _refresher(StubStore(), synchronous=True)
    with pytest.raises(ValidationException):
        refresher.reconfigure(min_votes_threshold=0)
    with pytest.raises(ValidationException):
        refresher.reconfigure(confidence_constant=-1.0)


def test_schedule_after_shutdown_is_dropped():
    store = StubStore(mean=4.0)
    refresher = _refresher(store, max_workers=1)
    refresher.shutdown(wait=True)

    assert refresher.schedule_refresh() is None
    assert store.calls == 0


def test_concurrent_refreshes_never_expose_partial_state():
    store = StubStore(mean=4.25)
    refresher = _refresher(store, max_workers=4)
    seen = []
    try:
        futures = [refresher.schedule_refresh() for _ in range(20)]
        for _ in range(200):
            seen.append(refresher.get())
        for f in futures:
            f.result(timeout=5)
    finally:
        refresher.shutdown(wait=True)

    assert {p.global_mean for p in seen} <= {3.0, 4.25}
    assert all(p.min_votes_threshold == 10 and p.confidence_constant == 25.0 for p in seen)
    assert refresher.get().global_mean == 4.25
