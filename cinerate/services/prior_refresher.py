# cinerate/services/prior_refresher.py
"""
Owner of the global prior used by the Bayesian estimator.

The prior is an immutable GlobalPrior snapshot. Readers take the current
reference without locking; refreshes build a new snapshot and swap it in
under a lock. Concurrent refreshes are unordered and the last one to finish
wins, which is fine because each one reads the whole vote population.

Refreshes run:
- once at startup, bounded by a timeout (initialize)
- after every vote mutation, fire-and-forget on a small thread pool
- periodically from a dedicated thread (run_periodic_refresh)
"""

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import replace
import logging
import threading
import time
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import PriorRefreshError, RepositoryException, ValidationException
from ..database import SessionLocal
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.protocols import PriorSource
from ..repositories.vote_repository import VoteRepository
from .ratings_config import DEFAULT_RATINGS_CONFIG, GlobalPrior, RatingsConfig

logger = logging.getLogger(__name__)

DEFAULT_STARTUP_TIMEOUT_SECONDS = 3.0


class PriorRefresher:
    """Holds the current GlobalPrior and recomputes it from the vote store."""

    def __init__(
        self,
        config: RatingsConfig = DEFAULT_RATINGS_CONFIG,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        repository_factory: Callable[[Session], PriorSource] = VoteRepository,
        max_workers: int = 2,
        synchronous: bool = False,
    ) -> None:
        self.config = config
        self._session_factory = session_factory
        self._repository_factory = repository_factory
        self._lock = threading.Lock()
        self._prior = GlobalPrior.from_config(config)
        self._accepting = True
        self.synchronous = synchronous
        self._executor: Optional[ThreadPoolExecutor] = (
            None
            if synchronous
            else ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="prior-refresh")
        )
        prometheus_metrics.set_global_mean(self._prior.global_mean)

    def get(self) -> GlobalPrior:
        """Current snapshot. Never blocks."""
        return self._prior

    def refresh_now(self, trigger: str = "manual") -> GlobalPrior:
        """
        Recompute the global mean and swap in a new snapshot.

        Raises:
            PriorRefreshError: If the vote store could not be read. The current
                prior is left untouched.
        """
        start = time.monotonic()
        try:
            db = self._session_factory()
        except SQLAlchemyError as e:
            self._record_failure(trigger, start, e)
            raise PriorRefreshError("Failed to refresh global prior", code="PRIOR_REFRESH_FAILED") from e

        try:
            store = self._repository_factory(db)
            global_mean = float(store.global_mean(default=self.config.default_global_mean))
            db.rollback()
        except (RepositoryException, SQLAlchemyError) as e:
            db.rollback()
            self._record_failure(trigger, start, e)
            raise PriorRefreshError("Failed to refresh global prior", code="PRIOR_REFRESH_FAILED") from e
        finally:
            db.close()

        with self._lock:
            previous = self._prior
            self._prior = previous.with_mean(global_mean)
            current = self._prior

        elapsed = time.monotonic() - start
        prometheus_metrics.record_prior_refresh(trigger, "success", elapsed, current.global_mean)
        if previous.global_mean != current.global_mean:
            logger.info(
                "Global prior updated (%s): %.2f -> %.2f",
                trigger,
                previous.global_mean,
                current.global_mean,
            )
        else:
            logger.debug("Global prior unchanged (%s): %.2f", trigger, current.global_mean)
        return current

    def _record_failure(self, trigger: str, start: float, error: BaseException) -> None:
        prometheus_metrics.record_prior_refresh(trigger, "error", time.monotonic() - start)
        logger.error(f"Global prior refresh failed ({trigger}): {error}")

    def schedule_refresh(self, trigger: str = "mutation") -> Optional["Future[GlobalPrior]"]:
        """
        Request a background refresh without waiting for it.

        Returns the Future in threaded mode, None when refreshes run inline or
        the refresher has been shut down. Failures are logged, never raised.
        """
        if not self._accepting:
            logger.debug("Prior refresher shut down, dropping %s refresh", trigger)
            return None

        if self._executor is None:
            try:
                self.refresh_now(trigger)
            except PriorRefreshError as e:
                logger.warning(f"Inline prior refresh failed: {e.message}")
            return None

        try:
            future = self._executor.submit(self.refresh_now, trigger)
        except RuntimeError:
            # Executor shut down between the check above and submit
            logger.debug("Prior refresh executor closed, dropping %s refresh", trigger)
            return None
        future.add_done_callback(_log_refresh_outcome)
        return future

    def initialize(self, timeout: Optional[float] = None) -> GlobalPrior:
        """
        Load the prior once at startup, waiting at most `timeout` seconds.

        Keeps the configured default on failure or timeout. Never raises.
        """
        wait_for = timeout if timeout and timeout > 0 else DEFAULT_STARTUP_TIMEOUT_SECONDS

        if self._executor is None:
            try:
                self.refresh_now("startup")
            except PriorRefreshError:
                logger.warning(
                    "Initial prior load failed, keeping default global mean %.2f",
                    self._prior.global_mean,
                )
            return self.get()

        future = self._executor.submit(self.refresh_now, "startup")
        try:
            future.result(timeout=wait_for)
        except FutureTimeoutError:
            logger.warning(
                "Initial prior load timed out after %.1fs, keeping default global mean %.2f",
                wait_for,
                self._prior.global_mean,
            )
        except PriorRefreshError:
            logger.warning(
                "Initial prior load failed, keeping default global mean %.2f",
                self._prior.global_mean,
            )
        return self.get()

    def run_periodic_refresh(self, stop_event: threading.Event, interval: float) -> None:
        """Blocking refresh loop for a dedicated thread. Returns once stop_event is set."""
        interval = max(0.01, float(interval))
        logger.info("Periodic prior refresh started (every %.0fs)", interval)
        while not stop_event.wait(interval):
            try:
                self.refresh_now("periodic")
            except PriorRefreshError as e:
                logger.warning(f"Periodic prior refresh failed: {e.message}")
        logger.info("Periodic prior refresh stopped")

    def reconfigure(
        self,
        *,
        min_votes_threshold: Optional[int] = None,
        confidence_constant: Optional[float] = None,
    ) -> GlobalPrior:
        """Operator change of the smoothing knobs. The global mean is kept."""
        if min_votes_threshold is not None and min_votes_threshold < 1:
            raise ValidationException(
                "min_votes_threshold must be at least 1", code="INVALID_PRIOR_CONFIG"
            )
        if confidence_constant is not None and confidence_constant < 0:
            raise ValidationException(
                "confidence_constant cannot be negative", code="INVALID_PRIOR_CONFIG"
            )

        with self._lock:
            updated = self._prior
            if min_votes_threshold is not None:
                updated = replace(updated, min_votes_threshold=int(min_votes_threshold))
            if confidence_constant is not None:
                updated = replace(updated, confidence_constant=float(confidence_constant))
            self._prior = updated

        logger.info(
            "Prior smoothing reconfigured: threshold=%d constant=%.2f",
            updated.min_votes_threshold,
            updated.confidence_constant,
        )
        return updated

    def shutdown(self, wait: bool = False) -> None:
        """Stop accepting refreshes. In-flight refreshes are allowed to finish."""
        self._accepting = False
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


def _log_refresh_outcome(future: "Future[GlobalPrior]") -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning(f"Background prior refresh failed: {error}")
