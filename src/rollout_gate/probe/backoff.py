"""Exponential backoff retry bounded by a wall-clock budget."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from rollout_gate.config import Settings
from rollout_gate.errors import ConvergenceTimeout
from rollout_gate.metrics.models import CheckResult, CheckStatus
from rollout_gate.waiter import Waiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackoffPolicy:
    """Intervals grow by multiplier up to max_interval; retrying stops once max_elapsed_time would be exceeded."""

    initial_interval: float = 0.5
    multiplier: float = 1.5
    randomization_factor: float = 0.5
    max_interval: float = 10.0
    max_elapsed_time: float = 180.0

    @classmethod
    def from_settings(cls, settings: Settings) -> BackoffPolicy:
        return cls(
            initial_interval=settings.backoff_initial_interval_seconds,
            multiplier=settings.backoff_multiplier,
            randomization_factor=settings.backoff_randomization_factor,
            max_interval=settings.backoff_max_interval_seconds,
            max_elapsed_time=settings.backoff_max_elapsed_seconds,
        )

    def intervals(self, rng: random.Random | None = None) -> Iterator[float]:
        """Yield successive randomized wait intervals, each capped at max_interval."""
        rng = rng or random.Random()
        current = min(self.initial_interval, self.max_interval)
        while True:
            delta = self.randomization_factor * current
            yield min(rng.uniform(current - delta, current + delta), self.max_interval)
            current = min(current * self.multiplier, self.max_interval)


def _log_attempt(result: CheckResult, attempt: int) -> None:
    if result.status is CheckStatus.NOT_CONVERGED:
        logger.info("attempt %d: %s", attempt, result.describe())
    elif result.status is CheckStatus.PARSE_ERROR:
        logger.warning("attempt %d: unreadable metric, %s", attempt, result.describe())
    elif result.status is CheckStatus.TRANSPORT_FAILURE:
        logger.warning("attempt %d: exec failed, %s", attempt, result.describe())
    elif result.status is CheckStatus.TOOL_UNAVAILABLE:
        logger.warning("attempt %d: scrape tool missing, %s", attempt, result.describe())


def poll_until_converged(
    sweep: Callable[[], CheckResult],
    policy: BackoffPolicy,
    waiter: Waiter,
    rng: random.Random | None = None,
) -> CheckResult:
    """
    Call sweep until it converges, waiting between attempts per policy.

    Every non-converged status is retried. Returns the converged result as soon
    as it is seen. Raises ConvergenceTimeout with the last result when the next
    wait would take the total past policy.max_elapsed_time. ProbeCancelled from
    the waiter propagates unchanged.
    """
    started = waiter.monotonic()
    intervals = policy.intervals(rng)
    attempt = 0
    while True:
        attempt += 1
        result = sweep()
        if result.ok:
            logger.debug("converged after %d attempt(s)", attempt)
            return result
        _log_attempt(result, attempt)
        elapsed = waiter.monotonic() - started
        interval = next(intervals)
        if elapsed + interval > policy.max_elapsed_time:
            raise ConvergenceTimeout(result, attempt, elapsed)
        waiter.sleep(interval)
