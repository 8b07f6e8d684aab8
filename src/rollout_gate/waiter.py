"""Timed waits that can be aborted by a cancellation event."""

from __future__ import annotations

import threading
import time

from rollout_gate.errors import ProbeCancelled


class Waiter:
    """Clock and sleep used by every suspension point of a probe."""

    def __init__(self, cancel_event: threading.Event | None = None) -> None:
        self._cancel = cancel_event

    @property
    def cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    def monotonic(self) -> float:
        return time.monotonic()

    def check_cancelled(self) -> None:
        if self.cancelled:
            raise ProbeCancelled("probe cancelled")

    def sleep(self, seconds: float) -> None:
        """Sleep for seconds; raise ProbeCancelled if the event fires first."""
        self.check_cancelled()
        if seconds <= 0:
            return
        if self._cancel is None:
            time.sleep(seconds)
            return
        if self._cancel.wait(seconds):
            raise ProbeCancelled(f"probe cancelled during a {seconds:.1f}s wait")
