"""Exceptions raised by the rollout gate."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rollout_gate.metrics.models import CheckResult, ParseErrorKind


class HealthCheckError(Exception):
    """Base class for every failure that must halt the rollout."""


class ClusterLookupError(HealthCheckError):
    """The StatefulSet could not be read from the API server."""

    def __init__(self, name: str, namespace: str, reason: str) -> None:
        self.name = name
        self.namespace = namespace
        self.reason = reason
        super().__init__(f"statefulset {namespace}/{name}: {reason}")


class ReadinessTimeout(HealthCheckError):
    """The StatefulSet did not report all replicas ready in time."""

    def __init__(self, name: str, namespace: str, expected: int, ready: int, waited: float) -> None:
        self.name = name
        self.namespace = namespace
        self.expected = expected
        self.ready = ready
        self.waited = waited
        super().__init__(
            f"statefulset {namespace}/{name} not ready after {waited:.0f}s: "
            f"{ready}/{expected} replicas ready"
        )


class ProbeCancelled(HealthCheckError):
    """A wait was interrupted by the cancellation event."""


class ConvergenceTimeout(HealthCheckError):
    """The backoff budget ran out before the fleet converged."""

    def __init__(self, last_result: CheckResult, attempts: int, elapsed: float) -> None:
        self.last_result = last_result
        self.attempts = attempts
        self.elapsed = elapsed
        super().__init__(
            f"no convergence after {attempts} attempts in {elapsed:.1f}s: {last_result.describe()}"
        )


class ProbeFailed(HealthCheckError):
    """A convergence check failed for the replica being gated."""

    def __init__(self, fleet: str, replica_index: int, label: str, last_result: CheckResult) -> None:
        self.fleet = fleet
        self.replica_index = replica_index
        self.label = label
        self.last_result = last_result
        suffix = f" ({label})" if label else ""
        super().__init__(
            f"replicas check probe failed for {fleet}{suffix} after restarting replica "
            f"{replica_index}: {last_result.describe()}"
        )


class MetricParseError(ValueError):
    """A scrape line could not be turned into a metric sample."""

    def __init__(self, kind: ParseErrorKind, message: str, replica_index: int | None = None) -> None:
        self.kind = kind
        self.replica_index = replica_index
        super().__init__(message)
