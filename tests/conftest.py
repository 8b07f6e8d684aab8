"""Shared fakes for rollout gate tests."""

from __future__ import annotations

import threading

import pytest

from rollout_gate.cluster.models import ClusterTopology, ExecResult
from rollout_gate.config import Settings
from rollout_gate.errors import ProbeCancelled
from rollout_gate.waiter import Waiter

PREFIX = 'ranges_underreplicated{store="'


def metric_line(store: int | str, value: float | str) -> str:
    return f'{PREFIX}{store}"}} {value}\n'


class FakeWaiter(Waiter):
    """Virtual clock: sleeping advances time instantly."""

    def __init__(self, cancel_event: threading.Event | None = None, cancel_after: float | None = None) -> None:
        super().__init__(cancel_event)
        self.now = 1000.0
        self.sleeps: list[float] = []
        self.cancel_after = cancel_after

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.check_cancelled()
        if self.cancel_after is not None and seconds >= self.cancel_after:
            raise ProbeCancelled(f"probe cancelled during a {seconds:.1f}s wait")
        self.sleeps.append(seconds)
        self.now += max(seconds, 0.0)


class FakeExecutor:
    """Returns scripted ExecResults per pod; the last entry of a script repeats."""

    def __init__(self, scripts: dict[str, list[ExecResult]] | None = None, default: ExecResult | None = None) -> None:
        self.scripts = scripts or {}
        self.default = default or ExecResult(stdout=metric_line(1, 0))
        self.calls: list[tuple[str, str, str, list[str]]] = []

    def exec_in_pod(self, namespace: str, pod_name: str, container: str, command: list[str]) -> ExecResult:
        self.calls.append((namespace, pod_name, container, command))
        script = self.scripts.get(pod_name)
        if not script:
            return self.default
        if len(script) > 1:
            return script.pop(0)
        return script[0]

    @property
    def pods(self) -> list[str]:
        return [c[1] for c in self.calls]


class FakeReadiness:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str, int]] = []

    def wait_until_ready(self, namespace: str, name: str, replicas: int) -> None:
        self.calls.append((namespace, name, replicas))
        if self.error is not None:
            raise self.error


class StaticTopology:
    def __init__(self, topology: ClusterTopology) -> None:
        self._topology = topology

    def topology(self) -> ClusterTopology:
        return self._topology


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, backoff_randomization_factor=0.0)


@pytest.fixture
def topology() -> ClusterTopology:
    return ClusterTopology(name="crdb", namespace="db", replicas=3, http_port=8080)


@pytest.fixture
def waiter() -> FakeWaiter:
    return FakeWaiter()
