"""Collaborator interfaces the probe depends on."""

from __future__ import annotations

from typing import Protocol

from rollout_gate.cluster.models import ClusterTopology, ExecResult


class PodExecutor(Protocol):
    def exec_in_pod(self, namespace: str, pod_name: str, container: str, command: list[str]) -> ExecResult:
        ...


class ReadinessWaiter(Protocol):
    def wait_until_ready(self, namespace: str, name: str, replicas: int) -> None:
        """Block until the StatefulSet serves with all replicas; raise ReadinessTimeout otherwise."""
        ...


class TopologySource(Protocol):
    def topology(self) -> ClusterTopology:
        ...
