"""Cluster layer: topology, readiness and pod exec for the gated StatefulSet."""

from rollout_gate.cluster.interfaces import PodExecutor, ReadinessWaiter, TopologySource
from rollout_gate.cluster.kube import KubeCluster
from rollout_gate.cluster.models import ClusterTopology, ExecResult

__all__ = [
    "ClusterTopology",
    "ExecResult",
    "KubeCluster",
    "PodExecutor",
    "ReadinessWaiter",
    "TopologySource",
]
