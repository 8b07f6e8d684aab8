"""Probe layer: pod checks, fleet sweeps, backoff polling and the gating state machine."""

from rollout_gate.probe.backoff import BackoffPolicy, poll_until_converged
from rollout_gate.probe.checker import check_pod, sweep_fleet
from rollout_gate.probe.orchestrator import (
    HealthChecker,
    ProbePhase,
    ProbeReport,
    Prober,
    print_report,
)

__all__ = [
    "BackoffPolicy",
    "poll_until_converged",
    "check_pod",
    "sweep_fleet",
    "HealthChecker",
    "ProbePhase",
    "ProbeReport",
    "Prober",
    "print_report",
]
