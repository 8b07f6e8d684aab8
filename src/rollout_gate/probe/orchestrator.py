"""Health-gating state machine run between two replica restarts of a rolling update."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from rich.console import Console
from rich.panel import Panel

from rollout_gate.cluster.interfaces import PodExecutor, ReadinessWaiter, TopologySource
from rollout_gate.cluster.models import ClusterTopology
from rollout_gate.config import Settings, get_settings
from rollout_gate.errors import ConvergenceTimeout, ProbeFailed
from rollout_gate.metrics.models import CheckResult, CheckStatus, ProbeOutcome
from rollout_gate.probe.backoff import BackoffPolicy, poll_until_converged
from rollout_gate.probe.checker import sweep_fleet
from rollout_gate.waiter import Waiter

logger = logging.getLogger(__name__)


class ProbePhase(str, Enum):
    AWAITING_READINESS = "awaiting_readiness"
    PRE_CHECK = "pre_check"
    TOOL_FALLBACK = "tool_fallback"
    FIRST_CONVERGENCE_CHECK = "first_convergence_check"
    SETTLE = "settle"
    SECOND_CONVERGENCE_CHECK = "second_convergence_check"
    DONE = "done"


@dataclass
class ProbeReport:
    """
    Verdict of a probe that allows the rollout to continue.

    outcome is set when the probe finishes and is either converged or
    tool_unavailable; failures are raised as HealthCheckError, never reported.
    """

    replica_index: int
    outcome: ProbeOutcome | None = None
    label: str = ""
    phases: list[ProbePhase] = field(default_factory=list)
    sweeps: int = 0
    elapsed_seconds: float = 0.0
    detail: str = ""


class Prober(Protocol):
    def probe(
        self,
        replica_index: int,
        label: str = "",
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> ProbeReport:
        ...


class _LabelAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"[{self.extra['label']} replica={self.extra['replica']}] {msg}", kwargs


class HealthChecker:
    """
    Decides whether the next replica of a StatefulSet may be restarted.

    The probe waits for the StatefulSet to be ready, then checks that
    ranges_underreplicated is 0 on every pod. Images without curl cannot be
    scraped; in that case the probe waits fallback_delay_seconds and lets the
    rollout continue. Otherwise it polls with backoff until every pod reports 0,
    waits settle_delay_seconds because a node can still be evicted right after
    the first zero reading, and polls once more.
    """

    def __init__(
        self,
        executor: PodExecutor,
        readiness: ReadinessWaiter,
        topology_source: TopologySource,
        settings: Settings | None = None,
        waiter: Waiter | None = None,
        policy: BackoffPolicy | None = None,
    ) -> None:
        self.executor = executor
        self.readiness = readiness
        self.topology_source = topology_source
        self.settings = settings or get_settings()
        self.waiter = waiter or Waiter()
        self.policy = policy or BackoffPolicy.from_settings(self.settings)

    def sweep(self, topology: ClusterTopology) -> CheckResult:
        """Run a single fleet sweep without retrying."""
        return sweep_fleet(self.executor, topology, self.settings)

    def probe(
        self,
        replica_index: int,
        label: str = "",
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> ProbeReport:
        """
        Gate the rollout after replica_index was restarted.

        Returns a ProbeReport when the next replica may be restarted. Raises a
        HealthCheckError subclass (ReadinessTimeout, ClusterLookupError,
        ProbeFailed, ProbeCancelled) when the rollout must stop here.
        """
        plog = _LabelAdapter(log or logger, {"label": label or "-", "replica": replica_index})
        started = self.waiter.monotonic()
        report = ProbeReport(replica_index=replica_index, label=label)
        plog.debug("health check probe")
        self.waiter.check_cancelled()

        topology = self.topology_source.topology()

        report.phases.append(ProbePhase.AWAITING_READINESS)
        self.readiness.wait_until_ready(topology.namespace, topology.name, topology.replicas)

        # Images from both sides of an upgrade may be running; any of them may lack curl
        report.phases.append(ProbePhase.PRE_CHECK)
        precheck = self._counted_sweep(topology, report)
        if precheck.status is CheckStatus.TOOL_UNAVAILABLE:
            plog.info(
                "curl not installed on %s, falling back to sleeping %gs",
                precheck.pod_name,
                self.settings.fallback_delay_seconds,
            )
            report.phases.append(ProbePhase.TOOL_FALLBACK)
            self.waiter.sleep(self.settings.fallback_delay_seconds)
            return self._finish(report, ProbeOutcome.TOOL_UNAVAILABLE, precheck.detail, started)
        plog.debug("pre-check: %s", precheck.describe())

        report.phases.append(ProbePhase.FIRST_CONVERGENCE_CHECK)
        self._converge(topology, report, replica_index, label, plog)

        report.phases.append(ProbePhase.SETTLE)
        plog.debug("settling for %gs before re-checking", self.settings.settle_delay_seconds)
        self.waiter.sleep(self.settings.settle_delay_seconds)

        report.phases.append(ProbePhase.SECOND_CONVERGENCE_CHECK)
        result = self._converge(topology, report, replica_index, label, plog)
        return self._finish(report, ProbeOutcome.CONVERGED, result.detail, started)

    def _counted_sweep(self, topology: ClusterTopology, report: ProbeReport) -> CheckResult:
        report.sweeps += 1
        return self.sweep(topology)

    def _converge(
        self,
        topology: ClusterTopology,
        report: ProbeReport,
        replica_index: int,
        label: str,
        log: logging.LoggerAdapter,
    ) -> CheckResult:
        try:
            return poll_until_converged(lambda: self._counted_sweep(topology, report), self.policy, self.waiter)
        except ConvergenceTimeout as e:
            log.warning("convergence check failed: %s", e)
            raise ProbeFailed(topology.name, replica_index, label, e.last_result) from e

    def _finish(self, report: ProbeReport, outcome: ProbeOutcome, detail: str, started: float) -> ProbeReport:
        report.phases.append(ProbePhase.DONE)
        report.outcome = outcome
        report.detail = detail
        report.elapsed_seconds = self.waiter.monotonic() - started
        return report


def print_report(report: ProbeReport, console: Console | None = None) -> None:
    """Print a probe verdict using Rich."""
    c = console or Console()
    phases = " → ".join(p.value for p in report.phases)
    body = (
        f"[bold]Outcome:[/bold] {report.outcome.value}\n"
        f"[bold]Replica:[/bold] {report.replica_index}\n"
        f"[bold]Sweeps:[/bold] {report.sweeps}\n"
        f"[bold]Elapsed:[/bold] {report.elapsed_seconds:.1f}s\n"
        f"[bold]Phases:[/bold] {phases}"
    )
    if report.detail:
        body += f"\n[bold]Detail:[/bold] {report.detail}"
    style = "green" if report.outcome is ProbeOutcome.CONVERGED else "yellow"
    c.print(Panel(body, title="Rollout Gate", border_style=style))
