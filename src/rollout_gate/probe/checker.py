"""Scrape one pod's under-replicated gauge, and sweep the whole fleet."""

from __future__ import annotations

import logging

from rollout_gate.cluster.interfaces import PodExecutor
from rollout_gate.cluster.models import ClusterTopology
from rollout_gate.config import Settings
from rollout_gate.errors import MetricParseError
from rollout_gate.metrics.extractor import classify_sample, extract_metric
from rollout_gate.metrics.models import CheckResult, CheckStatus

logger = logging.getLogger(__name__)

SCRAPE_COMMAND = "curl -ks {url} | grep 'ranges_underreplicated{{'"


def scrape_command(topology: ClusterTopology, replica_index: int) -> list[str]:
    return ["/bin/bash", "-c", SCRAPE_COMMAND.format(url=topology.status_vars_url(replica_index))]


def check_pod(
    executor: PodExecutor,
    topology: ClusterTopology,
    replica_index: int,
    settings: Settings,
) -> CheckResult:
    """Classify the under-replicated gauge of a single pod."""
    pod = topology.pod_name(replica_index)
    cmd = scrape_command(topology, replica_index)
    logger.debug("get ranges_underreplicated metric: pod=%s cmd=%s", pod, cmd)
    res = executor.exec_in_pod(topology.namespace, pod, topology.container, cmd)

    # A missing tool also writes to stderr, so it must be recognised first
    if res.stderr and settings.tool_missing_marker in res.stderr:
        logger.debug("scrape tool not found in pod %s", pod)
        return CheckResult(
            status=CheckStatus.TOOL_UNAVAILABLE,
            replica_index=replica_index,
            pod_name=pod,
            detail=res.stderr.strip(),
        )
    if res.stderr:
        return CheckResult(
            status=CheckStatus.TRANSPORT_FAILURE,
            replica_index=replica_index,
            pod_name=pod,
            detail=f"exec in pod {pod} failed with stderr: {res.stderr.strip()}",
        )
    if res.error:
        return CheckResult(
            status=CheckStatus.TRANSPORT_FAILURE,
            replica_index=replica_index,
            pod_name=pod,
            detail=f"health check probe for pod {pod} failed: {res.error}",
        )

    try:
        sample = extract_metric(res.stdout, settings.metric_prefix, replica_index)
    except MetricParseError as e:
        return CheckResult(
            status=CheckStatus.PARSE_ERROR,
            replica_index=replica_index,
            pod_name=pod,
            detail=str(e),
            parse_error=e.kind,
        )
    result = classify_sample(sample, replica_index, pod)
    logger.debug("pod %s store %s under_replicated=%g", pod, sample.store_label, sample.value)
    return result


def sweep_fleet(executor: PodExecutor, topology: ClusterTopology, settings: Settings) -> CheckResult:
    """Check every pod from the highest index down; return the first pod that has not converged."""
    logger.debug("checking ranges_underreplicated on %d replicas of %s", topology.replicas, topology.name)
    for index in topology.indices_descending():
        result = check_pod(executor, topology, index, settings)
        if not result.ok:
            return result
    return CheckResult(status=CheckStatus.CONVERGED, detail=f"all {topology.replicas} replicas converged")
