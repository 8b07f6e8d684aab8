"""Parse the under-replicated ranges gauge out of a /_status/vars scrape."""

from __future__ import annotations

import logging
import math

from rollout_gate.errors import MetricParseError
from rollout_gate.metrics.models import CheckResult, CheckStatus, MetricSample, ParseErrorKind

logger = logging.getLogger(__name__)


def _store_label(label: str, prefix: str) -> str:
    """Return the store id between the prefix and the closing quote."""
    rest = label[len(prefix):]
    end = rest.find('"')
    return rest[:end] if end >= 0 else ""


def extract_metric(raw_line: str, expected_prefix: str, replica_index: int) -> MetricSample:
    """
    Parse a line like `ranges_underreplicated{store="1"} 0` into a MetricSample.

    Raises MetricParseError when the output is empty, does not start with
    expected_prefix (e.g. an HTTP error page), has no value token, or the value
    is not a number. Whether the value means convergence is decided by
    classify_sample.
    """
    if not raw_line:
        raise MetricParseError(
            ParseErrorKind.EMPTY_OUTPUT,
            f"non existing ranges_underreplicated metric for partition {replica_index}",
            replica_index,
        )
    if not raw_line.startswith(expected_prefix):
        raise MetricParseError(
            ParseErrorKind.PREFIX_MISMATCH,
            f"incorrect format of the output: actual={raw_line!r} expected to start with={expected_prefix}",
            replica_index,
        )
    tokens = raw_line.split(None, 1)
    if len(tokens) < 2:
        raise MetricParseError(
            ParseErrorKind.MALFORMED_LINE,
            f"incorrect format of the output: actual={raw_line!r} has no value",
            replica_index,
        )
    text = tokens[1].rstrip("\r\n")
    try:
        value = float(text)
    except ValueError as e:
        raise MetricParseError(
            ParseErrorKind.NUMBER_FORMAT,
            f"metric value {text!r} for partition {replica_index} is not a number",
            replica_index,
        ) from e
    if math.isnan(value):
        raise MetricParseError(
            ParseErrorKind.NUMBER_FORMAT,
            f"metric value for partition {replica_index} is NaN",
            replica_index,
        )
    return MetricSample(store_label=_store_label(tokens[0], expected_prefix), value=value, raw=raw_line)


def classify_sample(sample: MetricSample, replica_index: int, pod_name: str | None = None) -> CheckResult:
    """Map a parsed sample to converged (value <= 0) or not converged."""
    if sample.value > 0:
        logger.debug("Metric is greater than 0: under_replicated=%s partition=%s", sample.value, replica_index)
        return CheckResult(
            status=CheckStatus.NOT_CONVERGED,
            replica_index=replica_index,
            pod_name=pod_name,
            detail=f"under replica is not zero for partition {replica_index}",
            sample=sample,
        )
    return CheckResult(
        status=CheckStatus.CONVERGED,
        replica_index=replica_index,
        pod_name=pod_name,
        sample=sample,
    )
