"""Metric layer: parse and classify the under-replicated ranges gauge."""

from rollout_gate.metrics.extractor import classify_sample, extract_metric
from rollout_gate.metrics.models import (
    CheckResult,
    CheckStatus,
    MetricSample,
    ParseErrorKind,
    ProbeOutcome,
)

__all__ = [
    "classify_sample",
    "extract_metric",
    "CheckResult",
    "CheckStatus",
    "MetricSample",
    "ParseErrorKind",
    "ProbeOutcome",
]
