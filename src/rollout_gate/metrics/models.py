"""Structured results of scraping and classifying the under-replicated gauge."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ParseErrorKind(str, Enum):
    """Why a scrape line could not be parsed."""

    EMPTY_OUTPUT = "empty_output"
    PREFIX_MISMATCH = "prefix_mismatch"
    MALFORMED_LINE = "malformed_line"
    NUMBER_FORMAT = "number_format"


class CheckStatus(str, Enum):
    """Classification of a single pod check or of a whole fleet sweep."""

    CONVERGED = "converged"
    NOT_CONVERGED = "not_converged"
    PARSE_ERROR = "parse_error"
    TOOL_UNAVAILABLE = "tool_unavailable"
    TRANSPORT_FAILURE = "transport_failure"


class ProbeOutcome(str, Enum):
    """Terminal verdict of a probe.

    FAILED names the verdict carried by a raised HealthCheckError; a returned
    ProbeReport is only ever CONVERGED or TOOL_UNAVAILABLE.
    """

    CONVERGED = "converged"
    TOOL_UNAVAILABLE = "tool_unavailable"
    FAILED = "failed"


class MetricSample(BaseModel):
    """One parsed `ranges_underreplicated{store="N"} V` line."""

    store_label: str
    value: float
    raw: str


class CheckResult(BaseModel):
    """Outcome of checking one pod, or a fleet when replica_index is None."""

    status: CheckStatus
    replica_index: int | None = None
    pod_name: str | None = None
    detail: str = ""
    sample: MetricSample | None = None
    parse_error: ParseErrorKind | None = Field(
        default=None,
        description="Set only when status is parse_error",
    )

    @property
    def ok(self) -> bool:
        return self.status is CheckStatus.CONVERGED

    def describe(self) -> str:
        """One-line human readable rendering for logs and error messages."""
        target = self.pod_name or "fleet"
        if self.status is CheckStatus.NOT_CONVERGED and self.sample is not None:
            return (
                f"{target}: under-replicated ranges is {self.sample.value:g} "
                f"(store {self.sample.store_label}, replica {self.replica_index})"
            )
        text = f"{target}: {self.status.value}"
        if self.parse_error is not None:
            text += f" [{self.parse_error.value}]"
        if self.detail:
            text += f" - {self.detail}"
        return text
