"""Configuration and environment for the rollout gate."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

UNDERREPLICATED_METRIC_PREFIX = 'ranges_underreplicated{store="'
CURL_NOT_FOUND_MARKER = "curl: command not found"


class Settings(BaseSettings):
    """Gate settings loaded from environment and .env."""

    model_config = SettingsConfigDict(
        env_prefix="ROLLOUT_GATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Kubernetes
    kubeconfig: Path | None = Field(
        default=None,
        description="Path to kubeconfig; uses KUBECONFIG env or default location if unset",
    )
    context: str | None = Field(default=None, description="Kubernetes context to use")
    namespace: str = Field(default="default", description="Namespace of the StatefulSet")
    statefulset: str = Field(default="cockroachdb", description="Name of the StatefulSet to gate")
    http_port: int = Field(default=8080, ge=1, le=65535, description="Port serving /_status/vars")
    container: str = Field(default="db", description="Container to exec the scrape in")

    # Metric
    metric_prefix: str = Field(
        default=UNDERREPLICATED_METRIC_PREFIX,
        description="Line prefix of the under-replicated ranges gauge",
    )
    tool_missing_marker: str = Field(
        default=CURL_NOT_FOUND_MARKER,
        description="stderr substring meaning the scrape tool is absent from the image",
    )

    # Gate policy
    fallback_delay_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Fixed wait used instead of polling when the scrape tool is missing",
    )
    settle_delay_seconds: float = Field(
        default=22.0,
        ge=0.0,
        description="Wait between the first and second convergence checks",
    )
    backoff_initial_interval_seconds: float = Field(default=0.5, gt=0.0)
    backoff_multiplier: float = Field(default=1.5, ge=1.0)
    backoff_randomization_factor: float = Field(default=0.5, ge=0.0, le=1.0)
    backoff_max_interval_seconds: float = Field(default=10.0, gt=0.0)
    backoff_max_elapsed_seconds: float = Field(
        default=180.0,
        gt=0.0,
        description="Wall-clock budget of a single convergence check",
    )

    # Kubernetes adapter timings
    readiness_timeout_seconds: float = Field(default=300.0, gt=0.0)
    readiness_poll_seconds: float = Field(default=5.0, gt=0.0)
    exec_timeout_seconds: float = Field(default=30.0, gt=0.0)


def get_settings() -> Settings:
    """Return validated settings instance."""
    return Settings()
