"""Topology and exec models for the StatefulSet being gated."""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel, Field, model_validator


class ClusterTopology(BaseModel):
    """Where the fleet lives and how to reach its metrics endpoint."""

    name: str = Field(..., description="StatefulSet name; pods are <name>-<index>")
    namespace: str
    replicas: int = Field(..., ge=0, description="Declared spec.replicas")
    http_port: int = Field(..., ge=1, le=65535)
    container: str = "db"
    service: str = Field(default="", description="Headless service name; defaults to the StatefulSet name")

    @model_validator(mode="after")
    def _default_service(self) -> ClusterTopology:
        if not self.service:
            self.service = self.name
        return self

    def pod_name(self, index: int) -> str:
        return f"{self.name}-{index}"

    def indices_descending(self) -> Iterator[int]:
        """Highest index first, the order a StatefulSet rolling update restarts pods."""
        return iter(range(self.replicas - 1, -1, -1))

    def status_vars_url(self, index: int) -> str:
        return f"https://{self.pod_name(index)}.{self.service}:{self.http_port}/_status/vars"


class ExecResult(BaseModel):
    """Captured output of a command run inside a pod."""

    stdout: str = ""
    stderr: str = ""
    error: str | None = Field(default=None, description="Set when the exec call itself failed")
