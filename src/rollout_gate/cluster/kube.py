"""Kubernetes adapter: StatefulSet topology, readiness and exec into pods."""

from __future__ import annotations

import logging
import time
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream
from websocket import WebSocketException

from rollout_gate.cluster.models import ClusterTopology, ExecResult
from rollout_gate.config import Settings
from rollout_gate.errors import ClusterLookupError, ReadinessTimeout
from rollout_gate.waiter import Waiter

logger = logging.getLogger(__name__)

# Seconds to block on the websocket per read while draining exec output
EXEC_UPDATE_TIMEOUT = 1


def _load_kube_config(kubeconfig_path: str | None, context: str | None) -> client.Configuration:
    """Load in-cluster or kubeconfig-based configuration."""
    try:
        config.load_incluster_config()
        return client.Configuration.get_default_copy()
    except config.ConfigException:
        pass
    kwargs: dict[str, Any] = {}
    if kubeconfig_path:
        kwargs["config_file"] = str(kubeconfig_path)
    if context:
        kwargs["context"] = context
    config.load_kube_config(**kwargs)
    return client.Configuration.get_default_copy()


def _statefulset_ready(sts: Any, replicas: int) -> bool:
    """Return True once the controller observed the latest spec and every replica is ready.

    updated_replicas is ignored: mid-rollout only the pods restarted so far run the new revision.
    """
    status = sts.status
    if status is None:
        return False
    generation = getattr(sts.metadata, "generation", None)
    observed = status.observed_generation
    if generation is not None and (observed is None or observed < generation):
        return False
    return (status.replicas or 0) == replicas and (status.ready_replicas or 0) == replicas


def _exit_code(resp: Any) -> int | None:
    """Exit status reported on the exec error channel, if the server sent one."""
    try:
        return resp.returncode
    except (TypeError, KeyError, IndexError, ValueError):
        return None


class KubeCluster:
    """Reads the gated StatefulSet and runs commands in its pods."""

    def __init__(
        self,
        settings: Settings,
        waiter: Waiter | None = None,
        core_api: client.CoreV1Api | None = None,
        apps_api: client.AppsV1Api | None = None,
    ) -> None:
        self.settings = settings
        self.waiter = waiter or Waiter()
        if core_api is None or apps_api is None:
            kubeconfig = str(settings.kubeconfig) if settings.kubeconfig else None
            cfg = _load_kube_config(kubeconfig, settings.context)
            core_api = core_api or client.CoreV1Api(client.ApiClient(cfg))
            apps_api = apps_api or client.AppsV1Api(client.ApiClient(cfg))
        self._core = core_api
        self._apps = apps_api

    def topology(self) -> ClusterTopology:
        """Read spec.replicas of the StatefulSet and combine it with the configured endpoint."""
        name, namespace = self.settings.statefulset, self.settings.namespace
        try:
            sts = self._apps.read_namespaced_stateful_set(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                raise ClusterLookupError(name, namespace, "not found") from e
            logger.warning("Failed to read statefulset %s/%s: %s", namespace, name, e.reason)
            raise ClusterLookupError(name, namespace, f"API error: {e.reason}") from e
        replicas = sts.spec.replicas if sts.spec.replicas is not None else 1
        return ClusterTopology(
            name=name,
            namespace=namespace,
            replicas=replicas,
            http_port=self.settings.http_port,
            container=self.settings.container,
            service=getattr(sts.spec, "service_name", None) or name,
        )

    def wait_until_ready(self, namespace: str, name: str, replicas: int) -> None:
        """Poll the StatefulSet status until all replicas are ready, or raise ReadinessTimeout."""
        started = self.waiter.monotonic()
        deadline = started + self.settings.readiness_timeout_seconds
        ready = 0
        while True:
            try:
                sts = self._apps.read_namespaced_stateful_set_status(name=name, namespace=namespace)
            except ApiException as e:
                if e.status == 404:
                    raise ClusterLookupError(name, namespace, "not found") from e
                logger.warning("Failed to read statefulset status %s/%s: %s", namespace, name, e.reason)
            else:
                ready = (sts.status.ready_replicas or 0) if sts.status else 0
                if _statefulset_ready(sts, replicas):
                    logger.debug("statefulset %s/%s ready with %d replicas", namespace, name, replicas)
                    return
            now = self.waiter.monotonic()
            if now >= deadline:
                raise ReadinessTimeout(name, namespace, replicas, ready, now - started)
            logger.debug("waiting for statefulset %s/%s: %d/%d ready", namespace, name, ready, replicas)
            self.waiter.sleep(min(self.settings.readiness_poll_seconds, deadline - now))

    def exec_in_pod(self, namespace: str, pod_name: str, container: str, command: list[str]) -> ExecResult:
        """Run command in the container and collect stdout and stderr."""
        logger.debug("exec in pod %s/%s container=%s cmd=%s", namespace, pod_name, container, command)
        try:
            resp = stream(
                self._core.connect_get_namespaced_pod_exec,
                pod_name,
                namespace,
                container=container,
                command=command,
                stderr=True,
                stdin=False,
                stdout=True,
                tty=False,
                _preload_content=False,
            )
        except ApiException as e:
            return ExecResult(error=f"exec in pod {pod_name} failed: {e.reason}")
        except (WebSocketException, OSError) as e:
            return ExecResult(error=f"exec in pod {pod_name} failed: {e}")

        stdout: list[str] = []
        stderr: list[str] = []
        deadline = time.monotonic() + self.settings.exec_timeout_seconds
        try:
            while resp.is_open():
                if time.monotonic() > deadline:
                    return ExecResult(
                        stdout="".join(stdout),
                        stderr="".join(stderr),
                        error=f"exec in pod {pod_name} timed out after {self.settings.exec_timeout_seconds:g}s",
                    )
                resp.update(timeout=EXEC_UPDATE_TIMEOUT)
                if resp.peek_stdout():
                    stdout.append(resp.read_stdout())
                if resp.peek_stderr():
                    stderr.append(resp.read_stderr())
            code = _exit_code(resp)
        except (WebSocketException, OSError) as e:
            return ExecResult(
                stdout="".join(stdout),
                stderr="".join(stderr),
                error=f"exec in pod {pod_name} failed: {e}",
            )
        finally:
            resp.close()

        error = None
        if code:
            error = f"command terminated with exit code {code}"
        return ExecResult(stdout="".join(stdout), stderr="".join(stderr), error=error)
