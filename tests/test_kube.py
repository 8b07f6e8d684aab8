"""Tests for the Kubernetes adapter using mocked API clients."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException
from websocket import WebSocketConnectionClosedException

from conftest import FakeWaiter, metric_line
from rollout_gate.cluster import KubeCluster
from rollout_gate.errors import ClusterLookupError, ReadinessTimeout


def sts_status(ready, updated=None, replicas=3, generation=2, observed=2):
    return SimpleNamespace(
        metadata=SimpleNamespace(generation=generation),
        status=SimpleNamespace(
            ready_replicas=ready,
            updated_replicas=ready if updated is None else updated,
            replicas=replicas,
            observed_generation=observed,
        ),
    )


class FakeExecStream:
    """Mimics the WSClient returned by kubernetes.stream with _preload_content=False."""

    def __init__(self, stdout="", stderr="", returncode=0, updates=1):
        self._stdout = stdout
        self._stderr = stderr
        self._updates = updates
        self.returncode = returncode
        self.closed = False

    def is_open(self):
        return self._updates > 0

    def update(self, timeout=0):
        self._updates -= 1

    def peek_stdout(self):
        return bool(self._stdout)

    def read_stdout(self):
        out, self._stdout = self._stdout, ""
        return out

    def peek_stderr(self):
        return bool(self._stderr)

    def read_stderr(self):
        err, self._stderr = self._stderr, ""
        return err

    def close(self):
        self.closed = True


@pytest.fixture
def apis():
    return MagicMock(), MagicMock()


@pytest.fixture
def cluster(settings, apis):
    core, apps = apis
    settings.namespace = "db"
    settings.statefulset = "crdb"
    settings.readiness_timeout_seconds = 30
    settings.readiness_poll_seconds = 5
    return KubeCluster(settings, FakeWaiter(), core_api=core, apps_api=apps)


class TestTopology:
    def test_reads_declared_replicas(self, cluster, apis) -> None:
        _, apps = apis
        apps.read_namespaced_stateful_set.return_value = SimpleNamespace(
            spec=SimpleNamespace(replicas=5, service_name="crdb")
        )
        topo = cluster.topology()
        apps.read_namespaced_stateful_set.assert_called_once_with(name="crdb", namespace="db")
        assert topo.replicas == 5
        assert topo.http_port == 8080
        assert topo.container == "db"
        assert topo.pod_name(4) == "crdb-4"

    def test_missing_statefulset(self, cluster, apis) -> None:
        _, apps = apis
        apps.read_namespaced_stateful_set.side_effect = ApiException(status=404, reason="Not Found")
        with pytest.raises(ClusterLookupError) as exc:
            cluster.topology()
        assert "not found" in str(exc.value)

    def test_api_error(self, cluster, apis) -> None:
        _, apps = apis
        apps.read_namespaced_stateful_set.side_effect = ApiException(status=500, reason="Internal Server Error")
        with pytest.raises(ClusterLookupError) as exc:
            cluster.topology()
        assert "Internal Server Error" in str(exc.value)


class TestWaitUntilReady:
    def test_returns_once_all_replicas_ready(self, cluster, apis) -> None:
        _, apps = apis
        apps.read_namespaced_stateful_set_status.side_effect = [
            sts_status(1),
            sts_status(3, observed=1),
            sts_status(3, replicas=4),
            sts_status(3),
        ]
        cluster.wait_until_ready("db", "crdb", 3)
        assert apps.read_namespaced_stateful_set_status.call_count == 4
        assert cluster.waiter.sleeps == [5, 5, 5]

    def test_partially_updated_fleet_is_ready(self, cluster, apis) -> None:
        _, apps = apis
        # partitioned rollout: only the highest replica runs the new revision so far
        apps.read_namespaced_stateful_set_status.return_value = sts_status(3, updated=1)
        cluster.wait_until_ready("db", "crdb", 3)
        assert apps.read_namespaced_stateful_set_status.call_count == 1
        assert cluster.waiter.sleeps == []

    def test_transient_api_error_keeps_polling(self, cluster, apis) -> None:
        _, apps = apis
        apps.read_namespaced_stateful_set_status.side_effect = [
            ApiException(status=503, reason="Service Unavailable"),
            sts_status(3),
        ]
        cluster.wait_until_ready("db", "crdb", 3)
        assert cluster.waiter.sleeps == [5]

    def test_times_out(self, cluster, apis) -> None:
        _, apps = apis
        apps.read_namespaced_stateful_set_status.return_value = sts_status(2)
        with pytest.raises(ReadinessTimeout) as exc:
            cluster.wait_until_ready("db", "crdb", 3)
        assert exc.value.ready == 2
        assert exc.value.expected == 3
        assert sum(cluster.waiter.sleeps) == 30

    def test_deleted_statefulset(self, cluster, apis) -> None:
        _, apps = apis
        apps.read_namespaced_stateful_set_status.side_effect = ApiException(status=404, reason="Not Found")
        with pytest.raises(ClusterLookupError):
            cluster.wait_until_ready("db", "crdb", 3)


class TestExecInPod:
    def test_collects_stdout(self, cluster, apis) -> None:
        core, _ = apis
        resp = FakeExecStream(stdout=metric_line(1, 0))
        with patch("rollout_gate.cluster.kube.stream", return_value=resp) as mock_stream:
            res = cluster.exec_in_pod("db", "crdb-0", "db", ["/bin/bash", "-c", "true"])
        assert res.stdout == metric_line(1, 0)
        assert res.stderr == ""
        assert res.error is None
        assert resp.closed
        args, kwargs = mock_stream.call_args
        assert args == (core.connect_get_namespaced_pod_exec, "crdb-0", "db")
        assert kwargs["container"] == "db"
        assert kwargs["command"] == ["/bin/bash", "-c", "true"]
        assert kwargs["_preload_content"] is False

    def test_collects_stderr_and_exit_code(self, cluster) -> None:
        resp = FakeExecStream(stderr="/bin/bash: curl: command not found\n", returncode=127)
        with patch("rollout_gate.cluster.kube.stream", return_value=resp):
            res = cluster.exec_in_pod("db", "crdb-0", "db", ["curl"])
        assert "command not found" in res.stderr
        assert res.error == "command terminated with exit code 127"

    def test_api_exception_becomes_error(self, cluster) -> None:
        with patch("rollout_gate.cluster.kube.stream", side_effect=ApiException(status=403, reason="Forbidden")):
            res = cluster.exec_in_pod("db", "crdb-0", "db", ["curl"])
        assert res.stdout == ""
        assert "Forbidden" in res.error

    def test_websocket_drop_becomes_error(self, cluster) -> None:
        resp = FakeExecStream(stdout="partial")
        resp.update = MagicMock(side_effect=WebSocketConnectionClosedException("closed"))
        with patch("rollout_gate.cluster.kube.stream", return_value=resp):
            res = cluster.exec_in_pod("db", "crdb-0", "db", ["curl"])
        assert "closed" in res.error
        assert resp.closed
