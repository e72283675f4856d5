"""Unit tests for EKS control plane and node readiness."""

from __future__ import annotations

import pytest

from platform_manager import aws, cluster, kube
from platform_manager.errors import ConvergenceTimeout, UnreachableError


@pytest.fixture
def statuses(monkeypatch):
    """Control plane statuses returned one per describe call; the last one repeats."""
    sequence: list[str] = []

    def cluster_status(region, cluster_name):
        return sequence.pop(0) if len(sequence) > 1 else sequence[0]

    monkeypatch.setattr(aws, "cluster_status", cluster_status)
    return sequence


@pytest.mark.unit
@pytest.mark.cluster
class TestControlPlane:
    def test_active_on_third_poll(self, cfg, statuses, recorded_sleeps):
        """
        GIVEN the cluster reports ACTIVE on the 3rd poll
        WHEN waiting with a 10 second interval
        THEN the wait succeeds after 20-30 seconds of sleeping
        """
        statuses.extend(["CREATING", "CREATING", "ACTIVE"])

        outcome = cluster.wait_for_control_plane(cfg, timeout=600, interval=10)

        assert outcome.succeeded
        assert outcome.attempts == 3
        assert recorded_sleeps == [10, 10]
        assert 20 <= sum(recorded_sleeps) <= 30

    def test_describe_errors_are_retried(self, cfg, monkeypatch, recorded_sleeps):
        replies = iter([RuntimeError("ResourceNotFoundException"), "ACTIVE"])

        def cluster_status(region, cluster_name):
            reply = next(replies)
            if isinstance(reply, Exception):
                raise reply
            return reply

        monkeypatch.setattr(aws, "cluster_status", cluster_status)

        assert cluster.wait_for_control_plane(cfg).succeeded

    def test_never_active_times_out(self, cfg, statuses):
        """
        GIVEN the cluster stays CREATING
        WHEN the wait runs out
        THEN ConvergenceTimeout names the last status
        """
        statuses.append("CREATING")

        with pytest.raises(ConvergenceTimeout) as exc_info:
            cluster.wait_for_control_plane(cfg, timeout=0.1, interval=0.02)

        assert exc_info.value.stage == "cluster"
        assert exc_info.value.outcome.last_observed == "CREATING"


@pytest.mark.unit
@pytest.mark.cluster
class TestReadyNodes:
    def test_waits_for_first_ready_node(self, monkeypatch, recorded_sleeps):
        counts = iter([0, 0, 2])
        monkeypatch.setattr(kube, "ready_node_count", lambda: next(counts))

        outcome = cluster.wait_for_ready_nodes(timeout=600, interval=10)

        assert outcome.last_observed == "2"
        assert recorded_sleeps == [10, 10]

    def test_no_nodes_dumps_node_table(self, monkeypatch):
        dumped = []
        monkeypatch.setattr(kube, "ready_node_count", lambda: 0)
        monkeypatch.setattr(kube, "node_table", lambda: dumped.append(True) or "No resources found")

        with pytest.raises(ConvergenceTimeout):
            cluster.wait_for_ready_nodes(timeout=0.1, interval=0.02)

        assert dumped == [True]


@pytest.mark.unit
@pytest.mark.cluster
class TestEnsureClusterReady:
    def test_probe_order(self, cfg, monkeypatch, recorded_sleeps):
        """
        GIVEN a healthy account and cluster
        WHEN ensure_cluster_ready runs
        THEN identity, control plane, kubeconfig, API and nodes are checked in that order
        """
        calls = []
        monkeypatch.setattr(aws, "caller_identity", lambda: calls.append("identity") or "arn:aws:iam::1:user/ops")
        monkeypatch.setattr(aws, "cluster_status", lambda region, name: calls.append("status") or "ACTIVE")
        monkeypatch.setattr(aws, "update_kubeconfig", lambda region, name: calls.append("kubeconfig"))
        monkeypatch.setattr(kube, "verify_api", lambda: calls.append("api"))
        monkeypatch.setattr(kube, "ready_node_count", lambda: calls.append("nodes") or 1)

        cluster.ensure_cluster_ready(cfg)

        assert calls == ["identity", "status", "kubeconfig", "api", "nodes"]

    def test_unreachable_api_stops_before_nodes(self, cfg, monkeypatch, recorded_sleeps):
        def verify_api():
            raise UnreachableError("kubectl cannot reach the cluster")

        monkeypatch.setattr(aws, "caller_identity", lambda: "arn")
        monkeypatch.setattr(aws, "cluster_status", lambda region, name: "ACTIVE")
        monkeypatch.setattr(aws, "update_kubeconfig", lambda region, name: None)
        monkeypatch.setattr(kube, "verify_api", verify_api)
        monkeypatch.setattr(kube, "ready_node_count", lambda: pytest.fail("nodes probed"))

        with pytest.raises(UnreachableError) as exc_info:
            cluster.ensure_cluster_ready(cfg)

        assert exc_info.value.stage == "connect"
