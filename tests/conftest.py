"""Pytest configuration and shared fixtures for platform manager tests.

Nothing here talks to AWS, kubectl, helm or terraform: every external call is
replaced on the module that owns it (``platform_manager.kube``,
``platform_manager.aws``) so consumers see the fakes through their module
imports.
"""

from __future__ import annotations

import pytest

from platform_manager import aws, kube, waiter
from platform_manager.config import ResolvedConfig
from platform_manager.errors import ProvisionerDestroyFailure
from tests.fakes import FakeCluster, FakeTerraform

_KUBE_FAKES = (
    "can_i", "verify_api", "list_names", "delete_resource", "delete_all", "namespace_exists",
    "delete_namespace", "namespace_phase", "namespace_finalizers",
)
_AWS_FAKES = (
    "update_kubeconfig", "count_tagged_security_groups", "count_load_balancer_interfaces",
    "inspection_commands",
)


@pytest.fixture
def cfg() -> ResolvedConfig:
    return ResolvedConfig(region="us-west-2", cluster_name="jb-demo")


@pytest.fixture
def recorded_sleeps(monkeypatch) -> list[float]:
    """Replace waiter sleeps with a recorder so polling runs instantly."""
    sleeps: list[float] = []
    monkeypatch.setattr(waiter, "_sleep", sleeps.append)
    return sleeps


@pytest.fixture
def fake_cluster(monkeypatch) -> FakeCluster:
    """FakeCluster wired into the kube and aws modules."""
    fake = FakeCluster()
    for name in _KUBE_FAKES:
        monkeypatch.setattr(kube, name, getattr(fake, name))
    for name in _AWS_FAKES:
        monkeypatch.setattr(aws, name, getattr(fake, name))
    return fake


@pytest.fixture
def fake_terraform(tmp_path) -> FakeTerraform:
    return FakeTerraform(tmp_path)


@pytest.fixture
def failing_terraform(tmp_path) -> FakeTerraform:
    tf = FakeTerraform(tmp_path)
    tf.destroy_error = ProvisionerDestroyFailure("exit code 1 in test")
    return tf
