"""Unit tests for the kubectl query wrappers.

``run_kubectl`` is replaced on the kube module with canned
``(ok, stdout, stderr)`` results, so the JSON parsing and error mapping run
for real.
"""

from __future__ import annotations

import base64
import json

import pytest

from platform_manager import kube

NOT_FOUND = 'Error from server (NotFound): namespaces "jb-dev" not found\n'
FORBIDDEN = (
    'Error from server (Forbidden): applications.argoproj.io is forbidden: User "dev" cannot list '
    'resource "applications" in API group "argoproj.io" in the namespace "argocd"\n'
)
NO_RESOURCE_TYPE = 'error: the server doesn\'t have a resource type "applications.argoproj.io"\n'


class KubectlStub:
    """Answers every kubectl query with one canned result and records the arguments."""

    def __init__(self, ok: bool = True, stdout: str = "", stderr: str = ""):
        self.result = (ok, stdout, stderr)
        self.calls: list[list[str]] = []

    def __call__(self, args, timeout=30):
        self.calls.append(list(args))
        return self.result


@pytest.fixture
def kubectl(monkeypatch) -> KubectlStub:
    stub = KubectlStub()
    monkeypatch.setattr(kube, "run_kubectl", stub)
    return stub


def _node(name: str, ready: str) -> dict:
    return {
        "metadata": {"name": name},
        "status": {"conditions": [
            {"type": "MemoryPressure", "status": "False"},
            {"type": "Ready", "status": ready},
        ]},
    }


@pytest.mark.unit
@pytest.mark.wrappers
class TestJsonQueries:
    def test_ready_node_count(self, kubectl):
        """
        GIVEN three nodes, one of them NotReady and one with no conditions yet
        WHEN ready nodes are counted
        THEN only the node whose Ready condition is True counts
        """
        kubectl.result = (True, json.dumps({"items": [
            _node("ip-10-0-1-10", "True"),
            _node("ip-10-0-2-11", "False"),
            {"metadata": {"name": "ip-10-0-3-12"}, "status": {}},
        ]}), "")

        assert kube.ready_node_count() == 1
        assert kubectl.calls == [["get", "nodes", "-o", "json"]]

    def test_ready_node_count_empty_list(self, kubectl):
        kubectl.result = (True, json.dumps({"kind": "List", "items": []}), "")

        assert kube.ready_node_count() == 0

    def test_failed_query_raises_with_stderr(self, kubectl):
        kubectl.result = (False, "", "The connection to the server was refused\n")

        with pytest.raises(RuntimeError, match="connection to the server was refused"):
            kube.ready_node_count()

    def test_non_json_output_raises(self, kubectl):
        kubectl.result = (True, "No resources found\n", "")

        with pytest.raises(ValueError):
            kube.ready_node_count()

    def test_endpoint_addresses(self, kubectl):
        kubectl.result = (True, json.dumps({"subsets": [
            {"addresses": [{"ip": "10.0.1.15"}, {"ip": "10.0.2.31"}], "ports": [{"port": 9443}]},
            {"notReadyAddresses": [{"ip": "10.0.3.7"}]},
        ]}), "")

        addresses = kube.endpoint_addresses("kube-system", "aws-load-balancer-webhook-service")

        assert addresses == ["10.0.1.15", "10.0.2.31"]
        assert kubectl.calls[0] == [
            "-n", "kube-system", "get", "endpoints", "aws-load-balancer-webhook-service", "-o", "json",
        ]

    def test_endpoint_without_subsets_has_no_addresses(self, kubectl):
        """
        GIVEN an Endpoints object the controller has not populated yet
        WHEN its addresses are read
        THEN the result is empty rather than an error
        """
        kubectl.result = (True, json.dumps({"metadata": {"name": "aws-load-balancer-webhook-service"}}), "")

        assert kube.endpoint_addresses("kube-system", "aws-load-balancer-webhook-service") == []


@pytest.mark.unit
@pytest.mark.wrappers
class TestNamespaceQueries:
    def test_phase_of_terminating_namespace(self, kubectl):
        kubectl.result = (True, json.dumps({"status": {"phase": "Terminating"}}), "")

        assert kube.namespace_phase("jb-dev") == "Terminating"
        assert kube.namespace_exists("jb-dev") is True

    def test_missing_namespace_is_none(self, kubectl):
        """
        GIVEN kubectl reports NotFound for the namespace
        WHEN its phase and existence are checked
        THEN the namespace counts as gone instead of raising
        """
        kubectl.result = (False, "", NOT_FOUND)

        assert kube.namespace_phase("jb-dev") is None
        assert kube.namespace_exists("jb-dev") is False
        assert kube.namespace_finalizers("jb-dev") == []

    def test_other_errors_raise(self, kubectl):
        kubectl.result = (False, "", "Unable to connect to the server: dial tcp: i/o timeout\n")

        with pytest.raises(RuntimeError, match="Unable to connect"):
            kube.namespace_phase("jb-dev")

    def test_finalizers_from_spec_and_metadata(self, kubectl):
        kubectl.result = (True, json.dumps({
            "metadata": {"name": "jb-dev", "finalizers": ["example.com/cleanup"]},
            "spec": {"finalizers": ["kubernetes"]},
        }), "")

        assert kube.namespace_finalizers("jb-dev") == ["kubernetes", "example.com/cleanup"]


@pytest.mark.unit
@pytest.mark.wrappers
class TestListNames:
    def test_lists_object_names(self, kubectl):
        kubectl.result = (True, "application.argoproj.io/root\n\napplication.argoproj.io/jb-dev\n", "")

        names = kube.list_names("applications.argoproj.io", "argocd")

        assert names == ["application.argoproj.io/root", "application.argoproj.io/jb-dev"]
        assert kubectl.calls[0] == ["-n", "argocd", "get", "applications.argoproj.io", "-o", "name"]

    def test_unknown_resource_type_is_empty(self, kubectl):
        """
        GIVEN the Argo CD CRDs were never installed
        WHEN applications are listed
        THEN there is nothing to delete
        """
        kubectl.result = (False, "", NO_RESOURCE_TYPE)

        assert kube.list_names("applications.argoproj.io", "argocd") == []

    def test_forbidden_raises(self, kubectl):
        kubectl.result = (False, "", FORBIDDEN)

        with pytest.raises(RuntimeError, match="Forbidden"):
            kube.list_names("applications.argoproj.io", "argocd")


@pytest.mark.unit
@pytest.mark.wrappers
class TestSecretValue:
    def test_decodes_value(self, kubectl):
        kubectl.result = (True, base64.b64encode(b"s3cr3t-Pa55").decode(), "")

        assert kube.secret_value("argocd", "argocd-initial-admin-secret", "password") == "s3cr3t-Pa55"
        assert kubectl.calls[0][-1] == "jsonpath={.data.password}"

    def test_missing_secret_is_none(self, kubectl):
        kubectl.result = (False, "", 'Error from server (NotFound): secrets "argocd-initial-admin-secret" not found')

        assert kube.secret_value("argocd", "argocd-initial-admin-secret", "password") is None

    def test_malformed_base64_is_none(self, kubectl):
        """
        GIVEN secret data that is not valid base64
        WHEN the value is read
        THEN None is returned instead of a decode error
        """
        kubectl.result = (True, "not*base64!", "")

        assert kube.secret_value("argocd", "argocd-initial-admin-secret", "password") is None

    def test_non_utf8_value_is_none(self, kubectl):
        kubectl.result = (True, base64.b64encode(b"\xff\xfe\xfd").decode(), "")

        assert kube.secret_value("argocd", "argocd-initial-admin-secret", "password") is None
