# /*
# Copyright 2026 The Platform Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Cluster API operations through kubectl.

Mutations go through ``sh.kubectl`` and raise MutationFailure when kubectl
exits non-zero. Queries go through ``run_kubectl`` and raise RuntimeError on
failure so convergence probes can count them as "not yet".
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path

import sh
import yaml

from platform_manager import logger
from platform_manager.errors import MutationFailure, UnreachableError
from platform_manager.utils import error_text, run_kubectl


# ============================================================================
# Mutations
# ============================================================================

def apply_manifest(manifest: dict) -> None:
    """Create-or-update a single object from its manifest.

    Args:
        manifest: Kubernetes object as a dictionary.

    Raises:
        MutationFailure: If kubectl rejects the object.
    """
    kind = manifest.get("kind", "object")
    name = manifest.get("metadata", {}).get("name", "?")
    try:
        sh.kubectl("apply", "-f", "-", _in=yaml.safe_dump(manifest, default_flow_style=False))
    except sh.ErrorReturnCode as err:
        raise MutationFailure(f"kubectl apply {kind}/{name} failed: {error_text(err)}") from err


def apply_file(path: Path) -> None:
    """Apply every object in a manifest file.

    Raises:
        MutationFailure: If the file is missing or kubectl rejects it.
    """
    if not path.is_file():
        raise MutationFailure(f"Manifest not found: {path}")
    try:
        sh.kubectl("apply", "-f", str(path))
    except sh.ErrorReturnCode as err:
        raise MutationFailure(f"kubectl apply -f {path} failed: {error_text(err)}") from err


def ensure_namespace(name: str) -> None:
    """Create the namespace if it does not exist yet."""
    apply_manifest({"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}})


def apply_service_account(namespace: str, name: str, annotations: dict[str, str]) -> None:
    """Create-or-update an annotated ServiceAccount."""
    apply_manifest({
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": {"name": name, "namespace": namespace, "annotations": dict(annotations)},
    })


def delete_resource(resource: str, namespace: str) -> None:
    """Issue a non-blocking delete for one object (``kind/name``).

    Raises:
        MutationFailure: If kubectl refuses the delete.
    """
    try:
        sh.kubectl("-n", namespace, "delete", resource, "--ignore-not-found=true", "--wait=false")
    except sh.ErrorReturnCode as err:
        raise MutationFailure(f"kubectl delete {resource} -n {namespace} failed: {error_text(err)}") from err


def delete_all(kind: str, namespace: str) -> None:
    """Issue a non-blocking delete for every object of *kind* in *namespace*."""
    try:
        sh.kubectl("-n", namespace, "delete", kind, "--all", "--ignore-not-found=true", "--wait=false")
    except sh.ErrorReturnCode as err:
        raise MutationFailure(f"kubectl delete {kind} --all -n {namespace} failed: {error_text(err)}") from err


def delete_namespace(name: str) -> None:
    """Issue a non-blocking namespace delete."""
    try:
        sh.kubectl("delete", "namespace", name, "--ignore-not-found=true", "--wait=false")
    except sh.ErrorReturnCode as err:
        raise MutationFailure(f"kubectl delete namespace {name} failed: {error_text(err)}") from err


# ============================================================================
# Connectivity
# ============================================================================

def verify_api() -> None:
    """Check that the API server answers with the current kubeconfig.

    Raises:
        UnreachableError: If ``kubectl cluster-info`` fails.
    """
    ok, _, stderr = run_kubectl(["cluster-info"], timeout=60)
    if not ok:
        raise UnreachableError(f"kubectl cannot reach the cluster: {stderr.strip()[:300]}")


def can_i(verb: str, resource: str) -> bool:
    """Whether the current identity is authorized for *verb* on *resource*."""
    ok, stdout, _ = run_kubectl(["auth", "can-i", verb, resource])
    return ok and stdout.strip() == "yes"


# ============================================================================
# Queries
# ============================================================================

def _get_json(args: list[str]) -> dict:
    ok, stdout, stderr = run_kubectl([*args, "-o", "json"])
    if not ok:
        raise RuntimeError(stderr.strip() or f"kubectl {' '.join(args)} failed")
    return json.loads(stdout)


def ready_node_count() -> int:
    """Number of nodes whose Ready condition is True."""
    nodes = _get_json(["get", "nodes"]).get("items", [])
    return sum(
        1 for node in nodes
        if any(c.get("type") == "Ready" and c.get("status") == "True"
               for c in node.get("status", {}).get("conditions", []))
    )


def rollout_status(namespace: str, deployment: str) -> tuple[bool, str]:
    """Current rollout state of a deployment without blocking.

    Returns:
        Tuple of (complete, kubectl status message).
    """
    ok, stdout, stderr = run_kubectl(
        ["-n", namespace, "rollout", "status", f"deployment/{deployment}", "--watch=false"]
    )
    if not ok:
        raise RuntimeError(stderr.strip() or f"rollout status for {deployment} failed")
    message = stdout.strip()
    return "successfully rolled out" in message, message


def endpoint_addresses(namespace: str, service: str) -> list[str]:
    """Ready endpoint IPs behind a service."""
    endpoints = _get_json(["-n", namespace, "get", "endpoints", service])
    return [
        address["ip"]
        for subset in endpoints.get("subsets") or []
        for address in subset.get("addresses") or []
        if address.get("ip")
    ]


def _get_namespace(name: str) -> dict | None:
    ok, stdout, stderr = run_kubectl(["get", "namespace", name, "-o", "json"])
    if ok:
        return json.loads(stdout)
    if "NotFound" in stderr:
        return None
    raise RuntimeError(stderr.strip() or f"kubectl get namespace {name} failed")


def namespace_exists(name: str) -> bool:
    return _get_namespace(name) is not None


def namespace_phase(name: str) -> str | None:
    """Phase of a namespace, or None once it is gone."""
    ns = _get_namespace(name)
    if ns is None:
        return None
    return ns.get("status", {}).get("phase", "Unknown")


def namespace_finalizers(name: str) -> list[str]:
    """Finalizers still holding a namespace (spec and metadata), empty if gone."""
    ns = _get_namespace(name)
    if ns is None:
        return []
    return list(ns.get("spec", {}).get("finalizers") or []) + list(
        ns.get("metadata", {}).get("finalizers") or []
    )


def list_names(resource: str, namespace: str) -> list[str]:
    """``kind/name`` of every object of *resource* in *namespace*.

    Returns an empty list when the API server does not know the resource type
    (for example, Argo CD was never installed).

    Raises:
        RuntimeError: If kubectl fails for any other reason, e.g. Forbidden.
    """
    ok, stdout, stderr = run_kubectl(["-n", namespace, "get", resource, "-o", "name"])
    if not ok:
        if "the server doesn't have a resource type" in stderr:
            logger.debug("Resource type %s is not installed: %s", resource, stderr.strip())
            return []
        raise RuntimeError(stderr.strip() or f"kubectl get {resource} -n {namespace} failed")
    return [line.strip() for line in stdout.splitlines() if line.strip()]


def secret_value(namespace: str, name: str, key: str) -> str | None:
    """Decoded value of one secret key, or None if unavailable or malformed."""
    ok, stdout, _ = run_kubectl(["-n", namespace, "get", "secret", name, "-o", f"jsonpath={{.data.{key}}}"])
    if not ok or not stdout.strip():
        return None
    try:
        return base64.b64decode(stdout.strip(), validate=True).decode()
    except (binascii.Error, UnicodeDecodeError):
        logger.debug("Secret %s/%s key %s is not valid base64 text", namespace, name, key)
        return None


# ============================================================================
# Diagnostics
# ============================================================================

def describe_pods(namespace: str, selector: str) -> str:
    """``kubectl get pods -o wide`` output for a label selector."""
    ok, stdout, stderr = run_kubectl(["-n", namespace, "get", "pods", "-l", selector, "-o", "wide"])
    return stdout if ok else stderr


def deployment_logs(namespace: str, deployment: str, tail: int) -> str:
    ok, stdout, stderr = run_kubectl(
        ["-n", namespace, "logs", f"deployment/{deployment}", f"--tail={tail}"], timeout=60
    )
    return stdout if ok else stderr


def node_table() -> str:
    ok, stdout, stderr = run_kubectl(["get", "nodes", "-o", "wide"])
    return stdout if ok else stderr


def application_table(namespace: str) -> str:
    ok, stdout, stderr = run_kubectl(["-n", namespace, "get", "applications"])
    return stdout if ok else stderr
