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

"""EKS control plane and node readiness."""

from __future__ import annotations

from rich.markup import escape
from rich.panel import Panel

from platform_manager import aws, console, kube
from platform_manager.config import ResolvedConfig
from platform_manager.constants import (
    CONTROL_PLANE_POLL_INTERVAL_SECONDS,
    CONTROL_PLANE_TIMEOUT_SECONDS,
    EKS_STATUS_ACTIVE,
    MIN_READY_NODES,
    NODE_READY_POLL_INTERVAL_SECONDS,
    NODE_READY_TIMEOUT_SECONDS,
)
from platform_manager.waiter import PollOutcome, ProbeResult, wait_until


def wait_for_control_plane(
    cfg: ResolvedConfig,
    timeout: float = CONTROL_PLANE_TIMEOUT_SECONDS,
    interval: float = CONTROL_PLANE_POLL_INTERVAL_SECONDS,
) -> PollOutcome:
    """Wait for the EKS control plane to report ACTIVE.

    Args:
        cfg: Resolved region and cluster name.
        timeout: Maximum seconds to wait.
        interval: Seconds between status queries.

    Returns:
        The successful PollOutcome.

    Raises:
        ConvergenceTimeout: If the cluster is not ACTIVE in time.
    """
    console.print("[yellow]\u2139\ufe0f  Waiting for EKS control plane ACTIVE...[/yellow]")

    def _probe() -> ProbeResult:
        status = aws.cluster_status(cfg.region, cfg.cluster_name)
        return ProbeResult(status == EKS_STATUS_ACTIVE, status)

    outcome = wait_until(_probe, interval=interval, timeout=timeout, description="EKS status")
    if not outcome.succeeded:
        console.print(f"[red]EKS not ACTIVE (last status: {escape(outcome.last_observed or 'unknown')})[/red]")
    outcome.raise_for_timeout(f"EKS cluster {cfg.cluster_name} to become {EKS_STATUS_ACTIVE}", stage="cluster")
    console.print(f"[green]\u2705 EKS status: {outcome.last_observed}[/green]")
    return outcome


def wait_for_ready_nodes(
    timeout: float = NODE_READY_TIMEOUT_SECONDS,
    interval: float = NODE_READY_POLL_INTERVAL_SECONDS,
    minimum: int = MIN_READY_NODES,
) -> PollOutcome:
    """Wait for at least *minimum* nodes to report Ready.

    Raises:
        ConvergenceTimeout: If too few nodes are Ready in time.
    """
    console.print(f"[yellow]\u2139\ufe0f  Waiting for at least {minimum} Ready node(s)...[/yellow]")

    def _probe() -> ProbeResult:
        count = kube.ready_node_count()
        return ProbeResult(count >= minimum, str(count))

    outcome = wait_until(_probe, interval=interval, timeout=timeout, description="ready nodes")
    if not outcome.succeeded:
        console.print("[red]No Ready nodes.[/red]")
        console.print(kube.node_table(), markup=False, highlight=False)
    outcome.raise_for_timeout(f"{minimum} Ready node(s)", stage="cluster")
    console.print(f"[green]\u2705 Ready nodes: {outcome.last_observed}[/green]")
    return outcome


def connect(cfg: ResolvedConfig) -> None:
    """Refresh kubeconfig for the cluster and verify the API answers.

    Raises:
        UnreachableError: If kubeconfig refresh or the API check fails.
    """
    console.print("[yellow]\u2139\ufe0f  Updating kubeconfig (refresh endpoint/CA)...[/yellow]")
    aws.update_kubeconfig(cfg.region, cfg.cluster_name)
    console.print("[yellow]\u2139\ufe0f  Verifying kubectl connectivity...[/yellow]")
    kube.verify_api()


def ensure_cluster_ready(cfg: ResolvedConfig) -> None:
    """Block until the cluster can take controller installs.

    Checks the AWS identity, waits for the control plane, refreshes
    kubeconfig, verifies connectivity, then waits for a Ready node.

    Args:
        cfg: Resolved region and cluster name.

    Raises:
        UnreachableError: If credentials or the API are unusable.
        ConvergenceTimeout: If the control plane or nodes never become ready.
    """
    console.print(Panel.fit(f"Checking cluster {cfg.cluster_name} ({cfg.region})", style="bold blue"))
    identity = aws.caller_identity()
    console.print(f"[yellow]   AWS identity: {identity}[/yellow]")
    wait_for_control_plane(cfg)
    connect(cfg)
    wait_for_ready_nodes()
