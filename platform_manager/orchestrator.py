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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table

from platform_manager import console
from platform_manager.cluster import ensure_cluster_ready
from platform_manager.components import (
    add_helm_repos,
    apply_root_application,
    install_argocd,
    install_load_balancer_controller,
    show_argocd_access,
)
from platform_manager.config import CleanupPolicy, PlatformSettings, ResolvedConfig, TeardownTarget
from platform_manager.errors import UnreachableError
from platform_manager.resolver import resolve_settings, resolve_vpc_id
from platform_manager.teardown import TeardownReport, TeardownSequencer
from platform_manager.terraform import Terraform
from platform_manager.utils import require_command

# ============================================================================
# Internal helpers
# ============================================================================


def _check_prerequisites(commands: list[str]) -> None:
    """Check CLI tools needed by the workflow.

    Raises:
        UnreachableError: If a tool is missing.
    """
    console.print(Panel.fit("Checking prerequisites", style="bold blue"))
    try:
        for cmd in commands:
            require_command(cmd)
    except RuntimeError as err:
        raise UnreachableError(str(err), stage="prerequisites") from err
    console.print("[green]\u2705 All required tools are available[/green]")


def display_config(cfg: ResolvedConfig, settings: PlatformSettings, vpc_id: str | None = None) -> None:
    """Print the resolved configuration as a table."""
    table = Table(title="Resolved configuration", show_header=False)
    table.add_row("TF_DIR", str(settings.tf_dir))
    table.add_row("REGION", cfg.region)
    table.add_row("CLUSTER_NAME", cfg.cluster_name)
    table.add_row("NAMESPACES", " ".join(settings.namespace_list))
    table.add_row("ROOT_APP_MANIFEST", str(settings.root_app_manifest))
    if vpc_id is not None:
        table.add_row("VPC_ID", vpc_id)
    console.print(table)


# ============================================================================
# Public API
# ============================================================================


def run_bootstrap(settings: PlatformSettings) -> ResolvedConfig:
    """Bring the platform up: readiness, load balancer controller, Argo CD, root app.

    The load balancer controller (including its webhook gate) completes
    before anything that may create an Ingress is installed.

    Args:
        settings: Operator overrides and paths.

    Returns:
        The resolved configuration used.

    Raises:
        PlatformError: If any stage fails.
    """
    cfg = resolve_settings(settings)
    display_config(cfg, settings)
    _check_prerequisites(["aws", "kubectl", "helm"])

    ensure_cluster_ready(cfg)
    add_helm_repos()
    install_load_balancer_controller(cfg)
    install_argocd()
    apply_root_application(settings.root_app_manifest)

    console.print(Panel.fit("Done", style="bold green"))
    show_argocd_access()
    return cfg


def build_teardown_target(cfg: ResolvedConfig, settings: PlatformSettings, terraform: Terraform) -> TeardownTarget:
    """Resolve the namespaces and VPC the teardown operates on."""
    vpc_id = resolve_vpc_id(cfg, terraform)
    if vpc_id:
        console.print(f"[yellow]\u2139\ufe0f  Detected VPC_ID: {vpc_id}[/yellow]")
    return TeardownTarget(namespaces=settings.namespace_list, vpc_id=vpc_id)


def run_teardown(
    settings: PlatformSettings,
    *,
    skip_destroy: bool = False,
    policy: CleanupPolicy | None = None,
) -> TeardownReport:
    """Tear the platform down in dependency-safe order.

    Args:
        settings: Operator overrides and paths.
        skip_destroy: Stop after the cloud cleanup wait.
        policy: Replacement matching rules for leftover load balancer artifacts.

    Returns:
        The per-stage report.

    Raises:
        PlatformError: If resolution, the connect stage, or terraform destroy fails.
    """
    cfg = resolve_settings(settings)
    terraform = Terraform(settings.tf_dir)
    target = build_teardown_target(cfg, settings, terraform)
    display_config(cfg, settings, target.vpc_id or "unknown")

    sequencer = TeardownSequencer(cfg, target, terraform, policy, skip_destroy=skip_destroy)
    try:
        return sequencer.run()
    finally:
        console.print(sequencer.report.render())
