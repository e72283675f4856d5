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

"""AWS Load Balancer Controller, Argo CD, and root application installation."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

import sh
from botocore.exceptions import BotoCoreError, ClientError
from rich.markup import escape
from rich.panel import Panel

from platform_manager import aws, console, kube, logger
from platform_manager.config import ResolvedConfig
from platform_manager.constants import (
    ARGOCD_ADMIN_SECRET,
    ARGOCD_POD_SELECTOR,
    ARGOCD_SERVER_DEPLOYMENT,
    DIAGNOSTIC_LOG_TAIL_LINES,
    HELM_KEY_ARGOCD_INGRESS,
    HELM_KEY_ARGOCD_SERVICE_TYPE,
    HELM_KEY_CLUSTER_NAME,
    HELM_KEY_REGION,
    HELM_KEY_SA_CREATE,
    HELM_KEY_SA_NAME,
    HELM_KEY_VPC_ID,
    HELM_RELEASE_ARGOCD,
    HELM_RELEASE_LB_CONTROLLER,
    IRSA_ROLE_ANNOTATION,
    LB_CONTROLLER_DEPLOYMENT,
    LB_CONTROLLER_POD_SELECTOR,
    LB_CONTROLLER_ROLE_SUFFIX,
    LB_CONTROLLER_SERVICE_ACCOUNT,
    LB_CONTROLLER_WEBHOOK_SERVICE,
    NS_ARGOCD,
    NS_KUBE_SYSTEM,
    ROLLOUT_POLL_INTERVAL_SECONDS,
    ROLLOUT_TIMEOUT_SECONDS,
    WEBHOOK_READY_MAX_RETRIES,
    WEBHOOK_READY_POLL_INTERVAL_SECONDS,
    dep_value,
)
from platform_manager.errors import ConvergenceTimeout, MutationFailure, PlatformError
from platform_manager.utils import error_text, helm_set_args
from platform_manager.waiter import ProbeResult, wait_until


# ============================================================================
# Release model
# ============================================================================

@dataclass(frozen=True)
class ServiceAccountBinding:
    """ServiceAccount bound to an IAM role through IRSA.

    Attributes:
        name: ServiceAccount name in the release namespace.
        role_arn: IAM role ARN written to the eks.amazonaws.com/role-arn annotation.
    """

    name: str
    role_arn: str


@dataclass(frozen=True)
class ReleaseSpec:
    """One Helm-installed controller.

    Attributes:
        name: Helm release name.
        chart_reference: ``repo/chart`` reference.
        namespace: Namespace the release is installed into.
        override_values: ``--set`` values known before install.
        service_account: IRSA binding applied before the chart, or None.
        version: Chart version, or empty for latest.
        rollout_deployment: Deployment whose rollout marks the release ready, or None.
        webhook_service: Webhook service that must have endpoints before success, or None.
        diagnostics_selector: Pod label selector dumped when a wait times out.
    """

    name: str
    chart_reference: str
    namespace: str
    override_values: Mapping[str, str] = field(default_factory=dict)
    service_account: ServiceAccountBinding | None = None
    version: str = ""
    rollout_deployment: str | None = None
    webhook_service: str | None = None
    diagnostics_selector: str | None = None


@dataclass(frozen=True)
class InstallOutcome:
    """What an install converged to.

    Attributes:
        release: Helm release name.
        namespace: Release namespace.
        values: Values passed to helm after derived values were merged.
        webhook_endpoints: Endpoint IPs seen behind the webhook service.
    """

    release: str
    namespace: str
    values: dict[str, str]
    webhook_endpoints: tuple[str, ...] = ()


_SYSTEM_NAMESPACES = frozenset({NS_KUBE_SYSTEM, "default"})


# ============================================================================
# Generic installer
# ============================================================================

def add_helm_repos() -> None:
    """Register every Helm repository from dependencies.yaml and refresh indexes."""
    console.print(Panel.fit("Installing prerequisites (Helm repos)", style="bold blue"))
    repos: dict[str, str] = dep_value("helm_repos", default={})
    try:
        for name, url in repos.items():
            sh.helm("repo", "add", name, url, "--force-update")
        sh.helm("repo", "update")
    except sh.ErrorReturnCode as err:
        raise MutationFailure(f"helm repo setup failed: {error_text(err)}", stage="install") from err
    console.print(f"[green]\u2705 Helm repos ready: {', '.join(repos)}[/green]")


def _dump_diagnostics(spec: ReleaseSpec) -> None:
    """Print pods and recent controller logs for a release that did not converge."""
    console.print(f"[yellow]\u26a0\ufe0f  Diagnostics for {spec.name} in {spec.namespace}:[/yellow]")
    if spec.diagnostics_selector:
        console.print(kube.describe_pods(spec.namespace, spec.diagnostics_selector), markup=False, highlight=False)
    if spec.rollout_deployment:
        console.print(
            kube.deployment_logs(spec.namespace, spec.rollout_deployment, DIAGNOSTIC_LOG_TAIL_LINES),
            markup=False, highlight=False,
        )


def _helm_upgrade_install(spec: ReleaseSpec, values: Mapping[str, str]) -> None:
    args = ["upgrade", "--install", spec.name, spec.chart_reference, "--namespace", spec.namespace]
    if spec.version:
        args += ["--version", spec.version]
    args += helm_set_args(values)
    try:
        sh.helm(*args)
    except sh.ErrorReturnCode as err:
        raise MutationFailure(f"helm upgrade --install {spec.name} failed: {error_text(err)}", stage="install") from err


def _wait_rollout(spec: ReleaseSpec, timeout: float, interval: float) -> None:
    console.print(f"[yellow]\u2139\ufe0f  Waiting for deployment/{spec.rollout_deployment} rollout...[/yellow]")

    def _probe() -> ProbeResult:
        complete, message = kube.rollout_status(spec.namespace, spec.rollout_deployment)
        return ProbeResult(complete, message)

    outcome = wait_until(_probe, interval=interval, timeout=timeout, description=f"{spec.name} rollout")
    if not outcome.succeeded:
        _dump_diagnostics(spec)
        raise ConvergenceTimeout(
            f"deployment/{spec.rollout_deployment} rollout in {spec.namespace}", outcome, stage="install"
        )
    console.print(f"[green]\u2705 deployment/{spec.rollout_deployment} rolled out[/green]")


def _wait_webhook_endpoints(spec: ReleaseSpec, attempts: int, interval: float) -> tuple[str, ...]:
    console.print(f"[yellow]\u2139\ufe0f  Waiting for webhook service {spec.webhook_service} endpoints...[/yellow]")

    def _probe() -> ProbeResult:
        addresses = kube.endpoint_addresses(spec.namespace, spec.webhook_service)
        return ProbeResult(bool(addresses), ",".join(addresses) or None)

    outcome = wait_until(_probe, interval=interval, attempts=attempts, description=f"{spec.webhook_service} endpoints")
    if not outcome.succeeded:
        console.print("[red]Webhook endpoints not ready.[/red]")
        _dump_diagnostics(spec)
        raise ConvergenceTimeout(
            f"webhook service {spec.webhook_service} endpoints in {spec.namespace}", outcome, stage="install"
        )
    console.print(f"[green]\u2705 Webhook endpoints ready: {outcome.last_observed}[/green]")
    return tuple(outcome.last_observed.split(","))


def install_release(
    spec: ReleaseSpec,
    derive_values: Callable[[], Mapping[str, str]] | None = None,
    *,
    rollout_timeout: float = ROLLOUT_TIMEOUT_SECONDS,
    rollout_interval: float = ROLLOUT_POLL_INTERVAL_SECONDS,
    webhook_attempts: int = WEBHOOK_READY_MAX_RETRIES,
    webhook_interval: float = WEBHOOK_READY_POLL_INTERVAL_SECONDS,
) -> InstallOutcome:
    """Install or upgrade a controller release and wait for it to serve.

    Every step is idempotent, so re-running after a partial failure converges
    to the same state.

    Args:
        spec: Release to install.
        derive_values: Called after the ServiceAccount is applied; its values
            override ``spec.override_values``.
        rollout_timeout: Seconds to wait for the deployment rollout.
        rollout_interval: Seconds between rollout checks.
        webhook_attempts: Endpoint checks before giving up on the webhook.
        webhook_interval: Seconds between endpoint checks.

    Returns:
        InstallOutcome with the merged values and webhook endpoints.

    Raises:
        MutationFailure: If an apply or helm call fails.
        ConvergenceTimeout: If the rollout or webhook gate times out.
    """
    console.print(Panel.fit(f"Installing/Upgrading {spec.name}", style="bold blue"))
    if spec.namespace not in _SYSTEM_NAMESPACES:
        kube.ensure_namespace(spec.namespace)

    if spec.service_account is not None:
        console.print(
            f"[yellow]\u2139\ufe0f  Ensuring ServiceAccount {spec.service_account.name} "
            f"with IRSA annotation...[/yellow]"
        )
        kube.apply_service_account(
            spec.namespace,
            spec.service_account.name,
            {IRSA_ROLE_ANNOTATION: spec.service_account.role_arn},
        )

    values = dict(spec.override_values)
    if derive_values is not None:
        values.update(derive_values())
    logger.info("helm values for %s: %s", spec.name, values)

    _helm_upgrade_install(spec, values)

    if spec.rollout_deployment:
        _wait_rollout(spec, rollout_timeout, rollout_interval)

    endpoints: tuple[str, ...] = ()
    if spec.webhook_service:
        endpoints = _wait_webhook_endpoints(spec, webhook_attempts, webhook_interval)

    console.print(f"[green]\u2705 {spec.name} installed[/green]")
    return InstallOutcome(release=spec.name, namespace=spec.namespace, values=values, webhook_endpoints=endpoints)


# ============================================================================
# AWS Load Balancer Controller
# ============================================================================

def load_balancer_controller_spec(cfg: ResolvedConfig, role_arn: str) -> ReleaseSpec:
    """Release spec for the AWS Load Balancer Controller.

    Args:
        cfg: Resolved region and cluster name.
        role_arn: IRSA role for the controller's ServiceAccount.
    """
    return ReleaseSpec(
        name=HELM_RELEASE_LB_CONTROLLER,
        chart_reference=dep_value("aws_load_balancer_controller", "chart"),
        version=dep_value("aws_load_balancer_controller", "version", default=""),
        namespace=NS_KUBE_SYSTEM,
        override_values={
            HELM_KEY_CLUSTER_NAME: cfg.cluster_name,
            HELM_KEY_REGION: cfg.region,
            HELM_KEY_SA_CREATE: "false",
            HELM_KEY_SA_NAME: LB_CONTROLLER_SERVICE_ACCOUNT,
        },
        service_account=ServiceAccountBinding(LB_CONTROLLER_SERVICE_ACCOUNT, role_arn),
        rollout_deployment=LB_CONTROLLER_DEPLOYMENT,
        webhook_service=LB_CONTROLLER_WEBHOOK_SERVICE,
        diagnostics_selector=LB_CONTROLLER_POD_SELECTOR,
    )


def install_load_balancer_controller(cfg: ResolvedConfig) -> InstallOutcome:
    """Install the AWS Load Balancer Controller and gate on its webhook.

    Args:
        cfg: Resolved region and cluster name.

    Raises:
        PlatformError: If the IRSA role or cluster VPC cannot be looked up.
        MutationFailure: If an apply or helm call fails.
        ConvergenceTimeout: If the rollout or webhook gate times out.
    """
    role_name = f"{cfg.cluster_name}{LB_CONTROLLER_ROLE_SUFFIX}"
    try:
        arn = aws.role_arn(role_name)
    except (BotoCoreError, ClientError) as err:
        raise PlatformError(f"Cannot read IAM role {role_name}: {err}", stage="install") from err

    def _derive() -> dict[str, str]:
        try:
            return {HELM_KEY_VPC_ID: aws.cluster_vpc_id(cfg.region, cfg.cluster_name)}
        except (BotoCoreError, ClientError) as err:
            raise PlatformError(f"Cannot read VPC of cluster {cfg.cluster_name}: {err}", stage="install") from err

    return install_release(load_balancer_controller_spec(cfg, arn), _derive)


# ============================================================================
# Argo CD
# ============================================================================

def argocd_spec() -> ReleaseSpec:
    """Release spec for Argo CD with an in-cluster-only server."""
    return ReleaseSpec(
        name=HELM_RELEASE_ARGOCD,
        chart_reference=dep_value("argocd", "chart"),
        version=dep_value("argocd", "version", default=""),
        namespace=NS_ARGOCD,
        override_values={
            HELM_KEY_ARGOCD_SERVICE_TYPE: "ClusterIP",
            HELM_KEY_ARGOCD_INGRESS: "false",
        },
        rollout_deployment=ARGOCD_SERVER_DEPLOYMENT,
        diagnostics_selector=ARGOCD_POD_SELECTOR,
    )


def install_argocd() -> InstallOutcome:
    """Install Argo CD and wait for the server rollout."""
    return install_release(argocd_spec())


def apply_root_application(manifest: Path) -> None:
    """Apply the Argo CD root (app-of-apps) Application.

    Raises:
        MutationFailure: If the manifest is missing or rejected.
    """
    console.print(Panel.fit("Applying Argo root app", style="bold blue"))
    kube.apply_file(manifest)
    console.print(f"[green]\u2705 Applied {manifest}[/green]")


def show_argocd_access() -> None:
    """Print Argo applications and the initial admin password, if still present."""
    console.print("[yellow]\u2139\ufe0f  Argo applications:[/yellow]")
    console.print(kube.application_table(NS_ARGOCD), markup=False, highlight=False)
    password = kube.secret_value(NS_ARGOCD, ARGOCD_ADMIN_SECRET, "password")
    if password:
        console.print(f"[yellow]Argo admin password (initial):[/yellow] {escape(password)}", highlight=False)
    else:
        console.print(f"[yellow]\u26a0\ufe0f  Secret {ARGOCD_ADMIN_SECRET} not found (already rotated?)[/yellow]")
