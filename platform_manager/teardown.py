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

"""Ordered, best-effort cluster cleanup followed by an authoritative terraform destroy.

Stages run strictly in order:

    connect             refresh kubeconfig, check authorization and reachability (fatal)
    quiesce             delete Argo CD Applications so nothing gets re-synced
    strip-ingress       delete Ingresses so the controller removes its ALBs
    delete-namespaces   delete workload namespaces
    wait-namespaces     bounded wait for the namespaces to disappear
    wait-cloud-cleanup  bounded wait for controller SGs and ELB ENIs to leave the VPC
    destroy             terraform destroy (fatal)

The middle five stages never abort the run. Errors and timeouts there are
logged with enough context to intervene by hand, and the next stage starts.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from platform_manager import aws, console, kube, logger
from platform_manager.config import CleanupPolicy, ResolvedConfig, TeardownTarget
from platform_manager.constants import (
    ARGOCD_APPLICATION_RESOURCE,
    CLOUD_CLEANUP_POLL_INTERVAL_SECONDS,
    CLOUD_CLEANUP_TIMEOUT_SECONDS,
    NAMESPACE_DELETE_POLL_INTERVAL_SECONDS,
    NAMESPACE_DELETE_TIMEOUT_SECONDS,
    NS_ARGOCD,
)
from platform_manager.errors import UnreachableError
from platform_manager.terraform import Terraform
from platform_manager.utils import require_command
from platform_manager.waiter import ProbeResult, wait_until

STAGE_CONNECT = "connect"
STAGE_QUIESCE = "quiesce"
STAGE_STRIP_INGRESS = "strip-ingress"
STAGE_DELETE_NAMESPACES = "delete-namespaces"
STAGE_WAIT_NAMESPACES = "wait-namespaces"
STAGE_WAIT_CLOUD = "wait-cloud-cleanup"
STAGE_DESTROY = "destroy"

STAGES = (
    STAGE_CONNECT,
    STAGE_QUIESCE,
    STAGE_STRIP_INGRESS,
    STAGE_DELETE_NAMESPACES,
    STAGE_WAIT_NAMESPACES,
    STAGE_WAIT_CLOUD,
    STAGE_DESTROY,
)


class StageStatus(str, Enum):
    DONE = "done"
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class StageResult:
    stage: str
    status: StageStatus
    detail: str = ""


@dataclass
class TeardownReport:
    """Per-stage results, in execution order."""

    results: list[StageResult] = field(default_factory=list)

    def status_of(self, stage: str) -> StageStatus | None:
        for result in self.results:
            if result.stage == stage:
                return result.status
        return None

    @property
    def stages(self) -> list[str]:
        return [result.stage for result in self.results]

    def render(self) -> Table:
        table = Table(title="Teardown summary")
        table.add_column("Stage")
        table.add_column("Status")
        table.add_column("Detail")
        colors = {
            StageStatus.DONE: "green",
            StageStatus.SKIPPED: "yellow",
            StageStatus.TIMED_OUT: "yellow",
            StageStatus.FAILED: "red",
        }
        for result in self.results:
            color = colors[result.status]
            table.add_row(result.stage, f"[{color}]{result.status.value}[/{color}]", escape(result.detail))
        return table


class TeardownSequencer:
    """Drives one teardown run against a live cluster.

    Attributes:
        cfg: Resolved region and cluster name.
        target: Namespaces to remove and the VPC to watch.
        terraform: Terraform root destroyed in the last stage.
        policy: Matching rules for leftover load balancer artifacts.
        skip_destroy: Stop after the cloud cleanup wait.
        report: Results of the stages run so far.
    """

    def __init__(
        self,
        cfg: ResolvedConfig,
        target: TeardownTarget,
        terraform: Terraform,
        policy: CleanupPolicy | None = None,
        *,
        skip_destroy: bool = False,
        namespace_timeout: float = NAMESPACE_DELETE_TIMEOUT_SECONDS,
        namespace_interval: float = NAMESPACE_DELETE_POLL_INTERVAL_SECONDS,
        cloud_timeout: float = CLOUD_CLEANUP_TIMEOUT_SECONDS,
        cloud_interval: float = CLOUD_CLEANUP_POLL_INTERVAL_SECONDS,
    ) -> None:
        self.cfg = cfg
        self.target = target
        self.terraform = terraform
        self.policy = policy or CleanupPolicy()
        self.skip_destroy = skip_destroy
        self.namespace_timeout = namespace_timeout
        self.namespace_interval = namespace_interval
        self.cloud_timeout = cloud_timeout
        self.cloud_interval = cloud_interval
        self.report = TeardownReport()

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def run(self) -> TeardownReport:
        """Run every stage in order.

        Returns:
            The completed report.

        Raises:
            UnreachableError: If the connect stage fails.
            ProvisionerDestroyFailure: If terraform destroy fails.
        """
        self._fatal(STAGE_CONNECT, self.connect)
        self._best_effort(STAGE_QUIESCE, self.quiesce)
        self._best_effort(STAGE_STRIP_INGRESS, self.strip_ingress)
        self._best_effort(STAGE_DELETE_NAMESPACES, self.delete_namespaces)
        self._best_effort(STAGE_WAIT_NAMESPACES, self.wait_namespaces)
        self._best_effort(STAGE_WAIT_CLOUD, self.wait_cloud_cleanup)
        if self.skip_destroy:
            console.print("[yellow]\u26a0\ufe0f  Skipping terraform destroy (--skip-destroy)[/yellow]")
            self.report.results.append(StageResult(STAGE_DESTROY, StageStatus.SKIPPED, "--skip-destroy"))
        else:
            self._fatal(STAGE_DESTROY, self.destroy)
        return self.report

    def _fatal(self, stage: str, action: Callable[[], StageResult]) -> None:
        try:
            result = action()
        except Exception as exc:
            self.report.results.append(StageResult(stage, StageStatus.FAILED, str(exc)))
            raise
        self.report.results.append(result)

    def _best_effort(self, stage: str, action: Callable[[], StageResult]) -> None:
        try:
            result = action()
        except Exception as exc:
            logger.warning("Teardown stage %s failed: %s", stage, exc)
            console.print(f"[yellow]\u26a0\ufe0f  {stage} failed ({escape(str(exc))}); continuing[/yellow]", highlight=False)
            result = StageResult(stage, StageStatus.FAILED, str(exc))
        self.report.results.append(result)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def connect(self) -> StageResult:
        """Refresh kubeconfig and verify the caller may act on the cluster."""
        console.print(Panel.fit(f"Connecting to cluster {self.cfg.cluster_name} in {self.cfg.region}", style="bold blue"))
        required = ["aws", "kubectl"] if self.skip_destroy else ["aws", "kubectl", "terraform"]
        try:
            for cmd in required:
                require_command(cmd)
        except RuntimeError as err:
            raise UnreachableError(str(err), stage=STAGE_CONNECT) from err

        aws.update_kubeconfig(self.cfg.region, self.cfg.cluster_name)
        console.print("[yellow]\u2139\ufe0f  Sanity check: kubectl authorized for this cluster[/yellow]")
        if not kube.can_i("get", "namespaces"):
            raise UnreachableError(
                "kubectl is not authorized for this cluster. Ensure your IAM principal is "
                "granted EKS access (access entry / cluster admin).",
                stage=STAGE_CONNECT,
            )
        console.print("[yellow]\u2139\ufe0f  Sanity check: kubectl can reach the cluster[/yellow]")
        kube.verify_api()
        return StageResult(STAGE_CONNECT, StageStatus.DONE)

    def quiesce(self) -> StageResult:
        """Delete every Argo CD Application without waiting."""
        console.print(Panel.fit("Deleting Argo CD applications to stop reconciliation", style="bold blue"))
        apps = kube.list_names(ARGOCD_APPLICATION_RESOURCE, NS_ARGOCD)
        failed = []
        for app in apps:
            try:
                kube.delete_resource(app, NS_ARGOCD)
            except Exception as exc:
                logger.warning("Deleting %s failed: %s", app, exc)
                failed.append(app)
        console.print(f"[green]\u2705 Delete issued for {len(apps) - len(failed)} application(s)[/green]")
        if failed:
            return StageResult(STAGE_QUIESCE, StageStatus.FAILED, f"delete failed: {' '.join(failed)}")
        return StageResult(STAGE_QUIESCE, StageStatus.DONE, f"{len(apps)} application(s)")

    def _for_each_existing_namespace(self, stage: str, verb: str, action: Callable[[str], None]) -> StageResult:
        failed = []
        touched = 0
        for ns in self.target.namespaces:
            try:
                if not kube.namespace_exists(ns):
                    logger.info("Namespace %s not found, nothing to %s", ns, verb)
                    continue
                action(ns)
                touched += 1
            except Exception as exc:
                logger.warning("%s in %s failed: %s", verb, ns, exc)
                failed.append(ns)
        if failed:
            return StageResult(stage, StageStatus.FAILED, f"failed in: {' '.join(failed)}")
        return StageResult(stage, StageStatus.DONE, f"{touched} namespace(s)")

    def strip_ingress(self) -> StageResult:
        """Delete all Ingresses in the target namespaces without waiting."""
        console.print(Panel.fit("Deleting Ingress objects in demo namespaces", style="bold blue"))
        return self._for_each_existing_namespace(
            STAGE_STRIP_INGRESS, "delete ingresses", lambda ns: kube.delete_all("ingress", ns)
        )

    def delete_namespaces(self) -> StageResult:
        """Issue non-blocking deletes for the target namespaces."""
        console.print(Panel.fit(f"Deleting demo namespaces: {' '.join(self.target.namespaces)}", style="bold blue"))
        return self._for_each_existing_namespace(
            STAGE_DELETE_NAMESPACES, "delete namespace", kube.delete_namespace
        )

    def wait_namespaces(self) -> StageResult:
        """Wait for the target namespaces to finish terminating."""
        console.print(Panel.fit(
            f"Waiting for namespaces to terminate (up to {self.namespace_timeout:.0f}s)", style="bold blue"
        ))

        # Last complete observation; a failed check leaves it unchanged.
        last_remaining = list(self.target.namespaces)

        def _probe() -> ProbeResult:
            nonlocal last_remaining
            remaining = []
            for ns in self.target.namespaces:
                phase = kube.namespace_phase(ns)
                if phase is not None:
                    remaining.append(ns)
                    console.print(f"[yellow]   Namespace still present: {ns} phase={phase}[/yellow]")
            last_remaining = remaining
            return ProbeResult(not remaining, " ".join(remaining) or None)

        outcome = wait_until(
            _probe, interval=self.namespace_interval, timeout=self.namespace_timeout,
            description="namespace termination",
        )
        if outcome.succeeded:
            console.print("[green]\u2705 All demo namespaces removed.[/green]")
            return StageResult(STAGE_WAIT_NAMESPACES, StageStatus.DONE)

        console.print("[yellow]\u26a0\ufe0f  Some namespaces still exist after timeout. Finalizers:[/yellow]")
        remaining = last_remaining or list(self.target.namespaces)
        for ns in remaining:
            try:
                finalizers = kube.namespace_finalizers(ns)
            except Exception as exc:
                finalizers = [f"<unavailable: {exc}>"]
            console.print(f"   {ns} finalizers={finalizers}", markup=False, highlight=False)
        return StageResult(STAGE_WAIT_NAMESPACES, StageStatus.TIMED_OUT, f"remaining: {' '.join(remaining)}")

    def wait_cloud_cleanup(self) -> StageResult:
        """Wait for controller security groups and ELB ENIs to leave the VPC."""
        vpc_id = self.target.vpc_id
        if not vpc_id:
            console.print("[yellow]\u26a0\ufe0f  Could not determine VPC_ID (terraform output missing and Name tag lookup failed).[/yellow]")
            console.print("[yellow]   AWS dependency wait skipped; terraform destroy may hit DependencyViolation.[/yellow]")
            return StageResult(STAGE_WAIT_CLOUD, StageStatus.SKIPPED, "no VPC id (degraded)")

        console.print(Panel.fit(
            f"Waiting for load balancer controller AWS dependencies in {vpc_id} (up to {self.cloud_timeout:.0f}s)",
            style="bold blue",
        ))
        logger.info("Matching SGs tagged %s and ENIs with description %s or type %s",
                    self.policy.sg_tag_keys, self.policy.eni_description_markers, self.policy.eni_interface_types)

        def _probe() -> ProbeResult:
            sg_count = aws.count_tagged_security_groups(self.cfg.region, vpc_id, self.policy.sg_tag_keys)
            eni_count = aws.count_load_balancer_interfaces(
                self.cfg.region, vpc_id, self.policy.eni_description_markers, self.policy.eni_interface_types
            )
            observed = f"SGs(tagged)={sg_count} ENIs(ELB-ish)={eni_count}"
            console.print(f"[yellow]   AWS dependency check: {observed}[/yellow]")
            return ProbeResult(sg_count == 0 and eni_count == 0, observed)

        outcome = wait_until(
            _probe, interval=self.cloud_interval, timeout=self.cloud_timeout, description="AWS dependencies"
        )
        if outcome.succeeded:
            console.print("[green]\u2705 AWS dependencies appear cleared.[/green]")
            return StageResult(STAGE_WAIT_CLOUD, StageStatus.DONE)

        console.print("[yellow]\u26a0\ufe0f  AWS dependencies still present after timeout. You can inspect remaining items:[/yellow]")
        for command in aws.inspection_commands(self.cfg.region, vpc_id):
            console.print(f"   {command}", markup=False, highlight=False)
        return StageResult(STAGE_WAIT_CLOUD, StageStatus.TIMED_OUT, outcome.last_observed or "")

    def destroy(self) -> StageResult:
        """Destroy the Terraform-managed infrastructure."""
        console.print(Panel.fit(f"Running terraform destroy in {self.terraform.workdir}", style="bold blue"))
        self.terraform.destroy()
        console.print("[green]\u2705 Teardown complete.[/green]")
        return StageResult(STAGE_DESTROY, StageStatus.DONE)
