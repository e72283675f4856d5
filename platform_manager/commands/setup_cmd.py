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

"""Composite workflows (bootstrap, teardown, config)."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import typer
from rich.markup import escape

from platform_manager import console
from platform_manager.config import settings_with_overrides
from platform_manager.orchestrator import display_config, run_bootstrap, run_teardown
from platform_manager.resolver import resolve_settings

T = TypeVar("T")

REGION_OPTION = typer.Option(None, "--region", help="AWS region (overrides REGION)")
CLUSTER_OPTION = typer.Option(None, "--cluster-name", help="EKS cluster name (overrides CLUSTER_NAME)")
TF_DIR_OPTION = typer.Option(None, "--tf-dir", help="Terraform root (overrides TF_DIR)")


def run_or_exit(fn: Callable[[], T]) -> T:
    """Run a workflow, turning any failure into a red message and exit code 1."""
    try:
        return fn()
    except Exception as e:
        console.print(f"[red]\u274c {escape(str(e))}[/red]", highlight=False)
        raise typer.Exit(code=1) from e


def bootstrap(
    region: str | None = REGION_OPTION,
    cluster_name: str | None = CLUSTER_OPTION,
    tf_dir: Path | None = TF_DIR_OPTION,
    root_app: Path | None = typer.Option(
        None, "--root-app", help="Argo CD root Application manifest (overrides ROOT_APP_MANIFEST)"),
) -> None:
    """Full bootstrap: wait for EKS, install the load balancer controller and Argo CD, apply the root app."""
    settings = settings_with_overrides(
        region=region, cluster_name=cluster_name, tf_dir=tf_dir, root_app_manifest=root_app,
    )
    run_or_exit(lambda: run_bootstrap(settings))


def teardown(
    region: str | None = REGION_OPTION,
    cluster_name: str | None = CLUSTER_OPTION,
    tf_dir: Path | None = TF_DIR_OPTION,
    namespaces: str | None = typer.Option(
        None, "--namespaces", help="Workload namespaces to delete (overrides NAMESPACES)"),
    skip_destroy: bool = typer.Option(
        False, "--skip-destroy", help="Clean up the cluster side only; do not run terraform destroy"),
) -> None:
    """Delete Argo apps, Ingresses and namespaces, wait for AWS cleanup, then terraform destroy."""
    settings = settings_with_overrides(
        region=region, cluster_name=cluster_name, tf_dir=tf_dir, namespaces=namespaces,
    )
    run_or_exit(lambda: run_teardown(settings, skip_destroy=skip_destroy))


def show_config(
    region: str | None = REGION_OPTION,
    cluster_name: str | None = CLUSTER_OPTION,
    tf_dir: Path | None = TF_DIR_OPTION,
) -> None:
    """Resolve and print REGION/CLUSTER_NAME without touching the cluster."""
    settings = settings_with_overrides(region=region, cluster_name=cluster_name, tf_dir=tf_dir)
    cfg = run_or_exit(lambda: resolve_settings(settings))
    display_config(cfg, settings)
