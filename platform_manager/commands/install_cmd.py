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

"""Install subcommands (load-balancer-controller, argocd, root-app)."""

from __future__ import annotations

from pathlib import Path

import typer

from platform_manager.commands.setup_cmd import CLUSTER_OPTION, REGION_OPTION, TF_DIR_OPTION, run_or_exit
from platform_manager.components import (
    add_helm_repos,
    apply_root_application,
    install_argocd,
    install_load_balancer_controller,
)
from platform_manager.config import settings_with_overrides
from platform_manager.resolver import resolve_settings

app = typer.Typer(help="Install single components on a ready cluster.")


@app.command("load-balancer-controller")
def load_balancer_controller(
    region: str | None = REGION_OPTION,
    cluster_name: str | None = CLUSTER_OPTION,
    tf_dir: Path | None = TF_DIR_OPTION,
) -> None:
    """Install/upgrade the AWS Load Balancer Controller and wait for its webhook."""
    settings = settings_with_overrides(region=region, cluster_name=cluster_name, tf_dir=tf_dir)

    def _install() -> None:
        cfg = resolve_settings(settings)
        add_helm_repos()
        install_load_balancer_controller(cfg)

    run_or_exit(_install)


@app.command()
def argocd() -> None:
    """Install/upgrade Argo CD and wait for argocd-server."""

    def _install() -> None:
        add_helm_repos()
        install_argocd()

    run_or_exit(_install)


@app.command("root-app")
def root_app(
    manifest: Path | None = typer.Option(
        None, "--manifest", help="Root Application manifest (overrides ROOT_APP_MANIFEST)"),
) -> None:
    """Apply the Argo CD root Application."""
    settings = settings_with_overrides(root_app_manifest=manifest)
    run_or_exit(lambda: apply_root_application(settings.root_app_manifest))
