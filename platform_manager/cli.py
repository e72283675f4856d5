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

"""
cli.py - Unified CLI for the GitOps demo platform on EKS.

Commands:
    bootstrap  Wait for EKS, install the AWS Load Balancer Controller and Argo CD, apply the root app
    teardown   Delete Argo apps, Ingresses and namespaces, wait for AWS cleanup, terraform destroy
    config     Print the resolved REGION/CLUSTER_NAME
    install    Install single components (load-balancer-controller, argocd, root-app)
    wait       Wait for convergence (cluster)

Environment Variables:
    REGION, CLUSTER_NAME   Explicit coordinates; otherwise read from Terraform
    TF_DIR                 Terraform root (default: <repo>/terraform/infrastructure)
    NAMESPACES             Teardown namespaces (default: "jb-dev jb-staging jb-prod")
    ROOT_APP_MANIFEST      Root app (default: <repo>/bootstrap/argocd-root-app.yaml)

Examples:
    # Bootstrap with coordinates from Terraform
    platform-manager bootstrap

    # Bootstrap a specific cluster
    REGION=us-east-1 CLUSTER_NAME=jb-demo platform-manager bootstrap

    # Clean the cluster side only
    platform-manager teardown --skip-destroy
"""

from __future__ import annotations

import logging
import sys

import typer
from rich.markup import escape

from platform_manager import console
from platform_manager.commands import install_cmd, setup_cmd, wait_cmd

app = typer.Typer(
    help="Bootstrap and tear down the GitOps demo platform on EKS.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log probe details at DEBUG level"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.command("bootstrap")(setup_cmd.bootstrap)
app.command("teardown")(setup_cmd.teardown)
app.command("config")(setup_cmd.show_config)
app.add_typer(install_cmd.app, name="install")
app.add_typer(wait_cmd.app, name="wait")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
