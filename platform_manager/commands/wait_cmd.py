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

"""Wait subcommands (cluster)."""

from __future__ import annotations

from pathlib import Path

import typer

from platform_manager.cluster import ensure_cluster_ready
from platform_manager.commands.setup_cmd import CLUSTER_OPTION, REGION_OPTION, TF_DIR_OPTION, run_or_exit
from platform_manager.config import settings_with_overrides
from platform_manager.resolver import resolve_settings

app = typer.Typer(help="Block until parts of the platform converge.")


@app.command()
def cluster(
    region: str | None = REGION_OPTION,
    cluster_name: str | None = CLUSTER_OPTION,
    tf_dir: Path | None = TF_DIR_OPTION,
) -> None:
    """Wait for the EKS control plane and at least one Ready node."""
    settings = settings_with_overrides(region=region, cluster_name=cluster_name, tf_dir=tf_dir)
    run_or_exit(lambda: ensure_cluster_ready(resolve_settings(settings)))
