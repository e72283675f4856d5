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

"""Region and cluster name resolution from overrides, Terraform state and variables.

Each field is resolved independently; the first source giving a non-empty
value wins:

    1. explicit override (env var or CLI option)
    2. ``terraform output -json`` in the Terraform root
    3. ``terraform.tfvars`` in the Terraform root
    4. the declared ``default`` in ``variables.tf``

The tfvars and variables readers are line scanners, not HCL parsers. They
only understand single-line ``key = value`` assignments and give up (return
None) on anything else.
"""

from __future__ import annotations

import re
from pathlib import Path

from platform_manager import aws, logger
from platform_manager.config import PlatformSettings, ResolvedConfig
from platform_manager.constants import (
    TF_OUTPUT_VPC_ID,
    TF_VAR_CLUSTER_NAME,
    TF_VAR_REGION,
    TFVARS_FILE,
    VARIABLES_FILE,
    VPC_NAME_TAG_SUFFIX,
)
from platform_manager.errors import ResolutionError
from platform_manager.terraform import Terraform

_FIELDS = (TF_VAR_REGION, TF_VAR_CLUSTER_NAME)
_QUOTED_DEFAULT = re.compile(r'default\s*=\s*"([^"]*)"')
_BARE_DEFAULT = re.compile(r"default\s*=\s*([^\s}#]+)")


# ============================================================================
# Variable file scanners
# ============================================================================

def _unquote(value: str) -> str:
    return value.strip().strip('"').strip()


def tfvars_value(name: str, path: Path) -> str | None:
    """First ``name = value`` assignment in a tfvars file, unquoted.

    Args:
        name: Variable name to look for.
        path: Path to the ``.tfvars`` file.

    Returns:
        The assigned value, or None if the file or assignment is missing.
    """
    if not path.is_file():
        return None
    pattern = re.compile(rf"^\s*{re.escape(name)}\s*=(.*)$")
    for line in path.read_text(errors="replace").splitlines():
        match = pattern.match(line)
        if match:
            return _unquote(match.group(1).split("#", 1)[0]) or None
    return None


def hcl_default(name: str, path: Path) -> str | None:
    """Best-effort ``default`` of a ``variable "<name>"`` block.

    Scans line by line: enters the block at its ``variable`` line, returns the
    first ``default = ...`` assignment, and leaves the block at the first line
    containing ``}``. Defaults spanning lines, or blocks whose nested braces
    close before the default, are reported as not found.

    Args:
        name: Variable name.
        path: Path to ``variables.tf``.

    Returns:
        The unquoted default, or None if it cannot be found.
    """
    if not path.is_file():
        return None
    header = re.compile(rf'variable\s+"{re.escape(name)}"')
    in_block = False
    for line in path.read_text(errors="replace").splitlines():
        if header.search(line):
            in_block = True
        if in_block:
            match = _QUOTED_DEFAULT.search(line) or _BARE_DEFAULT.search(line)
            if match:
                return match.group(1).strip() or None
            if "}" in line:
                in_block = False
    return None


# ============================================================================
# Resolution
# ============================================================================

def resolve(
    region: str | None,
    cluster_name: str | None,
    terraform: Terraform,
) -> ResolvedConfig:
    """Resolve the region and cluster name.

    Args:
        region: Explicit region override, or None/empty.
        cluster_name: Explicit cluster name override, or None/empty.
        terraform: Terraform root consulted for outputs and variable files.

    Returns:
        ResolvedConfig with both fields set.

    Raises:
        ResolutionError: If either field is still empty after every source.
    """
    tf_dir = terraform.workdir
    values: dict[str, str | None] = {TF_VAR_REGION: region or None, TF_VAR_CLUSTER_NAME: cluster_name or None}
    sources: dict[str, str] = {field: "override" for field, value in values.items() if value}

    def _missing() -> list[str]:
        return [field for field in _FIELDS if not values[field]]

    def _fill(source: str, lookup) -> None:
        for field in _missing():
            found = lookup(field)
            if found:
                values[field] = found
                sources[field] = source

    if _missing():
        outputs = terraform.outputs()
        if outputs is None:
            logger.debug("Terraform outputs unavailable in %s", tf_dir)
        else:
            _fill("terraform output", lambda field: str(outputs.get(field) or "") or None)
    if _missing():
        _fill(TFVARS_FILE, lambda field: tfvars_value(field, tf_dir / TFVARS_FILE))
    if _missing():
        _fill(VARIABLES_FILE, lambda field: hcl_default(field, tf_dir / VARIABLES_FILE))

    missing = _missing()
    if missing:
        raise ResolutionError(
            missing=[field.upper() for field in missing],
            checked=[
                "REGION/CLUSTER_NAME overrides (environment or --region/--cluster-name)",
                f"terraform outputs in TF_DIR={tf_dir}",
                f"{tf_dir / TFVARS_FILE}",
                f"{tf_dir / VARIABLES_FILE} defaults",
            ],
        )

    for field in _FIELDS:
        logger.info("Resolved %s=%s (from %s)", field, values[field], sources[field])
    return ResolvedConfig(region=values[TF_VAR_REGION], cluster_name=values[TF_VAR_CLUSTER_NAME])


def resolve_settings(settings: PlatformSettings) -> ResolvedConfig:
    """Resolve using the overrides and Terraform root carried by *settings*."""
    return resolve(settings.region, settings.cluster_name, Terraform(settings.tf_dir))


def resolve_vpc_id(cfg: ResolvedConfig, terraform: Terraform) -> str | None:
    """Cluster VPC id from Terraform outputs, else from the ``<cluster>-vpc`` Name tag.

    Returns:
        The VPC id, or None if neither source knows it.
    """
    vpc_id = terraform.output(TF_OUTPUT_VPC_ID)
    if vpc_id:
        return vpc_id
    return aws.find_vpc_by_name(cfg.region, f"{cfg.cluster_name}{VPC_NAME_TAG_SUFFIX}")
