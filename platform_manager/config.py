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

"""Settings, resolved configuration, and teardown models."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from platform_manager.constants import (
    DEFAULT_REL_ROOT_APP,
    DEFAULT_REL_TF_DIR,
    DEFAULT_TEARDOWN_NAMESPACES,
    ELB_ENI_DESCRIPTION_MARKERS,
    ELB_ENI_INTERFACE_TYPES,
    LB_CONTROLLER_SG_TAG_KEYS,
)
from platform_manager.utils import repo_root


# ============================================================================
# Settings
# ============================================================================

class PlatformSettings(BaseSettings):
    """Operator overrides, auto-loaded from REGION/CLUSTER_NAME/TF_DIR/... env vars.

    Attributes:
        region: AWS region override; empty means resolve it.
        cluster_name: EKS cluster name override; empty means resolve it.
        tf_dir: Terraform root holding the infrastructure state and variables.
        namespaces: Workload namespaces removed on teardown, whitespace or comma separated.
        root_app_manifest: Argo CD root Application manifest applied at the end of bootstrap.
    """

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    region: str = ""
    cluster_name: str = ""
    tf_dir: Path = Field(default_factory=lambda: repo_root() / DEFAULT_REL_TF_DIR)
    namespaces: str = DEFAULT_TEARDOWN_NAMESPACES
    root_app_manifest: Path = Field(default_factory=lambda: repo_root() / DEFAULT_REL_ROOT_APP)

    @property
    def namespace_list(self) -> tuple[str, ...]:
        """Namespaces in declared order, duplicates dropped."""
        seen: dict[str, None] = {}
        for name in re.split(r"[\s,]+", self.namespaces.strip()):
            if name:
                seen.setdefault(name, None)
        return tuple(seen)


def settings_with_overrides(**overrides: object) -> PlatformSettings:
    """Load PlatformSettings from the environment, then apply the CLI options that were set.

    Args:
        **overrides: Field values; None means "not given on the command line".
    """
    settings = PlatformSettings()
    update = {key: value for key, value in overrides.items() if value is not None}
    if update:
        settings = settings.model_copy(update=update)
    return settings


# ============================================================================
# Resolved models
# ============================================================================

@dataclass(frozen=True)
class ResolvedConfig:
    """Region and cluster coordinates every stage operates on.

    Attributes:
        region: AWS region of the cluster.
        cluster_name: EKS cluster name.
    """

    region: str
    cluster_name: str

    def __post_init__(self) -> None:
        if not self.region or not self.cluster_name:
            raise ValueError("ResolvedConfig requires a non-empty region and cluster_name")


@dataclass(frozen=True)
class TeardownTarget:
    """What the teardown sequencer removes.

    Attributes:
        namespaces: Workload namespaces, deleted in this order.
        vpc_id: Cluster VPC, or None to skip the cloud dependency wait.
    """

    namespaces: tuple[str, ...]
    vpc_id: str | None = None


@dataclass(frozen=True)
class CleanupPolicy:
    """Matching rules for load balancer artifacts that block VPC deletion.

    Attributes:
        sg_tag_keys: Security groups carrying any of these tag keys are controller-managed.
        eni_description_markers: ENIs whose description contains any of these are ELB-owned.
        eni_interface_types: ENIs of these interface types are ELB-owned.
    """

    sg_tag_keys: tuple[str, ...] = LB_CONTROLLER_SG_TAG_KEYS
    eni_description_markers: tuple[str, ...] = ELB_ENI_DESCRIPTION_MARKERS
    eni_interface_types: tuple[str, ...] = ELB_ENI_INTERFACE_TYPES
