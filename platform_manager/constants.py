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

"""Constants, chart dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load Helm repository and chart coordinates from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Readiness probe --
CONTROL_PLANE_TIMEOUT_SECONDS = 600
CONTROL_PLANE_POLL_INTERVAL_SECONDS = 10
NODE_READY_TIMEOUT_SECONDS = 600
NODE_READY_POLL_INTERVAL_SECONDS = 10
MIN_READY_NODES = 1
EKS_STATUS_ACTIVE = "ACTIVE"

# -- Controller installer --
ROLLOUT_TIMEOUT_SECONDS = 600
ROLLOUT_POLL_INTERVAL_SECONDS = 5
WEBHOOK_READY_MAX_RETRIES = 60
WEBHOOK_READY_POLL_INTERVAL_SECONDS = 5
DIAGNOSTIC_LOG_TAIL_LINES = 200

# -- Teardown --
NAMESPACE_DELETE_TIMEOUT_SECONDS = 600
NAMESPACE_DELETE_POLL_INTERVAL_SECONDS = 10
CLOUD_CLEANUP_TIMEOUT_SECONDS = 900
CLOUD_CLEANUP_POLL_INTERVAL_SECONDS = 20

# -- Resolver defaults --
DEFAULT_REL_TF_DIR = "terraform/infrastructure"
DEFAULT_REL_ROOT_APP = "bootstrap/argocd-root-app.yaml"
DEFAULT_TEARDOWN_NAMESPACES = "jb-dev jb-staging jb-prod"
TFVARS_FILE = "terraform.tfvars"
VARIABLES_FILE = "variables.tf"
TF_VAR_REGION = "region"
TF_VAR_CLUSTER_NAME = "cluster_name"
TF_OUTPUT_VPC_ID = "vpc_id"
VPC_NAME_TAG_SUFFIX = "-vpc"

# -- Namespaces --
NS_KUBE_SYSTEM = "kube-system"
NS_ARGOCD = "argocd"

# -- Helm releases --
HELM_RELEASE_LB_CONTROLLER = "aws-load-balancer-controller"
HELM_RELEASE_ARGOCD = "argocd"

# -- AWS Load Balancer Controller --
LB_CONTROLLER_SERVICE_ACCOUNT = "aws-load-balancer-controller"
LB_CONTROLLER_DEPLOYMENT = "aws-load-balancer-controller"
LB_CONTROLLER_WEBHOOK_SERVICE = "aws-load-balancer-webhook-service"
LB_CONTROLLER_POD_SELECTOR = "app.kubernetes.io/name=aws-load-balancer-controller"
LB_CONTROLLER_ROLE_SUFFIX = "-alb-controller-irsa"
IRSA_ROLE_ANNOTATION = "eks.amazonaws.com/role-arn"

# -- Argo CD --
ARGOCD_SERVER_DEPLOYMENT = "argocd-server"
ARGOCD_POD_SELECTOR = "app.kubernetes.io/part-of=argocd"
ARGOCD_APPLICATION_RESOURCE = "applications.argoproj.io"
ARGOCD_ADMIN_SECRET = "argocd-initial-admin-secret"

# -- Helm override keys --
HELM_KEY_CLUSTER_NAME = "clusterName"
HELM_KEY_REGION = "region"
HELM_KEY_VPC_ID = "vpcId"
HELM_KEY_SA_CREATE = "serviceAccount.create"
HELM_KEY_SA_NAME = "serviceAccount.name"
HELM_KEY_ARGOCD_SERVICE_TYPE = "server.service.type"
HELM_KEY_ARGOCD_INGRESS = "server.ingress.enabled"

# -- Cloud-side artifacts left by the load balancer controller --
LB_CONTROLLER_SG_TAG_KEYS = ("ingress.k8s.aws/stack", "elbv2.k8s.aws/cluster")
ELB_ENI_DESCRIPTION_MARKERS = ("ELB ",)
ELB_ENI_INTERFACE_TYPES = ("network_load_balancer",)
