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

"""AWS lookups for EKS, IAM and EC2, plus kubeconfig refresh."""

from __future__ import annotations

import boto3
import sh
from botocore.exceptions import BotoCoreError, ClientError

from platform_manager.errors import UnreachableError
from platform_manager.utils import error_text


def caller_identity() -> str:
    """ARN of the authenticated AWS principal.

    Raises:
        UnreachableError: If no usable credentials are configured.
    """
    try:
        return boto3.client("sts").get_caller_identity()["Arn"]
    except (BotoCoreError, ClientError) as err:
        raise UnreachableError(f"AWS credentials are not usable: {err}") from err


def update_kubeconfig(region: str, cluster_name: str) -> None:
    """Refresh the kubeconfig entry (endpoint and CA) for the cluster.

    Raises:
        UnreachableError: If ``aws eks update-kubeconfig`` fails.
    """
    try:
        sh.aws("eks", "update-kubeconfig", "--region", region, "--name", cluster_name)
    except sh.ErrorReturnCode as err:
        raise UnreachableError(
            f"aws eks update-kubeconfig failed for {cluster_name} in {region}: {error_text(err)}"
        ) from err


def _describe_cluster(region: str, cluster_name: str) -> dict:
    return boto3.client("eks", region_name=region).describe_cluster(name=cluster_name)["cluster"]


def cluster_status(region: str, cluster_name: str) -> str:
    """EKS control plane status, e.g. CREATING or ACTIVE."""
    return _describe_cluster(region, cluster_name)["status"]


def cluster_vpc_id(region: str, cluster_name: str) -> str:
    """VPC the cluster's control plane ENIs live in."""
    return _describe_cluster(region, cluster_name)["resourcesVpcConfig"]["vpcId"]


def role_arn(role_name: str) -> str:
    """ARN of an IAM role by name."""
    return boto3.client("iam").get_role(RoleName=role_name)["Role"]["Arn"]


def find_vpc_by_name(region: str, name: str) -> str | None:
    """VPC id carrying tag Name=*name*, or None."""
    try:
        vpcs = boto3.client("ec2", region_name=region).describe_vpcs(
            Filters=[{"Name": "tag:Name", "Values": [name]}]
        )["Vpcs"]
    except (BotoCoreError, ClientError):
        return None
    return vpcs[0]["VpcId"] if vpcs else None


def count_tagged_security_groups(region: str, vpc_id: str, tag_keys: tuple[str, ...]) -> int:
    """Security groups in the VPC carrying any of *tag_keys*; 0 when no keys are given."""
    if not tag_keys:
        return 0
    paginator = boto3.client("ec2", region_name=region).get_paginator("describe_security_groups")
    pages = paginator.paginate(Filters=[
        {"Name": "vpc-id", "Values": [vpc_id]},
        {"Name": "tag-key", "Values": list(tag_keys)},
    ])
    return sum(len(page["SecurityGroups"]) for page in pages)


def count_load_balancer_interfaces(
    region: str,
    vpc_id: str,
    description_markers: tuple[str, ...],
    interface_types: tuple[str, ...],
) -> int:
    """ENIs in the VPC that look load-balancer owned.

    An ENI matches when its description contains any marker or its interface
    type is one of *interface_types*.
    """
    paginator = boto3.client("ec2", region_name=region).get_paginator("describe_network_interfaces")
    pages = paginator.paginate(Filters=[{"Name": "vpc-id", "Values": [vpc_id]}])
    return sum(
        1
        for page in pages
        for eni in page["NetworkInterfaces"]
        if eni.get("InterfaceType") in interface_types
        or any(marker in eni.get("Description", "") for marker in description_markers)
    )


def inspection_commands(region: str, vpc_id: str) -> list[str]:
    """AWS CLI commands an operator can run to see what still blocks the VPC."""
    return [
        f"aws ec2 describe-security-groups --region {region} --filters Name=vpc-id,Values={vpc_id}",
        f"aws ec2 describe-network-interfaces --region {region} --filters Name=vpc-id,Values={vpc_id}",
    ]
