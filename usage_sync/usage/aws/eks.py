"""
EKS usage lookups.
"""
from typing import List

from usage_sync.usage.aws.client import call_aws, new_client


def eks_get_node_group_autoscaling_groups(region: str, cluster_name: str, node_group_name: str) -> List[str]:
    """
    Get the autoscaling group names backing an EKS node group.

    Args:
        region: AWS region of the cluster
        cluster_name: EKS cluster name
        node_group_name: Node group name

    Returns:
        Autoscaling group names (empty if the node group reports none)

    Raises:
        AWSUsageError: If the lookup fails
    """
    client = new_client("eks", region)
    result = call_aws(
        "aws_eks",
        client.describe_nodegroup,
        clusterName=cluster_name,
        nodegroupName=node_group_name,
    )

    groups = result.get("nodegroup", {}).get("resources", {}).get("autoScalingGroups", [])
    return [group["name"] for group in groups if group.get("name")]
