"""
Autoscaling usage lookups.
"""
from typing import List

from usage_sync.usage.aws.client import call_aws, new_client


def autoscaling_get_instance_count(region: str, group_names: List[str]) -> int:
    """
    Count the instances currently in the given autoscaling groups.

    Args:
        region: AWS region of the groups
        group_names: Autoscaling group names

    Returns:
        Total number of instances across all groups (0 for no groups)

    Raises:
        AWSUsageError: If the lookup fails
    """
    if not group_names:
        return 0

    client = new_client("autoscaling", region)
    paginator = client.get_paginator("describe_auto_scaling_groups")

    def count_instances() -> int:
        total = 0
        for page in paginator.paginate(AutoScalingGroupNames=list(group_names)):
            for group in page.get("AutoScalingGroups", []):
                total += len(group.get("Instances", []))
        return total

    return call_aws("aws_autoscaling", count_instances)
