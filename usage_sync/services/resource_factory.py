"""
Builds Resource records from resource declarations.

Resource types with a registered estimator get it attached; every other
resource is synced from its static usage sources only.
"""
import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from usage_sync.core.config import config
from usage_sync.core.context import SyncContext
from usage_sync.domain.usage_data import UsageMap
from usage_sync.domain.usage_models import Resource, UsageItem, ValueType
from usage_sync.services.reference_file import resource_type_from_address
from usage_sync.usage.aws.autoscaling import autoscaling_get_instance_count
from usage_sync.usage.aws.eks import eks_get_node_group_autoscaling_groups


logger = logging.getLogger(__name__)


class EstimationInputError(Exception):
    """Raised when a resource lacks the attributes its estimator needs."""
    pass


@dataclass
class ResourceDeclaration:
    """A resource as described by the parsed infrastructure definition."""
    name: str
    type: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    usage_schema: List[UsageItem] = field(default_factory=list)

    def resource_type(self) -> str:
        return self.type or resource_type_from_address(self.name)


Estimator = Callable[[Dict[str, Any], SyncContext, UsageMap], Awaitable[None]]


async def estimate_eks_node_group_usage(attributes: Dict[str, Any], ctx: SyncContext, usage: UsageMap) -> None:
    """
    Estimate instance count for an EKS node group from its autoscaling groups.

    Writes "instances" into the usage map when the node group reports any
    autoscaling groups.
    """
    cluster_name = attributes.get("cluster_name")
    node_group_name = attributes.get("node_group_name")
    if not cluster_name or not node_group_name:
        raise EstimationInputError("cluster_name and node_group_name are required to estimate node group usage")
    region = attributes.get("region") or config.AWS_DEFAULT_REGION

    group_names = await asyncio.to_thread(
        eks_get_node_group_autoscaling_groups,
        region,
        cluster_name,
        node_group_name,
    )
    if not group_names:
        logger.debug("Node group %s/%s has no autoscaling groups", cluster_name, node_group_name)
        return

    ctx.check()
    usage["instances"] = await asyncio.to_thread(autoscaling_get_instance_count, region, group_names)


ESTIMATORS: Dict[str, Estimator] = {
    "aws_eks_node_group": estimate_eks_node_group_usage,
}

EKS_NODE_GROUP_USAGE_SCHEMA = [
    UsageItem(key="instances", value_type=ValueType.INT64),
    UsageItem(key="operating_system", value_type=ValueType.STRING),
]

USAGE_SCHEMAS: Dict[str, List[UsageItem]] = {
    "aws_eks_node_group": EKS_NODE_GROUP_USAGE_SCHEMA,
}


def build_resource(declaration: ResourceDeclaration) -> Resource:
    """
    Build a Resource from a declaration.

    The declaration's usage schema is used as given; if it has none, the
    built-in schema for the resource type (if any) is used instead.
    """
    resource_type = declaration.resource_type()

    usage_schema = declaration.usage_schema
    if not usage_schema:
        usage_schema = [
            UsageItem(key=item.key, value_type=item.value_type, description=item.description)
            for item in USAGE_SCHEMAS.get(resource_type, [])
        ]

    estimate_usage = None
    estimator: Optional[Estimator] = ESTIMATORS.get(resource_type)
    if estimator is not None:
        estimate_usage = functools.partial(estimator, dict(declaration.attributes))

    return Resource(
        name=declaration.name,
        usage_schema=usage_schema,
        estimate_usage=estimate_usage,
    )
