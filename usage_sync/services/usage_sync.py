"""
Usage sync service.

Rebuilds every resource's usage tree from the reference catalogue, the
resource's declared schema and the saved usage file, runs each resource's
estimator one at a time, and writes the sorted result back to the usage file.
"""
import logging
from typing import Dict, List, Optional, Tuple

from usage_sync.core.context import SyncContext
from usage_sync.domain.usage_data import UsageData, parse_attributes
from usage_sync.domain.usage_models import Project, Resource, ResourceUsage, SyncResult, UsageFile
from usage_sync.services.reference_file import ReferenceFile, get_reference_file
from usage_sync.services.usage_merge import merge_resource_usage_with_usage_data, merge_resource_usages


logger = logging.getLogger(__name__)


async def sync_usage_data(
    usage_file: UsageFile,
    projects: List[Project],
    ctx: Optional[SyncContext] = None
) -> SyncResult:
    """
    Sync a usage file against the resources of the given projects.

    Args:
        usage_file: Saved usage, replaced in place with the synced entries
        projects: Projects whose resources are synced
        ctx: Context for estimation calls (a fresh one with no deadline if None)

    Returns:
        SyncResult with counts and per-resource estimation errors

    Raises:
        ReferenceFileError: If the reference usage file cannot be loaded
    """
    reference_file = get_reference_file()

    resources: List[Resource] = []
    for project in projects:
        resources.extend(project.resources)

    return await sync_resource_usages(usage_file, resources, reference_file, ctx)


async def sync_resource_usages(
    usage_file: UsageFile,
    resources: List[Resource],
    reference_file: Optional[ReferenceFile],
    ctx: Optional[SyncContext] = None
) -> SyncResult:
    """
    Sync a usage file against a flat list of resources.

    Args:
        usage_file: Saved usage, replaced in place with the synced entries
        resources: Resources to sync, in input order
        reference_file: Reference catalogue with default values set (None to skip defaults)
        ctx: Context for estimation calls

    Returns:
        SyncResult with counts and per-resource estimation errors
    """
    if ctx is None:
        ctx = SyncContext()

    sync_result = SyncResult()

    existing_resource_usages: Dict[str, ResourceUsage] = {}
    for resource_usage in usage_file.resource_usages:
        existing_resource_usages.setdefault(resource_usage.name, resource_usage)

    # Saved order is kept so previously saved resources stay on top
    existing_order = [resource_usage.name for resource_usage in usage_file.resource_usages]

    resource_usages: List[ResourceUsage] = []
    for resource in resources:
        resource_usage = build_resource_usage(
            resource,
            reference_file,
            existing_resource_usages.get(resource.name),
        )

        sync_result.resource_count += 1
        if resource.estimate_usage is not None:
            sync_result.estimation_count += 1
            error = await estimate_resource_usage(resource, resource_usage, ctx)
            if error is not None:
                sync_result.estimation_errors[resource.name] = error

        resource_usages.append(resource_usage)

    usage_file.resource_usages = sort_resource_usages(resource_usages, existing_order)

    logger.info(
        "Synced usage for %d resources (%d estimated, %d estimation errors)",
        sync_result.resource_count,
        sync_result.estimation_count,
        len(sync_result.estimation_errors),
    )
    return sync_result


def build_resource_usage(
    resource: Resource,
    reference_file: Optional[ReferenceFile],
    existing_resource_usage: Optional[ResourceUsage]
) -> ResourceUsage:
    """
    Build a fresh usage tree for a resource from its static sources.

    Reference defaults go in first, then the resource's own schema (whose
    value types win), then the saved usage.
    """
    resource_usage = ResourceUsage(name=resource.name)

    if reference_file is not None:
        merge_resource_usages(
            resource_usage,
            reference_file.find_matching_resource_usage(resource.name),
        )

    # Documents can't always tell an int from a float, so the schema's types win
    merge_resource_usages(
        resource_usage,
        ResourceUsage(name=resource.name, items=resource.usage_schema),
        override_value_type=True,
    )

    merge_resource_usages(resource_usage, existing_resource_usage)

    return resource_usage


async def estimate_resource_usage(
    resource: Resource,
    resource_usage: ResourceUsage,
    ctx: SyncContext
) -> Optional[Exception]:
    """
    Run a resource's estimator and merge its output into the usage tree.

    Failures are logged and returned rather than raised; on failure the tree
    keeps the values it had before the call.

    Returns:
        The estimation error, or None on success
    """
    usage_map = resource_usage.to_map()
    try:
        await ctx.run(resource.estimate_usage(ctx, usage_map))
        usage_data = UsageData(resource.name, parse_attributes(usage_map))
    except Exception as error:
        logger.warning("Error estimating usage for resource %s: %s", resource.name, error)
        return error

    merge_resource_usage_with_usage_data(resource_usage, usage_data)
    return None


def _sort_key(
    resource_usage: ResourceUsage,
    existing_index: Dict[str, int]
) -> Tuple[bool, int, bool, str]:
    index = existing_index.get(resource_usage.name)
    if index is not None:
        return (False, index, False, resource_usage.name)
    return (True, 0, not resource_usage.has_value(), resource_usage.name)


def sort_resource_usages(resource_usages: List[ResourceUsage], existing_order: List[str]) -> List[ResourceUsage]:
    """
    Sort resource usages for output.

    Resources from the saved order come first, in that order. The rest follow,
    those holding at least one value ahead of those with none, then by name.
    """
    existing_index: Dict[str, int] = {}
    for index, name in enumerate(existing_order):
        existing_index.setdefault(name, index)

    return sorted(resource_usages, key=lambda resource_usage: _sort_key(resource_usage, existing_index))
