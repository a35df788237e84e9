"""
Usage tree merging.

merge_resource_usages layers one usage tree onto another. Callers apply
sources in a fixed order (reference defaults, the resource's own schema with
the type override, then saved usage) so that later sources win on values
while the resource schema always decides the value type.

merge_resource_usage_with_usage_data folds an estimator's raw output back
into a tree, reading each item through its declared type.
"""
import copy
from typing import Any, Dict, Optional

from usage_sync.domain.usage_data import UsageData
from usage_sync.domain.usage_models import ResourceUsage, UsageItem, ValueType


def merge_resource_usages(
    dest: Optional[ResourceUsage],
    src: Optional[ResourceUsage],
    override_value_type: bool = False
) -> None:
    """
    Merge src into dest in place.

    Args:
        dest: Tree to update (no-op if None)
        src: Tree to read from (no-op if None)
        override_value_type: Replace dest item types with src item types
    """
    if dest is None or src is None:
        return

    dest_items: Dict[str, UsageItem] = {item.key: item for item in dest.items}

    for src_item in src.items:
        dest_item = dest_items.get(src_item.key)
        if dest_item is None:
            dest_item = UsageItem(key=src_item.key, value_type=src_item.value_type)
            dest.items.append(dest_item)
            dest_items[dest_item.key] = dest_item

        if override_value_type:
            dest_item.value_type = src_item.value_type

        if src_item.description:
            dest_item.description = src_item.description

        if src_item.value_type == ValueType.SUB_RESOURCE_USAGE:
            _merge_sub_resource_item(dest_item, src_item, override_value_type)
        else:
            if src_item.default_value is not None:
                dest_item.default_value = copy.deepcopy(src_item.default_value)
            if src_item.value is not None:
                dest_item.value = copy.deepcopy(src_item.value)


def _merge_sub_resource_item(dest_item: UsageItem, src_item: UsageItem, override_value_type: bool) -> None:
    if src_item.default_value is not None:
        src_default: ResourceUsage = src_item.default_value
        if not isinstance(dest_item.default_value, ResourceUsage):
            dest_item.default_value = ResourceUsage(name=src_default.name)
        merge_resource_usages(dest_item.default_value, src_default, override_value_type)

    if src_item.value is not None:
        src_value: ResourceUsage = src_item.value
        if not isinstance(dest_item.value, ResourceUsage):
            # Seed from the defaults so default sub-items show up alongside the new values
            if isinstance(dest_item.default_value, ResourceUsage):
                dest_item.value = copy.deepcopy(dest_item.default_value)
            else:
                dest_item.value = ResourceUsage(name=src_value.name)
        merge_resource_usages(dest_item.value, src_value, override_value_type)


def merge_resource_usage_with_usage_data(resource_usage: ResourceUsage, usage_data: Optional[UsageData]) -> None:
    """
    Assign estimated values from raw usage data onto a tree in place.

    Only items whose value can be read from the usage data are touched.
    Sub-resource items merge into their existing value; if they only have
    defaults, a new sub-tree is built from the default sub-items that have
    non-null data, and left absent if none do.

    Args:
        resource_usage: Tree to update
        usage_data: Estimated values (no-op if None)
    """
    if usage_data is None:
        return

    for item in resource_usage.items:
        value: Any = None

        if item.value_type == ValueType.INT64:
            value = usage_data.get_int(item.key)
        elif item.value_type == ValueType.FLOAT64:
            value = usage_data.get_float(item.key)
        elif item.value_type == ValueType.STRING:
            value = usage_data.get_string(item.key)
        elif item.value_type == ValueType.STRING_ARRAY:
            value = usage_data.get_string_array(item.key)
        elif item.value_type == ValueType.SUB_RESOURCE_USAGE:
            value = _estimated_sub_resource_usage(item, usage_data)

        if value is not None:
            item.value = value


def _estimated_sub_resource_usage(item: UsageItem, usage_data: UsageData) -> Optional[ResourceUsage]:
    sub_usage_data = UsageData(item.key, usage_data.get(item.key).to_map())

    sub_resource_usage: Optional[ResourceUsage] = None
    if isinstance(item.value, ResourceUsage):
        sub_resource_usage = item.value
    elif isinstance(item.default_value, ResourceUsage):
        sub_resource_usage = ResourceUsage(name=item.key)
        for sub_item in item.default_value.items:
            if not sub_usage_data.get(sub_item.key).is_null():
                sub_resource_usage.items.append(copy.deepcopy(sub_item))
        if not sub_resource_usage.items:
            sub_resource_usage = None

    if sub_resource_usage is not None:
        merge_resource_usage_with_usage_data(sub_resource_usage, sub_usage_data)
    return sub_resource_usage
