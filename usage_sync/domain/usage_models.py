"""
Domain models for resource usage.
Defines usage items, per-resource usage trees, the usage file and sync results.
"""
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from usage_sync.core.context import SyncContext
from usage_sync.domain.usage_data import UsageMap


class ValueType(Enum):
    """Declared type of a usage item's value."""
    INT64 = "int64"
    FLOAT64 = "float64"
    STRING = "string"
    STRING_ARRAY = "string_array"
    SUB_RESOURCE_USAGE = "sub_resource_usage"


def infer_value_type(value: Any) -> ValueType:
    """
    Infer a value type from a loaded document value.

    Documents cannot always tell an int from a float (or a number from a
    string), which is why the resource's own schema overrides the type.
    """
    if isinstance(value, dict):
        return ValueType.SUB_RESOURCE_USAGE
    if isinstance(value, list):
        return ValueType.STRING_ARRAY
    if isinstance(value, bool):
        return ValueType.STRING
    if isinstance(value, int):
        return ValueType.INT64
    if isinstance(value, float):
        return ValueType.FLOAT64
    return ValueType.STRING


@dataclass
class UsageItem:
    """
    A single typed usage attribute.

    For SUB_RESOURCE_USAGE items, default_value and value are ResourceUsage
    trees. None means absent; it is never the same as an empty value.
    """
    key: str
    value_type: ValueType
    description: str = ""
    default_value: Optional[Any] = None
    value: Optional[Any] = None


@dataclass
class ResourceUsage:
    """Ordered usage items for one resource (or one sub-resource)."""
    name: str
    items: List[UsageItem] = field(default_factory=list)

    def find_item(self, key: str) -> Optional[UsageItem]:
        for item in self.items:
            if item.key == key:
                return item
        return None

    def has_value(self) -> bool:
        """True if any item holds a value."""
        return any(item.value is not None for item in self.items)

    def to_map(self) -> UsageMap:
        """
        Flatten the tree's values into a raw usage map.

        Absent values map to None. Values are copied so the caller may mutate
        the map freely.
        """
        result: UsageMap = {}
        for item in self.items:
            if isinstance(item.value, ResourceUsage):
                result[item.key] = item.value.to_map()
            else:
                result[item.key] = copy.deepcopy(item.value)
        return result


@dataclass
class UsageFile:
    """Previously saved usage, one entry per known resource, in saved order."""
    version: str = "0.1"
    resource_usages: List[ResourceUsage] = field(default_factory=list)

    def find(self, name: str) -> Optional[ResourceUsage]:
        for resource_usage in self.resource_usages:
            if resource_usage.name == name:
                return resource_usage
        return None


def set_default_values(items: List[UsageItem]) -> None:
    """Move every item's value into default_value, recursively."""
    for item in items:
        if isinstance(item.value, ResourceUsage):
            set_default_values(item.value.items)
        item.default_value = item.value
        item.value = None


EstimateUsageFunc = Callable[[SyncContext, UsageMap], Awaitable[None]]


@dataclass
class Resource:
    """
    An infrastructure resource under estimation.

    estimate_usage is the optional estimation capability. When present it is
    awaited with the sync context and a mutable usage map, and writes the
    values it can find into that map.
    """
    name: str
    usage_schema: List[UsageItem] = field(default_factory=list)
    estimate_usage: Optional[EstimateUsageFunc] = None


@dataclass
class Project:
    """A group of resources evaluated together."""
    name: str
    resources: List[Resource] = field(default_factory=list)


@dataclass
class SyncResult:
    """Outcome of a usage sync pass."""
    resource_count: int = 0
    estimation_count: int = 0
    estimation_errors: Dict[str, Exception] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "resource_count": self.resource_count,
            "estimation_count": self.estimation_count,
            "estimation_errors": {
                name: str(error) for name, error in self.estimation_errors.items()
            },
        }
