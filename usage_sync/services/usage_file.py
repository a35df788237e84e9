"""
Usage file persistence.

Converts between the in-memory UsageFile and the usage document:

    version: 0.1
    resource_usage:
      aws_lambda_function.hello:
        monthly_requests: 100000
        node_pool:
          instances: 3
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

import yaml

from usage_sync.domain.usage_data import UsageDataError, parse_attributes
from usage_sync.domain.usage_models import ResourceUsage, UsageFile, UsageItem, ValueType, infer_value_type


logger = logging.getLogger(__name__)

DEFAULT_VERSION = "0.1"


class UsageFileError(Exception):
    """Raised when a usage document cannot be read."""
    pass


def items_from_mapping(values: Mapping[str, Any]) -> List[UsageItem]:
    """Build usage items holding the given values, inferring each item's type."""
    items = []
    for key, value in values.items():
        if value is None:
            items.append(UsageItem(key=key, value_type=ValueType.STRING))
        elif isinstance(value, dict):
            items.append(UsageItem(
                key=key,
                value_type=ValueType.SUB_RESOURCE_USAGE,
                value=ResourceUsage(name=key, items=items_from_mapping(value)),
            ))
        else:
            items.append(UsageItem(key=key, value_type=infer_value_type(value), value=value))
    return items


def _mapping_from_items(items: List[UsageItem]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for item in items:
        if item.value is None:
            continue
        if isinstance(item.value, ResourceUsage):
            values[item.key] = _mapping_from_items(item.value.items)
        elif isinstance(item.value, list):
            values[item.key] = list(item.value)
        else:
            values[item.key] = item.value
    return values


def usage_file_from_dict(document: Any) -> UsageFile:
    """
    Build a UsageFile from a usage document.

    Args:
        document: Parsed usage document (None for an empty file)

    Returns:
        UsageFile with entries in document order

    Raises:
        UsageFileError: If the document does not have the expected shape
    """
    if document is None:
        return UsageFile()
    if not isinstance(document, Mapping):
        raise UsageFileError("Usage file must be a mapping")

    resource_usage = document.get("resource_usage") or {}
    if not isinstance(resource_usage, Mapping):
        raise UsageFileError("'resource_usage' must be a mapping of resource name to usage")

    resource_usages = []
    for name, values in resource_usage.items():
        if values is None:
            values = {}
        if not isinstance(values, Mapping):
            raise UsageFileError(f"Usage for resource '{name}' must be a mapping")
        try:
            parsed = parse_attributes(values, prefix=f"{name}.")
        except UsageDataError as error:
            raise UsageFileError(str(error)) from error
        resource_usages.append(ResourceUsage(name=str(name), items=items_from_mapping(parsed)))

    return UsageFile(
        version=str(document.get("version", DEFAULT_VERSION)),
        resource_usages=resource_usages,
    )


def usage_file_to_dict(usage_file: UsageFile) -> Dict[str, Any]:
    """
    Convert a UsageFile to a usage document.

    Only items holding a value are written. Resources keep their list order.
    """
    return {
        "version": usage_file.version,
        "resource_usage": {
            resource_usage.name: _mapping_from_items(resource_usage.items)
            for resource_usage in usage_file.resource_usages
        },
    }


def load_usage_file(path: Union[str, Path]) -> UsageFile:
    """
    Load a usage file from disk.

    A missing file is treated as an empty usage file.

    Raises:
        UsageFileError: If the file cannot be read or parsed
    """
    usage_path = Path(path)
    if not usage_path.exists():
        logger.info("Usage file %s does not exist, starting from an empty one", usage_path)
        return UsageFile()

    try:
        document = yaml.safe_load(usage_path.read_text(encoding="utf-8"))
    except OSError as error:
        raise UsageFileError(f"Failed to read usage file {usage_path}: {error}") from error
    except yaml.YAMLError as error:
        raise UsageFileError(f"Failed to parse usage file {usage_path}: {error}") from error

    return usage_file_from_dict(document)


def write_usage_file(usage_file: UsageFile, path: Union[str, Path]) -> None:
    """Write a usage file to disk, keeping resource and item order."""
    usage_path = Path(path)
    usage_path.parent.mkdir(parents=True, exist_ok=True)
    usage_path.write_text(
        yaml.safe_dump(usage_file_to_dict(usage_file), sort_keys=False, default_flow_style=False),
        encoding="utf-8",
    )
