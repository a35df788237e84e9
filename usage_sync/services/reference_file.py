"""
Reference usage catalogue.

Holds the canonical default usage items per resource type. The catalogue is
loaded once per process, its values are turned into defaults, and it is only
read afterwards.
"""
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr, ValidationError, model_validator

from usage_sync.core.config import config
from usage_sync.domain.usage_models import ResourceUsage, UsageItem, ValueType, infer_value_type, set_default_values


logger = logging.getLogger(__name__)

DEFAULT_REFERENCE_FILE = Path(__file__).resolve().parent.parent / "data" / "reference_usage.yml"

# Index suffixes such as [0] or ["blue"] may themselves contain dots
_INDEX_SUFFIX = re.compile(r"\[[^\]]*\]")


class ReferenceFileError(Exception):
    """Raised when the reference usage file cannot be loaded."""
    pass


class ReferenceItemModel(BaseModel):
    """A single item in the reference file."""
    key: str
    value: Optional[Union[StrictInt, StrictFloat, StrictStr, List[StrictStr]]] = None
    value_type: Optional[ValueType] = None
    description: str = ""
    items: Optional[List["ReferenceItemModel"]] = None

    @model_validator(mode="after")
    def check_value_or_items(self) -> "ReferenceItemModel":
        if self.items is not None and self.value is not None:
            raise ValueError(f"item '{self.key}' cannot have both a value and nested items")
        if self.value_type == ValueType.SUB_RESOURCE_USAGE and self.value is not None:
            raise ValueError(f"sub-resource item '{self.key}' must use nested items, not a value")
        return self


class ReferenceResourceModel(BaseModel):
    """Reference items for one example resource address."""
    name: str
    items: List[ReferenceItemModel] = Field(default_factory=list)


class ReferenceFileModel(BaseModel):
    """Top-level reference file document."""
    version: Union[str, float] = "0.1"
    resource_usage: List[ReferenceResourceModel] = Field(default_factory=list)


def resource_type_from_address(address: str) -> str:
    """
    Extract the resource type from a resource address.

    Examples:
        aws_lambda_function.hello -> aws_lambda_function
        module.api.aws_lambda_function.hello[0] -> aws_lambda_function
        data.aws_region.current -> data.aws_region
    """
    parts = _INDEX_SUFFIX.sub("", address).split(".")

    while len(parts) >= 2 and parts[0] == "module":
        parts = parts[2:]

    if not parts:
        return ""
    if parts[0] == "data" and len(parts) >= 2:
        return f"data.{parts[1]}"
    return parts[0]


def _build_items(item_models: List[ReferenceItemModel]) -> List[UsageItem]:
    items = []
    for item_model in item_models:
        if item_model.items is not None:
            value_type = ValueType.SUB_RESOURCE_USAGE
            value = ResourceUsage(name=item_model.key, items=_build_items(item_model.items))
        else:
            value = item_model.value
            value_type = item_model.value_type or (
                infer_value_type(value) if value is not None else ValueType.STRING
            )
        items.append(UsageItem(
            key=item_model.key,
            value_type=value_type,
            description=item_model.description,
            value=value,
        ))
    return items


class ReferenceFile:
    """Catalogue of default usage per resource type."""

    def __init__(self, resource_usages: List[ResourceUsage]):
        self.resource_usages = resource_usages
        self._by_name: Dict[str, ResourceUsage] = {}
        self._by_type: Dict[str, ResourceUsage] = {}
        for resource_usage in resource_usages:
            self._by_name.setdefault(resource_usage.name, resource_usage)
            self._by_type.setdefault(resource_type_from_address(resource_usage.name), resource_usage)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "ReferenceFile":
        """
        Load the reference file.

        Args:
            path: File to load (defaults to config.USAGE_REFERENCE_FILE, then the packaged file)

        Returns:
            ReferenceFile with values as loaded (call set_default_values before use)

        Raises:
            ReferenceFileError: If the file is missing, not valid YAML or does not match the schema
        """
        reference_path = Path(path or config.USAGE_REFERENCE_FILE or DEFAULT_REFERENCE_FILE)

        try:
            raw = yaml.safe_load(reference_path.read_text(encoding="utf-8"))
        except OSError as error:
            raise ReferenceFileError(f"Failed to read reference usage file {reference_path}: {error}") from error
        except yaml.YAMLError as error:
            raise ReferenceFileError(f"Failed to parse reference usage file {reference_path}: {error}") from error

        try:
            document = ReferenceFileModel.model_validate(raw or {})
        except ValidationError as error:
            raise ReferenceFileError(f"Invalid reference usage file {reference_path}: {error}") from error

        resource_usages = [
            ResourceUsage(name=resource_model.name, items=_build_items(resource_model.items))
            for resource_model in document.resource_usage
        ]
        logger.info(
            "Loaded reference usage file %s (%d resource types)",
            reference_path,
            len(resource_usages),
        )
        return cls(resource_usages)

    def set_default_values(self) -> None:
        """Move every loaded value into default_value, recursively."""
        for resource_usage in self.resource_usages:
            set_default_values(resource_usage.items)

    def find_matching_resource_usage(self, name: str) -> Optional[ResourceUsage]:
        """
        Find the reference usage for a resource address.

        An exact address match wins; otherwise the entry for the same resource
        type is returned.
        """
        exact = self._by_name.get(name)
        if exact is not None:
            return exact
        return self._by_type.get(resource_type_from_address(name))


# Global singleton instance
_reference_file: Optional[ReferenceFile] = None


def get_reference_file() -> ReferenceFile:
    """
    Get the process-wide reference file, loading it on first use.

    Returns:
        ReferenceFile with default values set

    Raises:
        ReferenceFileError: If loading fails (the failure is not cached)
    """
    global _reference_file
    if _reference_file is None:
        reference_file = ReferenceFile.load()
        reference_file.set_default_values()
        _reference_file = reference_file
    return _reference_file
