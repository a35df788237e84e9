"""
Raw usage values and a typed read accessor over them.

Estimators read and write a flat key -> value map. Values in that map are
restricted to a closed set: None, bool, int, float, str, a list of strings
or a nested mapping of the same. A missing key reads back the same as a
key holding None. A present-but-empty value ("", 0, []) is never treated
as absent.
"""
from typing import Any, Dict, List, Mapping, Optional, Union


UsageValue = Union[None, bool, int, float, str, List[str], Dict[str, Any]]
UsageMap = Dict[str, UsageValue]


class UsageDataError(Exception):
    """Raised when a raw usage map holds a value outside the supported set."""
    pass


def _parse_value(path: str, value: Any) -> UsageValue:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Mapping):
        return parse_attributes(value, prefix=f"{path}.")
    if isinstance(value, (list, tuple)):
        parsed = []
        for index, element in enumerate(value):
            if element is not None and not isinstance(element, (bool, int, float, str)):
                raise UsageDataError(
                    f"Unsupported element type {type(element).__name__} at {path}[{index}]"
                )
            parsed.append(element)
        return parsed
    raise UsageDataError(f"Unsupported value type {type(value).__name__} at {path}")


def parse_attributes(raw: Mapping[str, Any], prefix: str = "") -> UsageMap:
    """
    Normalize a raw attribute map into the closed usage value set.

    Tuples become lists and nested mappings become plain dicts.

    Args:
        raw: Map produced by an estimator (or loaded from a usage file)
        prefix: Path prefix used in error messages

    Returns:
        A new map containing only supported value types

    Raises:
        UsageDataError: If any value has an unsupported type
    """
    parsed: UsageMap = {}
    for key, value in raw.items():
        parsed[str(key)] = _parse_value(f"{prefix}{key}", value)
    return parsed


class UsageData:
    """Typed read accessor over a raw usage map for a single resource."""

    def __init__(self, address: str, attributes: Optional[UsageMap] = None, null: bool = False):
        self.address = address
        self.attributes: UsageMap = attributes if attributes is not None else {}
        self._null = null

    def get(self, key: str) -> "UsageData":
        """Nested node for a key. Missing or non-mapping values give a null node."""
        value = self.attributes.get(key)
        if isinstance(value, dict):
            return UsageData(key, value)
        return UsageData(key, {}, null=value is None)

    def is_null(self) -> bool:
        return self._null

    def to_map(self) -> UsageMap:
        return self.attributes

    def has_key(self, key: str) -> bool:
        """True if the key exists with a non-null value."""
        return self.attributes.get(key) is not None

    def get_int(self, key: str) -> Optional[int]:
        value = self.attributes.get(key)
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            try:
                return int(value)
            except (ValueError, OverflowError):
                return None
        if isinstance(value, str):
            try:
                return int(float(value))
            except (ValueError, OverflowError):
                return None
        return None

    def get_float(self, key: str) -> Optional[float]:
        value = self.attributes.get(key)
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return None
        return None

    def get_string(self, key: str) -> Optional[str]:
        value = self.attributes.get(key)
        if value is None or isinstance(value, (list, dict)):
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def get_string_array(self, key: str) -> Optional[List[str]]:
        value = self.attributes.get(key)
        if not isinstance(value, list):
            return None
        return [str(element) for element in value if element is not None]
