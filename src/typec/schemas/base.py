"""
Base Schema Classes

This module provides the base class shared by every record in the client
core. It gives dataclass records common serialization and deserialization
methods so that each schema only describes its own fields.
"""

import json
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, Type, TypeVar

T = TypeVar("T", bound="BaseRecord")


def _plain(value: Any) -> Any:
    """Convert enums (possibly nested) to their raw values for JSON."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


class BaseRecord:
    """
    Base class for dataclass records.

    Provides conversion to and from dictionaries and JSON strings.
    Subclasses override `_from_data()` when a field needs custom
    deserialization (enums, nested records, optional keys).
    """

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a plain dictionary.

        Returns:
            Dictionary of field values with enums replaced by their values.
        """
        return _plain(asdict(self))

    def to_json(self) -> str:
        """
        Convert to JSON string.

        Returns:
            JSON string representation of the record.
        """
        return json.dumps(self.to_dict(), default=repr)

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from dictionary.

        Accepts either the bare field dictionary or an envelope with a
        `data` key.

        Args:
            data: Dictionary containing record data.

        Returns:
            Instance of the record class.
        """
        record_data = data.get("data", data)
        return cls._from_data(record_data)

    @classmethod
    def from_json(cls: Type[T], json_str: str) -> T:
        """
        Create instance from JSON string.

        Args:
            json_str: JSON string containing record data.

        Returns:
            Instance of the record class.
        """
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def _from_data(cls: Type[T], data: Dict[str, Any]) -> T:
        """
        Create instance from a field dictionary.

        Should be overridden by subclasses for custom deserialization.
        """
        return cls(**data)
