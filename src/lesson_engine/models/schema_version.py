"""
Schema versioning for the lesson store file.

The JSON store wraps its records in ``{"schema_version", "data"}`` so that
files written by older releases can be upgraded on load.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any


class SchemaVersion(Enum):
    """
    Store schema versions.

    Versions:
        V0: Bare ``{"projects": [...], "tasks": [...]}`` document (no wrapper)
        V1_0: Versioned wrapper, occurrences under ``"occurrences"``
    """

    V0 = "0"
    V1_0 = "1.0"


CURRENT_VERSION = SchemaVersion.V1_0


@dataclass
class VersionedData:
    """
    Data with version information.

    Attributes:
        schema_version: Version identifier
        data: Store content

    Examples:
        >>> versioned = VersionedData.from_dict({"projects": [], "tasks": []})
        >>> versioned.version_enum
        <SchemaVersion.V0: '0'>
    """

    schema_version: str
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "data": self.data
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'VersionedData':
        """
        Create an instance from a loaded document.

        Documents without a ``schema_version`` key are treated as V0 and
        carried whole as ``data``.
        """
        if "schema_version" not in d:
            return cls(schema_version=SchemaVersion.V0.value, data=d)
        return cls(
            schema_version=d["schema_version"],
            data=d.get("data", {})
        )

    @property
    def version_enum(self) -> SchemaVersion:
        return SchemaVersion(self.schema_version)

    def upgraded(self) -> 'VersionedData':
        """
        Return the data migrated to the current schema.

        Raises:
            ValueError: If the version is unknown
        """
        version = self.version_enum
        if version == SchemaVersion.V0:
            return VersionedData(
                schema_version=CURRENT_VERSION.value,
                data={
                    "projects": list(self.data.get("projects", [])),
                    "occurrences": list(self.data.get("tasks", [])),
                },
            )
        return self
