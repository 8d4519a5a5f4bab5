"""Request and result values for describe, list and rename."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from metaforce.core.errors import ValidationError

MAX_LIST_QUERIES = 3


@dataclass(frozen=True)
class ListMetadataQuery:
    """
    One listMetadata query.

    Attributes:
        type: Metadata type name to list.
        folder: Folder name, required by folder-based types (reports,
                dashboards, documents, email templates).
    """

    type: str
    folder: str | None = None

    def to_wire(self) -> dict[str, Any]:
        if not self.type:
            raise ValidationError("A list query needs a type name.", operation="listMetadata")
        wire: dict[str, Any] = {}
        if self.folder:
            wire["folder"] = self.folder
        wire["type"] = self.type
        return wire


@dataclass(frozen=True)
class FileProperties:
    """A component as reported by listMetadata (or a retrieve)."""

    full_name: str
    type: str
    file_name: str | None = None
    id: str | None = None
    namespace_prefix: str | None = None
    last_modified_by_name: str | None = None
    last_modified_date: str | None = None
    manageable_state: str | None = None

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "FileProperties":
        return cls(
            full_name=str(data.get("fullName") or ""),
            type=str(data.get("type") or ""),
            file_name=data.get("fileName"),
            id=data.get("id"),
            namespace_prefix=data.get("namespacePrefix"),
            last_modified_by_name=data.get("lastModifiedByName"),
            last_modified_date=data.get("lastModifiedDate"),
            manageable_state=data.get("manageableState"),
        )


@dataclass(frozen=True)
class RenameRequest:
    """Rename one component of the given type."""

    type: str
    old_full_name: str
    new_full_name: str

    def to_wire(self) -> dict[str, Any]:
        for label, value in (
            ("type", self.type),
            ("old full name", self.old_full_name),
            ("new full name", self.new_full_name),
        ):
            if not value:
                raise ValidationError(f"Rename needs a {label}.", operation="renameMetadata")
        return {
            "type": self.type,
            "oldFullName": self.old_full_name,
            "newFullName": self.new_full_name,
        }
