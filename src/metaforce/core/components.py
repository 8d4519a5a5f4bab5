"""Metadata component values and the type registry.

A metadata component is a declared type name, a full name and a free-form
attribute bag. The set of kinds is open: every kind is a `ComponentType`
entry in a registry keyed by type name, which also describes the order in
which attributes go on the wire. Registering a new kind never requires
touching the envelope or the client.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from metaforce.core.errors import ValidationError

TYPE_KEY = "xsi:type"
_RESERVED_KEYS = {TYPE_KEY, "fullName"}


@dataclass(frozen=True)
class ComponentType:
    """
    Serialization shape of one metadata kind.

    Attributes:
        name: Declared type name, as the service spells it.
        fields: Known attributes in wire order. Attributes not listed here are
                still sent, after the known ones, in insertion order.
        list_fields: Attributes that are always sent as repeated elements.
    """

    name: str
    fields: tuple[str, ...] = ()
    list_fields: frozenset[str] = frozenset()

    def order(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """Return the attributes re-ordered into wire order."""
        ordered: dict[str, Any] = {}
        for key in self.fields:
            if key in attributes:
                ordered[key] = attributes[key]
        for key, value in attributes.items():
            if key not in ordered:
                ordered[key] = value
        for key in self.list_fields:
            value = ordered.get(key)
            if value is not None and not isinstance(value, (list, tuple)):
                ordered[key] = [value]
        return ordered


_REGISTRY: dict[str, ComponentType] = {}
_REGISTRY_LOCK = threading.Lock()


def register_type(
    name: str,
    *,
    fields: Iterable[str] = (),
    list_fields: Iterable[str] = (),
) -> ComponentType:
    """
    Register (or replace) a metadata kind.

    Raises:
        ValidationError: If the name is empty, or differs only by case from a
                         kind that is already registered.
    """
    if not name or not name.strip():
        raise ValidationError("Component type name must not be empty.")
    name = name.strip()
    with _REGISTRY_LOCK:
        for existing in _REGISTRY:
            if existing != name and existing.lower() == name.lower():
                raise ValidationError(
                    f"Component type {name!r} is ambiguous with registered "
                    f"type {existing!r}."
                )
        ctype = ComponentType(
            name=name,
            fields=tuple(fields),
            list_fields=frozenset(list_fields),
        )
        _REGISTRY[name] = ctype
    return ctype


def get_type(name: str) -> ComponentType:
    """Return the registered kind for `name`, or raise `ValidationError`."""
    try:
        return _REGISTRY[name]
    except KeyError:
        raise ValidationError(
            f"Unknown metadata component type {name!r}; register it with "
            "register_type() first."
        ) from None


def is_registered(name: str) -> bool:
    return name in _REGISTRY


def registered_types() -> list[str]:
    return sorted(_REGISTRY)


@dataclass(frozen=True)
class MetadataComponent:
    """
    A typed unit of remote configuration.

    Attributes:
        type_name: Declared type name; must be registered.
        full_name: Unique name of the component within its type.
        attributes: Remaining attributes, keyed by their wire names.
    """

    type_name: str
    full_name: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.type_name:
            raise ValidationError("Metadata component has no type name.")
        get_type(self.type_name)
        if not self.full_name:
            raise ValidationError(
                f"Metadata component of type {self.type_name!r} has no full name."
            )
        clash = _RESERVED_KEYS & set(self.attributes)
        if clash:
            key = sorted(clash)[0]
            if key == TYPE_KEY and self.attributes[TYPE_KEY] != self.type_name:
                raise ValidationError(
                    f"Component {self.full_name!r} declares type "
                    f"{self.type_name!r} but carries type "
                    f"{self.attributes[TYPE_KEY]!r}."
                )
            raise ValidationError(
                f"Component {self.full_name!r}: attribute {key!r} is reserved."
            )

    def to_wire(self) -> dict[str, Any]:
        """Return the wire shape: type tag, full name, then ordered attributes."""
        ctype = get_type(self.type_name)
        wire: dict[str, Any] = {TYPE_KEY: ctype.name, "fullName": self.full_name}
        wire.update(ctype.order(self.attributes))
        return wire

    @classmethod
    def from_wire(
        cls, data: Mapping[str, Any], type_name: str | None = None
    ) -> "MetadataComponent":
        """Build a component from a decoded response element."""
        declared = data.get(TYPE_KEY) or type_name
        attributes = {k: v for k, v in data.items() if k not in _RESERVED_KEYS}
        return cls(
            type_name=declared or "",
            full_name=data.get("fullName") or "",
            attributes=attributes,
        )


def component(type_name: str, full_name: str, **attributes: Any) -> MetadataComponent:
    """Shorthand for `MetadataComponent(type_name, full_name, attributes)`."""
    return MetadataComponent(type_name=type_name, full_name=full_name, attributes=attributes)


_BUILTIN_TYPES: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "CustomObject": (
        (
            "label",
            "pluralLabel",
            "nameField",
            "deploymentStatus",
            "sharingModel",
            "description",
            "fields",
        ),
        ("fields",),
    ),
    "CustomField": (
        (
            "label",
            "type",
            "length",
            "precision",
            "scale",
            "required",
            "unique",
            "externalId",
            "defaultValue",
            "description",
            "inlineHelpText",
            "referenceTo",
            "relationshipName",
            "valueSet",
        ),
        (),
    ),
    "Layout": (("layoutSections", "relatedLists"), ("layoutSections", "relatedLists")),
    "Profile": (
        ("custom", "description", "userLicense", "fieldPermissions", "objectPermissions"),
        ("fieldPermissions", "objectPermissions"),
    ),
    "PermissionSet": (
        ("label", "description", "fieldPermissions", "objectPermissions"),
        ("fieldPermissions", "objectPermissions"),
    ),
    "ApexClass": (("apiVersion", "status", "content"), ()),
    "ApexTrigger": (("apiVersion", "status", "content"), ()),
    "ApexPage": (("apiVersion", "label", "content"), ()),
    "ApexComponent": (("apiVersion", "label", "content"), ()),
    "StaticResource": (("cacheControl", "contentType", "description", "content"), ()),
    "CustomLabels": (("labels",), ("labels",)),
    "CustomLabel": (("categories", "language", "protected", "shortDescription", "value"), ()),
    "CustomTab": (("label", "customObject", "motif"), ()),
    "CustomApplication": (("label", "description", "tabs"), ("tabs",)),
    "RecordType": (("label", "active", "description", "picklistValues"), ("picklistValues",)),
    "ValidationRule": (
        ("active", "description", "errorConditionFormula", "errorDisplayField", "errorMessage"),
        (),
    ),
    "ListView": (("label", "filterScope", "columns", "filters"), ("columns", "filters")),
    "WorkflowRule": (("active", "formula", "triggerType", "actions"), ("actions",)),
    "Flow": (("label", "processType", "status", "description"), ()),
    "RemoteSiteSetting": (("url", "isActive", "disableProtocolSecurity", "description"), ()),
    "NamedCredential": (("label", "endpoint", "principalType", "protocol"), ()),
    "Report": (("name", "format", "reportType", "columns"), ("columns",)),
    "Dashboard": (("title", "runningUser", "dashboardType"), ()),
    "EmailTemplate": (("name", "available", "encodingKey", "style", "type", "subject"), ()),
    "Queue": (("name", "queueSobject"), ("queueSobject",)),
    "Group": (("name", "doesIncludeBosses"), ()),
    "Role": (("name", "parentRole", "caseAccessLevel"), ()),
    "CustomMetadata": (("label", "protected", "values"), ("values",)),
    "LightningComponentBundle": (("apiVersion", "isExposed", "masterLabel", "targets"), ()),
    "AuraDefinitionBundle": (("apiVersion", "description", "type"), ()),
    "GlobalValueSet": (("masterLabel", "sorted", "customValue"), ("customValue",)),
    "StandardValueSet": (("sorted", "standardValue"), ("standardValue",)),
}

for _name, (_fields, _list_fields) in _BUILTIN_TYPES.items():
    register_type(_name, fields=_fields, list_fields=_list_fields)
