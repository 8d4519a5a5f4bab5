"""Request building and per-element result parsing for metadata CRUD.

Create, update and upsert take heterogeneous component batches because every
element is tagged with its own type on the wire. Read and delete address a
single type name per request, so a batch that names more than one type is
rejected before anything is sent.

Results always line up with the request: `results[i]` belongs to
`request[i]`. The service guarantees that ordering and nothing here re-sorts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence, Union

from metaforce.core.components import TYPE_KEY, MetadataComponent, is_registered, register_type
from metaforce.core.errors import RemoteFault, TransportError, ValidationError

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 10

NameLike = Union[str, MetadataComponent]


@dataclass(frozen=True)
class SaveResult:
    """
    Outcome of one element of a create, update, upsert or rename call.

    Attributes:
        full_name: Identity of the element (taken from the request when the
                   service leaves it blank).
        success: True if the element was saved.
        created: True if an upsert created the element rather than updating it.
        fault: The element's failure, or None on success.
    """

    full_name: str
    success: bool
    created: bool = False
    fault: RemoteFault | None = None


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of one element of a delete call."""

    full_name: str
    success: bool
    fault: RemoteFault | None = None


def _check_batch(operation: str, size: int) -> None:
    if size == 0:
        raise ValidationError("At least one element is required.", operation=operation)
    if size > MAX_BATCH_SIZE:
        raise ValidationError(
            f"At most {MAX_BATCH_SIZE} elements are allowed per call, got {size}.",
            operation=operation,
        )


def build_save_request(
    operation: str, components: Iterable[MetadataComponent]
) -> dict[str, Any]:
    """Return the `{"metadata": [...]}` payload for create/update/upsert."""
    items = list(components)
    _check_batch(operation, len(items))
    for index, item in enumerate(items):
        if not isinstance(item, MetadataComponent):
            raise ValidationError(
                f"Element {index} is a {type(item).__name__}, not a "
                "MetadataComponent.",
                operation=operation,
            )
    return {"metadata": [item.to_wire() for item in items]}


def normalize_names(
    operation: str, type_name: str, full_names: Iterable[NameLike]
) -> list[str]:
    """
    Validate a single-type name batch and return plain full names.

    Raises:
        ValidationError: Type name missing, empty batch, empty name, or an
                         element of another type.
    """
    if not type_name or not type_name.strip():
        raise ValidationError("A metadata type name is required.", operation=operation)

    names: list[str] = []
    for index, item in enumerate(full_names):
        if isinstance(item, MetadataComponent):
            if item.type_name != type_name:
                raise ValidationError(
                    f"Element {index} ({item.full_name!r}) is of type "
                    f"{item.type_name!r}, but this call addresses only "
                    f"{type_name!r}; split mixed-type batches into one call "
                    "per type.",
                    operation=operation,
                )
            name = item.full_name
        else:
            name = item
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(
                f"Element {index} has an empty full name.", operation=operation
            )
        names.append(name)

    _check_batch(operation, len(names))
    return names


def build_names_request(
    operation: str, type_name: str, full_names: Iterable[NameLike]
) -> dict[str, Any]:
    """Return the `{"type": ..., "fullNames": [...]}` payload for read/delete."""
    return {
        "type": type_name,
        "fullNames": normalize_names(operation, type_name, full_names),
    }


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _fault_for(operation: str, full_name: str, errors: Any) -> RemoteFault:
    """Collapse the service's error list for one element into a RemoteFault."""
    entries = [e for e in _as_list(errors) if isinstance(e, Mapping)]
    if not entries:
        return RemoteFault(
            "The service reported a failure without details.",
            operation=operation,
            full_name=full_name,
        )
    first = entries[0]
    messages = [str(e.get("message") or "") for e in entries]
    fields: list[str] = []
    for e in entries:
        fields.extend(str(f) for f in _as_list(e.get("fields")))
    return RemoteFault(
        "; ".join(m for m in messages if m) or "Unknown error",
        operation=operation,
        code=first.get("statusCode"),
        full_name=full_name,
        fields=fields,
    )


def _result_entries(
    operation: str, expected: Sequence[str], response: Any
) -> list[Mapping[str, Any]]:
    entries = [e for e in _as_list(response) if isinstance(e, Mapping)]
    if len(entries) != len(expected):
        raise TransportError(
            f"Expected {len(expected)} results, got {len(entries)}.",
            operation=operation,
        )
    return entries


def parse_save_results(
    operation: str, expected: Sequence[str], response: Any
) -> list[SaveResult]:
    """Map the service's result list onto the request, element for element."""
    results: list[SaveResult] = []
    for requested, entry in zip(expected, _result_entries(operation, expected, response)):
        full_name = entry.get("fullName") or requested
        success = _truthy(entry.get("success"))
        results.append(
            SaveResult(
                full_name=full_name,
                success=success,
                created=_truthy(entry.get("created")),
                fault=None if success else _fault_for(operation, full_name, entry.get("errors")),
            )
        )
    return results


def parse_delete_results(
    operation: str, expected: Sequence[str], response: Any
) -> list[DeleteResult]:
    """Map delete results onto the requested names, element for element."""
    results: list[DeleteResult] = []
    for requested, entry in zip(expected, _result_entries(operation, expected, response)):
        full_name = entry.get("fullName") or requested
        success = _truthy(entry.get("success"))
        results.append(
            DeleteResult(
                full_name=full_name,
                success=success,
                fault=None if success else _fault_for(operation, full_name, entry.get("errors")),
            )
        )
    return results


def parse_read_results(type_name: str, response: Any) -> list[MetadataComponent]:
    """
    Turn read records into components, in request order.

    The service returns an empty record for every name that does not exist;
    those are omitted. Types the registry does not know yet are registered
    with the default shape, so any type the service returns can be read.
    """
    records = response.get("records") if isinstance(response, Mapping) else response
    components: list[MetadataComponent] = []
    for record in _as_list(records):
        if not isinstance(record, Mapping) or not record.get("fullName"):
            logger.debug("Skipping empty %s read record", type_name)
            continue
        declared = record.get(TYPE_KEY) or type_name
        if not is_registered(declared):
            logger.debug("Registering metadata type %s on read", declared)
            register_type(declared)
        components.append(MetadataComponent.from_wire(record, type_name))
    return components
