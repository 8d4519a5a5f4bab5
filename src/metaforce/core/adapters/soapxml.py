"""SOAP 1.1 envelope encoding and response decoding.

Payloads are plain dicts. Encoding rules:

- dict values become nested elements; the `xsi:type` key becomes the
  element's `xsi:type` attribute (used to tag polymorphic metadata)
- lists and tuples become repeated elements with the same tag
- booleans are written as `true` / `false`, None values are skipped

Decoding is the inverse, except that leaf values stay strings and a repeated
element only becomes a list when it occurs more than once.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Any, Mapping

from metaforce.core.components import TYPE_KEY
from metaforce.core.errors import AuthError, RemoteFault, TransportError
from metaforce.core.transport import METADATA_NS, PARTNER_NS

SOAPENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

_PREFIXES = {
    SOAPENV_NS: "soapenv",
    XSI_NS: "xsi",
    METADATA_NS: "met",
    PARTNER_NS: "urn",
}
for _uri, _prefix in _PREFIXES.items():
    ET.register_namespace(_prefix, _uri)

_AUTH_FAULTS = {
    "INVALID_LOGIN",
    "INVALID_SESSION_ID",
    "LOGIN_MUST_USE_SECURITY_TOKEN",
    "INVALID_OPERATION_WITH_EXPIRED_PASSWORD",
    "PASSWORD_LOCKOUT",
}

_SESSION_RE = re.compile(rb"(<(?:\w+:)?sessionId>)[^<]*(</(?:\w+:)?sessionId>)")
_PASSWORD_RE = re.compile(rb"(<(?:\w+:)?password>)[^<]*(</(?:\w+:)?password>)")


def _q(ns: str, tag: str) -> str:
    return f"{{{ns}}}{tag}"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _append(parent: ET.Element, ns: str, tag: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _append(parent, ns, tag, item)
        return
    child = ET.SubElement(parent, _q(ns, tag))
    if isinstance(value, Mapping):
        for key, item in value.items():
            if key == TYPE_KEY:
                child.set(_q(XSI_NS, "type"), f"{_PREFIXES[ns]}:{item}")
                continue
            _append(child, ns, key, item)
    else:
        child.text = _text(value)


def encode_envelope(
    operation: str,
    payload: Mapping[str, Any],
    *,
    namespace: str = METADATA_NS,
    session_id: str | None = None,
) -> bytes:
    """Return the serialized SOAP envelope for one operation."""
    envelope = ET.Element(_q(SOAPENV_NS, "Envelope"))
    if session_id:
        header = ET.SubElement(envelope, _q(SOAPENV_NS, "Header"))
        session = ET.SubElement(header, _q(namespace, "SessionHeader"))
        ET.SubElement(session, _q(namespace, "sessionId")).text = session_id
    body = ET.SubElement(envelope, _q(SOAPENV_NS, "Body"))
    request = ET.SubElement(body, _q(namespace, operation))
    for key, value in payload.items():
        _append(request, namespace, key, value)
    return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)


def _decode(element: ET.Element) -> Any:
    if element.get(_q(XSI_NS, "nil")) == "true":
        return None
    children = list(element)
    xsi_type = element.get(_q(XSI_NS, "type"))
    if not children:
        if xsi_type and not (element.text or "").strip():
            return {TYPE_KEY: xsi_type.split(":", 1)[-1]}
        return element.text or ""

    data: dict[str, Any] = {}
    if xsi_type:
        data[TYPE_KEY] = xsi_type.split(":", 1)[-1]
    for child in children:
        key = _local(child.tag)
        value = _decode(child)
        if key in data:
            if not isinstance(data[key], list):
                data[key] = [data[key]]
            data[key].append(value)
        else:
            data[key] = value
    return data


def _raise_fault(operation: str, fault: ET.Element) -> None:
    code = ""
    message = ""
    for child in fault:
        name = _local(child.tag)
        if name == "faultcode":
            code = (child.text or "").split(":", 1)[-1]
        elif name == "faultstring":
            message = child.text or ""
    if code in _AUTH_FAULTS:
        raise AuthError(f"{code}: {message}", operation=operation)
    raise RemoteFault(message or "SOAP fault", operation=operation, code=code or None)


def decode_response(operation: str, content: bytes, status_code: int = 200) -> Any:
    """
    Decode a SOAP response body into the operation's result.

    Returns None when there is no result, the decoded value for a single
    `result` element and a list for several.

    Raises:
        AuthError: The fault code is an authentication failure.
        RemoteFault: Any other SOAP fault.
        TransportError: The body is not a SOAP envelope.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        snippet = content[:500].decode("utf-8", errors="replace")
        raise TransportError(
            f"Invalid SOAP response (HTTP {status_code}): {exc}. "
            f"Response snippet: {snippet}",
            operation=operation,
        ) from exc

    body = root.find(_q(SOAPENV_NS, "Body"))
    if body is None:
        raise TransportError(
            f"SOAP response has no Body (HTTP {status_code}).", operation=operation
        )
    fault = body.find(_q(SOAPENV_NS, "Fault"))
    if fault is not None:
        _raise_fault(operation, fault)

    if status_code >= 400:
        raise TransportError(
            f"HTTP {status_code} without a SOAP fault.", operation=operation
        )

    response = next(iter(body), None)
    if response is None:
        return None
    results = [_decode(child) for child in response if _local(child.tag) == "result"]
    if not results:
        return None
    if len(results) == 1:
        return results[0]
    return results


def redact(content: bytes) -> bytes:
    """Mask session ids and passwords in a serialized envelope."""
    content = _SESSION_RE.sub(rb"\1***\2", content)
    return _PASSWORD_RE.sub(rb"\1***\2", content)
