"""Error types raised by the metadata client.

Every error carries the protocol operation it belongs to so that callers can
act on it without digging through logs. Validation errors are raised before
any network call is made; everything else is surfaced exactly as the
transport reported it.
"""

from __future__ import annotations

from typing import Sequence


class MetaforceError(RuntimeError):
    """Base class for all metadata client errors."""

    def __init__(self, message: str, *, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class AuthError(MetaforceError):
    """Raised when login is rejected or the session is no longer valid."""


class ValidationError(MetaforceError, ValueError):
    """Raised for malformed or missing input, before anything is sent."""


class TransportError(MetaforceError):
    """Raised when the call could not be completed (network or protocol)."""


class RemoteFault(MetaforceError):
    """
    A well-formed error reported by the remote service.

    Used both as a raised exception (whole-call SOAP faults) and as a value
    attached to a failed per-element result.

    Attributes:
        operation: Protocol operation that produced the fault.
        code: Service status code (for example `INVALID_CROSS_REFERENCE_KEY`).
        full_name: Identity of the failing element, when the fault is
                   element-scoped.
        fields: Fields the service blamed, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        code: str | None = None,
        full_name: str | None = None,
        fields: Sequence[str] = (),
    ):
        super().__init__(_fault_text(message, operation, code, full_name), operation=operation)
        self.message = message
        self.code = code
        self.full_name = full_name
        self.fields = tuple(fields)


def _fault_text(
    message: str,
    operation: str | None,
    code: str | None,
    full_name: str | None,
) -> str:
    """Return `operation[full_name]: CODE: message` with missing parts dropped."""
    prefix = operation or ""
    if full_name:
        prefix = f"{prefix}[{full_name}]"
    text = f"{code}: {message}" if code else message
    return f"{prefix}: {text}" if prefix else text
