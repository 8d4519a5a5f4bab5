"""Transport port used by the metadata client.

The client never talks to the network directly. It hands an operation name,
an explicit call context (session header and endpoint) and a plain payload to
an object implementing `TransportPort`. Nothing about the session lives on
the transport itself, so a call always uses the context it was given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

METADATA_NS = "http://soap.sforce.com/2006/04/metadata"
PARTNER_NS = "urn:partner.soap.sforce.com"


@dataclass(frozen=True)
class CallContext:
    """
    Header and endpoint that a single transport call must use.

    Attributes:
        endpoint: Absolute URL the call is posted to.
        session_id: Value of the session header, or None for anonymous calls
                    (login).
    """

    endpoint: str
    session_id: str | None = None


class TransportPort(Protocol):
    """Interface for executing protocol operations against the service."""

    def call(
        self,
        operation: str,
        context: CallContext,
        payload: Mapping[str, Any],
    ) -> Any:
        """
        Execute one operation and return the decoded response payload.

        Raises:
            AuthError: The service rejected the credentials or session.
            RemoteFault: The service returned a well-formed fault.
            TransportError: The call could not be completed.
        """
        ...

    def set_compression(self, enabled: bool) -> None:
        """Enable or disable compressed request/response bodies."""
        ...

    def set_logger(self, logger: logging.Logger) -> None:
        """Route transport logging to the given logger."""
        ...

    def set_debug(self, enabled: bool) -> None:
        """Log full request and response bodies."""
        ...
