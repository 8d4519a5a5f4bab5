"""SOAP-over-HTTP transport backed by httpx."""

from __future__ import annotations

import gzip as gzip_lib
import logging
from typing import Any, Mapping

import httpx
from httpx import RequestError

from metaforce.core.adapters import soapxml
from metaforce.core.errors import TransportError
from metaforce.core.transport import METADATA_NS, PARTNER_NS, CallContext

_PARTNER_OPERATIONS = {"login", "logout"}


class SoapTransport:
    """Adapter that executes protocol operations as SOAP calls."""

    def __init__(
        self,
        *,
        timeout: float = 60.0,
        gzip: bool = True,
        debug: bool = False,
        client: httpx.Client | None = None,
        logger: logging.Logger | None = None,
    ):
        """Create a transport; pass `client` to reuse or mock an httpx.Client."""
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None
        self._gzip = gzip
        self._debug = debug
        self._logger = logger or logging.getLogger(__name__)

    def set_compression(self, enabled: bool) -> None:
        self._gzip = enabled

    def set_logger(self, logger: logging.Logger) -> None:
        self._logger = logger

    def set_debug(self, enabled: bool) -> None:
        self._debug = enabled

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "SoapTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def call(
        self,
        operation: str,
        context: CallContext,
        payload: Mapping[str, Any],
    ) -> Any:
        """Post one SOAP request to the context's endpoint and decode the result."""
        namespace = PARTNER_NS if operation in _PARTNER_OPERATIONS else METADATA_NS
        body = soapxml.encode_envelope(
            operation, payload, namespace=namespace, session_id=context.session_id
        )
        if self._debug:
            self._logger.debug(
                "%s request to %s:\n%s",
                operation,
                context.endpoint,
                soapxml.redact(body).decode("utf-8"),
            )

        headers = {
            "Content-Type": "text/xml; charset=UTF-8",
            "SOAPAction": f'"{operation}"',
        }
        if self._gzip:
            body = gzip_lib.compress(body)
            headers["Content-Encoding"] = "gzip"
            headers["Accept-Encoding"] = "gzip"

        self._logger.debug("Calling %s at %s", operation, context.endpoint)
        try:
            response = self._client.post(context.endpoint, content=body, headers=headers)
        except RequestError as exc:
            raise TransportError(
                f"Error calling {operation} at '{context.endpoint}': {exc}",
                operation=operation,
            ) from exc

        if self._debug:
            self._logger.debug(
                "%s response (HTTP %s):\n%s",
                operation,
                response.status_code,
                soapxml.redact(response.content).decode("utf-8", errors="replace"),
            )
        return soapxml.decode_response(operation, response.content, response.status_code)
