"""Public facade of the metadata client.

`MetadataClient` composes the session store, the metadata envelope and the
async job controller over a single transport. Every operation validates its
input first, builds the request, calls the transport with the call context
that is current at that moment, and returns the typed result. Transport and
remote errors are never caught here.

A client is meant to be driven by one logical caller at a time; share it
across threads only with external serialization.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from metaforce.core.adapters.soap import SoapTransport
from metaforce.core.components import MetadataComponent
from metaforce.core.config import ClientConfig
from metaforce.core.endpoint import DEFAULT_API_VERSION, DEFAULT_LOGIN_URL, parse_api_version
from metaforce.core.envelope import (
    DeleteResult,
    NameLike,
    SaveResult,
    build_names_request,
    build_save_request,
    parse_delete_results,
    parse_read_results,
    parse_save_results,
)
from metaforce.core.errors import ValidationError
from metaforce.core.jobs import AsyncJob, AsyncJobController, DeployOptions, JobKind, RetrieveRequest
from metaforce.core.models import MAX_LIST_QUERIES, FileProperties, ListMetadataQuery, RenameRequest
from metaforce.core.session import Session, SessionStore
from metaforce.core.transport import METADATA_NS, TransportPort

logger = logging.getLogger(__name__)


class MetadataClient:
    """Stateful client for the metadata service."""

    def __init__(
        self,
        transport: TransportPort,
        *,
        login_url: str = DEFAULT_LOGIN_URL,
        api_version: str = DEFAULT_API_VERSION,
    ):
        self.transport = transport
        self.sessions = SessionStore(transport, login_url=login_url, api_version=api_version)
        self.jobs = AsyncJobController(transport, self.sessions)

    @classmethod
    def from_config(cls, config: ClientConfig) -> "MetadataClient":
        """
        Build a client over the SOAP transport.

        Adopts the configured session if there is one, otherwise logs in when
        credentials are configured.
        """
        transport = SoapTransport(timeout=config.timeout, gzip=config.gzip, debug=config.debug)
        client = cls(transport, login_url=config.login_url, api_version=config.api_version)
        if config.has_session:
            client.use_existing_session(config.session_id or "", config.server_url or "")
        elif config.has_credentials:
            client.login(config.username or "", config.password or "")
        return client

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self.sessions.session

    @property
    def api_version(self) -> str:
        return self.sessions.session.api_version

    def login(self, username: str, password: str) -> Session:
        return self.sessions.login(username, password)

    def use_existing_session(self, session_id: str, server_url: str) -> Session:
        return self.sessions.adopt_existing_session(session_id, server_url)

    def set_access_token(self, session_id: str) -> Session:
        return self.sessions.set_access_token(session_id)

    def set_api_version(self, api_version: str) -> Session:
        return self.sessions.set_api_version(api_version)

    def set_login_url(self, login_url: str) -> Session:
        return self.sessions.set_login_url(login_url)

    def logout(self) -> Session:
        return self.sessions.logout()

    def set_compression(self, enabled: bool) -> None:
        self.transport.set_compression(enabled)

    def set_logger(self, sink: logging.Logger) -> None:
        self.transport.set_logger(sink)

    def set_debug(self, enabled: bool) -> None:
        self.transport.set_debug(enabled)

    def close(self) -> None:
        """Release the transport's connections, if it holds any."""
        close = getattr(self.transport, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "MetadataClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _call(self, operation: str, payload: dict[str, Any]) -> Any:
        return self.transport.call(operation, self.sessions.context(), payload)

    def _as_of_version(self, operation: str) -> float:
        try:
            return parse_api_version(self.api_version)
        except ValidationError as exc:
            raise ValidationError(str(exc), operation=operation) from exc

    # ------------------------------------------------------------------
    # Deploy / retrieve
    # ------------------------------------------------------------------

    def deploy(self, archive: bytes, options: DeployOptions | None = None) -> AsyncJob:
        """Submit a zipped package for deployment; returns a PENDING job."""
        return self.jobs.submit_deploy(archive, options)

    def check_deploy_status(self, job_id: str, include_details: bool = False) -> AsyncJob:
        """Poll a deploy by id once."""
        if not job_id:
            raise ValidationError("A deploy id is required.", operation="checkDeployStatus")
        return self.jobs.poll(AsyncJob(id=job_id, kind=JobKind.DEPLOY), include_details)

    def cancel_deploy(self, job_id: str) -> AsyncJob:
        """Request cancellation of a deploy by id."""
        if not job_id:
            raise ValidationError("A deploy id is required.", operation="cancelDeploy")
        return self.jobs.cancel(AsyncJob(id=job_id, kind=JobKind.DEPLOY))

    def deploy_recent_validation(self, validation_id: str) -> AsyncJob:
        return self.jobs.submit_recent_validation(validation_id)

    def retrieve(self, request: RetrieveRequest) -> AsyncJob:
        """Start a retrieve; returns a PENDING job."""
        return self.jobs.submit_retrieve(request)

    def check_retrieve_status(self, job_id: str, include_zip: bool = False) -> AsyncJob:
        """Poll a retrieve by id once."""
        if not job_id:
            raise ValidationError("A retrieve id is required.", operation="checkRetrieveStatus")
        return self.jobs.poll(AsyncJob(id=job_id, kind=JobKind.RETRIEVE), include_zip)

    # ------------------------------------------------------------------
    # Describe / list
    # ------------------------------------------------------------------

    def describe_metadata(self) -> dict[str, Any]:
        """Return the metadata types the organization supports."""
        payload = {"asOfVersion": self._as_of_version("describeMetadata")}
        return self._call("describeMetadata", payload)

    def describe_value_type(self, type_name: str) -> dict[str, Any]:
        """Return the field schema of a metadata type."""
        if not type_name:
            raise ValidationError("A type name is required.", operation="describeValueType")
        qualified = type_name if type_name.startswith("{") else f"{{{METADATA_NS}}}{type_name}"
        return self._call("describeValueType", {"type": qualified})

    def list_metadata(
        self, queries: Iterable[ListMetadataQuery | str]
    ) -> list[FileProperties]:
        """List components matching up to three queries."""
        items = [q if isinstance(q, ListMetadataQuery) else ListMetadataQuery(type=q) for q in queries]
        if not items:
            raise ValidationError("At least one list query is required.", operation="listMetadata")
        if len(items) > MAX_LIST_QUERIES:
            raise ValidationError(
                f"At most {MAX_LIST_QUERIES} list queries are allowed per call.",
                operation="listMetadata",
            )
        payload = {
            "queries": [q.to_wire() for q in items],
            "asOfVersion": self._as_of_version("listMetadata"),
        }
        response = self._call("listMetadata", payload)
        if response is None:
            return []
        entries = response if isinstance(response, list) else [response]
        return [FileProperties.from_wire(e) for e in entries if isinstance(e, dict)]

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def _save(self, operation: str, components: Sequence[MetadataComponent]) -> list[SaveResult]:
        payload = build_save_request(operation, components)
        expected = [c.full_name for c in components]
        return parse_save_results(operation, expected, self._call(operation, payload))

    def create_metadata(self, components: Sequence[MetadataComponent]) -> list[SaveResult]:
        """Create components; one result per component, in order."""
        return self._save("createMetadata", list(components))

    def update_metadata(self, components: Sequence[MetadataComponent]) -> list[SaveResult]:
        """Update components; one result per component, in order."""
        return self._save("updateMetadata", list(components))

    def upsert_metadata(self, components: Sequence[MetadataComponent]) -> list[SaveResult]:
        """Create or update components; one result per component, in order."""
        return self._save("upsertMetadata", list(components))

    def delete_metadata(
        self, type_name: str, full_names: Iterable[NameLike]
    ) -> list[DeleteResult]:
        """Delete components of a single type; one result per name, in order."""
        payload = build_names_request("deleteMetadata", type_name, full_names)
        response = self._call("deleteMetadata", payload)
        return parse_delete_results("deleteMetadata", payload["fullNames"], response)

    def read_metadata(
        self, type_name: str, full_names: Iterable[NameLike]
    ) -> list[MetadataComponent]:
        """Read components of a single type, in request order."""
        payload = build_names_request("readMetadata", type_name, full_names)
        return parse_read_results(type_name, self._call("readMetadata", payload))

    def rename_metadata(self, request: RenameRequest) -> SaveResult:
        """Rename one component."""
        payload = request.to_wire()
        response = self._call("renameMetadata", payload)
        return parse_save_results("renameMetadata", [request.new_full_name], [response])[0]
