"""Async job lifecycle for deploy and retrieve.

Deploy and retrieve are long-running on the service side: a submit call
returns an id, and the caller polls that id until the job reaches a terminal
state. This module models that lifecycle and nothing more. It issues exactly
one call per `submit`, `poll` or `cancel`; how often to poll, when to give up
and whether to cancel are decisions for the caller.

State machine::

    PENDING -> IN_PROGRESS -> SUCCEEDED | FAILED
    PENDING | IN_PROGRESS -> CANCELED (via cancel)

Terminal states never change again.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Protocol

from metaforce.core.endpoint import parse_api_version
from metaforce.core.errors import TransportError, ValidationError
from metaforce.core.transport import CallContext, TransportPort

logger = logging.getLogger(__name__)


class JobKind(str, Enum):
    """Kind of server-side job."""

    DEPLOY = "DEPLOY"
    RETRIEVE = "RETRIEVE"


class JobState(str, Enum):
    """
    Lifecycle state of an async job.

    Values:
        PENDING: Submitted, not yet picked up by the service.
        IN_PROGRESS: The service is working on it (includes "Canceling").
        SUCCEEDED: Completed successfully (fully or partially).
        FAILED: Completed with an error.
        CANCELED: Canceled before completion.
    """

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELED})

_STATUS_MAP = {
    "Pending": JobState.PENDING,
    "Queued": JobState.PENDING,
    "InProgress": JobState.IN_PROGRESS,
    "Canceling": JobState.IN_PROGRESS,
    "Succeeded": JobState.SUCCEEDED,
    "SucceededPartial": JobState.SUCCEEDED,
    "Failed": JobState.FAILED,
    "Canceled": JobState.CANCELED,
}

_ORDER = {JobState.PENDING: 0, JobState.IN_PROGRESS: 1}

TEST_LEVELS = ("NoTestRun", "RunSpecifiedTests", "RunLocalTests", "RunAllTestsInOrg")


@dataclass(frozen=True)
class AsyncJob:
    """
    Handle for a deploy or retrieve running on the service.

    Attributes:
        id: Service-issued async process id.
        kind: DEPLOY or RETRIEVE.
        state: Current lifecycle state.
        status: Raw status string last reported by the service.
        details: Full result payload, only when the last poll asked for it.
        error_message: Service error message for failed jobs, if reported.
    """

    id: str
    kind: JobKind
    state: JobState = JobState.PENDING
    status: str | None = None
    details: Mapping[str, Any] | None = None
    error_message: str | None = None

    @property
    def done(self) -> bool:
        return self.state.terminal


@dataclass(frozen=True)
class DeployOptions:
    """Options sent with a deploy; field names map to the protocol's camelCase."""

    allow_missing_files: bool = False
    auto_update_package: bool = False
    check_only: bool = False
    ignore_warnings: bool = False
    perform_retrieve: bool = False
    purge_on_delete: bool = False
    rollback_on_error: bool = True
    run_tests: tuple[str, ...] = ()
    single_package: bool = True
    test_level: str | None = None

    def to_wire(self) -> dict[str, Any]:
        if self.test_level is not None and self.test_level not in TEST_LEVELS:
            raise ValidationError(
                f"Unknown test level {self.test_level!r}; expected one of "
                f"{', '.join(TEST_LEVELS)}.",
                operation="deploy",
            )
        if self.test_level == "RunSpecifiedTests" and not self.run_tests:
            raise ValidationError(
                "Test level RunSpecifiedTests requires at least one test class.",
                operation="deploy",
            )
        wire: dict[str, Any] = {
            "allowMissingFiles": self.allow_missing_files,
            "autoUpdatePackage": self.auto_update_package,
            "checkOnly": self.check_only,
            "ignoreWarnings": self.ignore_warnings,
            "performRetrieve": self.perform_retrieve,
            "purgeOnDelete": self.purge_on_delete,
            "rollbackOnError": self.rollback_on_error,
            "runTests": list(self.run_tests),
            "singlePackage": self.single_package,
        }
        if self.test_level:
            wire["testLevel"] = self.test_level
        return wire


@dataclass(frozen=True)
class RetrieveRequest:
    """
    What to retrieve.

    Attributes:
        api_version: Version of the returned files; the client's version when None.
        package_names: Named packages to retrieve.
        single_package: True if the archive should contain a single package.
        specific_files: Individual files to retrieve.
        unpackaged: Type name -> member names (like a package.xml manifest).
    """

    api_version: str | None = None
    package_names: tuple[str, ...] = ()
    single_package: bool = True
    specific_files: tuple[str, ...] = ()
    unpackaged: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def to_wire(self, default_version: str) -> dict[str, Any]:
        if not (self.package_names or self.specific_files or self.unpackaged):
            raise ValidationError(
                "Nothing to retrieve: give package names, specific files or "
                "unpackaged members.",
                operation="retrieve",
            )
        version = parse_api_version(self.api_version or default_version)
        wire: dict[str, Any] = {"apiVersion": version}
        if self.package_names:
            wire["packageNames"] = list(self.package_names)
        wire["singlePackage"] = self.single_package
        if self.specific_files:
            wire["specificFiles"] = list(self.specific_files)
        if self.unpackaged:
            types = []
            for type_name, members in self.unpackaged.items():
                if not type_name or not members:
                    raise ValidationError(
                        f"Unpackaged entry {type_name!r} needs a type name and "
                        "at least one member.",
                        operation="retrieve",
                    )
                types.append({"members": list(members), "name": type_name})
            wire["unpackaged"] = {"types": types, "version": str(version)}
        return wire


class ContextSource(Protocol):
    """Anything that can hand out the current call context."""

    def context(self) -> CallContext:
        ...

    @property
    def session(self) -> Any:
        ...


def _job_id(operation: str, response: Any) -> str:
    if isinstance(response, Mapping):
        job_id = response.get("id")
    else:
        job_id = response
    if not job_id:
        raise TransportError("Response carried no async process id.", operation=operation)
    return str(job_id)


def map_status(operation: str, status: str | None) -> JobState:
    """Map a service status string onto a JobState."""
    try:
        return _STATUS_MAP[status or ""]
    except KeyError:
        raise TransportError(
            f"Unknown job status {status!r}.", operation=operation
        ) from None


def _advance(current: JobState, reported: JobState) -> JobState:
    """Apply a reported state without ever moving backwards."""
    if current.terminal:
        return current
    if reported.terminal:
        return reported
    return reported if _ORDER[reported] >= _ORDER[current] else current


class AsyncJobController:
    """Submits, polls and cancels deploy/retrieve jobs, one call at a time."""

    def __init__(self, transport: TransportPort, sessions: ContextSource):
        self._transport = transport
        self._sessions = sessions

    def _call(self, operation: str, payload: Mapping[str, Any]) -> Any:
        return self._transport.call(operation, self._sessions.context(), payload)

    def submit_deploy(self, archive: bytes, options: DeployOptions | None = None) -> AsyncJob:
        """Deploy a zipped package. The archive is base64-encoded for the wire."""
        if not archive:
            raise ValidationError("Deploy archive is empty.", operation="deploy")
        payload = {
            "zipFile": base64.b64encode(archive).decode("ascii"),
            "deployOptions": (options or DeployOptions()).to_wire(),
        }
        response = self._call("deploy", payload)
        job = AsyncJob(id=_job_id("deploy", response), kind=JobKind.DEPLOY)
        logger.info("Deploy submitted: %s (%d bytes)", job.id, len(archive))
        return job

    def submit_recent_validation(self, validation_id: str) -> AsyncJob:
        """Quick-deploy a validation that already passed its tests."""
        if not validation_id:
            raise ValidationError(
                "A validation id is required.", operation="deployRecentValidation"
            )
        response = self._call("deployRecentValidation", {"validationId": validation_id})
        job = AsyncJob(id=_job_id("deployRecentValidation", response), kind=JobKind.DEPLOY)
        logger.info("Recent validation %s deployed as %s", validation_id, job.id)
        return job

    def submit_retrieve(self, request: RetrieveRequest) -> AsyncJob:
        """Start a retrieve."""
        payload = {"retrieveRequest": request.to_wire(self._sessions.session.api_version)}
        response = self._call("retrieve", payload)
        job = AsyncJob(id=_job_id("retrieve", response), kind=JobKind.RETRIEVE)
        logger.info("Retrieve submitted: %s", job.id)
        return job

    def poll(self, job: AsyncJob, include_details: bool = False) -> AsyncJob:
        """
        Check a job's status once.

        Terminal jobs are returned as-is without calling the service.
        `include_details` asks for the full result (component and test
        results for deploys, the zip archive for retrieves); without it the
        returned job carries no details.
        """
        if job.state.terminal:
            return job

        if job.kind is JobKind.DEPLOY:
            operation = "checkDeployStatus"
            payload = {"asyncProcessId": job.id, "includeDetails": include_details}
        else:
            operation = "checkRetrieveStatus"
            payload = {"asyncProcessId": job.id, "includeZip": include_details}

        response = self._call(operation, payload)
        if not isinstance(response, Mapping):
            raise TransportError("Status response is not a result object.", operation=operation)

        status = response.get("status")
        state = _advance(job.state, map_status(operation, status))
        polled = replace(
            job,
            state=state,
            status=status,
            details=dict(response) if include_details else None,
            error_message=response.get("errorMessage") or None,
        )
        logger.debug("%s %s: %s -> %s", job.kind.value, job.id, job.state.value, state.value)
        return polled

    def cancel(self, job: AsyncJob) -> AsyncJob:
        """
        Cancel a job.

        Canceling a job that already finished is a no-op and returns it
        unchanged. A running retrieve raises `ValidationError` instead of
        becoming CANCELED: the metadata service has a `cancelDeploy` call but
        no counterpart for retrieves, so there is nothing to send and
        reporting CANCELED would misstate a job that keeps running remotely.
        """
        if job.state.terminal:
            return job
        if job.kind is not JobKind.DEPLOY:
            raise ValidationError(
                f"Retrieve job {job.id} cannot be canceled.", operation="cancelDeploy"
            )
        self._call("cancelDeploy", {"asyncProcessId": job.id})
        logger.info("Deploy %s canceled", job.id)
        return replace(job, state=JobState.CANCELED, status="Canceled", details=None)


def retrieved_archive(job: AsyncJob) -> bytes:
    """Return the zip archive carried by a retrieve job polled with details."""
    if job.kind is not JobKind.RETRIEVE:
        raise ValidationError(f"Job {job.id} is not a retrieve.")
    encoded = (job.details or {}).get("zipFile")
    if not encoded:
        raise ValidationError(
            f"Retrieve {job.id} carries no archive; poll it with details once "
            "it has succeeded."
        )
    return base64.b64decode(encoded)
