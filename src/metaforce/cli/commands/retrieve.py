"""Commands for retrieving metadata archives."""

from __future__ import annotations

from pathlib import Path

import typer

from metaforce.cli.common.context import AppContext
from metaforce.cli.common.exits import client_errors, die
from metaforce.cli.common.options import IntervalOpt, WatchOpt
from metaforce.cli.common.output import out
from metaforce.cli.common.progress import wait_for_job_with_progress
from metaforce.core.jobs import AsyncJob, JobState, RetrieveRequest, retrieved_archive

retrieve_app = typer.Typer(
    help="Retrieve metadata as a zip archive.",
    no_args_is_help=True,
)


def parse_members(members: list[str]) -> dict[str, tuple[str, ...]]:
    """Group `Type:Name` selectors into a type -> members mapping."""
    grouped: dict[str, list[str]] = {}
    for member in members:
        type_name, sep, name = member.partition(":")
        if not sep or not type_name or not name:
            raise ValueError(f"Invalid member '{member}' (expected Type:Name)")
        grouped.setdefault(type_name, []).append(name)
    return {k: tuple(v) for k, v in grouped.items()}


def _save(job: AsyncJob, destination: Path) -> None:
    with client_errors("Save archive"):
        data = retrieved_archive(job)
    destination.write_bytes(data)
    out.success(f"Archive written to {destination} ({len(data)} bytes)")


@retrieve_app.command("start")
def start(
    ctx: typer.Context,
    member: list[str] = typer.Option(
        [], "--member", "-m", help="Component as Type:Name (Name may be *). This is reusable."
    ),
    package: list[str] = typer.Option([], "--package", help="Package name. This is reusable."),
    destination: Path = typer.Option(Path("retrieve.zip"), "--out", "-o", help="Archive path"),
    watch: bool = WatchOpt,
    interval: int = IntervalOpt,
):
    """
    Start a retrieve; with --watch, wait and write the archive.
    """
    appctx: AppContext = ctx.obj

    try:
        unpackaged = parse_members(member)
    except ValueError as e:
        die(str(e), code=2)

    request = RetrieveRequest(package_names=tuple(package), unpackaged=unpackaged)
    client = appctx.client
    with client_errors("Retrieve"), out.status("Submitting retrieve..."):
        job = client.retrieve(request)

    out.success(f"Retrieve submitted: {job.id}")
    if not watch:
        out.job_table(job, title="Retrieve")
        return

    with client_errors("Retrieve status"):
        job = wait_for_job_with_progress(
            lambda j: client.jobs.poll(j, include_details=False),
            job,
            poll_interval=interval,
        )

    out.job_table(job, title="Retrieve")
    if job.state != JobState.SUCCEEDED:
        raise typer.Exit(1)

    with client_errors("Retrieve status"):
        detailed = client.check_retrieve_status(job.id, include_zip=True)
    _save(detailed, destination)


@retrieve_app.command("status")
def status(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Retrieve id"),
    destination: Path | None = typer.Option(
        None, "--out", "-o", help="Write the archive here once succeeded"
    ),
):
    """Check a retrieve once (and optionally save its archive)."""
    appctx: AppContext = ctx.obj

    with client_errors("Retrieve status"), out.status("Checking retrieve..."):
        job = appctx.client.check_retrieve_status(job_id, include_zip=destination is not None)

    out.job_table(job, title="Retrieve")
    if destination is not None and job.state == JobState.SUCCEEDED:
        _save(job, destination)
