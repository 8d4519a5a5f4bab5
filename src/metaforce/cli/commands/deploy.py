"""Commands for deploying packages and following deploy jobs."""

from __future__ import annotations

from pathlib import Path

import typer

from metaforce.cli.common.context import AppContext
from metaforce.cli.common.exits import client_errors, die, ok_exit
from metaforce.cli.common.options import ConfirmOpt, IntervalOpt, WatchOpt
from metaforce.cli.common.output import out
from metaforce.cli.common.progress import wait_for_job_with_progress
from metaforce.core.client import MetadataClient
from metaforce.core.jobs import AsyncJob, DeployOptions, JobState

deploy_app = typer.Typer(
    help="Deploy zipped packages and follow deploy jobs.",
    no_args_is_help=True,
)


def _finish(client: MetadataClient, job: AsyncJob, *, watch: bool, interval: int) -> None:
    """Show the job; with watch, poll to the end and show failures."""
    if not watch:
        out.job_table(job, title="Deploy")
        return

    with client_errors("Deploy status"):
        job = wait_for_job_with_progress(
            lambda j: client.jobs.poll(j, include_details=False),
            job,
            poll_interval=interval,
        )
        detailed = client.check_deploy_status(job.id, include_details=True)

    out.job_table(job, title="Deploy")
    if detailed.details:
        out.deploy_failures_table(detailed.details)
    if job.state != JobState.SUCCEEDED:
        raise typer.Exit(1)


@deploy_app.command("start")
def start(
    ctx: typer.Context,
    archive: Path = typer.Argument(..., exists=True, dir_okay=False, help="Zipped package"),
    check_only: bool = typer.Option(False, "--check-only", help="Validate without saving"),
    test_level: str | None = typer.Option(
        None,
        "--test-level",
        help="NoTestRun, RunSpecifiedTests, RunLocalTests or RunAllTestsInOrg",
    ),
    run_test: list[str] = typer.Option(
        [], "--run-test", help="Test class for RunSpecifiedTests. This is reusable."
    ),
    purge_on_delete: bool = typer.Option(False, "--purge-on-delete"),
    confirm: bool = ConfirmOpt,
    watch: bool = WatchOpt,
    interval: int = IntervalOpt,
):
    """
    Deploy a zipped package.
    """
    appctx: AppContext = ctx.obj
    options = DeployOptions(
        check_only=check_only,
        purge_on_delete=purge_on_delete,
        run_tests=tuple(run_test),
        test_level=test_level,
    )

    data = archive.read_bytes()
    out.kv({"archive": archive, "size": f"{len(data)} bytes", "check only": check_only})

    if confirm and not check_only and not out.confirm("Deploy this package?"):
        ok_exit("Cancelled")

    client = appctx.client
    with client_errors("Deploy"), out.status("Submitting deploy..."):
        job = client.deploy(data, options)

    out.success(f"Deploy submitted: {job.id}")
    _finish(client, job, watch=watch, interval=interval)


@deploy_app.command("status")
def status(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Deploy id"),
    details: bool = typer.Option(False, "--details", help="Fetch component and test results"),
):
    """Check a deploy once."""
    appctx: AppContext = ctx.obj

    with client_errors("Deploy status"), out.status("Checking deploy..."):
        job = appctx.client.check_deploy_status(job_id, include_details=details)

    out.job_table(job, title="Deploy")
    if job.details:
        out.deploy_failures_table(job.details)


@deploy_app.command("cancel")
def cancel(
    ctx: typer.Context,
    job_id: str = typer.Argument(..., help="Deploy id"),
    confirm: bool = ConfirmOpt,
):
    """Cancel a running deploy."""
    appctx: AppContext = ctx.obj

    if confirm and not out.confirm(f"Cancel deploy {job_id}?", destructive=True):
        ok_exit("Not cancelled")

    with client_errors("Cancel"), out.status("Canceling deploy..."):
        job = appctx.client.cancel_deploy(job_id)

    if job.state != JobState.CANCELED:
        die(f"Deploy {job_id} is {job.state.value}")
    out.success(f"Deploy {job_id} canceled")


@deploy_app.command("quick")
def quick(
    ctx: typer.Context,
    validation_id: str = typer.Argument(..., help="Id of a successful check-only deploy"),
    confirm: bool = ConfirmOpt,
    watch: bool = WatchOpt,
    interval: int = IntervalOpt,
):
    """Quick-deploy a recent validation."""
    appctx: AppContext = ctx.obj

    if confirm and not out.confirm(f"Quick-deploy validation {validation_id}?"):
        ok_exit("Cancelled")

    client = appctx.client
    with client_errors("Quick deploy"), out.status("Submitting quick deploy..."):
        job = client.deploy_recent_validation(validation_id)

    out.success(f"Quick deploy submitted: {job.id}")
    _finish(client, job, watch=watch, interval=interval)
