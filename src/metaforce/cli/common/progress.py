"""Progress display for watching async jobs in the CLI."""

from __future__ import annotations

import time
from typing import Callable

from rich.console import Console
from rich.live import Live
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from metaforce.core.jobs import AsyncJob, JobState

console = Console()


def _style_for(state: JobState) -> str:
    if state == JobState.SUCCEEDED:
        return "green"
    if state in (JobState.FAILED, JobState.CANCELED):
        return "red"
    if state in (JobState.PENDING, JobState.IN_PROGRESS):
        return "yellow"
    return "dim"


def _status_label(job: AsyncJob) -> str:
    """Return `STATE` or `STATE (service status)` when they differ."""
    if job.status and job.status.upper() != job.state.value.replace("_", ""):
        return f"{job.state.value} ({job.status})"
    return job.state.value


def wait_for_job_with_progress(
    poll: Callable[[AsyncJob], AsyncJob],
    job: AsyncJob,
    poll_interval: float = 5,
    sleep: Callable[[float], None] = time.sleep,
) -> AsyncJob:
    """
    Poll a job until it reaches a terminal state, showing a spinner row with
    the job id, its state and the elapsed time.

    `poll` performs a single status check; the cadence lives here.

    Returns the job in its terminal state.
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.fields[kind]}[/]"),
        TextColumn("id={task.fields[job_id]}"),
        TextColumn("state=[{task.fields[style]}]{task.fields[state]}[/{task.fields[style]}]"),
        TimeElapsedColumn(),
        console=console,
    )
    task_id = progress.add_task(
        "",
        total=1,
        kind=job.kind.value,
        job_id=job.id,
        state=_status_label(job),
        style=_style_for(job.state),
    )

    with Live(progress, console=console, refresh_per_second=10, transient=True):
        while not job.done:
            sleep(poll_interval)
            job = poll(job)
            progress.update(
                task_id,
                state=_status_label(job),
                style=_style_for(job.state),
                completed=1 if job.done else 0,
            )

    return job
