"""Console output, tables and prompts for the metaforce CLI."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.theme import Theme

from metaforce.cli.common.tui_style import QUESTIONARY_STYLE_CHANGE, QUESTIONARY_STYLE_DESTRUCTIVE

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


def configure_logging(debug: bool) -> None:
    """Route library logging through rich; DEBUG with --debug, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def _q_try(self, fn, *args, **kwargs):
        """Call questionary prompts and drop unsupported kwargs on older versions."""
        try:
            return fn(*args, **kwargs)
        except TypeError:
            for k in ("pointer", "auto_enter"):
                kwargs.pop(k, None)
            return fn(*args, **kwargs)

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def confirm(self, message: str, *, destructive: bool = False, default: bool = False) -> bool:
        """
        Ask the user for confirmation before touching the organization.

        `destructive` switches to the red prompt used for deletes and cancels.

        Returns:
            True if the user confirms, False otherwise.
        """
        console.print("[meta]Use y/n then Enter[/]")

        prompt = self._q_try(
            questionary.confirm,
            f"[metaforce] {message}",
            default=default,
            style=QUESTIONARY_STYLE_DESTRUCTIVE if destructive else QUESTIONARY_STYLE_CHANGE,
            qmark="✦",
            auto_enter=False,
            pointer="❯",
        )
        return bool(prompt.ask())

    def types_table(self, describe: Mapping[str, Any], title: str = "Metadata types") -> None:
        """
        Expects a describeMetadata result with a `metadataObjects` entry.
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Type", style="ok", no_wrap=True)
        t.add_column("Directory", style="meta")
        t.add_column("Suffix", style="meta")
        t.add_column("Folders")

        objects = describe.get("metadataObjects") or []
        if isinstance(objects, Mapping):
            objects = [objects]
        for o in objects:
            t.add_row(
                str(o.get("xmlName", "")),
                str(o.get("directoryName", "") or ""),
                str(o.get("suffix", "") or ""),
                "yes" if str(o.get("inFolder", "")).lower() == "true" else "",
            )

        console.print(t)

    def files_table(self, files: Iterable[Any], title: str = "Components") -> None:
        """
        Expects objects with .full_name .type .file_name .last_modified_by_name
        (like metaforce.core.models.FileProperties)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Full name", style="ok")
        t.add_column("Type", style="meta")
        t.add_column("File", style="meta")
        t.add_column("Last modified by")

        for f in files:
            t.add_row(
                f.full_name,
                f.type,
                str(f.file_name or ""),
                str(f.last_modified_by_name or ""),
            )

        console.print(t)

    def components_table(self, components: Iterable[Any], title: str = "Components") -> None:
        """
        Expects objects with .type_name .full_name .attributes
        (like metaforce.core.components.MetadataComponent)
        """
        t = Table(title=title, show_lines=True)
        t.add_column("Full name", style="ok", no_wrap=True)
        t.add_column("Type", style="meta")
        t.add_column("Attributes")

        for c in components:
            attrs = "\n".join(
                f"{k}={v}" for k, v in c.attributes.items() if not isinstance(v, (dict, list))
            )
            t.add_row(c.full_name, c.type_name, attrs)

        console.print(t)

    def results_table(self, results: Iterable[Any], title: str = "Results") -> None:
        """
        Expects objects with .full_name .success .fault
        (SaveResult / DeleteResult)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Component", style="ok")
        t.add_column("Result")

        for r in results:
            if r.success:
                t.add_row(r.full_name, "[ok]OK[/]")
            else:
                fault = r.fault
                detail = f"{fault.code}: {fault.message}" if fault and fault.code else (
                    fault.message if fault else ""
                )
                t.add_row(r.full_name, f"[err]FAIL[/] {detail}")

        console.print(t)

    def job_table(self, job: Any, title: str = "Job") -> None:
        """
        Expects an AsyncJob (.id .kind .state .status .error_message)
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Id", style="ok", no_wrap=True)
        t.add_column("Kind", style="meta")
        t.add_column("State")
        t.add_column("Service status", style="meta")

        state = job.state.value
        style = "ok" if state == "SUCCEEDED" else "err" if job.done else "warn"
        t.add_row(job.id, job.kind.value, f"[{style}]{state}[/{style}]", str(job.status or ""))
        console.print(t)
        if job.error_message:
            self.error(job.error_message)

    def deploy_failures_table(self, details: Mapping[str, Any], title: str = "Failures") -> None:
        """Render component and test failures from a detailed deploy result."""
        body = details.get("details") or {}
        failures = body.get("componentFailures") or []
        if isinstance(failures, Mapping):
            failures = [failures]
        test_failures = ((body.get("runTestResult") or {}).get("failures")) or []
        if isinstance(test_failures, Mapping):
            test_failures = [test_failures]
        if not failures and not test_failures:
            return

        t = Table(title=title, show_lines=False)
        t.add_column("Component", style="ok")
        t.add_column("Type", style="meta")
        t.add_column("Problem", style="err")

        for f in failures:
            t.add_row(
                str(f.get("fullName", "")),
                str(f.get("componentType", "") or ""),
                str(f.get("problem", "") or ""),
            )
        for f in test_failures:
            t.add_row(
                f"{f.get('name', '')}.{f.get('methodName', '')}",
                "Test",
                str(f.get("message", "") or ""),
            )

        console.print(t)


out = Out()
