"""Commands for describing, listing, reading and deleting metadata."""

from __future__ import annotations

import typer

from metaforce.cli.common.context import AppContext
from metaforce.cli.common.exits import client_errors, die, ok_exit, warn_exit
from metaforce.cli.common.options import ConfirmOpt, DryRunOpt, FolderOpt
from metaforce.cli.common.output import out
from metaforce.core.models import ListMetadataQuery, RenameRequest

md_app = typer.Typer(
    help="Describe, list, read and delete metadata components.",
    no_args_is_help=True,
)


@md_app.command()
def describe(ctx: typer.Context):
    """List the metadata types the organization supports."""
    appctx: AppContext = ctx.obj

    with client_errors("Describe"), out.status("Describing metadata..."):
        result = appctx.client.describe_metadata()

    out.types_table(result or {})
    if result and result.get("organizationNamespace"):
        out.kv({"namespace": result["organizationNamespace"]})


@md_app.command("describe-type")
def describe_type(ctx: typer.Context, type_name: str = typer.Argument(..., help="Type, e.g. CustomObject")):
    """Show the fields of one metadata type."""
    appctx: AppContext = ctx.obj

    with client_errors("Describe type"), out.status(f"Describing {type_name}..."):
        result = appctx.client.describe_value_type(type_name)

    fields = (result or {}).get("valueTypeFields") or []
    if isinstance(fields, dict):
        fields = [fields]
    out.header(type_name)
    out.kv({f.get("name", "?"): f.get("soapType", "") for f in fields})


@md_app.command("list")
def list_components(
    ctx: typer.Context,
    type_name: str = typer.Argument(..., help="Type, e.g. CustomObject"),
    folder: str | None = FolderOpt,
):
    """List components of a type."""
    appctx: AppContext = ctx.obj

    with client_errors("List"), out.status(f"Listing {type_name}..."):
        files = appctx.client.list_metadata([ListMetadataQuery(type=type_name, folder=folder)])

    if not files:
        warn_exit(f"No {type_name} components found", code=0)

    out.files_table(sorted(files, key=lambda f: f.full_name), title=type_name)


@md_app.command()
def read(
    ctx: typer.Context,
    type_name: str = typer.Argument(..., help="Type, e.g. CustomObject"),
    names: list[str] = typer.Argument(..., help="Full names (max 10)"),
):
    """Read components of a single type."""
    appctx: AppContext = ctx.obj

    with client_errors("Read"), out.status(f"Reading {type_name}..."):
        components = appctx.client.read_metadata(type_name, names)

    if not components:
        warn_exit("No components found", code=0)

    out.components_table(components, title=type_name)


@md_app.command()
def delete(
    ctx: typer.Context,
    type_name: str = typer.Argument(..., help="Type, e.g. CustomObject"),
    names: list[str] = typer.Argument(..., help="Full names (max 10)"),
    confirm: bool = ConfirmOpt,
    dry_run: bool = DryRunOpt,
):
    """
    Delete components of a single type.
    """
    appctx: AppContext = ctx.obj

    out.header(f"{type_name} to delete")
    for name in names:
        out.info(name)

    if dry_run:
        warn_exit("Dry-run enabled: nothing was deleted", code=0)

    if confirm and not out.confirm(f"Delete {len(names)} component(s)?", destructive=True):
        ok_exit("Cancelled")

    with client_errors("Delete"), out.status("Deleting..."):
        results = appctx.client.delete_metadata(type_name, names)

    out.results_table(results, title="Delete results")

    if any(not r.success for r in results):
        raise typer.Exit(1)


@md_app.command()
def rename(
    ctx: typer.Context,
    type_name: str = typer.Argument(..., help="Type, e.g. CustomObject"),
    old_name: str = typer.Argument(..., help="Current full name"),
    new_name: str = typer.Argument(..., help="New full name"),
    confirm: bool = ConfirmOpt,
):
    """Rename one component."""
    appctx: AppContext = ctx.obj

    if confirm and not out.confirm(f"Rename {type_name} {old_name} to {new_name}?"):
        ok_exit("Cancelled")

    with client_errors("Rename"), out.status("Renaming..."):
        result = appctx.client.rename_metadata(
            RenameRequest(type=type_name, old_full_name=old_name, new_full_name=new_name)
        )

    if not result.success:
        die(str(result.fault) if result.fault else f"Rename of {old_name} failed")
    out.success(f"Renamed {old_name} to {new_name}")
