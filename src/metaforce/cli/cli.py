"""CLI application for the metadata client."""

import typer

from metaforce.cli.commands.deploy import deploy_app
from metaforce.cli.commands.metadata import md_app
from metaforce.cli.commands.retrieve import retrieve_app
from metaforce.cli.common.context import build_context
from metaforce.cli.common.options import ApiVersionOpt, DebugOpt, LoginUrlOpt
from metaforce.cli.common.output import configure_logging

app = typer.Typer(
    help="metaforce - metadata deploy / retrieve / CRUD tooling",
    no_args_is_help=True,
)


@app.callback()
def _init(
    ctx: typer.Context,
    login_url: str | None = LoginUrlOpt,
    api_version: str | None = ApiVersionOpt,
    debug: bool = DebugOpt,
):
    """Credentials come from METAFORCE_USERNAME/PASSWORD or METAFORCE_SESSION_ID/SERVER_URL."""
    configure_logging(debug)
    ctx.obj = build_context(login_url, api_version, debug=debug)
    ctx.call_on_close(ctx.obj.close)


app.add_typer(md_app, name="md", help="Describe / list / read / delete metadata.")
app.add_typer(deploy_app, name="deploy")
app.add_typer(retrieve_app, name="retrieve")


if __name__ == "__main__":
    app()
