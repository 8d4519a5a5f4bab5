"""Common CLI options for the CLI."""

import typer

LoginUrlOpt = typer.Option(
    None,
    "--login-url",
    help="Login host (default: $METAFORCE_LOGIN_URL or login.salesforce.com)",
)

ApiVersionOpt = typer.Option(
    None,
    "--api-version",
    help="API version, e.g. 50.0 (default: $METAFORCE_API_VERSION)",
)

DebugOpt = typer.Option(
    False,
    "--debug",
    help="Log SOAP requests and responses (session ids are masked)",
)

ConfirmOpt = typer.Option(
    True,
    "--confirm/--no-confirm",
    help="Ask for confirmation before changing the organization",
)

DryRunOpt = typer.Option(
    False,
    "--dry-run",
    help="Show what would be done, but don't call the service",
)

WatchOpt = typer.Option(
    False,
    "--watch",
    "-w",
    help="Poll until the job is finished",
)

IntervalOpt = typer.Option(
    5,
    "--interval",
    help="Seconds between status checks with --watch",
    min=1,
)

FolderOpt = typer.Option(
    None,
    "--folder",
    help="Folder for folder-based types (reports, dashboards, documents)",
)
