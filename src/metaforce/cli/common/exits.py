"""Exit handling utilities for the CLI."""

from contextlib import contextmanager
from typing import Iterator, NoReturn

import typer

from metaforce.cli.common.output import out
from metaforce.core.errors import AuthError, MetaforceError, ValidationError

EXIT_FAILURE = 1
EXIT_USAGE = 2


def ok_exit(msg: str | None = None) -> NoReturn:
    """Exit successfully with an optional informational message."""
    if msg:
        out.info(msg)
    raise typer.Exit(0)


def die(msg: str, code: int = EXIT_FAILURE) -> NoReturn:
    """Exit with an error message and optional exit code."""
    out.error(msg)
    raise typer.Exit(code)


def warn_exit(msg: str, code: int = 0) -> NoReturn:
    """Exit with a warning message and optional exit code."""
    out.warn(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: Exception, *, message: str, code: int = EXIT_FAILURE) -> NoReturn:
    """
    Print an error message and exit with a given code, chaining the cause.

    Exists to satisfy pylint W0707 and to standardize error exits.
    """
    out.error(message)
    raise typer.Exit(code) from exc


@contextmanager
def client_errors(action: str) -> Iterator[None]:
    """Turn client errors raised inside the block into CLI exits."""
    try:
        yield
    except ValidationError as exc:
        exit_from_exc(exc, message=f"{action}: {exc}", code=EXIT_USAGE)
    except AuthError as exc:
        exit_from_exc(exc, message=f"{action}: authentication failed ({exc})")
    except MetaforceError as exc:
        exit_from_exc(exc, message=f"{action} failed: {exc}")
