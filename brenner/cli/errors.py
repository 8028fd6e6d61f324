"""CLI error handling: wrap commands to report errors instead of tracebacks."""

from functools import wraps

import typer
from click.exceptions import Exit

from brenner.errors import AnomalyTransitionError, BrennerError, StorageCorruptionError


def error_feedback(f):
    """Wrap command to catch exceptions and report them before exiting.

    Domain errors, bad input, and file errors are echoed to stderr and the
    command exits with status 1.
    """

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (SystemExit, Exit):
            raise
        except AnomalyTransitionError as e:
            typer.echo(f"Not allowed: {e}", err=True)
            raise typer.Exit(1) from e
        except StorageCorruptionError as e:
            typer.echo(f"Corrupt file: {e}", err=True)
            raise typer.Exit(1) from e
        except (ValueError, KeyError, TypeError) as e:
            typer.echo(f"Invalid input: {e}", err=True)
            raise typer.Exit(1) from e
        except OSError as e:
            typer.echo(f"File error: {e}", err=True)
            raise typer.Exit(1) from e
        except BrennerError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e

    return wrapper
