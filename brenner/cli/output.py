"""CLI output helpers: --json and --quiet handling."""

import json

import typer


def init_context(ctx: typer.Context, json_output: bool = False, quiet_output: bool = False) -> None:
    """Initialize CLI context with the standard output flags."""
    if ctx.obj is None or not isinstance(ctx.obj, dict):
        ctx.obj = {}
    ctx.obj["json_output"] = json_output
    ctx.obj["quiet_output"] = quiet_output


def is_json_mode(ctx: typer.Context) -> bool:
    return ctx.obj.get("json_output", False) if ctx.obj else False


def should_output(ctx: typer.Context) -> bool:
    """Check if output should be printed (not quiet mode)."""
    return not (ctx.obj or {}).get("quiet_output")


def output_json(data, ctx: typer.Context) -> bool:
    """Output data as JSON if requested. Returns True if output, False otherwise."""
    if is_json_mode(ctx):
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        return True
    return False


def echo_if_output(msg: str, ctx: typer.Context) -> None:
    """Echo message only if not in quiet mode."""
    if should_output(ctx):
        typer.echo(msg)


def warn(msg: str) -> None:
    """Operator-facing diagnostics go to stderr, even in quiet mode."""
    typer.echo(msg, err=True)
