"""Brenner CLI: typer entry point."""

import typer

from brenner.lib import config, logs

from . import output

app = typer.Typer(
    invoke_without_command=True,
    add_completion=False,
    help="Fold research threads into artifacts, track session status and anomalies.",
)

from . import anomaly, artifact, cite, init, thread  # noqa: E402

app.command("init")(init.init)
app.command("status")(thread.status)
app.command("deltas")(thread.deltas)
app.command("merge")(artifact.merge)
app.command("compile")(artifact.compile)
app.command("cite")(cite.cite)
app.add_typer(anomaly.app, name="anomaly")


@app.callback(context_settings={"help_option_names": ["-h", "--help"]})
def main_callback(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", "-j", help="Output in JSON format."),
    quiet_output: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
):
    output.init_context(ctx, json_output, quiet_output)
    logs.configure("DEBUG" if verbose else config.logging_level())

    if ctx.resilient_parsing:
        return

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def main() -> None:
    """Entry point for brenner command."""
    app()
